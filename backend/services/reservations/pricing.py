"""
Pricing Engine

Prices one (spot, interval) pair under the hybrid hourly/daily tariff:

- per-day-only spots: every calendar day the interval touches, minimum one day
- other spots: hourly below the threshold (6h), capped by the daily
  price from the threshold on

All money is Decimal, rounded half-up to cents.
"""

import math
from collections import OrderedDict
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional, Set, Tuple

from .schemas import SlotPrice, TimeSlot

CENT = Decimal("0.01")
MINUTES_PER_HOUR = 60
DEFAULT_THRESHOLD_MINUTES = 360


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def billable_days(slot: TimeSlot) -> int:
    """Calendar dates touched by [start, end), with a minimum of one day."""
    last_date = (slot.end - timedelta(microseconds=1)).date()
    return max(1, (last_date - slot.start.date()).days + 1)


def billable_hours(duration_minutes: int) -> int:
    return math.ceil(duration_minutes / MINUTES_PER_HOUR)


def calculate_cost_and_duration(
    spot,
    slot: TimeSlot,
    threshold_minutes: int = DEFAULT_THRESHOLD_MINUTES,
) -> SlotPrice:
    """
    Price a single interval on a spot.

    Args:
        spot: object with per_day_only, price_per_hour and price_per_day
        slot: the half-open interval to price
        threshold_minutes: duration from which the daily price caps the hourly one

    Returns:
        SlotPrice: duration in minutes and estimated cost
    """
    duration = slot.duration_minutes
    price_per_hour = Decimal(str(spot.price_per_hour))
    price_per_day = Decimal(str(spot.price_per_day))

    if spot.per_day_only:
        cost = billable_days(slot) * price_per_day
    elif duration < threshold_minutes:
        cost = billable_hours(duration) * price_per_hour
    else:
        # At the threshold and beyond, the cheaper of hourly and daily wins
        cost = min(billable_hours(duration) * price_per_hour, price_per_day)

    return SlotPrice(duration_minutes=duration, estimated_cost=to_money(cost))


class PricingLedger:
    """
    Aggregates the prices of one booking group.

    A (spot, calendar day) pair is billed at most once per group; a second
    occurrence is skipped. Totals only cover pairs that were recorded, i.e.
    that survived conflict checking and were persisted.
    """

    def __init__(self, threshold_minutes: int = DEFAULT_THRESHOLD_MINUTES):
        self.threshold_minutes = threshold_minutes
        self._billed: Set[Tuple[int, object]] = set()
        self.spot_costs: Dict[int, Decimal] = OrderedDict()
        self.spot_durations: Dict[int, int] = OrderedDict()
        self.total_cost = Decimal("0.00")
        self.total_duration_minutes = 0

    def record(self, spot, slot: TimeSlot) -> Optional[SlotPrice]:
        """
        Price and add a pair to the ledger.

        Returns:
            SlotPrice, or None when the (spot, day) pair was already billed
        """
        key = (spot.id, slot.start.date())
        if key in self._billed:
            return None
        self._billed.add(key)

        price = calculate_cost_and_duration(spot, slot, self.threshold_minutes)
        self.spot_costs[spot.id] = self.spot_costs.get(spot.id, Decimal("0.00")) + price.estimated_cost
        self.spot_durations[spot.id] = self.spot_durations.get(spot.id, 0) + price.duration_minutes
        self.total_cost = to_money(self.total_cost + price.estimated_cost)
        self.total_duration_minutes += price.duration_minutes
        return price

    def cost_for(self, spot_id: int) -> Decimal:
        return to_money(self.spot_costs.get(spot_id, Decimal("0.00")))

    def duration_for(self, spot_id: int) -> int:
        return self.spot_durations.get(spot_id, 0)

