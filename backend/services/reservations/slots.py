"""
Slot Generator

Converts a reservation request (dates, wall clock times, continuous flag)
into concrete half-open [start, end) intervals.

- daily mode: one interval per calendar day, overnight windows end on day + 1
- continuous mode: one unbroken occupation, split only at midnight
"""

from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple

from .errors import _require
from .schemas import TimeSlot

ONE_DAY = timedelta(days=1)


def at(day: date, clock: time) -> datetime:
    return datetime.combine(day, clock)


def is_overnight(start_time: time, end_time: time) -> bool:
    return start_time >= end_time


def validate_date_logic(
    reserved_date: date,
    end_date: Optional[date],
    start_time: time,
    end_time: time,
) -> Tuple[datetime, datetime]:
    """
    Check the logical time rules of a request before any slot is generated.

    Returns:
        Tuple[datetime, datetime]: the absolute start and end instants

    Raises:
        BookingValidationError: if a rule is violated
    """
    _require(
        end_date is not None or start_time <= end_time,
        "Start time is after end time without an end date; give an end date for overnight reservations.",
    )

    last_date = end_date or reserved_date
    _require(last_date >= reserved_date, "End date must be after or equal to reserved date.")
    _require(
        not (last_date == reserved_date and start_time > end_time),
        "Start time is after end time on the same day.",
    )

    start = at(reserved_date, start_time)
    end = at(last_date, end_time)
    _require(
        start < end,
        f"Reservation start {start:%Y-%m-%d %H:%M} must be before its end {end:%Y-%m-%d %H:%M}.",
    )
    return start, end


def daily_slots(first_day: date, last_day: date, start_time: time, end_time: time) -> List[TimeSlot]:
    """
    One interval per calendar day from first_day to last_day inclusive.

    Overnight windows (start_time >= end_time) are anchored on the day they
    start and end on the following day.
    """
    slots: List[TimeSlot] = []
    end_offset = ONE_DAY if is_overnight(start_time, end_time) else timedelta(0)

    current = first_day
    while current <= last_day:
        slots.append(TimeSlot(start=at(current, start_time), end=at(current + end_offset, end_time)))
        current += ONE_DAY

    return slots


def continuous_slots(start: datetime, end: datetime) -> List[TimeSlot]:
    """
    Split one continuous occupation at every midnight between start and end.

    The first segment keeps the true start, the last one the true end, the
    ones in between cover a whole day (00:00 to next 00:00).
    """
    slots: List[TimeSlot] = []
    cursor = start
    while cursor < end:
        next_midnight = at(cursor.date() + ONE_DAY, time.min)
        segment_end = min(next_midnight, end)
        slots.append(TimeSlot(start=cursor, end=segment_end))
        cursor = segment_end
    return slots


def generate_slots(
    reserved_date: date,
    end_date: Optional[date],
    start_time: time,
    end_time: time,
    continuous: bool = False,
) -> List[TimeSlot]:
    """
    Validate a request and expand it into its ordered list of intervals.

    Daily mode anchors one interval on every day from reserved_date to
    end_date inclusive; an overnight last night ends on end_date + 1.
    """
    start, end = validate_date_logic(reserved_date, end_date, start_time, end_time)

    if continuous:
        return continuous_slots(start, end)

    return daily_slots(reserved_date, end_date or reserved_date, start_time, end_time)
