"""
Parking Service

Spot provisioning, soft deletion of lots and spots, and the availability
search used before booking.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from sqlalchemy.orm import sessionmaker

from backend.services.database.database import SessionLocal
from backend.services.database.models import ParkingSpot
from backend.services.reservations import permissions
from backend.services.reservations.errors import (
    AuthorizationError,
    NotFoundError,
    ReservationConflictError,
    _require,
)
from backend.services.reservations.identifiers import expand_spot_identifiers
from backend.services.reservations.schemas import Principal
from backend.services.reservations.service import unit_of_work

from .repository import ParkingRepository
from .schemas import AvailabilityResult, SpotProvisionRequest, SpotView

logger = logging.getLogger(__name__)

DEFAULT_PRICE_PER_DAY = Decimal("99.00")
DEFAULT_PRICE_PER_HOUR = Decimal("3.50")


def price_range(prices: Iterable[Decimal]) -> str:
    values = sorted(p for p in prices if p)
    if not values:
        return "N/A"
    return f"from {values[0]} to {values[-1]}"


class ParkingService:
    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self.session_factory = session_factory

    def _load_managed_parking(self, repo: ParkingRepository, principal: Principal, parking_id: int):
        parking = repo.get_parking(parking_id, for_update=True)
        if parking is None:
            raise NotFoundError(f"Parking {parking_id} not found.")
        if not permissions.can_manage_parking(principal, parking):
            raise AuthorizationError("Access denied.")
        return parking

    def provision_spots(self, principal: Principal, parking_id: int, request: SpotProvisionRequest) -> list:
        """
        Create one spot per expanded identifier.

        Raises:
            BookingValidationError: malformed identifiers or capacity exceeded
            ReservationConflictError: identifiers that already exist in the lot
        """
        identifiers = expand_spot_identifiers(request.identifiers)

        with unit_of_work(self.session_factory, "Some identifiers were created concurrently.") as session:
            repo = ParkingRepository(session)
            parking = self._load_managed_parking(repo, principal, parking_id)

            _require(
                repo.count_spots(parking_id) + len(identifiers) <= parking.total_capacity,
                "Too many spots compared to capacity.",
            )

            existing = repo.existing_identifiers(parking_id, identifiers)
            if existing:
                raise ReservationConflictError(f"The following identifiers already exist: {', '.join(existing)}")

            # Spots of an inactive lot start unavailable
            is_available = request.is_available if parking.is_active else False
            spots = repo.add_spots([
                ParkingSpot(
                    parking_id=parking_id,
                    owner_id=principal.user_id,
                    identifier=identifier,
                    allow_electric_charge=request.allow_electric_charge,
                    is_available=is_available,
                    per_day_only=request.per_day_only,
                    price_per_day=request.price_per_day if request.price_per_day is not None else DEFAULT_PRICE_PER_DAY,
                    price_per_hour=request.price_per_hour if request.price_per_hour is not None else DEFAULT_PRICE_PER_HOUR,
                    note=request.note,
                )
                for identifier in identifiers
            ])
            views = [SpotView.model_validate(spot) for spot in spots]

        logger.info("Provisioned %d spot(s) in parking %s", len(views), parking_id)
        return views

    def deactivate_spot(self, principal: Principal, spot_id: int) -> SpotView:
        """Soft delete: spots are never removed, only marked unavailable."""
        with unit_of_work(self.session_factory) as session:
            repo = ParkingRepository(session)
            spot = repo.get_spot(spot_id)
            if spot is None:
                raise NotFoundError(f"Parking spot {spot_id} not found.")
            if not (permissions.owns_spot(principal, spot) or permissions.can_act_as_admin(principal)):
                raise AuthorizationError("Access denied.")
            spot.is_available = False
            session.flush()
            view = SpotView.model_validate(spot)

        logger.info("Spot %s deactivated by user %s", spot_id, principal.user_id)
        return view

    def deactivate_lot(self, principal: Principal, parking_id: int) -> int:
        """
        Deactivate a lot and cascade unavailability to all of its spots.

        Returns:
            int: number of spots marked unavailable
        """
        with unit_of_work(self.session_factory) as session:
            repo = ParkingRepository(session)
            parking = self._load_managed_parking(repo, principal, parking_id)
            parking.is_active = False
            count = repo.set_spots_availability(parking_id, False)

        logger.info("Parking %s deactivated, %d spot(s) unavailable", parking_id, count)
        return count

    def find_available_spots(self, parking_id: int, start: datetime, end: datetime) -> AvailabilityResult:
        _require(start < end, "Search start must be before its end.")

        with unit_of_work(self.session_factory) as session:
            repo = ParkingRepository(session)
            parking = repo.get_parking(parking_id)
            if parking is None:
                raise NotFoundError(f"Parking {parking_id} not found.")

            spots = repo.available_spots(parking_id, start, end) if parking.is_active else []
            return AvailabilityResult(
                parking_id=parking.id,
                parking_name=parking.name,
                address=parking.address,
                number_of_available_spots=len(spots),
                price_range_per_day=price_range(s.price_per_day for s in spots),
                price_range_hourly_tariff=price_range(s.price_per_hour for s in spots),
                spots=[SpotView.model_validate(s) for s in spots],
            )
