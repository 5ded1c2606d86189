"""
Parking Repository

Queries and writes for lots and spots. No business logic.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import exists, func, select, update
from sqlalchemy.orm import Session

from backend.services.database.models import ParkingLot, ParkingSpot, Reservation
from backend.services.reservations.schemas import BLOCKING_STATUSES

_BLOCKING = sorted(BLOCKING_STATUSES, key=lambda status: status.value)


class ParkingRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_parking(self, parking_id: int, for_update: bool = False) -> Optional[ParkingLot]:
        stmt = select(ParkingLot).where(ParkingLot.id == parking_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.scalars(stmt).first()

    def get_spot(self, spot_id: int) -> Optional[ParkingSpot]:
        return self.session.get(ParkingSpot, spot_id)

    def count_spots(self, parking_id: int) -> int:
        stmt = select(func.count(ParkingSpot.id)).where(ParkingSpot.parking_id == parking_id)
        return self.session.scalar(stmt)

    def existing_identifiers(self, parking_id: int, identifiers: Iterable[str]) -> List[str]:
        stmt = (
            select(ParkingSpot.identifier)
            .where(ParkingSpot.parking_id == parking_id, ParkingSpot.identifier.in_(list(identifiers)))
            .order_by(ParkingSpot.identifier)
        )
        return [identifier.upper() for identifier in self.session.scalars(stmt)]

    def add_spots(self, spots: List[ParkingSpot]) -> List[ParkingSpot]:
        self.session.add_all(spots)
        self.session.flush()
        return spots

    def set_spots_availability(self, parking_id: int, is_available: bool) -> int:
        result = self.session.execute(
            update(ParkingSpot)
            .where(ParkingSpot.parking_id == parking_id)
            .values(is_available=is_available)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def available_spots(self, parking_id: int, start: datetime, end: datetime) -> List[ParkingSpot]:
        """
        Available spots of a lot without a blocking reservation overlapping [start, end).
        """
        overlapping = exists().where(
            Reservation.parking_spot_id == ParkingSpot.id,
            Reservation.status.in_(_BLOCKING),
            Reservation.start_datetime < end,
            Reservation.end_datetime > start,
        )
        stmt = (
            select(ParkingSpot)
            .where(ParkingSpot.parking_id == parking_id, ParkingSpot.is_available.is_(True), ~overlapping)
            .order_by(ParkingSpot.price_per_day.desc(), ParkingSpot.identifier)
        )
        return list(self.session.scalars(stmt))
