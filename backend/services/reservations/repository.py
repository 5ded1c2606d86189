"""
Reservation Repository

Persistence collaborator of the reservation engine. Wraps one SQLAlchemy
session (one unit of work) and exposes only the queries the engine needs.
Contains NO business logic.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from backend.services.database.models import ParkingLot, ParkingSpot, Reservation

from .schemas import BLOCKING_STATUSES, ReservationStatus

_BLOCKING = sorted(BLOCKING_STATUSES, key=lambda status: status.value)


class ReservationRepository:
    def __init__(self, session: Session):
        self.session = session

    # --- lookups -----------------------------------------------------------

    def get_parking(self, parking_id: int) -> Optional[ParkingLot]:
        return self.session.get(ParkingLot, parking_id)

    def get_spot(self, spot_id: int, for_update: bool = False) -> Optional[ParkingSpot]:
        stmt = select(ParkingSpot).where(ParkingSpot.id == spot_id).options(selectinload(ParkingSpot.parking))
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.scalars(stmt).first()

    def get_spots_by_identifiers(self, parking_id: int, identifiers: Iterable[str]) -> Dict[str, ParkingSpot]:
        stmt = (
            select(ParkingSpot)
            .where(ParkingSpot.parking_id == parking_id, ParkingSpot.identifier.in_(list(identifiers)))
            .options(selectinload(ParkingSpot.parking))
        )
        return {spot.identifier.upper(): spot for spot in self.session.scalars(stmt)}

    def lock_spots(self, spot_ids: Iterable[int]) -> List[ParkingSpot]:
        """
        Take row locks on the given spots, in id order so that two concurrent
        bookings of overlapping spot sets cannot deadlock.
        """
        stmt = (
            select(ParkingSpot)
            .where(ParkingSpot.id.in_(sorted(set(spot_ids))))
            .order_by(ParkingSpot.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return list(self.session.scalars(stmt))

    def get_reservation(self, reservation_id: int, for_update: bool = False) -> Optional[Reservation]:
        stmt = (
            select(Reservation)
            .where(Reservation.id == reservation_id)
            .options(selectinload(Reservation.spot).selectinload(ParkingSpot.parking))
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.scalars(stmt).first()

    def get_group(self, group_token: str, for_update: bool = False) -> List[Reservation]:
        stmt = (
            select(Reservation)
            .where(Reservation.group_token == group_token)
            .options(selectinload(Reservation.spot))
            .order_by(Reservation.start_datetime, Reservation.parking_spot_id, Reservation.id)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return list(self.session.scalars(stmt))

    # --- conflict query ----------------------------------------------------

    def find_blocking_overlaps(
        self,
        spot_id: int,
        start: datetime,
        end: datetime,
        exclude_group_token: Optional[str] = None,
    ) -> List[Reservation]:
        """
        Reservations of a spot with a blocking status overlapping [start, end).
        """
        stmt = select(Reservation).where(
            Reservation.parking_spot_id == spot_id,
            Reservation.status.in_(_BLOCKING),
            Reservation.start_datetime < end,
            Reservation.end_datetime > start,
        )
        if exclude_group_token is not None:
            stmt = stmt.where(
                or_(Reservation.group_token.is_(None), Reservation.group_token != exclude_group_token)
            )
        return list(self.session.scalars(stmt.order_by(Reservation.start_datetime)))

    # --- writes --------------------------------------------------------------

    def add_group(self, reservations: List[Reservation]) -> List[Reservation]:
        """
        Insert a reservation group and flush, so the unique index is checked
        and ids are assigned before the transaction commits.
        """
        self.session.add_all(reservations)
        self.session.flush()
        return reservations

    def set_status(
        self,
        reservation: Reservation,
        status: ReservationStatus,
        spot_available: Optional[bool] = None,
    ) -> Reservation:
        """
        Change a reservation's status and, when given, the spot availability
        flag in the same transaction.
        """
        reservation.status = status
        if spot_available is not None:
            reservation.spot.is_available = spot_available
        self.session.flush()
        return reservation
