"""
Reservation Service

The service coordinates the lifecycle of a reservation group:
- expand and validate the inputs (identifiers.py, slots.py)
- check permissions (permissions.py)
- detect conflicts (conflicts.py)
- price every interval (pricing.py)
- persist atomically (repository.py)

That keeps api.py down to HTTP concerns.
"""

import logging
import uuid
from collections import OrderedDict
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from backend.services.database.database import SessionLocal, session_scope
from backend.services.database.models import Reservation
from backend.services.settings.reservation_settings import ReservationSettings

from . import permissions
from .conflicts import ConflictDetector
from .errors import (
    AuthorizationError,
    BookingValidationError,
    CancellationWindowError,
    NotFoundError,
    ReservationConflictError,
    StorageError,
    _require,
)
from .identifiers import expand_spot_identifiers, normalize_license_plates, pair_spots_with_plates
from .pricing import PricingLedger
from .repository import ReservationRepository
from .schemas import (
    BLOCKING_STATUSES,
    BookingRequest,
    BookingResult,
    ManualOccupancyRequest,
    Principal,
    ReservationStatus,
    ReservationView,
    SpotCost,
    StatusChangeResult,
    TimeSlot,
    UpdateRequest,
)
from .slots import generate_slots

logger = logging.getLogger(__name__)


TIMEFRAME_TAKEN = "The requested timeframe was booked by a concurrent request. Please retry."


@contextmanager
def unit_of_work(
    session_factory: sessionmaker = SessionLocal,
    conflict_message: str = TIMEFRAME_TAKEN,
) -> Iterator[Session]:
    """
    Open one transaction and translate storage failures.

    A unique index violation means a concurrent transaction wrote the same
    row first; it is reported as a conflict, not as an internal error.
    """
    try:
        with session_scope(session_factory) as session:
            yield session
    except IntegrityError as e:
        logger.warning("Uniqueness violated, reporting as conflict: %s", e.orig)
        raise ReservationConflictError(conflict_message) from e
    except SQLAlchemyError as e:
        logger.exception("Storage failure, transaction rolled back")
        raise StorageError("A storage error occurred; no changes were applied.") from e


def new_group_token() -> str:
    return str(uuid.uuid4())


def cancellation_status_for_update(principal: Principal, reservation) -> ReservationStatus:
    """Status given to the old reservations of a group that is being re-booked."""
    if permissions.can_act_as_admin(principal):
        return ReservationStatus.CANCELLED_BY_ADMIN
    if permissions.owns_reservation(principal, reservation):
        return ReservationStatus.CANCELLED_BY_OWNER
    return ReservationStatus.CANCELLED_BY_USER


class ReservationService:
    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        settings: Optional[ReservationSettings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.session_factory = session_factory
        self.settings = settings or ReservationSettings()
        self.clock = clock

    @contextmanager
    def _unit_of_work(self) -> Iterator[ReservationRepository]:
        with unit_of_work(self.session_factory) as session:
            yield ReservationRepository(session)

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    def book(self, principal: Principal, request: BookingRequest) -> BookingResult:
        """
        Create one reservation per (spot, slot) pair under a new group token.

        Raises:
            BookingValidationError, AuthorizationError, NotFoundError,
            ReservationConflictError, StorageError
        """
        pairs = pair_spots_with_plates(
            expand_spot_identifiers(request.spot_identifiers),
            normalize_license_plates(request.license_plates),
        )
        slots = generate_slots(
            request.reserved_date, request.end_date, request.start_time, request.end_time, request.continuous
        )

        if not permissions.can_book_for(principal, request.target_user_id):
            raise AuthorizationError("Unauthorized to create reservation for another user")
        user_id = request.target_user_id or principal.user_id

        with self._unit_of_work() as repo:
            result = self._create_group(
                repo,
                parking_id=request.parking_id,
                pairs=pairs,
                slots=slots,
                user_id=user_id,
                group_token=new_group_token(),
                request=request,
                message="Reservation successful.",
            )

        logger.info(
            "Booked group %s: %d reservation(s) for user %s, total %s",
            result.group_token, len(result.reservation_ids), user_id, result.total_cost,
        )
        return result

    def _create_group(
        self,
        repo: ReservationRepository,
        parking_id: int,
        pairs: List[Tuple[str, str]],
        slots: List[TimeSlot],
        user_id: Optional[int],
        group_token: str,
        request,
        message: str,
        exclude_group_token: Optional[str] = None,
    ) -> BookingResult:
        parking = repo.get_parking(parking_id)
        if parking is None:
            raise NotFoundError(f"Parking {parking_id} not found.")
        if not parking.is_active:
            raise ReservationConflictError(f"Parking {parking.name} is not active.")

        identifiers = [identifier for identifier, _ in pairs]
        spots = repo.get_spots_by_identifiers(parking_id, identifiers)
        missing = [identifier for identifier in identifiers if identifier not in spots]
        if missing:
            raise NotFoundError(f"Unknown parking spot identifier(s) in parking {parking_id}: {', '.join(missing)}")

        repo.lock_spots(spot.id for spot in spots.values())
        for identifier in identifiers:
            if not spots[identifier].is_available:
                raise ReservationConflictError(
                    f"Spot {identifier} is not available for booking.", spot_identifier=identifier
                )

        candidates = [(spots[identifier], plate, slot) for identifier, plate in pairs for slot in slots]
        ConflictDetector.check_candidates((spot, slot) for spot, _, slot in candidates)

        detector = ConflictDetector(repo)
        for spot, _, slot in candidates:
            detector.check(spot, slot, exclude_group_token=exclude_group_token)

        reservations = [
            Reservation(
                user_id=user_id,
                parking_id=parking_id,
                parking_spot_id=spot.id,
                license_plate=plate,
                start_datetime=slot.start,
                end_datetime=slot.end,
                status=ReservationStatus.ACTIVE,
                group_token=group_token,
            )
            for spot, plate, slot in candidates
        ]
        repo.add_group(reservations)

        ledger = PricingLedger(self.settings.hourly_cap_threshold_minutes)
        for spot, _, slot in candidates:
            ledger.record(spot, slot)

        spot_costs = []
        for identifier, plate in pairs:
            spot = spots[identifier]
            spot_costs.append(
                SpotCost(
                    spot_id=spot.id,
                    identifier=spot.identifier,
                    license_plate=plate,
                    per_day_only=spot.per_day_only,
                    price_per_hour=spot.price_per_hour,
                    price_per_day=spot.price_per_day,
                    allow_electric_charge=spot.allow_electric_charge,
                    duration_minutes=ledger.duration_for(spot.id),
                    total_cost_for_this_spot=ledger.cost_for(spot.id),
                )
            )

        last_date = request.end_date or request.reserved_date
        date_label = request.reserved_date.isoformat()
        if last_date != request.reserved_date:
            date_label += f" → {last_date.isoformat()}"

        return BookingResult(
            message=message,
            group_token=group_token,
            reservation_ids=[r.id for r in reservations],
            parking_id=parking_id,
            user_id=user_id,
            spot_costs=spot_costs,
            date_label=date_label,
            time_label=f"{request.start_time:%H:%M} → {request.end_time:%H:%M}",
            total_duration_minutes=ledger.total_duration_minutes,
            total_cost=ledger.total_cost,
        )

    # ------------------------------------------------------------------
    # Group update
    # ------------------------------------------------------------------

    def update_group(self, principal: Principal, group_token: str, request: UpdateRequest) -> BookingResult:
        """
        Cancel every blocking reservation of a group and re-book it under the
        same token. Cancellation and re-booking share one transaction.
        """
        with self._unit_of_work() as repo:
            existing = repo.get_group(group_token, for_update=True)
            if not existing:
                raise NotFoundError("No reservations found for the given group token.")

            group_user_id = existing[0].user_id
            if not permissions.can_modify_group(principal, group_user_id):
                raise AuthorizationError("Unauthorized to update this reservation group")

            merged = merge_with_group(request, existing)
            pairs = pair_spots_with_plates(
                expand_spot_identifiers(merged.spot_identifiers),
                normalize_license_plates(merged.license_plates),
            )
            slots = generate_slots(
                merged.reserved_date, merged.end_date, merged.start_time, merged.end_time, merged.continuous
            )

            if not permissions.can_book_for(principal, request.target_user_id):
                raise AuthorizationError("Unauthorized to assign this reservation group to another user")
            user_id = request.target_user_id or group_user_id
            _require(user_id is not None, "A manual occupancy group can only be re-booked for a target user.")

            for old in existing:
                if old.status in BLOCKING_STATUSES:
                    repo.set_status(old, cancellation_status_for_update(principal, old))

            result = self._create_group(
                repo,
                parking_id=existing[0].parking_id,
                pairs=pairs,
                slots=slots,
                user_id=user_id,
                group_token=group_token,
                request=merged,
                message="Reservation group updated successfully.",
                exclude_group_token=group_token,
            )

        logger.info("Updated group %s by user %s", group_token, principal.user_id)
        return result

    def get_group(self, group_token: str) -> List[ReservationView]:
        with self._unit_of_work() as repo:
            reservations = repo.get_group(group_token)
            if not reservations:
                raise NotFoundError("No reservations found for the given group token.")
            return [ReservationView.model_validate(r) for r in reservations]

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def cancel(self, principal: Principal, reservation_id: int) -> StatusChangeResult:
        """
        Role-gated cancellation of one reservation.

        - admin: anytime
        - tenant: at least tenant_cancellation_notice_hours before the start
        - spot/lot owner: within owner_cancellation_window_hours before the start
        """
        notice = self.settings.tenant_cancellation_notice_hours
        window = self.settings.owner_cancellation_window_hours

        with self._unit_of_work() as repo:
            reservation = repo.get_reservation(reservation_id, for_update=True)
            if reservation is None:
                raise NotFoundError(f"Reservation {reservation_id} not found.")

            if reservation.status.is_terminal:
                return StatusChangeResult(
                    reservation_id=reservation.id,
                    status=reservation.status,
                    already_finalized=True,
                    message=f"Reservation was already finalized ({reservation.status.value}).",
                )

            now = self.clock()
            spot = reservation.spot
            if permissions.can_act_as_admin(principal):
                status = ReservationStatus.CANCELLED_BY_ADMIN
            elif permissions.can_cancel_as_tenant(principal, reservation, now, notice):
                status = ReservationStatus.CANCELLED_BY_USER
            elif permissions.can_cancel_as_owner(principal, reservation, spot, now, window):
                status = ReservationStatus.CANCELLED_BY_OWNER
            elif permissions.owns_reservation(principal, reservation):
                logger.warning("Tenant %s too late to cancel reservation %s", principal.user_id, reservation.id)
                raise CancellationWindowError(
                    f"Reservations can only be cancelled at least {notice} hours before they start."
                )
            elif permissions.owns_spot(principal, spot):
                logger.warning("Owner %s too early to cancel reservation %s", principal.user_id, reservation.id)
                raise CancellationWindowError(
                    f"Spot owners can only cancel within {window} hours before the reservation starts."
                )
            else:
                raise AuthorizationError("Unauthorized to cancel this reservation")

            repo.set_status(reservation, status)
            result = StatusChangeResult(
                reservation_id=reservation.id,
                status=status,
                message="Reservation cancelled.",
            )

        logger.info("Reservation %s cancelled by user %s (%s)", reservation_id, principal.user_id, status.value)
        return result

    def end_early(self, principal: Principal, reservation_id: int) -> StatusChangeResult:
        """End an active reservation now and make its spot available again."""
        with self._unit_of_work() as repo:
            reservation = repo.get_reservation(reservation_id, for_update=True)
            if reservation is None:
                raise NotFoundError(f"Reservation {reservation_id} not found.")
            if not permissions.can_end_early(principal, reservation):
                raise AuthorizationError("Unauthorized to end this reservation")
            if reservation.status is not ReservationStatus.ACTIVE:
                raise BookingValidationError(
                    f"Only active reservations can be ended early (status: {reservation.status.value})."
                )

            repo.set_status(reservation, ReservationStatus.DONE, spot_available=True)
            result = StatusChangeResult(
                reservation_id=reservation.id,
                status=ReservationStatus.DONE,
                message="Reservation ended, spot is available again.",
            )

        logger.info("Reservation %s ended early by user %s", reservation_id, principal.user_id)
        return result

    def occupy_manually(self, principal: Principal, request: ManualOccupancyRequest) -> ReservationView:
        """Block a spot administratively: no tenant, no plate, status manual_override."""
        if not permissions.can_act_as_admin(principal):
            raise AuthorizationError("Only admins can occupy a spot manually")
        _require(
            request.start_datetime < request.end_datetime,
            "Manual occupancy start must be before its end.",
        )
        slot = TimeSlot(start=request.start_datetime, end=request.end_datetime)

        with self._unit_of_work() as repo:
            spot = repo.get_spot(request.spot_id, for_update=True)
            if spot is None:
                raise NotFoundError(f"Parking spot {request.spot_id} not found.")

            ConflictDetector(repo).check(spot, slot)

            reservation = Reservation(
                user_id=None,
                parking_id=spot.parking_id,
                parking_spot_id=spot.id,
                license_plate=None,
                start_datetime=slot.start,
                end_datetime=slot.end,
                status=ReservationStatus.MANUAL_OVERRIDE,
                group_token=new_group_token(),
            )
            repo.add_group([reservation])
            view = ReservationView.model_validate(reservation)

        logger.info("Spot %s manually occupied (%s) by admin %s", request.spot_id, slot.label(), principal.user_id)
        return view


def _pick(value, fallback):
    return fallback if value is None else value


def _group_spots_and_plates(reservations: List[Reservation]) -> Dict[str, Optional[str]]:
    plates: Dict[str, Optional[str]] = OrderedDict()
    for r in sorted(reservations, key=lambda r: (r.parking_spot_id, r.start_datetime)):
        plates.setdefault(r.spot.identifier, r.license_plate)
    return plates


def _looks_continuous(reservations: List[Reservation]) -> bool:
    first_spot = min(r.parking_spot_id for r in reservations)
    chain = sorted((r for r in reservations if r.parking_spot_id == first_spot), key=lambda r: r.start_datetime)
    if len(chain) < 2:
        return False
    return all(a.end_datetime == b.start_datetime for a, b in zip(chain, chain[1:]))


def merge_with_group(request: UpdateRequest, existing: List[Reservation]) -> BookingRequest:
    """
    Complete a partial update with the values of the existing group.

    The current (blocking) reservations describe the group; when every
    reservation is already finalized, all of them are used. In daily mode
    the end date is the day the last interval starts on, since an overnight
    last night ends the morning after.
    """
    current = [r for r in existing if r.status in BLOCKING_STATUSES] or existing
    first = min(current, key=lambda r: r.start_datetime)
    last = max(current, key=lambda r: r.end_datetime)
    continuous = _looks_continuous(current) if request.continuous is None else request.continuous
    end_date = last.end_datetime.date() if continuous else last.start_datetime.date()

    if request.spot_identifiers is not None:
        _require(
            request.license_plates is not None,
            "license_plates are required when spot identifiers change.",
        )
        spot_identifiers = request.spot_identifiers
        license_plates = request.license_plates
    else:
        plates_by_spot = _group_spots_and_plates(current)
        _require(
            None not in plates_by_spot.values() or request.license_plates is not None,
            "Incomplete data: existing reservation group has no license plates.",
        )
        spot_identifiers = ",".join(plates_by_spot)
        license_plates = request.license_plates or ",".join(plates_by_spot.values())

    return BookingRequest(
        target_user_id=request.target_user_id,
        parking_id=first.parking_id,
        spot_identifiers=spot_identifiers,
        license_plates=license_plates,
        reserved_date=_pick(request.reserved_date, first.start_datetime.date()),
        end_date=_pick(request.end_date, end_date),
        start_time=_pick(request.start_time, first.start_datetime.time()),
        end_time=_pick(request.end_time, last.end_datetime.time()),
        continuous=continuous,
    )
