"""
Reservation API (FastAPI)

REST Endpoints:
- POST  /reservations                      -> book one group
- GET   /reservations/groups/{token}       -> reservations of a group
- PATCH /reservations/groups/{token}       -> re-book a group
- POST  /reservations/{id}/cancel          -> role-gated cancellation
- POST  /reservations/{id}/end             -> end early, spot available again
- POST  /reservations/manual-occupancy     -> admin block of a spot

The acting principal comes from the X-User-Id / X-User-Role headers set by
the authentication layer in front of this service.
"""

from typing import List

from fastapi import APIRouter, Depends, Header, HTTPException, status

from backend.services.settings.reservation_settings import ReservationSettings

from .errors import ReservationError
from .schemas import (
    BookingRequest,
    BookingResult,
    ManualOccupancyRequest,
    Principal,
    ReservationView,
    Role,
    StatusChangeResult,
    UpdateRequest,
)
from .service import ReservationService

router = APIRouter(prefix="/reservations", tags=["reservations"])

ERROR_STATUS_CODES = {
    "validation": 422,
    "authorization": status.HTTP_403_FORBIDDEN,
    "conflict": status.HTTP_409_CONFLICT,
    "not_found": status.HTTP_404_NOT_FOUND,
    "internal": status.HTTP_500_INTERNAL_SERVER_ERROR,
}

# ----------------------------------------
# Wiring (overridable in tests)
# ----------------------------------------
_service = ReservationService(settings=ReservationSettings.from_env())


def get_reservation_service() -> ReservationService:
    return _service


def get_principal(
    x_user_id: int = Header(..., ge=1),
    x_user_role: Role = Header(Role.TENANT),
) -> Principal:
    return Principal(user_id=x_user_id, role=x_user_role)


def to_http_exception(error: ReservationError) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS_CODES.get(error.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=error.to_dict(),
    )


@router.post("", response_model=BookingResult, status_code=status.HTTP_201_CREATED)
def book(
    request: BookingRequest,
    principal: Principal = Depends(get_principal),
    service: ReservationService = Depends(get_reservation_service),
) -> BookingResult:
    try:
        return service.book(principal, request)
    except ReservationError as e:
        raise to_http_exception(e)


@router.post("/manual-occupancy", response_model=ReservationView, status_code=status.HTTP_201_CREATED)
def occupy_manually(
    request: ManualOccupancyRequest,
    principal: Principal = Depends(get_principal),
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationView:
    try:
        return service.occupy_manually(principal, request)
    except ReservationError as e:
        raise to_http_exception(e)


@router.get("/groups/{group_token}", response_model=List[ReservationView])
def get_group(
    group_token: str,
    principal: Principal = Depends(get_principal),
    service: ReservationService = Depends(get_reservation_service),
) -> List[ReservationView]:
    try:
        return service.get_group(group_token)
    except ReservationError as e:
        raise to_http_exception(e)


@router.patch("/groups/{group_token}", response_model=BookingResult)
def update_group(
    group_token: str,
    request: UpdateRequest,
    principal: Principal = Depends(get_principal),
    service: ReservationService = Depends(get_reservation_service),
) -> BookingResult:
    try:
        return service.update_group(principal, group_token, request)
    except ReservationError as e:
        raise to_http_exception(e)


@router.post("/{reservation_id}/cancel", response_model=StatusChangeResult)
def cancel(
    reservation_id: int,
    principal: Principal = Depends(get_principal),
    service: ReservationService = Depends(get_reservation_service),
) -> StatusChangeResult:
    try:
        return service.cancel(principal, reservation_id)
    except ReservationError as e:
        raise to_http_exception(e)


@router.post("/{reservation_id}/end", response_model=StatusChangeResult)
def end_early(
    reservation_id: int,
    principal: Principal = Depends(get_principal),
    service: ReservationService = Depends(get_reservation_service),
) -> StatusChangeResult:
    try:
        return service.end_early(principal, reservation_id)
    except ReservationError as e:
        raise to_http_exception(e)
