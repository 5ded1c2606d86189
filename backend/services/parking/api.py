"""
Parking API (FastAPI)

REST Endpoints:
- POST   /parkings/{id}/spots             -> provision spots from an identifier string
- GET    /parkings/{id}/available-spots   -> spots free for [start, end)
- DELETE /parkings/{id}                   -> deactivate lot (cascades to spots)
- DELETE /parking-spots/{id}              -> deactivate one spot
"""

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Query, status

from backend.services.reservations.api import get_principal, to_http_exception
from backend.services.reservations.errors import ReservationError
from backend.services.reservations.schemas import Principal

from .schemas import AvailabilityResult, SpotProvisionRequest, SpotView
from .service import ParkingService

router = APIRouter(tags=["parking"])

_service = ParkingService()


def get_parking_service() -> ParkingService:
    return _service


@router.post("/parkings/{parking_id}/spots", response_model=List[SpotView], status_code=status.HTTP_201_CREATED)
def provision_spots(
    parking_id: int,
    request: SpotProvisionRequest,
    principal: Principal = Depends(get_principal),
    service: ParkingService = Depends(get_parking_service),
) -> List[SpotView]:
    try:
        return service.provision_spots(principal, parking_id, request)
    except ReservationError as e:
        raise to_http_exception(e)


@router.get("/parkings/{parking_id}/available-spots", response_model=AvailabilityResult)
def available_spots(
    parking_id: int,
    start_datetime: datetime = Query(...),
    end_datetime: datetime = Query(...),
    service: ParkingService = Depends(get_parking_service),
) -> AvailabilityResult:
    try:
        return service.find_available_spots(parking_id, start_datetime, end_datetime)
    except ReservationError as e:
        raise to_http_exception(e)


@router.delete("/parkings/{parking_id}", response_model=dict)
def deactivate_parking(
    parking_id: int,
    principal: Principal = Depends(get_principal),
    service: ParkingService = Depends(get_parking_service),
) -> dict:
    try:
        count = service.deactivate_lot(principal, parking_id)
    except ReservationError as e:
        raise to_http_exception(e)
    return {"message": "Parking deactivated.", "spots_deactivated": count}


@router.delete("/parking-spots/{spot_id}", response_model=SpotView)
def deactivate_spot(
    spot_id: int,
    principal: Principal = Depends(get_principal),
    service: ParkingService = Depends(get_parking_service),
) -> SpotView:
    try:
        return service.deactivate_spot(principal, spot_id)
    except ReservationError as e:
        raise to_http_exception(e)
