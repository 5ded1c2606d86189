"""
Schemas for the reservation engine (Pydantic)

Inbound requests, transient pricing results and outbound results of the
booking lifecycle. Pydantic checks types and required fields; the business
rules (ranges, time logic, windows) live in the engine modules.
"""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ReservationStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED_BY_USER = "cancelled_by_user"
    CANCELLED_BY_OWNER = "cancelled_by_owner"
    CANCELLED_BY_ADMIN = "cancelled_by_admin"
    DONE = "done"
    MANUAL_OVERRIDE = "manual_override"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


# Statuses that occupy a spot and take part in conflict detection
BLOCKING_STATUSES: FrozenSet[ReservationStatus] = frozenset(
    {ReservationStatus.ACTIVE, ReservationStatus.MANUAL_OVERRIDE}
)

TERMINAL_STATUSES: FrozenSet[ReservationStatus] = frozenset(
    {
        ReservationStatus.CANCELLED_BY_USER,
        ReservationStatus.CANCELLED_BY_OWNER,
        ReservationStatus.CANCELLED_BY_ADMIN,
        ReservationStatus.DONE,
    }
)


class Role(str, Enum):
    ADMIN = "admin"
    OWNER = "owner"
    TENANT = "tenant"


class Principal(BaseModel):
    """
    The acting user of a lifecycle operation.
    """
    model_config = ConfigDict(frozen=True)

    user_id: int = Field(..., ge=1)
    role: Role = Role.TENANT


class TimeSlot(BaseModel):
    """
    Half-open interval [start, end).
    """
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def _end_after_start(self):
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def label(self) -> str:
        return f"{self.start:%Y-%m-%d %H:%M} to {self.end:%Y-%m-%d %H:%M}"


class BookingRequest(BaseModel):
    """
    Payload of a booking call.

    Example:
    {
      "parking_id": 1,
      "spot_identifiers": "A1-A3,B5",
      "license_plates": "1-ABC-123, 1-DEF-456, 2-GHI-789, 1-XYZ-000",
      "reserved_date": "2025-07-01",
      "start_time": "08:00",
      "end_time": "17:00"
    }
    """
    target_user_id: Optional[int] = Field(default=None, ge=1, description="Book on behalf of another user (admin only)")
    parking_id: int = Field(..., ge=1)
    spot_identifiers: str = Field(..., min_length=1, description="Comma separated identifiers or ranges, e.g. 'A1-A5,B1'")
    license_plates: str = Field(..., min_length=1, description="Comma separated plates, one per spot")
    reserved_date: date
    end_date: Optional[date] = None
    start_time: time
    end_time: time
    continuous: bool = False


class UpdateRequest(BaseModel):
    """
    Payload of a group update. Missing fields are taken over from the existing group.
    """
    target_user_id: Optional[int] = Field(default=None, ge=1)
    spot_identifiers: Optional[str] = Field(default=None, min_length=1)
    license_plates: Optional[str] = Field(default=None, min_length=1)
    reserved_date: Optional[date] = None
    end_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    continuous: Optional[bool] = None


class ManualOccupancyRequest(BaseModel):
    spot_id: int = Field(..., ge=1)
    start_datetime: datetime
    end_datetime: datetime


class SlotPrice(BaseModel):
    """
    Pricing result of one (spot, interval) pair.
    """
    duration_minutes: int = Field(..., ge=0)
    estimated_cost: Decimal


class SpotCost(BaseModel):
    spot_id: int
    identifier: str
    license_plate: Optional[str] = None
    per_day_only: bool
    price_per_hour: Decimal
    price_per_day: Decimal
    allow_electric_charge: bool = False
    duration_minutes: int = 0
    total_cost_for_this_spot: Decimal = Decimal("0.00")


class BookingResult(BaseModel):
    """
    Success payload of a booking or group update.
    """
    message: str
    group_token: str
    reservation_ids: List[int]
    parking_id: int
    user_id: Optional[int]
    spot_costs: List[SpotCost]
    date_label: str
    time_label: str
    total_duration_minutes: int
    total_cost: Decimal
    status: ReservationStatus = ReservationStatus.ACTIVE


class ReservationView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[int]
    parking_id: int
    parking_spot_id: int
    start_datetime: datetime
    end_datetime: datetime
    license_plate: Optional[str]
    status: ReservationStatus
    group_token: Optional[str]


class StatusChangeResult(BaseModel):
    """
    Result of cancel / end-early calls.
    """
    reservation_id: int
    status: ReservationStatus
    already_finalized: bool = False
    message: str
