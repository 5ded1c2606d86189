"""
Reservation Engine Package

This package provides the core of the parking reservation backend:
- expansion of spot identifiers and license plates
- generation of daily or continuous time slots
- conflict detection against blocking reservations
- hybrid hourly/daily pricing
- the role-based reservation lifecycle (service.py, api.py)

Only the persistence-free building blocks are exported here; the service
and router are imported from their modules.
"""

from .conflicts import ConflictDetector, intervals_overlap
from .errors import (
    AuthorizationError,
    BookingValidationError,
    CancellationWindowError,
    NotFoundError,
    ReservationConflictError,
    ReservationError,
    StorageError,
)
from .identifiers import expand_spot_identifiers, normalize_license_plates, pair_spots_with_plates
from .pricing import PricingLedger, calculate_cost_and_duration
from .schemas import (
    BookingRequest,
    BookingResult,
    Principal,
    ReservationStatus,
    Role,
    TimeSlot,
    UpdateRequest,
)
from .slots import continuous_slots, daily_slots, generate_slots, validate_date_logic

__all__ = [
    "ConflictDetector",
    "intervals_overlap",
    "AuthorizationError",
    "BookingValidationError",
    "CancellationWindowError",
    "NotFoundError",
    "ReservationConflictError",
    "ReservationError",
    "StorageError",
    "expand_spot_identifiers",
    "normalize_license_plates",
    "pair_spots_with_plates",
    "PricingLedger",
    "calculate_cost_and_duration",
    "BookingRequest",
    "BookingResult",
    "Principal",
    "ReservationStatus",
    "Role",
    "TimeSlot",
    "UpdateRequest",
    "continuous_slots",
    "daily_slots",
    "generate_slots",
    "validate_date_logic",
]
