"""
Error taxonomy of the reservation engine.

Every error carries a ``kind`` so the calling layer (HTTP router, CLI, ...)
can translate it into its own response code without inspecting messages.
"""


class ReservationError(Exception):
    """Base class for all errors raised by the reservation engine."""
    kind = "internal"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class BookingValidationError(ReservationError, ValueError):
    """Malformed identifiers, mismatched ranges, plate count mismatch, illogical time ranges."""
    kind = "validation"


class CancellationWindowError(BookingValidationError):
    """The acting principal may cancel, but not at this point in time."""
    pass


class AuthorizationError(ReservationError):
    """The acting principal is not permitted to perform the operation."""
    kind = "authorization"


class ReservationConflictError(ReservationError):
    """A candidate interval overlaps an existing blocking reservation."""
    kind = "conflict"

    def __init__(self, message: str, spot_identifier: str = None, start=None, end=None):
        super().__init__(message)
        self.spot_identifier = spot_identifier
        self.start = start
        self.end = end


class NotFoundError(ReservationError):
    """Unknown parking, spot identifier, reservation or group token."""
    kind = "not_found"


class StorageError(ReservationError):
    """The data store failed mid-transaction; the transaction was rolled back."""
    kind = "internal"


def _require(condition: bool, message: str) -> None:
    """Small helper for readable validation checks."""
    if not condition:
        raise BookingValidationError(message)
