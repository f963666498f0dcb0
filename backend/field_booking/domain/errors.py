from __future__ import annotations

from enum import StrEnum


class Reason(StrEnum):
    PAST_DATE = "past_date"
    OUTSIDE_HOURS = "outside_hours"
    INVALID_DURATION = "invalid_duration"
    INVALID_TRANSITION = "invalid_transition"
    INVALID_VALUE = "invalid_value"
    SLOT_CONFLICT = "slot_conflict"
    FIELD_NOT_FOUND = "field_not_found"
    FIELD_INACTIVE = "field_inactive"
    RESERVATION_NOT_FOUND = "reservation_not_found"
    STORAGE_UNAVAILABLE = "storage_unavailable"


class BookingError(Exception):
    """Base for every error the booking core reports to its caller."""

    kind = "booking_error"

    def __init__(self, reason: Reason, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "reason": str(self.reason), "message": self.message}


class ValidationError(BookingError):
    kind = "validation"


class ConflictError(BookingError):
    kind = "conflict"

    def __init__(self, message: str = "slot is already reserved") -> None:
        super().__init__(Reason.SLOT_CONFLICT, message)


class NotFoundError(BookingError):
    kind = "not_found"


class PersistenceError(BookingError):
    kind = "persistence"
    retryable = True

    def __init__(self, message: str = "storage unavailable") -> None:
        super().__init__(Reason.STORAGE_UNAVAILABLE, message)


class ConfigurationError(ValueError):
    """Raised when service hours are configured inconsistently."""
