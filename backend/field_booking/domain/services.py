from dataclasses import dataclass
from datetime import date, time

from ..models import ReservationStatus
from .availability import DayAvailability
from .errors import ConflictError, Reason, ValidationError
from .slots import format_minute, minute_of, time_of


@dataclass(frozen=True)
class ValidatedSlot:
    start_time: time
    end_time: time
    duration: int

    @property
    def label(self) -> str:
        return f"{format_minute(minute_of(self.start_time))} - {format_minute(minute_of(self.end_time))}"


def validate_reservation(
    availability: DayAvailability,
    *,
    start_time: time,
    duration: int,
    today: date,
) -> ValidatedSlot:
    """
    Pure validation against an availability snapshot, short-circuiting on the first failure:
    duration bounds, past date, operating hours, then slot conflicts.
    Returns the concrete start/end pair if OK. Raises domain errors otherwise.
    """
    hours = availability.hours
    if isinstance(duration, bool) or not isinstance(duration, int) or not 1 <= duration <= hours.max_duration:
        raise ValidationError(
            Reason.INVALID_DURATION,
            f"duration must be between 1 and {hours.max_duration} slots",
        )
    if availability.booking_date < today:
        raise ValidationError(Reason.PAST_DATE, "booking date is in the past")

    start = minute_of(start_time)
    aligned = start_time.second == 0 and start_time.microsecond == 0
    offset = start - hours.opening_minute
    if not aligned or offset < 0 or offset % hours.slot_minutes != 0 or start >= hours.closing_minute:
        raise ValidationError(Reason.OUTSIDE_HOURS, "start time is not a slot within operating hours")

    end = start + duration * hours.slot_minutes
    if end > hours.closing_minute:
        raise ValidationError(Reason.OUTSIDE_HOURS, "reservation must end before closing time")

    if not availability.is_free(start, duration):
        raise ConflictError("one or more requested slots are already reserved")
    return ValidatedSlot(start_time=time_of(start), end_time=time_of(end), duration=duration)


def compute_total_amount(price_per_slot: int, duration: int) -> int:
    return price_per_slot * duration


ALLOWED_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.PENDING: frozenset({ReservationStatus.PAID, ReservationStatus.CANCELED}),
    ReservationStatus.PAID: frozenset(),
    ReservationStatus.CANCELED: frozenset(),
}


def check_transition(current: ReservationStatus, target: ReservationStatus) -> bool:
    """
    Returns True if the status must change, False for a no-op (already in target).
    Raises ValidationError when the lifecycle does not allow the move.
    """
    if current == target:
        return False
    if target not in ALLOWED_TRANSITIONS[current]:
        raise ValidationError(
            Reason.INVALID_TRANSITION,
            f"cannot change status from {current.value} to {target.value}",
        )
    return True
