from dataclasses import dataclass, field
from datetime import date, time
from typing import Optional

from ..domain.availability import calculate_availability
from ..domain.errors import NotFoundError, Reason, ValidationError
from ..domain.events import EventType, ReservationEvent
from ..domain.repositories import FieldRepository, ReservationRepository, UserRepository
from ..domain.services import check_transition, compute_total_amount, validate_reservation
from ..domain.slots import ServiceHours
from ..models import Field, Reservation, ReservationStatus, User
from .fields import ensure_bookable


@dataclass(frozen=True)
class TransitionResult:
    reservation: Reservation
    previous: ReservationStatus
    changed: bool
    event: Optional[ReservationEvent] = None


@dataclass(frozen=True)
class BookingSummary:
    total: int
    pending: int
    paid_revenue: int
    by_status: dict[ReservationStatus, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ReservationPage:
    rows: list[tuple[Reservation, Field, Optional[User]]]
    total: int
    page: int
    limit: int


async def create_reservation(
    field_repo: FieldRepository,
    res_repo: ReservationRepository,
    user_repo: UserRepository,
    *,
    field_id: int,
    user_id: int,
    booking_date: date,
    start_time: time,
    duration: int,
    hours: ServiceHours,
    today: date,
) -> tuple[Reservation, ReservationEvent]:
    """
    Validate against a fresh snapshot and insert a pending reservation.
    Must run inside the caller's transaction: the field row lock taken here and the
    repository's locking overlap check make concurrent commits for one field serialize.
    """
    field_row = ensure_bookable(await field_repo.get_for_update(field_id), field_id)

    active = await res_repo.list_active(field_id, booking_date)
    availability = calculate_availability(
        field_id=field_id,
        booking_date=booking_date,
        hours=hours,
        active_reservations=active,
    )
    slot = validate_reservation(availability, start_time=start_time, duration=duration, today=today)

    reservation = await res_repo.insert(
        field_id=field_id,
        user_id=user_id,
        booking_date=booking_date,
        start_time=slot.start_time,
        end_time=slot.end_time,
        total_amount=compute_total_amount(field_row.price_per_slot, slot.duration),
        status=ReservationStatus.PENDING,
    )
    requester = await user_repo.get(user_id)
    event = ReservationEvent.build(
        EventType.CREATED,
        reservation=reservation,
        field_row=field_row,
        requester=requester,
    )
    return reservation, event


async def transition_status(
    field_repo: FieldRepository,
    res_repo: ReservationRepository,
    user_repo: UserRepository,
    *,
    reservation_id: int,
    status: ReservationStatus,
) -> TransitionResult:
    reservation = await res_repo.get_for_update(reservation_id)
    if reservation is None:
        raise NotFoundError(Reason.RESERVATION_NOT_FOUND, f"reservation {reservation_id} not found")
    previous = reservation.status
    # Idempotent: already in the target status returns as-is, without an event
    if not check_transition(previous, status):
        return TransitionResult(reservation=reservation, previous=previous, changed=False)

    updated = await res_repo.update_status(reservation, status)
    field_row = await field_repo.get(updated.field_id)
    if field_row is None:
        raise NotFoundError(Reason.FIELD_NOT_FOUND, f"field {updated.field_id} not found")
    requester = await user_repo.get(updated.user_id)
    event = ReservationEvent.build(
        EventType.STATUS_CHANGED,
        reservation=updated,
        field_row=field_row,
        requester=requester,
    )
    return TransitionResult(reservation=updated, previous=previous, changed=True, event=event)


async def list_user_reservations(
    res_repo: ReservationRepository,
    *,
    user_id: int,
) -> list[Reservation]:
    return await res_repo.list_by_user(user_id)


async def get_user_reservation(
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    user_id: int,
) -> Reservation | None:
    return await res_repo.get_for_user(reservation_id, user_id)


async def booking_summary(res_repo: ReservationRepository) -> BookingSummary:
    counts = await res_repo.count_by_status()
    by_status = {status: counts.get(status, (0, 0))[0] for status in ReservationStatus}
    return BookingSummary(
        total=sum(by_status.values()),
        pending=by_status[ReservationStatus.PENDING],
        paid_revenue=counts.get(ReservationStatus.PAID, (0, 0))[1],
        by_status=by_status,
    )


async def list_all_reservations(
    res_repo: ReservationRepository,
    *,
    page: int,
    limit: int,
) -> ReservationPage:
    """Operator view: every reservation, newest booking date first, one page at a time."""
    if page < 1 or limit < 1:
        raise ValidationError(Reason.INVALID_VALUE, "page and limit must be >= 1")
    total = await res_repo.count_all()
    rows = await res_repo.list_all((page - 1) * limit, limit)
    return ReservationPage(rows=rows, total=total, page=page, limit=limit)
