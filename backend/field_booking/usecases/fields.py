from datetime import date
from typing import Any

from ..domain.availability import DayAvailability, calculate_availability
from ..domain.errors import NotFoundError, Reason, ValidationError
from ..domain.repositories import FieldRepository, ReservationRepository
from ..domain.slots import ServiceHours
from ..models import Field

_EDITABLE = ("name", "description", "price_per_slot", "image_url", "is_active")


async def list_active_fields(field_repo: FieldRepository) -> list[Field]:
    return await field_repo.list_active()


async def get_day_availability(
    field_repo: FieldRepository,
    res_repo: ReservationRepository,
    *,
    field_id: int,
    booking_date: date,
    hours: ServiceHours,
) -> DayAvailability:
    field = await field_repo.get(field_id)
    ensure_bookable(field, field_id)
    active = await res_repo.list_active(field_id, booking_date)
    return calculate_availability(
        field_id=field_id,
        booking_date=booking_date,
        hours=hours,
        active_reservations=active,
    )


def ensure_bookable(field: Field | None, field_id: int) -> Field:
    if field is None:
        raise NotFoundError(Reason.FIELD_NOT_FOUND, f"field {field_id} not found")
    if not field.is_active:
        raise NotFoundError(Reason.FIELD_INACTIVE, f"field {field_id} is not available for booking")
    return field


async def create_field(
    field_repo: FieldRepository,
    *,
    name: str,
    description: str | None,
    price_per_slot: int,
    image_url: str | None,
    is_active: bool = True,
) -> Field:
    _check_values(name=name, price_per_slot=price_per_slot)
    return await field_repo.create(
        name=name.strip(),
        description=description,
        price_per_slot=price_per_slot,
        image_url=image_url,
        is_active=is_active,
    )


async def update_field(
    field_repo: FieldRepository,
    *,
    field_id: int,
    changes: dict[str, Any],
) -> Field:
    """Apply operator edits. Deactivation only hides the field from future booking."""
    field = await field_repo.get_for_update(field_id)
    if field is None:
        raise NotFoundError(Reason.FIELD_NOT_FOUND, f"field {field_id} not found")
    unknown = set(changes) - set(_EDITABLE)
    if unknown:
        raise ValidationError(Reason.INVALID_VALUE, f"fields not editable: {', '.join(sorted(unknown))}")
    _check_values(
        name=changes.get("name", field.name),
        price_per_slot=changes.get("price_per_slot", field.price_per_slot),
    )
    for key, value in changes.items():
        setattr(field, key, value.strip() if key == "name" else value)
    return await field_repo.update(field)


def _check_values(*, name: str, price_per_slot: int) -> None:
    if not name or not name.strip():
        raise ValidationError(Reason.INVALID_VALUE, "name must not be empty")
    if price_per_slot < 0:
        raise ValidationError(Reason.INVALID_VALUE, "price_per_slot must be >= 0")
