from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, Field as PydanticField, field_serializer

from .domain.availability import DayAvailability
from .domain.slots import format_minute, minute_of
from .models import Field, Reservation, ReservationStatus, User
from .usecases.reservations import BookingSummary, ReservationPage
from .utils.time import utc_naive_to_aware


def _hhmm(value: time) -> str:
    return format_minute(minute_of(value))


class FieldCreate(BaseModel):
    name: str = PydanticField(min_length=1, max_length=255)
    description: Optional[str] = None
    price_per_slot: int = PydanticField(ge=0)
    image_url: Optional[str] = None
    is_active: bool = True


class FieldUpdate(BaseModel):
    name: Optional[str] = PydanticField(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    price_per_slot: Optional[int] = PydanticField(default=None, ge=0)
    image_url: Optional[str] = None
    is_active: Optional[bool] = None


class FieldRead(BaseModel):
    field_id: int
    name: str
    description: Optional[str]
    price_per_slot: int
    image_url: Optional[str]
    is_active: bool

    @classmethod
    def from_db(cls, *, field: Field) -> "FieldRead":
        return cls(
            field_id=field.id,
            name=field.name,
            description=field.description,
            price_per_slot=field.price_per_slot,
            image_url=field.image_url,
            is_active=field.is_active,
        )


class SlotRead(BaseModel):
    label: str
    starts_at: time
    ends_at: time
    occupied: bool
    bookable: bool

    @field_serializer("starts_at", "ends_at")
    def _ser_time(self, value: time) -> str:
        return _hhmm(value)


class DayAvailabilityRead(BaseModel):
    field_id: int
    booking_date: date
    duration: int
    free_slots: int
    active_reservations: int
    occupied: list[str]
    slots: list[SlotRead]

    @classmethod
    def from_domain(cls, *, availability: DayAvailability, duration: int) -> "DayAvailabilityRead":
        bookable = {slot.start_minute for slot in availability.bookable_starts(duration)}
        return cls(
            field_id=availability.field_id,
            booking_date=availability.booking_date,
            duration=duration,
            free_slots=availability.free_slots,
            active_reservations=availability.active_reservations,
            occupied=availability.occupied_labels,
            slots=[
                SlotRead(
                    label=entry.slot.label,
                    starts_at=entry.slot.start,
                    ends_at=entry.slot.end,
                    occupied=entry.occupied,
                    bookable=entry.slot.start_minute in bookable,
                )
                for entry in availability.slots
            ],
        )


class ReservationCreate(BaseModel):
    field_id: int
    booking_date: date
    start_time: time
    duration: int = PydanticField(default=1, ge=1)


class ReservationStatusUpdate(BaseModel):
    status: ReservationStatus


class ReservationRead(BaseModel):
    reservation_id: int
    field_id: int
    user_id: int
    booking_date: date
    start_time: time
    end_time: time
    total_amount: int
    status: ReservationStatus
    status_label: str
    created_at: datetime

    @field_serializer("start_time", "end_time")
    def _ser_time(self, value: time) -> str:
        return _hhmm(value)

    @field_serializer("created_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()

    @classmethod
    def from_db(cls, *, reservation: Reservation) -> "ReservationRead":
        return cls(
            reservation_id=reservation.id,
            field_id=reservation.field_id,
            user_id=reservation.user_id,
            booking_date=reservation.booking_date,
            start_time=reservation.start_time,
            end_time=reservation.end_time,
            total_amount=reservation.total_amount,
            status=reservation.status,
            status_label=reservation.status.label,
            created_at=utc_naive_to_aware(reservation.created_at),
        )


class AdminReservationRead(ReservationRead):
    field_name: str
    requester_name: Optional[str]
    requester_phone: Optional[str]

    @classmethod
    def from_row(cls, *, reservation: Reservation, field: Field, user: Optional[User]) -> "AdminReservationRead":
        base = ReservationRead.from_db(reservation=reservation)
        return cls(
            **dict(base),
            field_name=field.name,
            requester_name=user.name if user is not None else None,
            requester_phone=user.phone if user is not None else None,
        )


class ReservationPageRead(BaseModel):
    items: list[AdminReservationRead]
    total: int
    page: int
    limit: int

    @classmethod
    def from_domain(cls, *, page: ReservationPage) -> "ReservationPageRead":
        return cls(
            items=[
                AdminReservationRead.from_row(reservation=res, field=field, user=user)
                for res, field, user in page.rows
            ],
            total=page.total,
            page=page.page,
            limit=page.limit,
        )


class BookingSummaryRead(BaseModel):
    total: int
    pending: int
    paid_revenue: int
    by_status: dict[ReservationStatus, int]

    @classmethod
    def from_domain(cls, *, summary: BookingSummary) -> "BookingSummaryRead":
        return cls(
            total=summary.total,
            pending=summary.pending,
            paid_revenue=summary.paid_revenue,
            by_status=summary.by_status,
        )
