from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Optional, Protocol

from ..models import Field, Reservation, ReservationStatus, User
from .slots import format_minute, minute_of

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    CREATED = "reservation.created"
    STATUS_CHANGED = "reservation.status_changed"


@dataclass(frozen=True)
class ReservationEvent:
    """Plain-data snapshot of a reservation state change, safe to hand off after the session closes."""

    type: EventType
    status: ReservationStatus
    reservation: dict[str, Any]
    field: dict[str, Any]
    requester: Optional[dict[str, Any]] = None

    @property
    def reservation_id(self) -> int:
        return int(self.reservation["id"])

    @classmethod
    def build(
        cls,
        event_type: EventType,
        *,
        reservation: Reservation,
        field_row: Field,
        requester: User | None,
    ) -> "ReservationEvent":
        return cls(
            type=event_type,
            status=reservation.status,
            reservation={
                "id": reservation.id,
                "field_id": reservation.field_id,
                "user_id": reservation.user_id,
                "booking_date": reservation.booking_date.isoformat(),
                "start_time": format_minute(minute_of(reservation.start_time)),
                "end_time": format_minute(minute_of(reservation.end_time)),
                "total_amount": reservation.total_amount,
                "status": reservation.status.value,
            },
            field={"id": field_row.id, "name": field_row.name},
            requester=(
                {"id": requester.id, "full_name": requester.name, "phone": requester.phone or ""}
                if requester is not None
                else None
            ),
        )


class NotificationDispatcher(Protocol):
    async def notify(self, event: ReservationEvent) -> None: ...


async def notify_safely(dispatcher: NotificationDispatcher, event: ReservationEvent) -> None:
    """Deliver an event; delivery failures are logged and never propagate."""
    try:
        await dispatcher.notify(event)
    except Exception:
        logger.exception("notification %s for reservation %s failed", event.type, event.reservation_id)
