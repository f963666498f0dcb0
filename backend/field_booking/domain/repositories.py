from __future__ import annotations

from datetime import date, time
from typing import Protocol

from ..models import Field, Reservation, ReservationStatus, User


class FieldRepository(Protocol):
    async def get(self, field_id: int) -> Field | None: ...

    async def get_for_update(self, field_id: int) -> Field | None: ...

    async def list_active(self) -> list[Field]: ...

    async def create(
        self,
        *,
        name: str,
        description: str | None,
        price_per_slot: int,
        image_url: str | None,
        is_active: bool,
    ) -> Field: ...

    async def update(self, field: Field) -> Field: ...


class UserRepository(Protocol):
    async def get(self, user_id: int) -> User | None: ...


class ReservationRepository(Protocol):
    async def list_active(self, field_id: int, booking_date: date) -> list[Reservation]: ...

    async def insert(
        self,
        *,
        field_id: int,
        user_id: int,
        booking_date: date,
        start_time: time,
        end_time: time,
        total_amount: int,
        status: ReservationStatus,
    ) -> Reservation: ...

    async def get_for_update(self, reservation_id: int) -> Reservation | None: ...

    async def update_status(self, reservation: Reservation, status: ReservationStatus) -> Reservation: ...

    async def list_by_user(self, user_id: int) -> list[Reservation]: ...

    async def get_for_user(self, reservation_id: int, user_id: int) -> Reservation | None: ...

    async def count_by_status(self) -> dict[ReservationStatus, tuple[int, int]]: ...

    async def list_all(self, offset: int, limit: int) -> list[tuple[Reservation, Field, User | None]]: ...

    async def count_all(self) -> int: ...
