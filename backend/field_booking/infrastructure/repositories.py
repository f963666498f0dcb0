from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime, time, timezone
from typing import Iterator

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import ConflictError, PersistenceError, Reason, ValidationError
from ..domain.repositories import FieldRepository, ReservationRepository, UserRepository
from ..models import OCCUPYING_STATUSES, Field, Reservation, ReservationStatus, User


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


@contextmanager
def _storage_errors() -> Iterator[None]:
    """Translate SQLAlchemy failures into the booking error taxonomy."""
    try:
        yield
    except IntegrityError as exc:
        raise ValidationError(Reason.INVALID_VALUE, "values violate a storage constraint") from exc
    except SQLAlchemyError as exc:
        raise PersistenceError(f"storage failure: {exc.__class__.__name__}") from exc


async def _take_write_lock(session: AsyncSession, model: type[Field] | type[Reservation], row_id: int) -> None:
    # Must be the first statement of the transaction. SQLite ignores FOR UPDATE but
    # an UPDATE acquires its database write lock; MySQL takes the row lock.
    stmt = (
        update(model)
        .where(model.id == row_id)
        .values(updated_at=model.updated_at)
        .execution_options(synchronize_session=False)
    )
    await session.execute(stmt)


class SqlAlchemyFieldRepository(FieldRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, field_id: int) -> Field | None:
        with _storage_errors():
            return await self.session.get(Field, field_id)

    async def get_for_update(self, field_id: int) -> Field | None:
        with _storage_errors():
            await _take_write_lock(self.session, Field, field_id)
            result = await self.session.scalar(select(Field).where(Field.id == field_id).with_for_update())
        return result if isinstance(result, Field) else None

    async def list_active(self) -> list[Field]:
        stmt = select(Field).where(Field.is_active.is_(True)).order_by(Field.id)
        with _storage_errors():
            return list((await self.session.scalars(stmt)).all())

    async def create(
        self,
        *,
        name: str,
        description: str | None,
        price_per_slot: int,
        image_url: str | None,
        is_active: bool,
    ) -> Field:
        now = _utc_now_naive()
        field = Field(
            name=name,
            description=description,
            price_per_slot=price_per_slot,
            image_url=image_url,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )
        with _storage_errors():
            self.session.add(field)
            await self.session.flush()
        return field

    async def update(self, field: Field) -> Field:
        field.updated_at = _utc_now_naive()
        with _storage_errors():
            self.session.add(field)
            await self.session.flush()
        return field


class SqlAlchemyUserRepository(UserRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, user_id: int) -> User | None:
        with _storage_errors():
            return await self.session.get(User, user_id)


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_active(self, field_id: int, booking_date: date) -> list[Reservation]:
        stmt = (
            select(Reservation)
            .where(
                Reservation.field_id == field_id,
                Reservation.booking_date == booking_date,
                Reservation.status.in_(OCCUPYING_STATUSES),
            )
            .order_by(Reservation.start_time)
        )
        with _storage_errors():
            return list((await self.session.scalars(stmt)).all())

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
    ) -> Reservation:
        # Locking read: sees rows committed after this transaction's snapshot and
        # blocks concurrent writers on the same range until commit.
        overlap = (
            select(Reservation.id)
            .where(
                Reservation.field_id == field_id,
                Reservation.booking_date == booking_date,
                Reservation.status.in_(OCCUPYING_STATUSES),
                Reservation.start_time < end_time,
                Reservation.end_time > start_time,
            )
            .limit(1)
            .with_for_update()
        )
        now = _utc_now_naive()
        with _storage_errors():
            if await self.session.scalar(overlap) is not None:
                raise ConflictError("slot was reserved by another request")
            reservation = Reservation(
                field_id=field_id,
                user_id=user_id,
                booking_date=booking_date,
                start_time=start_time,
                end_time=end_time,
                total_amount=total_amount,
                status=status,
                created_at=now,
                updated_at=now,
            )
            self.session.add(reservation)
            await self.session.flush()
        return reservation

    async def get_for_update(self, reservation_id: int) -> Reservation | None:
        stmt = select(Reservation).where(Reservation.id == reservation_id).with_for_update()
        with _storage_errors():
            await _take_write_lock(self.session, Reservation, reservation_id)
            result = await self.session.scalar(stmt)
        return result if isinstance(result, Reservation) else None

    async def update_status(self, reservation: Reservation, status: ReservationStatus) -> Reservation:
        reservation.status = status
        reservation.updated_at = _utc_now_naive()
        with _storage_errors():
            self.session.add(reservation)
            await self.session.flush()
        return reservation

    async def list_by_user(self, user_id: int) -> list[Reservation]:
        stmt = (
            select(Reservation)
            .where(Reservation.user_id == user_id)
            .order_by(Reservation.booking_date.desc(), Reservation.start_time)
        )
        with _storage_errors():
            return list((await self.session.scalars(stmt)).all())

    async def get_for_user(self, reservation_id: int, user_id: int) -> Reservation | None:
        stmt = select(Reservation).where(Reservation.id == reservation_id, Reservation.user_id == user_id)
        with _storage_errors():
            return await self.session.scalar(stmt)

    async def count_by_status(self) -> dict[ReservationStatus, tuple[int, int]]:
        stmt = select(
            Reservation.status,
            func.count(Reservation.id),
            func.coalesce(func.sum(Reservation.total_amount), 0),
        ).group_by(Reservation.status)
        with _storage_errors():
            rows = (await self.session.execute(stmt)).all()
        return {ReservationStatus(status): (int(count), int(amount)) for status, count, amount in rows}

    async def list_all(self, offset: int, limit: int) -> list[tuple[Reservation, Field, User | None]]:
        stmt = (
            select(Reservation, Field, User)
            .join(Field, Reservation.field_id == Field.id)
            .outerjoin(User, Reservation.user_id == User.id)
            .order_by(Reservation.booking_date.desc(), Reservation.start_time, Reservation.id)
            .offset(offset)
            .limit(limit)
        )
        with _storage_errors():
            rows = (await self.session.execute(stmt)).all()
        return [(reservation, field, user) for reservation, field, user in rows]

    async def count_all(self) -> int:
        with _storage_errors():
            total = await self.session.scalar(select(func.count(Reservation.id)))
        return int(total or 0)
