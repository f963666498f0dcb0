import asyncio
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import AsyncIterator

import pytest
import pytest_asyncio
from field_booking.database import init_models
from field_booking.domain.errors import ConflictError, PersistenceError
from field_booking.domain.slots import ServiceHours
from field_booking.infrastructure.repositories import (
    SqlAlchemyFieldRepository,
    SqlAlchemyReservationRepository,
    SqlAlchemyUserRepository,
)
from field_booking.models import Field, Reservation, ReservationStatus, User
from field_booking.usecases import reservations as uc
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

TODAY = date(2030, 1, 15)
HOURS = ServiceHours(opening_hour=6, closing_hour=23)


@pytest_asyncio.fixture
async def file_sessions(tmp_path: Path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Each session gets its own connection to one database file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'booking.db'}")
    await init_models(engine)
    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    async with factory() as session, session.begin():
        session.add_all(
            [
                Field(id=1, name="Lapangan A", price_per_slot=100000, is_active=True, created_at=now, updated_at=now),
                User(id=7, email="budi@example.com", name="Budi", phone="0812", created_at=now, updated_at=now),
            ]
        )
    try:
        yield factory
    finally:
        await engine.dispose()


async def _book(factory: async_sessionmaker[AsyncSession], start: int, duration: int) -> Reservation:
    async with factory() as session, session.begin():
        reservation, _ = await uc.create_reservation(
            SqlAlchemyFieldRepository(session),
            SqlAlchemyReservationRepository(session),
            SqlAlchemyUserRepository(session),
            field_id=1,
            user_id=7,
            booking_date=TODAY,
            start_time=time(start),
            duration=duration,
            hours=HOURS,
            today=TODAY,
        )
    return reservation


async def _active_rows(factory: async_sessionmaker[AsyncSession]) -> int:
    async with factory() as session:
        stmt = select(func.count(Reservation.id)).where(Reservation.status != ReservationStatus.CANCELED)
        return int(await session.scalar(stmt) or 0)


@pytest.mark.asyncio
async def test_overlapping_bookings_on_separate_sessions_commit_once(
    file_sessions: async_sessionmaker[AsyncSession],
) -> None:
    results = await asyncio.gather(
        _book(file_sessions, 10, 2),
        _book(file_sessions, 11, 2),
        _book(file_sessions, 10, 2),
        return_exceptions=True,
    )

    booked = [r for r in results if isinstance(r, Reservation)]
    rejected = [r for r in results if not isinstance(r, Reservation)]
    assert len(booked) == 1
    assert len(rejected) == 2
    assert all(isinstance(r, (ConflictError, PersistenceError)) for r in rejected)
    assert await _active_rows(file_sessions) == 1


@pytest.mark.asyncio
async def test_disjoint_bookings_on_separate_sessions_all_commit(
    file_sessions: async_sessionmaker[AsyncSession],
) -> None:
    results = await asyncio.gather(
        _book(file_sessions, 8, 1),
        _book(file_sessions, 10, 2),
        _book(file_sessions, 14, 1),
        return_exceptions=True,
    )

    assert all(isinstance(r, Reservation) for r in results)
    assert await _active_rows(file_sessions) == 3
