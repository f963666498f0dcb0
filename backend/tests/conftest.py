from datetime import datetime, timezone
from typing import AsyncIterator

import pytest_asyncio
from field_booking.database import init_models
from field_booking.models import Field, User
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool


@pytest_asyncio.fixture
async def sqlite_engine() -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_models(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(sqlite_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    factory = async_sessionmaker(sqlite_engine, expire_on_commit=False, class_=AsyncSession)
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    async with factory() as session, session.begin():
        session.add_all(
            [
                Field(id=1, name="Lapangan A", price_per_slot=100000, is_active=True, created_at=now, updated_at=now),
                Field(id=2, name="Lapangan B", price_per_slot=80000, is_active=False, created_at=now, updated_at=now),
                User(id=7, email="budi@example.com", name="Budi", phone="0812", created_at=now, updated_at=now),
            ]
        )
    return factory
