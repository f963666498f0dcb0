from datetime import date
from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from .config import Settings, get_settings
from .database import async_session
from .domain.events import NotificationDispatcher
from .domain.slots import ServiceHours
from .infrastructure.notifications import WebhookDispatcher
from .utils.time import business_today


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> int:
    if x_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-User-Id header required")
    try:
        return int(x_user_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid X-User-Id") from exc


def get_service_hours(settings: Settings = Depends(get_settings)) -> ServiceHours:
    return settings.service_hours()


def get_today(settings: Settings = Depends(get_settings)) -> date:
    return business_today(settings.business_timezone)


def get_dispatcher(settings: Settings = Depends(get_settings)) -> NotificationDispatcher:
    return WebhookDispatcher(
        booking_url=settings.webhook_booking_url,
        payment_url=settings.webhook_payment_url,
        timeout_seconds=settings.webhook_timeout_seconds,
    )
