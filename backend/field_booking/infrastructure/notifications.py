"""
Webhook delivery of reservation events.
POSTs JSON to the booking webhook for every event, and to the payment webhook when a
reservation becomes paid. Unset URLs are skipped; HTTP failures are logged, not raised.
"""
from __future__ import annotations

import logging
from typing import Any

import httpx

from ..domain.events import NotificationDispatcher, ReservationEvent
from ..models import ReservationStatus

logger = logging.getLogger(__name__)


class WebhookDispatcher(NotificationDispatcher):
    def __init__(
        self,
        *,
        booking_url: str | None,
        payment_url: str | None,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.booking_url = booking_url
        self.payment_url = payment_url
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def targets(self, event: ReservationEvent) -> list[str]:
        urls = [self.booking_url] if self.booking_url else []
        if event.status == ReservationStatus.PAID and self.payment_url:
            urls.append(self.payment_url)
        return urls

    @staticmethod
    def payload(event: ReservationEvent) -> dict[str, Any]:
        return {
            "type": event.type.value,
            "booking": event.reservation,
            "user": event.requester,
            "field": event.field,
            "status": event.status.value,
        }

    async def notify(self, event: ReservationEvent) -> None:
        urls = self.targets(event)
        if not urls:
            logger.debug("no webhook configured for %s", event.type)
            return
        body = self.payload(event)
        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
            for url in urls:
                try:
                    resp = await client.post(url, json=body)
                    resp.raise_for_status()
                except httpx.HTTPError as e:
                    logger.warning("webhook %s failed for reservation %s: %s", url, event.reservation_id, e)
                    continue
                logger.info("webhook %s delivered %s for reservation %s", url, event.type, event.reservation_id)
