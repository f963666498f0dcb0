from __future__ import annotations

import logging
import uuid
from contextvars import ContextVar
from typing import Optional

_request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


def generate_request_id() -> str:
    return uuid.uuid4().hex


def set_request_id(request_id: str | None) -> None:
    """Store request id in context (None to clear)."""
    _request_id_ctx.set(request_id)


def get_request_id() -> Optional[str]:
    return _request_id_ctx.get()


def bind_request_id(incoming: str | None) -> str:
    """Bind the caller's request id, or a fresh one, to the current context and return it."""
    request_id = (incoming or "").strip() or generate_request_id()
    set_request_id(request_id)
    return request_id


class RequestIdFilter(logging.Filter):
    """Expose the current request id to log formats as %(request_id)s."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True
