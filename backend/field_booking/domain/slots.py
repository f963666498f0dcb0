from __future__ import annotations

from dataclasses import dataclass
from datetime import time

from .errors import ConfigurationError

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class ServiceHours:
    """Operating-hours configuration of a field for one service day."""

    opening_hour: int = 6
    closing_hour: int = 23
    slot_minutes: int = 60
    max_duration: int = 3

    def __post_init__(self) -> None:
        if not 0 <= self.opening_hour < self.closing_hour <= 24:
            raise ConfigurationError("opening_hour must be before closing_hour, both within 0..24")
        if self.slot_minutes <= 0:
            raise ConfigurationError("slot_minutes must be positive")
        if self.max_duration < 1:
            raise ConfigurationError("max_duration must be >= 1")

    @property
    def opening_minute(self) -> int:
        return self.opening_hour * 60

    @property
    def closing_minute(self) -> int:
        return self.closing_hour * 60


@dataclass(frozen=True)
class Slot:
    start_minute: int
    end_minute: int

    @property
    def label(self) -> str:
        return format_minute(self.start_minute)

    @property
    def start(self) -> time:
        return time_of(self.start_minute)

    @property
    def end(self) -> time:
        return time_of(self.end_minute)


def minute_of(value: time) -> int:
    if value == time.max:
        return MINUTES_PER_DAY
    return value.hour * 60 + value.minute


def time_of(minute: int) -> time:
    # 24:00 is the closing boundary of a full-day grid; datetime.time tops out at 23:59:59.
    if minute >= MINUTES_PER_DAY:
        return time.max
    return time(minute // 60, minute % 60)


def format_minute(minute: int) -> str:
    return f"{minute // 60:02d}:{minute % 60:02d}"


def generate_slot_grid(hours: ServiceHours) -> list[Slot]:
    """Ordered slots from opening to closing; the last slot ends at or before closing."""
    slots: list[Slot] = []
    start = hours.opening_minute
    while start + hours.slot_minutes <= hours.closing_minute:
        slots.append(Slot(start_minute=start, end_minute=start + hours.slot_minutes))
        start += hours.slot_minutes
    return slots
