from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from typing import Iterable, Protocol, Sequence

from .slots import ServiceHours, Slot, generate_slot_grid, minute_of


class TimeRange(Protocol):
    start_time: time
    end_time: time


@dataclass(frozen=True)
class SlotOccupancy:
    slot: Slot
    occupied: bool


@dataclass(frozen=True)
class DayAvailability:
    """Occupancy of every grid slot for one field and date.

    Built from a read snapshot of the active (non-canceled) reservations;
    never persisted.
    """

    field_id: int
    booking_date: date
    hours: ServiceHours
    slots: tuple[SlotOccupancy, ...]
    active_reservations: int

    @property
    def free_slots(self) -> int:
        return sum(1 for entry in self.slots if not entry.occupied)

    @property
    def occupied_labels(self) -> list[str]:
        return [entry.slot.label for entry in self.slots if entry.occupied]

    def is_free(self, start_minute: int, duration: int) -> bool:
        """True if every unit slot in [start, start + duration units) is free.

        A unit that is not on the grid (past closing) counts as not free.
        """
        by_start = {entry.slot.start_minute: entry for entry in self.slots}
        for unit in range(duration):
            entry = by_start.get(start_minute + unit * self.hours.slot_minutes)
            if entry is None or entry.occupied:
                return False
        return True

    def bookable_starts(self, duration: int) -> list[Slot]:
        return [entry.slot for entry in self.slots if self.is_free(entry.slot.start_minute, duration)]


def compute_occupancy(reservations: Iterable[TimeRange], grid: Sequence[Slot]) -> list[SlotOccupancy]:
    occupied: set[int] = set()
    grid_starts = {slot.start_minute for slot in grid}
    for reservation in reservations:
        start = minute_of(reservation.start_time)
        end = minute_of(reservation.end_time)
        occupied.update(m for m in grid_starts if start <= m < end)
    return [SlotOccupancy(slot=slot, occupied=slot.start_minute in occupied) for slot in grid]


def calculate_availability(
    *,
    field_id: int,
    booking_date: date,
    hours: ServiceHours,
    active_reservations: Sequence[TimeRange],
) -> DayAvailability:
    grid = generate_slot_grid(hours)
    return DayAvailability(
        field_id=field_id,
        booking_date=booking_date,
        hours=hours,
        slots=tuple(compute_occupancy(active_reservations, grid)),
        active_reservations=len(active_reservations),
    )
