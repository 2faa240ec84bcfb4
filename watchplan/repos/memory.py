"""In-memory stores for saved schedule entries and staged drafts."""

from __future__ import annotations

from datetime import date

from watchplan.domain.models import PendingPlacement, ScheduledInterval
from watchplan.services.occupancy import find_conflicts
from watchplan.services.timeutils import end_of_day, start_of_day


class ScheduleRepository:
    """Dict-backed store for ScheduledInterval instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, ScheduledInterval] = {}

    def add(self, interval: ScheduledInterval) -> ScheduledInterval:
        self._store[interval.id] = interval
        return interval

    def add_many(self, intervals: list[ScheduledInterval]) -> list[ScheduledInterval]:
        """Store a generated batch as one unit."""
        self._store.update({interval.id: interval for interval in intervals})
        return intervals

    def get(self, interval_id: str) -> ScheduledInterval | None:
        return self._store.get(interval_id)

    def list_all(self) -> list[ScheduledInterval]:
        return sorted(self._store.values(), key=lambda i: i.start)

    def list_for_day(self, day: date) -> list[ScheduledInterval]:
        """Entries overlapping *day*, in start order."""
        return find_conflicts(start_of_day(day), end_of_day(day), self.list_all())

    def delete(self, interval_id: str) -> None:
        self._store.pop(interval_id, None)


class DraftStore:
    """Map of local key to PendingPlacement for the interactive draft overlay."""

    def __init__(self) -> None:
        self._items: dict[str, PendingPlacement] = {}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def add(self, placement: PendingPlacement) -> None:
        self._items[placement.key] = placement

    def get(self, key: str) -> PendingPlacement | None:
        return self._items.get(key)

    def remove(self, key: str) -> PendingPlacement | None:
        return self._items.pop(key, None)

    def list_all(self) -> list[PendingPlacement]:
        return sorted(self._items.values(), key=lambda p: p.start)

    def list_for_day(self, day: date) -> list[PendingPlacement]:
        return find_conflicts(start_of_day(day), end_of_day(day), self.list_all())

    def clear(self) -> None:
        self._items.clear()
