"""Occupancy queries over a day's saved and pending schedule entries."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable

from watchplan.config import get_settings
from watchplan.domain.errors import InvalidDurationError
from watchplan.domain.models import Placement
from watchplan.services.timeutils import end_of_day, require_duration, start_of_day


def find_conflicts(
    new_start: datetime,
    new_end: datetime,
    existing: Iterable[Placement],
) -> list[Placement]:
    """Return entries that overlap ``[new_start, new_end)``.

    Overlap rule: conflict if new_start < existing.end AND existing.start < new_end.
    Exact boundary touches (end == start) are NOT considered conflicts.
    """
    return [item for item in existing if new_start < item.end and item.start < new_end]


class OccupancyIndex:
    """Conflict view combining saved intervals and provisional placements.

    Saved entries always win over pending ones when both block a slot.
    Neither collection is assumed to be sorted. When *day* is given, only
    entries overlapping that calendar date are kept.
    """

    def __init__(
        self,
        saved: Iterable[Placement] = (),
        pending: Iterable[Placement] = (),
        day: date | None = None,
    ) -> None:
        self.day = day
        self._saved = self._for_day(saved)
        self._pending = self._for_day(pending)

    def _for_day(self, items: Iterable[Placement]) -> list[Placement]:
        if self.day is None:
            return list(items)
        return find_conflicts(start_of_day(self.day), end_of_day(self.day), items)

    @property
    def intervals(self) -> list[Placement]:
        return [*self._saved, *self._pending]

    def add(self, placement: Placement) -> None:
        """Make *placement* visible to later queries on this index."""
        self._pending.append(placement)

    def find_blocking_interval(
        self, start: datetime, duration_minutes: int
    ) -> Placement | None:
        end = start + timedelta(minutes=require_duration(duration_minutes))
        for collection in (self._saved, self._pending):
            for item in collection:
                if start < item.end and item.start < end:
                    return item
        return None

    def is_occupied(self, start: datetime, duration_minutes: int) -> bool:
        return self.find_blocking_interval(start, duration_minutes) is not None

    def available_minutes_from(self, start: datetime) -> int:
        """Free minutes from *start* until the next entry or end of day.

        Returns 0 when *start* itself lies inside an entry.
        """
        items = self.intervals
        if any(item.start <= start < item.end for item in items):
            return 0
        limit = end_of_day(start.date())
        next_start = min((item.start for item in items if item.start > start), default=None)
        if next_start is not None and next_start < limit:
            limit = next_start
        return int((limit - start).total_seconds() // 60)

    def next_free_slot(
        self,
        from_: datetime,
        duration_minutes: int,
        step_minutes: int | None = None,
        until: datetime | None = None,
    ) -> datetime | None:
        """First start at or after *from_* whose whole window is free.

        Steps forward in *step_minutes* increments. The window must end by
        the end of *from_*'s day (or *until*, if earlier); otherwise ``None``.
        """
        duration = require_duration(duration_minutes)
        step = get_settings().slot_step_minutes if step_minutes is None else step_minutes
        if step <= 0:
            raise InvalidDurationError(f"step must be positive, got {step}")

        limit = end_of_day(from_.date())
        if until is not None and until < limit:
            limit = until

        length = timedelta(minutes=duration)
        candidate = from_
        while candidate + length <= limit:
            if not self.is_occupied(candidate, duration):
                return candidate
            candidate += timedelta(minutes=step)
        return None
