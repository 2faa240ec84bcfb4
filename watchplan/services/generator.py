"""Service for placing ordered candidates onto a day's timeline."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable

from watchplan.config import get_settings
from watchplan.domain.models import (
    GenerationResult,
    OrderedCandidate,
    Placement,
    RotationMode,
    ScheduledInterval,
    SkippedCandidate,
)
from watchplan.services.occupancy import OccupancyIndex
from watchplan.services.timeutils import (
    end_of_day,
    format_clock,
    require_duration,
    to_wall_clock,
)

logger = logging.getLogger(__name__)

NO_SLOTS_REASON = "no available time slots remaining"


def occupied_reason(blocking: Placement) -> str:
    return (
        f"occupied by {blocking.title} "
        f"[{format_clock(blocking.start)}-{format_clock(blocking.end)}]"
    )


def _to_interval(
    candidate: OrderedCandidate, start: datetime, timezone_offset: str
) -> ScheduledInterval:
    return ScheduledInterval(
        content_id=candidate.content_id,
        season=candidate.season,
        episode=candidate.episode,
        start=start,
        duration_minutes=candidate.duration_minutes,
        title=candidate.label,
        timezone_offset=timezone_offset,
    )


def generate(
    candidates: Iterable[OrderedCandidate],
    start: datetime,
    mode: RotationMode = RotationMode.SEQUENTIAL,
    *,
    saved: Iterable[Placement] = (),
    pending: Iterable[Placement] = (),
    until: datetime | None = None,
    timezone_offset: str | None = None,
    step_minutes: int | None = None,
) -> GenerationResult:
    """Place *candidates* from *start* onwards without overlapping anything.

    Sequential mode lays candidates back to back and stops at the first one
    that does not fit; the rest are not attempted. Random mode searches
    forward for each candidate's first free slot and keeps going after a
    failure, stepping by *step_minutes* (the configured slot step when
    omitted). Placements are visible to the rest of the run, so a run never
    double-books itself. Nothing is persisted here.
    """
    start = to_wall_clock(start)
    candidates = list(candidates)
    for candidate in candidates:
        require_duration(candidate.duration_minutes)

    offset = timezone_offset or get_settings().default_timezone_offset
    index = OccupancyIndex(saved, pending, day=start.date())
    limit = end_of_day(start.date())
    if until is not None and to_wall_clock(until) < limit:
        limit = to_wall_clock(until)

    placed: list[ScheduledInterval] = []
    skipped: list[SkippedCandidate] = []
    cursor = start

    for candidate in candidates:
        duration = candidate.duration_minutes

        if mode == RotationMode.SEQUENTIAL:
            if cursor + timedelta(minutes=duration) > limit:
                skipped.append(SkippedCandidate(candidate=candidate, reason=NO_SLOTS_REASON))
                logger.debug("%s does not fit before %s; stopping", candidate.label, limit)
                break
            blocking = index.find_blocking_interval(cursor, duration)
            if blocking is not None:
                skipped.append(
                    SkippedCandidate(candidate=candidate, reason=occupied_reason(blocking))
                )
                logger.debug("%s blocked by %s; stopping", candidate.label, blocking.title)
                break
            slot = cursor
        else:
            slot = index.next_free_slot(
                cursor, duration, step_minutes=step_minutes, until=limit
            )
            if slot is None:
                skipped.append(SkippedCandidate(candidate=candidate, reason=NO_SLOTS_REASON))
                logger.debug("No slot for %s after %s", candidate.label, cursor)
                continue

        interval = _to_interval(candidate, slot, offset)
        index.add(interval)
        placed.append(interval)
        cursor = interval.end
        logger.debug(
            "Scheduled %s at %s, ends at %s (%d min)",
            candidate.label,
            interval.start.isoformat(),
            interval.end.isoformat(),
            duration,
        )

    logger.info("Generated %d placement(s), skipped %d", len(placed), len(skipped))
    return GenerationResult(placed=placed, skipped=skipped)
