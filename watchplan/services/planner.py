"""Service for running the generator over a user's schedule request."""

from __future__ import annotations

import logging
import random
from datetime import date, datetime, timedelta
from typing import Callable, Iterable

from watchplan.config import get_settings
from watchplan.domain.models import (
    ContentType,
    Episode,
    GenerationResult,
    OrderedCandidate,
    Placement,
    QueueEntry,
    ScheduledInterval,
    ScheduleRequest,
    SkippedCandidate,
    WatchRecord,
)
from watchplan.services.episodes import build_candidates, suggest_slot_minutes
from watchplan.services.generator import generate
from watchplan.services.timeutils import iter_days, start_of_day

logger = logging.getLogger(__name__)

DayLookup = Callable[[date], Iterable[Placement]]


def window_start(request: ScheduleRequest, day: date) -> datetime:
    return start_of_day(day) + timedelta(hours=request.start_hour, minutes=request.start_minute)


def window_end(request: ScheduleRequest, start: datetime) -> datetime | None:
    """Upper bound for placements starting at *start*.

    ``None`` means the window runs to the end of the day. Windows are kept
    within a single calendar day: an ``end_time`` at or before the start
    (``00:00``, or ``02:00`` after a ``22:00`` start) also stops at
    midnight rather than running into the next day.
    """
    if request.window_minutes is not None:
        return start + timedelta(minutes=request.window_minutes)
    if request.end_time is not None:
        end = datetime.combine(start.date(), request.end_time)
        if end > start:
            return end
    return None


def _key(item: OrderedCandidate | ScheduledInterval) -> tuple:
    return (item.content_id, item.season, item.episode)


def plan(
    request: ScheduleRequest,
    queue: Iterable[QueueEntry],
    episodes_by_content: dict[str, list[Episode]],
    schedule_for_day: DayLookup,
    pending_for_day: DayLookup | None = None,
    rng: random.Random | None = None,
    watch_history: Iterable[WatchRecord] = (),
) -> GenerationResult:
    """Generate placements for every day of *request*.

    Candidates left over after one day are carried to the next. The result
    holds every placement, the skipped list from the last day attempted and
    the slot size the random search stepped by. Without an explicit
    ``slot_minutes`` that size is suggested from the candidates' runtimes.
    """
    candidates = build_candidates(
        queue,
        episodes_by_content,
        request.episode_filters,
        request.rotation_mode,
        rng,
        watch_history=watch_history,
        include_reruns=request.include_reruns,
        rerun_frequency=request.rerun_frequency,
    )
    slot_minutes = request.slot_minutes or suggest_slot_minutes(
        [c.duration_minutes for c in candidates if c.content_type == ContentType.SHOW],
        [c.duration_minutes for c in candidates if c.content_type == ContentType.MOVIE],
    )
    offset = request.timezone_offset or get_settings().default_timezone_offset
    last_day = request.end_date or request.start_date

    placed: list[ScheduledInterval] = []
    skipped: list[SkippedCandidate] = []
    remaining = candidates

    for day in iter_days(request.start_date, last_day):
        if not remaining:
            break
        start = window_start(request, day)
        result = generate(
            remaining,
            start,
            request.rotation_mode,
            saved=schedule_for_day(day),
            pending=pending_for_day(day) if pending_for_day else (),
            until=window_end(request, start),
            timezone_offset=offset,
            step_minutes=slot_minutes,
        )
        placed.extend(result.placed)
        skipped = list(result.skipped)
        done = {_key(interval) for interval in result.placed}
        remaining = [c for c in remaining if _key(c) not in done]
        logger.info(
            "Day %s: %d placed, %d candidate(s) left",
            day.isoformat(),
            len(result.placed),
            len(remaining),
        )

    if not remaining:
        skipped = []
    return GenerationResult(placed=placed, skipped=skipped, slot_minutes=slot_minutes)
