"""Service for staging provisional placements and committing them in a batch."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable

from watchplan.config import get_settings
from watchplan.domain.errors import ConflictError
from watchplan.domain.models import (
    CommitResult,
    FailedCommit,
    OrderedCandidate,
    PendingPlacement,
    Placement,
    ScheduledInterval,
)
from watchplan.repos.memory import DraftStore
from watchplan.services.occupancy import OccupancyIndex
from watchplan.services.timeutils import format_clock, require_duration, to_wall_clock

logger = logging.getLogger(__name__)


def conflict_message(start: datetime, duration_minutes: int, blocking: Placement) -> str:
    """Describe why ``[start, start + duration)`` cannot be used.

    Checked in order: the new item starts inside the blocking one, the new
    item ends inside it, or a general overlap.
    """
    new_end = start + timedelta(minutes=duration_minutes)
    if blocking.start <= start < blocking.end:
        return (
            "The time slot you're trying to schedule is occupied by "
            f"'{blocking.title}' starting at {format_clock(blocking.start)}."
        )
    if blocking.start < new_end <= blocking.end:
        return (
            "The time slot you're trying to schedule is occupied by "
            f"'{blocking.title}' ending at {format_clock(blocking.end)}."
        )
    return (
        "The time slot you're trying to schedule overlaps with "
        f"'{blocking.title}' ({format_clock(blocking.start)} - {format_clock(blocking.end)})."
    )


def pending_key(candidate: OrderedCandidate, start: datetime) -> str:
    parts = [candidate.content_id]
    if candidate.season is not None and candidate.episode is not None:
        parts += [str(candidate.season), str(candidate.episode)]
    parts.append(start.isoformat())
    return "-".join(parts)


def stage(
    store: DraftStore,
    candidate: OrderedCandidate,
    start: datetime,
    saved: Iterable[Placement] = (),
    timezone_offset: str | None = None,
) -> PendingPlacement:
    """Add a provisional placement after checking saved and staged entries.

    Raises ``ConflictError`` naming the blocking entry when the slot is taken.
    """
    start = to_wall_clock(start)
    duration = require_duration(candidate.duration_minutes)
    index = OccupancyIndex(saved, store.list_all())
    blocking = index.find_blocking_interval(start, duration)
    if blocking is not None:
        raise ConflictError(
            conflict_message(start, duration, blocking),
            blocking=blocking,
            blocking_start=blocking.start,
            blocking_end=blocking.end,
        )

    placement = PendingPlacement(
        key=pending_key(candidate, start),
        content_id=candidate.content_id,
        season=candidate.season,
        episode=candidate.episode,
        start=start,
        duration_minutes=duration,
        title=candidate.label,
        timezone_offset=timezone_offset or get_settings().default_timezone_offset,
    )
    store.add(placement)
    logger.debug("Staged %s at %s", placement.title, start.isoformat())
    return placement


def unstage(store: DraftStore, key: str) -> PendingPlacement | None:
    """Drop a staged placement. Unknown keys are ignored."""
    return store.remove(key)


def to_scheduled(placement: PendingPlacement) -> ScheduledInterval:
    return ScheduledInterval(**placement.model_dump(exclude={"key"}))


def commit_all(
    store: DraftStore,
    persist: Callable[[PendingPlacement], ScheduledInterval],
) -> CommitResult:
    """Persist every staged placement independently.

    Each failure is reported on its own and the placement stays staged;
    successful ones are removed from *store*.
    """
    placed: list[ScheduledInterval] = []
    failed: list[FailedCommit] = []

    for placement in store.list_all():
        try:
            saved = persist(placement)
        except Exception as exc:
            logger.warning("Failed to commit %s: %s", placement.title, exc)
            failed.append(
                FailedCommit(placement=placement, reason=str(exc) or type(exc).__name__)
            )
            continue
        store.remove(placement.key)
        placed.append(saved)

    logger.info("Committed %d placement(s), %d failed", len(placed), len(failed))
    return CommitResult(placed=placed, failed=failed)
