"""Service for turning queue entries and episode filters into ordered candidates."""

from __future__ import annotations

import logging
import math
import random
from collections import Counter
from datetime import datetime
from typing import Iterable

from watchplan.config import get_settings
from watchplan.domain.models import (
    ContentType,
    Episode,
    EpisodeFilter,
    FilterMode,
    OrderedCandidate,
    RERUN_RATIOS,
    QueueEntry,
    RerunFrequency,
    RotationMode,
    WatchRecord,
)
from watchplan.services.timeutils import require_duration

logger = logging.getLogger(__name__)

EpisodeKey = tuple[int, int]
WatchKey = tuple[str, int | None, int | None]


def apply_episode_filter(
    episodes: Iterable[Episode], episode_filter: EpisodeFilter | None
) -> list[EpisodeKey]:
    """Return the (season, episode) keys selected by *episode_filter*.

    A filter in ``include``/``exclude`` mode with nothing ticked behaves like
    ``all``.
    """
    keys = [(ep.season, ep.episode) for ep in episodes]
    if episode_filter is None or episode_filter.mode == FilterMode.ALL:
        return keys
    if not episode_filter.episodes and not episode_filter.seasons:
        return keys

    def _ticked(key: EpisodeKey) -> bool:
        return key in episode_filter.episodes or key[0] in episode_filter.seasons

    if episode_filter.mode == FilterMode.INCLUDE:
        return [key for key in keys if _ticked(key)]
    return [key for key in keys if not _ticked(key)]


def latest_watches(history: Iterable[WatchRecord]) -> dict[WatchKey, datetime]:
    """Most recent ``watched_at`` per (content, season, episode)."""
    watched: dict[WatchKey, datetime] = {}
    for record in history:
        key = (record.content_id, record.season, record.episode)
        if key not in watched or record.watched_at > watched[key]:
            watched[key] = record.watched_at
    return watched


def select_unwatched(
    content_id: str,
    keys: Iterable[EpisodeKey],
    watched: dict[WatchKey, datetime],
    include_reruns: bool = False,
    frequency: RerunFrequency = RerunFrequency.RARELY,
) -> list[EpisodeKey]:
    """Keep unwatched episodes, topped up with the stalest reruns.

    With reruns on, ``floor(len(unwatched) * ratio)`` watched episodes are
    added back, least recently watched first.
    """
    keys = list(keys)
    unwatched = [key for key in keys if (content_id, *key) not in watched]
    if not include_reruns or frequency == RerunFrequency.NEVER:
        return unwatched

    count = math.floor(len(unwatched) * RERUN_RATIOS[frequency])
    reruns = sorted(
        (key for key in keys if (content_id, *key) in watched),
        key=lambda key: (watched[(content_id, *key)], key),
    )
    return unwatched + reruns[:count]


def _resolve_duration(explicit: int | None, content_default: int | None, fallback: int) -> int:
    # Absent durations fall back; explicit zero/negative ones are errors.
    if explicit is not None:
        return require_duration(explicit)
    if content_default is not None:
        return require_duration(content_default)
    return fallback


def resolve_episode_order(
    entry: QueueEntry,
    selected: Iterable[EpisodeKey],
    episodes: Iterable[Episode],
    mode: RotationMode = RotationMode.SEQUENTIAL,
    rng: random.Random | None = None,
) -> list[OrderedCandidate]:
    """Order one queue entry's selected episodes into placement candidates.

    Sequential mode sorts by (season, episode) and is idempotent. Random mode
    shuffles the sorted list with ``rng.shuffle`` (Fisher-Yates); pass a
    custom *rng* to make it reproducible. Movies always yield a single
    candidate and ignore *selected*.
    """
    settings = get_settings()

    if entry.content_type == ContentType.MOVIE:
        duration = _resolve_duration(None, entry.default_duration, settings.default_movie_minutes)
        return [
            OrderedCandidate(
                content_id=entry.content_id,
                title=entry.title,
                content_type=ContentType.MOVIE,
                duration_minutes=duration,
            )
        ]

    metadata = {(ep.season, ep.episode): ep for ep in episodes}
    keys = sorted(set(selected))

    candidates = []
    for season, number in keys:
        ep = metadata.get((season, number))
        candidates.append(
            OrderedCandidate(
                content_id=entry.content_id,
                title=entry.title,
                content_type=ContentType.SHOW,
                season=season,
                episode=number,
                duration_minutes=_resolve_duration(
                    ep.duration_minutes if ep else None,
                    entry.default_duration,
                    settings.default_episode_minutes,
                ),
                episode_title=ep.title if ep else None,
            )
        )

    if mode == RotationMode.RANDOM:
        (rng or random).shuffle(candidates)
    return candidates


def build_candidates(
    queue: Iterable[QueueEntry],
    episodes_by_content: dict[str, list[Episode]],
    filters: dict[str, EpisodeFilter] | None = None,
    mode: RotationMode = RotationMode.SEQUENTIAL,
    rng: random.Random | None = None,
    watch_history: Iterable[WatchRecord] = (),
    include_reruns: bool = False,
    rerun_frequency: RerunFrequency = RerunFrequency.RARELY,
) -> list[OrderedCandidate]:
    """Resolve a whole queue into one list in rotation order.

    Sequential mode takes one candidate per queue entry in turn
    (round-robin). Random mode picks a random entry that still has
    candidates for every slot.

    Anything in *watch_history* is left out unless *include_reruns* is set:
    a watched movie then comes back as is, and watched episodes are mixed
    in at the *rerun_frequency* ratio (see ``select_unwatched``).
    """
    filters = filters or {}
    source = rng or random
    watched = latest_watches(watch_history)

    per_entry: list[list[OrderedCandidate]] = []
    seen: set[str] = set()
    for entry in queue:
        if entry.content_id in seen:
            continue
        seen.add(entry.content_id)
        movie_key = (entry.content_id, None, None)
        if (
            entry.content_type == ContentType.MOVIE
            and not include_reruns
            and movie_key in watched
        ):
            logger.debug("%s: already watched, skipping", entry.title)
            continue
        episodes = episodes_by_content.get(entry.content_id, [])
        selected = apply_episode_filter(episodes, filters.get(entry.content_id))
        selected = select_unwatched(
            entry.content_id, selected, watched, include_reruns, rerun_frequency
        )
        resolved = resolve_episode_order(entry, selected, episodes, mode, rng)
        logger.debug("%s: %d candidate(s)", entry.title, len(resolved))
        if resolved:
            per_entry.append(resolved)

    ordered: list[OrderedCandidate] = []
    if mode == RotationMode.SEQUENTIAL:
        depth = max((len(items) for items in per_entry), default=0)
        for index in range(depth):
            ordered.extend(items[index] for items in per_entry if index < len(items))
        return ordered

    remaining = [list(items) for items in per_entry]
    while remaining:
        pick = source.randrange(len(remaining))
        ordered.append(remaining[pick].pop(0))
        if not remaining[pick]:
            remaining.pop(pick)
    return ordered


def suggest_slot_minutes(
    episode_durations: Iterable[int | None],
    movie_durations: Iterable[int | None] = (),
) -> int:
    """Pick a grid size from the content being scheduled.

    Uses the most common episode duration (shortest on ties); with only
    movies, a quarter of their average. Rounded up to a multiple of 15.
    """
    durations = [d for d in episode_durations if d is not None and d > 0]
    movies = [d for d in movie_durations if d is not None and d > 0]

    if durations:
        counts = Counter(durations)
        target = min(counts, key=lambda d: (-counts[d], d))
    elif movies:
        target = math.floor(sum(movies) / len(movies) / 4)
    else:
        target = get_settings().default_episode_minutes

    return max(15, math.ceil(target / 15) * 15)
