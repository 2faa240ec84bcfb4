"""Domain models for the watch-planning scheduler."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timedelta
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ContentType(StrEnum):
    SHOW = "show"
    MOVIE = "movie"


class RotationMode(StrEnum):
    SEQUENTIAL = "sequential"
    RANDOM = "random"


class FilterMode(StrEnum):
    ALL = "all"
    INCLUDE = "include"
    EXCLUDE = "exclude"


class RerunFrequency(StrEnum):
    NEVER = "never"
    RARELY = "rarely"
    SOMETIMES = "sometimes"
    OFTEN = "often"


# Reruns added per unwatched episode, by frequency.
RERUN_RATIOS = {
    RerunFrequency.NEVER: 0.0,
    RerunFrequency.RARELY: 0.1,
    RerunFrequency.SOMETIMES: 0.3,
    RerunFrequency.OFTEN: 0.5,
}


def _new_id() -> str:
    return str(uuid.uuid4())


def episode_code(season: int | None, episode: int | None) -> str:
    """Render ``S01E02`` style codes; empty for movies."""
    if season is None or episode is None:
        return ""
    return f"S{season:02d}E{episode:02d}"


def _drop_offset(value: datetime) -> datetime:
    # Instants are local wall-clock times; an offset is informational only.
    return value.replace(tzinfo=None)


# ---------------------------------------------------------------------------
# Schedule entries
# ---------------------------------------------------------------------------


class Placement(BaseModel):
    """Shared shape of saved and pending schedule entries.

    ``start`` is a naive local wall-clock time. ``timezone_offset`` records
    the zone the entry was authored in and is only used for redisplay.
    """

    content_id: str
    season: int | None = None
    episode: int | None = None
    start: datetime
    duration_minutes: int = Field(gt=0)
    title: str
    timezone_offset: str = "+00:00"

    @field_validator("start")
    @classmethod
    def _naive_start(cls, value: datetime) -> datetime:
        return _drop_offset(value)

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)


class ScheduledInterval(Placement):
    id: str = Field(default_factory=_new_id)


class PendingPlacement(Placement):
    key: str


# ---------------------------------------------------------------------------
# Queue input (owned by the library/queue collaborator)
# ---------------------------------------------------------------------------


class QueueEntry(BaseModel):
    content_id: str
    title: str
    content_type: ContentType
    tmdb_id: int | None = None
    default_duration: int | None = None


class Episode(BaseModel):
    season: int
    episode: int
    duration_minutes: int | None = None
    title: str | None = None


class EpisodeFilter(BaseModel):
    mode: FilterMode = FilterMode.ALL
    episodes: set[tuple[int, int]] = Field(default_factory=set)
    seasons: set[int] = Field(default_factory=set)


class WatchRecord(BaseModel):
    """One watch-history row from the library collaborator.

    ``season``/``episode`` are ``None`` for a movie.
    """

    content_id: str
    season: int | None = None
    episode: int | None = None
    watched_at: datetime

    @field_validator("watched_at")
    @classmethod
    def _naive_watched_at(cls, value: datetime) -> datetime:
        return _drop_offset(value)


class OrderedCandidate(BaseModel):
    content_id: str
    title: str
    content_type: ContentType = ContentType.SHOW
    season: int | None = None
    episode: int | None = None
    duration_minutes: int
    episode_title: str | None = None

    @property
    def label(self) -> str:
        code = episode_code(self.season, self.episode)
        return f"{self.title} - {code}" if code else self.title


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class SkippedCandidate(BaseModel):
    candidate: OrderedCandidate
    reason: str


class GenerationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    placed: list[ScheduledInterval] = Field(default_factory=list)
    skipped: list[SkippedCandidate] = Field(default_factory=list)
    slot_minutes: int | None = None


class FailedCommit(BaseModel):
    placement: PendingPlacement
    reason: str


class CommitResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    placed: list[ScheduledInterval] = Field(default_factory=list)
    failed: list[FailedCommit] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class ScheduleRequest(BaseModel):
    """User-selected generation settings."""

    start_date: date
    end_date: date | None = None
    start_hour: int = Field(ge=0, le=23)
    start_minute: int = Field(default=0, ge=0, le=59)
    window_minutes: int | None = Field(default=None, gt=0)
    end_time: time | None = None
    rotation_mode: RotationMode = RotationMode.SEQUENTIAL
    episode_filters: dict[str, EpisodeFilter] = Field(default_factory=dict)
    timezone_offset: str | None = None
    slot_minutes: int | None = Field(default=None, gt=0)
    include_reruns: bool = False
    rerun_frequency: RerunFrequency = RerunFrequency.RARELY

    @model_validator(mode="after")
    def _single_window_bound(self) -> ScheduleRequest:
        if self.window_minutes is not None and self.end_time is not None:
            raise ValueError("give either window_minutes or end_time, not both")
        return self


class GenerateScheduleRequest(BaseModel):
    settings: ScheduleRequest
    queue: list[QueueEntry] = Field(min_length=1)
    episodes: dict[str, list[Episode]] = Field(default_factory=dict)
    watch_history: list[WatchRecord] = Field(default_factory=list)


class StageRequest(BaseModel):
    candidate: OrderedCandidate
    start: datetime

    @field_validator("start")
    @classmethod
    def _naive_start(cls, value: datetime) -> datetime:
        return _drop_offset(value)


class Availability(BaseModel):
    at: datetime
    occupied: bool
    available_minutes: int
    blocking: ScheduledInterval | PendingPlacement | None = None
