"""Tests for the pending/draft overlay."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from watchplan.domain.errors import ConflictError, InvalidDurationError
from watchplan.domain.models import ContentType, OrderedCandidate, ScheduledInterval
from watchplan.repos.memory import DraftStore
from watchplan.services.drafts import commit_all, stage, to_scheduled, unstage

DAY = date(2025, 1, 1)


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(DAY.year, DAY.month, DAY.day, hour, minute)


def _candidate(title: str = "Show B", duration: int = 30, episode: int | None = 1):
    return OrderedCandidate(
        content_id=title.lower().replace(" ", "-"),
        title=title,
        season=1 if episode is not None else None,
        episode=episode,
        duration_minutes=duration,
    )


def _show_a() -> ScheduledInterval:
    return ScheduledInterval(
        content_id="show-a", start=_at(20), duration_minutes=30, title="Show A"
    )


@pytest.fixture()
def store() -> DraftStore:
    return DraftStore()


# ---------------------------------------------------------------------------
# stage: conflicts
# ---------------------------------------------------------------------------


def test_stage_inside_existing_reports_its_start(store):
    with pytest.raises(ConflictError) as info:
        stage(store, _candidate(), _at(20, 15), saved=[_show_a()])

    err = info.value
    assert "Show A" in err.message
    assert "starting at 8:00 PM" in err.message
    assert err.blocking.title == "Show A"
    assert err.blocking_start == _at(20)
    assert err.blocking_end == _at(20, 30)
    assert len(store) == 0


def test_stage_ending_inside_existing_reports_its_end(store):
    with pytest.raises(ConflictError) as info:
        stage(store, _candidate(), _at(19, 45), saved=[_show_a()])
    assert "occupied by 'Show A' ending at 8:30 PM" in info.value.message


def test_stage_spanning_existing_reports_overlap(store):
    with pytest.raises(ConflictError) as info:
        stage(store, _candidate(duration=60), _at(19, 45), saved=[_show_a()])
    assert "overlaps with 'Show A' (8:00 PM - 8:30 PM)" in info.value.message


def test_stage_checks_other_pending_items(store):
    stage(store, _candidate("First"), _at(20))

    with pytest.raises(ConflictError) as info:
        stage(store, _candidate("Second"), _at(20, 10))
    assert "First - S01E01" in info.value.message


def test_stage_touching_existing_is_allowed(store):
    placement = stage(store, _candidate(), _at(20, 30), saved=[_show_a()])
    assert placement.start == _at(20, 30)


def test_stage_with_offset_checks_wall_clock(store):
    start = datetime(2025, 1, 1, 20, 15, tzinfo=timezone(timedelta(hours=2)))

    with pytest.raises(ConflictError) as info:
        stage(store, _candidate(), start, saved=[_show_a()])
    assert info.value.blocking.title == "Show A"

    later = stage(store, _candidate(), start + timedelta(minutes=15), saved=[_show_a()])
    assert later.start == _at(20, 30)
    assert later.start.tzinfo is None


def test_stage_rejects_zero_duration(store):
    with pytest.raises(InvalidDurationError):
        stage(store, _candidate(duration=0), _at(20))


# ---------------------------------------------------------------------------
# stage / unstage
# ---------------------------------------------------------------------------


def test_stage_builds_pending_placement(store):
    placement = stage(store, _candidate(), _at(21), timezone_offset="-05:00")

    assert placement.key == "show-b-1-1-2025-01-01T21:00:00"
    assert placement.title == "Show B - S01E01"
    assert placement.timezone_offset == "-05:00"
    assert store.get(placement.key) == placement


def test_movie_key_has_no_episode_part(store):
    movie = OrderedCandidate(
        content_id="movie-m",
        title="Movie M",
        content_type=ContentType.MOVIE,
        duration_minutes=120,
    )
    placement = stage(store, movie, _at(18))
    assert placement.key == "movie-m-2025-01-01T18:00:00"
    assert placement.title == "Movie M"


def test_stage_then_unstage_frees_the_slot(store):
    placement = stage(store, _candidate("First"), _at(20))
    removed = unstage(store, placement.key)

    assert removed == placement
    again = stage(store, _candidate("Second"), _at(20))
    assert again.start == _at(20)


def test_unstage_unknown_key_is_noop(store):
    stage(store, _candidate(), _at(20))
    assert unstage(store, "missing") is None
    assert len(store) == 1


def test_unstage_leaves_saved_entries_alone(store):
    saved = [_show_a()]
    snapshot = list(saved)
    placement = stage(store, _candidate(), _at(21), saved=saved)
    unstage(store, placement.key)
    assert saved == snapshot


# ---------------------------------------------------------------------------
# commit_all
# ---------------------------------------------------------------------------


def test_commit_all_success(store):
    stage(store, _candidate("A"), _at(20))
    stage(store, _candidate("B"), _at(21))

    result = commit_all(store, to_scheduled)

    assert [p.title for p in result.placed] == ["A - S01E01", "B - S01E01"]
    assert result.failed == []
    assert len(store) == 0


def test_commit_all_reports_partial_failure(store):
    for hour in range(18, 23):
        stage(store, _candidate(f"Item {hour}"), _at(hour))

    def persist(placement):
        if placement.start == _at(20):
            raise ConnectionError("storage unavailable")
        return to_scheduled(placement)

    result = commit_all(store, persist)

    assert len(result.placed) == 4
    assert len(result.failed) == 1
    assert result.failed[0].placement.start == _at(20)
    assert result.failed[0].reason == "storage unavailable"
    assert [p.start for p in store.list_all()] == [_at(20)]


def test_commit_all_failure_without_message_uses_exception_name(store):
    stage(store, _candidate(), _at(20))

    def persist(placement):
        raise RuntimeError()

    result = commit_all(store, persist)
    assert result.failed[0].reason == "RuntimeError"


def test_to_scheduled_drops_local_key(store):
    placement = stage(store, _candidate(), _at(20))
    interval = to_scheduled(placement)

    assert isinstance(interval, ScheduledInterval)
    assert not hasattr(interval, "key")
    assert interval.start == placement.start
    assert interval.title == placement.title
