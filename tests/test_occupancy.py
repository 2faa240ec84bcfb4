"""Tests for conflict detection and occupancy queries."""

from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest

from watchplan.domain.errors import InvalidDurationError
from watchplan.domain.models import PendingPlacement, ScheduledInterval
from watchplan.services.occupancy import OccupancyIndex, find_conflicts

DAY = date(2025, 1, 1)


def _at(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute)


def _saved(hour: int, minute: int, duration: int, title: str = "Existing", day: date = DAY):
    return ScheduledInterval(
        content_id=title.lower(),
        start=_at(hour, minute, day),
        duration_minutes=duration,
        title=title,
    )


def _pending(hour: int, minute: int, duration: int, title: str = "Pending"):
    return PendingPlacement(
        key=f"{title}-{hour}-{minute}",
        content_id=title.lower(),
        start=_at(hour, minute),
        duration_minutes=duration,
        title=title,
    )


# ---------------------------------------------------------------------------
# find_conflicts
# ---------------------------------------------------------------------------


def test_no_overlap():
    """Entries that don't overlap should not be returned as conflicts."""
    conflicts = find_conflicts(_at(10), _at(11), [_saved(8, 0, 60)])
    assert conflicts == []


def test_partial_overlap():
    """An entry that partially overlaps should be returned as a conflict."""
    conflicts = find_conflicts(_at(10), _at(11), [_saved(9, 0, 90)])
    assert len(conflicts) == 1
    assert conflicts[0].start == _at(9)


def test_exact_boundary_no_conflict():
    """When existing.end == new_start, there is no conflict (boundary touch)."""
    conflicts = find_conflicts(_at(10), _at(11), [_saved(9, 0, 60)])
    assert conflicts == []


# ---------------------------------------------------------------------------
# find_blocking_interval / is_occupied
# ---------------------------------------------------------------------------


def test_saved_entry_wins_over_pending():
    index = OccupancyIndex([_saved(20, 0, 30, "Saved")], [_pending(20, 0, 30)])
    assert index.find_blocking_interval(_at(20, 10), 15).title == "Saved"


def test_pending_entry_blocks():
    index = OccupancyIndex([_saved(18, 0, 30, "Saved")], [_pending(20, 0, 30)])
    blocking = index.find_blocking_interval(_at(20, 10), 15)
    assert isinstance(blocking, PendingPlacement)
    assert index.is_occupied(_at(20, 10), 15) is True


def test_unsorted_input_is_scanned_fully():
    index = OccupancyIndex([_saved(22, 0, 30, "Late"), _saved(20, 0, 30, "Early")])
    assert index.find_blocking_interval(_at(20, 10), 15).title == "Early"


def test_free_slot_is_not_occupied():
    index = OccupancyIndex([_saved(20, 0, 30)])
    assert index.find_blocking_interval(_at(20, 30), 30) is None
    assert index.is_occupied(_at(19, 30), 30) is False


def test_day_restriction_drops_other_days():
    other_day = date(2025, 1, 2)
    index = OccupancyIndex([_saved(20, 0, 30, day=other_day)], day=DAY)
    assert index.intervals == []


def test_day_restriction_keeps_entry_spilling_in_from_previous_day():
    previous = date(2024, 12, 31)
    index = OccupancyIndex([_saved(23, 30, 60, day=previous)], day=DAY)
    assert index.is_occupied(_at(0, 0), 15) is True


def test_add_makes_placement_visible():
    index = OccupancyIndex()
    index.add(_saved(20, 0, 30))
    assert index.is_occupied(_at(20, 0), 30) is True


@pytest.mark.parametrize("duration", [0, -30])
def test_non_positive_duration_raises(duration):
    with pytest.raises(InvalidDurationError):
        OccupancyIndex().find_blocking_interval(_at(20), duration)


# ---------------------------------------------------------------------------
# available_minutes_from
# ---------------------------------------------------------------------------


def test_available_until_next_entry():
    index = OccupancyIndex([_saved(20, 30, 30)])
    assert index.available_minutes_from(_at(20, 0)) == 30


def test_available_is_zero_inside_entry():
    index = OccupancyIndex([_saved(20, 30, 30)])
    assert index.available_minutes_from(_at(20, 30)) == 0
    assert index.available_minutes_from(_at(20, 45)) == 0


def test_available_until_end_of_day():
    index = OccupancyIndex([_saved(20, 30, 30)])
    assert index.available_minutes_from(_at(21, 0)) == 180
    assert OccupancyIndex().available_minutes_from(_at(23, 45)) == 15


def test_available_counts_pending_entries():
    index = OccupancyIndex([], [_pending(21, 0, 30)])
    assert index.available_minutes_from(_at(20, 0)) == 60


# ---------------------------------------------------------------------------
# next_free_slot
# ---------------------------------------------------------------------------


def test_next_free_slot_returns_start_when_free():
    index = OccupancyIndex([_saved(20, 30, 30)])
    assert index.next_free_slot(_at(20, 0), 30) == _at(20, 0)


def test_next_free_slot_walks_past_entry():
    index = OccupancyIndex([_saved(20, 30, 30)])
    assert index.next_free_slot(_at(20, 15), 30) == _at(21, 0)


def test_next_free_slot_end_of_day_boundary():
    index = OccupancyIndex()
    assert index.next_free_slot(_at(23, 45), 15) == _at(23, 45)
    assert index.next_free_slot(_at(23, 45), 16) is None


def test_next_free_slot_respects_until():
    index = OccupancyIndex([_saved(20, 0, 60)])
    assert index.next_free_slot(_at(20, 0), 30, until=_at(21, 0)) is None
    assert index.next_free_slot(_at(20, 0), 30, until=_at(21, 30)) == _at(21, 0)


def test_next_free_slot_custom_step():
    index = OccupancyIndex([_saved(20, 0, 10)])
    assert index.next_free_slot(_at(20, 0), 10, step_minutes=5) == _at(20, 10)


def test_next_free_slot_rejects_zero_step():
    with pytest.raises(InvalidDurationError):
        OccupancyIndex().next_free_slot(_at(20), 30, step_minutes=0)


def test_next_free_slot_full_day_returns_none():
    start = _at(0, 0)
    index = OccupancyIndex([_saved(0, 0, 24 * 60)])
    assert index.next_free_slot(start, 15) is None
    assert index.available_minutes_from(start + timedelta(hours=5)) == 0
