"""Tests for anchor placement checks."""

from dataclasses import replace

import pytest

from anchorweek.db.models import Anchor, Day, DNDWindow
from anchorweek.engine.placement import can_place, dnd_overlaps, ensure_placeable
from anchorweek.utils.errors import ConflictError

WORK = Anchor(id="work", day=Day.MONDAY, title="Work", start_time="09:00", end_time="17:00")
GYM = Anchor(id="gym", day=Day.MONDAY, title="Gym Session", start_time="18:00", end_time="19:00")


def test_can_place_free_slot():
    """Test placing into a free slot."""
    candidate = Anchor(id="new", day=Day.MONDAY, title="Lunch walk", start_time="17:00", end_time="18:00")

    placement = can_place(candidate, [WORK, GYM])
    assert placement.ok
    assert placement.conflict is None


def test_can_place_reports_blocking_anchor():
    """An overlap names the anchor in the way."""
    candidate = Anchor(id="new", day=Day.MONDAY, title="Dentist", start_time="16:30", end_time="17:30")

    placement = can_place(candidate, [WORK, GYM])
    assert not placement.ok
    assert placement.conflict == WORK


def test_can_place_other_day():
    """Anchors on other days never conflict."""
    candidate = replace(WORK, id="new", day=Day.TUESDAY)

    assert can_place(candidate, [WORK, GYM]).ok


def test_can_place_ignores_itself():
    """A moved anchor does not conflict with its own previous position."""
    moved = replace(GYM, start_time="18:30", end_time="19:30")

    assert can_place(moved, [WORK, GYM]).ok


def test_ensure_placeable_raises_conflict():
    """Test the raising variant."""
    candidate = Anchor(id="new", day=Day.MONDAY, title="Yoga", start_time="18:30", end_time="19:30")

    with pytest.raises(ConflictError) as exc_info:
        ensure_placeable(candidate, [WORK, GYM])

    assert exc_info.value.blocking == GYM
    assert "Gym Session" in str(exc_info.value)


def test_dnd_overlaps_is_informational():
    """Test quiet-hours overlap detection."""
    late = Anchor(id="late", day=Day.MONDAY, title="Late shift", start_time="21:00", end_time="23:30")
    windows = [DNDWindow(Day.MONDAY, "22:00", "06:00"), DNDWindow(Day.TUESDAY, "22:00", "06:00")]

    assert dnd_overlaps(late, windows) == [windows[0]]
    assert dnd_overlaps(WORK, windows) == []
