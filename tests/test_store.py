"""Tests for the schedule store."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from anchorweek.db.models import Anchor, Day, DNDWindow, SmartReminder
from anchorweek.engine.store import ScheduleStore
from anchorweek.utils.errors import NotFoundError, ValidationError


def make_anchor(anchor_id="gym", day=Day.MONDAY, start="18:00", end="19:00", title="Gym Session"):
    return Anchor(id=anchor_id, day=day, title=title, start_time=start, end_time=end)


def make_reminder(reminder_id="r1", event_id="gym", offset=-10):
    return SmartReminder(id=reminder_id, event_id=event_id, offset_minutes=offset, message="Pack bag")


def test_add_anchor_normalizes_times():
    """Test that stored anchors carry zero-padded times."""
    store = ScheduleStore().add_anchor(make_anchor(start="9:00", end="10:30"))

    anchor = store.get_anchor("gym")
    assert anchor.start_time == "09:00"
    assert anchor.end_time == "10:30"


def test_add_anchor_leaves_original_untouched():
    """Mutations return a new snapshot."""
    empty = ScheduleStore()
    store = empty.add_anchor(make_anchor())

    assert empty.anchors == ()
    assert len(store.anchors) == 1


def test_add_anchor_rejects_bad_input():
    """Test anchor validation."""
    store = ScheduleStore()

    with pytest.raises(ValidationError):
        store.add_anchor(make_anchor(start="19:00", end="18:00"))
    with pytest.raises(ValidationError):
        store.add_anchor(make_anchor(start="18:00", end="18:00"))
    with pytest.raises(ValidationError):
        store.add_anchor(make_anchor(title="   "))
    with pytest.raises(ValidationError):
        store.add_anchor(make_anchor(start="25:00"))


def test_add_anchor_rejects_duplicate_id():
    """Anchor ids are unique."""
    store = ScheduleStore().add_anchor(make_anchor())

    with pytest.raises(ValidationError):
        store.add_anchor(make_anchor(day=Day.TUESDAY))


def test_add_anchors_is_all_or_nothing():
    """A failing anchor in a batch leaves the store unchanged."""
    store = ScheduleStore()

    with pytest.raises(ValidationError):
        store.add_anchors([make_anchor("a"), make_anchor("b", start="bad")])
    assert store.anchors == ()


def test_anchors_on_sorted_by_start():
    """Test per-day anchor listing."""
    store = ScheduleStore().add_anchors(
        [
            make_anchor("late", start="18:00", end="19:00"),
            make_anchor("early", start="07:00", end="08:00"),
            make_anchor("other", day=Day.TUESDAY),
        ]
    )

    assert [a.id for a in store.anchors_on(Day.MONDAY)] == ["early", "late"]
    assert [a.id for a in store.anchors_on(Day.TUESDAY)] == ["other"]
    assert store.anchors_on(Day.SUNDAY) == []


def test_anchor_titles_distinct():
    """Test the title list offered to the request parser."""
    store = ScheduleStore().add_anchors(
        [make_anchor("a"), make_anchor("b", day=Day.WEDNESDAY), make_anchor("c", title="Deep Work")]
    )

    assert store.anchor_titles() == ["Gym Session", "Deep Work"]
    assert len(store.anchors_titled("Gym Session")) == 2


def test_remove_anchor_cascades_to_reminders():
    """Deleting an anchor deletes every reminder that points at it."""
    store = (
        ScheduleStore()
        .add_anchors([make_anchor("gym"), make_anchor("work", start="09:00", end="17:00", title="Work")])
        .add_reminder(make_reminder("r1", "gym"))
        .add_reminder(make_reminder("r2", "gym", offset=0))
        .add_reminder(make_reminder("r3", "work"))
    )

    store = store.remove_anchor("gym")

    assert [r.id for r in store.reminders] == ["r3"]
    assert all(store.find_anchor(r.event_id) for r in store.reminders)


def test_remove_missing_anchor():
    """Test removing an unknown anchor."""
    with pytest.raises(NotFoundError):
        ScheduleStore().remove_anchor("nope")


def test_add_reminder_requires_anchor():
    """A reminder must reference an existing anchor."""
    with pytest.raises(NotFoundError):
        ScheduleStore().add_reminder(make_reminder(event_id="missing"))


def test_add_reminder_rejects_empty_message():
    """Test reminder validation."""
    store = ScheduleStore().add_anchor(make_anchor())

    with pytest.raises(ValidationError):
        store.add_reminder(SmartReminder(id="r1", event_id="gym", offset_minutes=-5, message=" "))


def test_dnd_windows_by_index():
    """Test DND window mutations by position."""
    store = ScheduleStore().add_dnd_window(DNDWindow(Day.MONDAY, "22:00", "06:00"))
    store = store.add_dnd_window(DNDWindow(Day.TUESDAY, "22:00", "06:00"))

    store = store.update_dnd_window(0, DNDWindow(Day.MONDAY, "23:00", "7:00"))
    assert store.dnd_windows[0].end_time == "07:00"

    store = store.remove_dnd_window(1)
    assert len(store.dnd_windows) == 1
    assert store.dnd_on(Day.TUESDAY) == []

    with pytest.raises(NotFoundError):
        store.remove_dnd_window(5)


def test_pause_state():
    """Test global pause."""
    tz = ZoneInfo("UTC")
    until = datetime(2026, 3, 16, 10, 0, tzinfo=tz)
    store = ScheduleStore().with_pause(until)

    assert store.is_paused(datetime(2026, 3, 16, 9, 59, tzinfo=tz))
    assert not store.is_paused(datetime(2026, 3, 16, 10, 0, tzinfo=tz))
    assert not store.with_pause(None).is_paused(datetime(2026, 3, 16, 9, 0, tzinfo=tz))


def test_restore_selected_records():
    """Test copying records back from an earlier snapshot."""
    before = ScheduleStore().add_anchor(make_anchor())
    after = before.add_dnd_window(DNDWindow(Day.MONDAY, "22:00", "06:00")).remove_anchor("gym")

    restored = after.restore(before, ("anchors",))

    assert restored.anchors == before.anchors
    assert restored.dnd_windows == after.dnd_windows

    with pytest.raises(ValueError):
        after.restore(before, ("bogus",))
