"""Tests for the onboarding wizard."""

import pytest

from anchorweek.db.models import WEEKDAYS, ContextTag, Day, OnboardingBlock
from anchorweek.engine.onboarding import default_preview, generate_preview, get_dnd_preset
from anchorweek.utils.errors import ValidationError


def test_generate_preview_one_anchor_per_day():
    """Each block produces an anchor per selected day."""
    block = OnboardingBlock(start_time="08:00", end_time="16:00", days=(Day.MONDAY, Day.WEDNESDAY))

    preview = generate_preview([block], "22:00", "06:00")

    assert [a.id for a in preview.anchors] == ["onboard-0-Monday", "onboard-0-Wednesday"]
    anchor = preview.anchors[0]
    assert anchor.title == "Work/School"
    assert anchor.context_tags == {ContextTag.WORK, ContextTag.HIGH_ENERGY}
    assert anchor.buffer.prep == 15
    assert anchor.buffer.recovery == 15


def test_generate_preview_dnd_every_day():
    """Quiet hours are applied to all seven days."""
    preview = generate_preview([], "23:00", "07:00")

    assert preview.anchors == ()
    assert [w.day for w in preview.dnd_windows] == list(Day)
    assert all(w.start_time == "23:00" and w.end_time == "07:00" for w in preview.dnd_windows)


def test_generate_preview_skips_incomplete_blocks():
    """Half-filled wizard rows are ignored."""
    blocks = [
        OnboardingBlock(start_time="", end_time="16:00", days=(Day.MONDAY,)),
        OnboardingBlock(start_time="08:00", end_time="16:00", days=()),
        OnboardingBlock(start_time="18:00", end_time="19:00", days=(Day.FRIDAY,)),
    ]

    preview = generate_preview(blocks, "23:00", "07:00")

    assert [a.id for a in preview.anchors] == ["onboard-2-Friday"]


def test_generate_preview_rejects_backwards_block():
    """Test block validation."""
    block = OnboardingBlock(start_time="17:00", end_time="09:00", days=(Day.MONDAY,))

    with pytest.raises(ValidationError):
        generate_preview([block], "23:00", "07:00")


def test_default_preview():
    """The default starter week is weekday 9-5 with 11 PM - 7 AM quiet hours."""
    preview = default_preview()

    assert [a.day for a in preview.anchors] == list(WEEKDAYS)
    assert preview.anchors[0].start_time == "09:00"
    assert preview.anchors[0].end_time == "17:00"
    assert preview.dnd_windows[0].start_time == "23:00"
    assert len(preview.dnd_windows) == 7


def test_get_dnd_preset():
    """Presets are found by label or by span."""
    assert get_dnd_preset("10 PM - 6 AM").start_time == "22:00"
    assert get_dnd_preset("00:00-08:00").end_time == "08:00"

    with pytest.raises(ValidationError):
        get_dnd_preset("whenever")
