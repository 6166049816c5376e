"""Tests for time utilities."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from anchorweek.db.models import Day
from anchorweek.utils.errors import ValidationError
from anchorweek.utils.time_utils import (
    day_of,
    format_duration,
    format_for_display,
    format_offset,
    in_window,
    next_occurrence,
    overlaps,
    parse_time,
    to_minutes,
    to_time_string,
)

UTC = ZoneInfo("UTC")


def test_to_minutes():
    """Test HH:MM conversion to minutes since midnight."""
    assert to_minutes("00:00") == 0
    assert to_minutes("09:30") == 570
    assert to_minutes("23:59") == 1439


def test_to_minutes_malformed():
    """Malformed or empty input falls back to midnight."""
    assert to_minutes("") == 0
    assert to_minutes("nine") == 0
    assert to_minutes("9:3x") == 0


def test_to_time_string_wraps():
    """Test minutes conversion back to HH:MM, modulo one day."""
    assert to_time_string(570) == "09:30"
    assert to_time_string(1440) == "00:00"
    assert to_time_string(-5) == "23:55"


def test_minutes_round_trip():
    """Any minute count survives a round trip modulo one day."""
    for minutes in range(-3000, 3000, 7):
        assert to_minutes(to_time_string(minutes)) == minutes % 1440


def test_overlaps_symmetric():
    """Swapping the two intervals never changes the answer."""
    times = ["00:00", "08:30", "09:00", "09:45", "10:00", "17:00", "23:59"]
    for start_a in times:
        for end_a in times:
            for start_b in times:
                for end_b in times:
                    assert overlaps(start_a, end_a, start_b, end_b) == overlaps(
                        start_b, end_b, start_a, end_a
                    )


def test_overlaps_half_open():
    """Touching intervals do not overlap."""
    assert overlaps("09:00", "10:00", "09:30", "10:30")
    assert overlaps("09:00", "12:00", "10:00", "11:00")
    assert not overlaps("09:00", "10:00", "10:00", "11:00")
    assert not overlaps("10:00", "11:00", "09:00", "10:00")


def test_in_window_same_day():
    """Test a quiet-hours window inside one day."""
    assert in_window(to_minutes("13:00"), "12:00", "14:00")
    assert not in_window(to_minutes("14:00"), "12:00", "14:00")
    assert not in_window(to_minutes("11:59"), "12:00", "14:00")


def test_in_window_overnight():
    """A window whose end is before its start wraps midnight."""
    assert in_window(to_minutes("23:30"), "22:00", "07:00")
    assert in_window(to_minutes("06:30"), "22:00", "07:00")
    assert not in_window(to_minutes("07:00"), "22:00", "07:00")
    assert not in_window(to_minutes("12:00"), "22:00", "07:00")


def test_parse_time():
    """Test strict HH:MM validation."""
    assert parse_time("18:00") == "18:00"
    assert parse_time(" 9:30 ") == "09:30"

    for bad in ("24:00", "12:60", "noon", "1800", ""):
        with pytest.raises(ValidationError):
            parse_time(bad)


def test_day_of():
    """Test weekday labels from datetimes."""
    # 2026-03-16 is a Monday
    assert day_of(datetime(2026, 3, 16, 9, 0, tzinfo=UTC)) == Day.MONDAY
    assert day_of(datetime(2026, 3, 22, 9, 0, tzinfo=UTC)) == Day.SUNDAY


def test_format_for_display():
    """Test 12-hour display formatting."""
    assert format_for_display("09:00") == "9 AM"
    assert format_for_display("13:30") == "1:30 PM"
    assert format_for_display("00:00") == "12 AM"
    assert format_for_display("12:00") == "12 PM"


def test_format_offset():
    """Test reminder offset descriptions."""
    assert format_offset(-10) == "10 minutes before"
    assert format_offset(0) == "at the start of"
    assert format_offset(1) == "1 minute after"


def test_format_duration():
    """Test duration formatting."""
    assert format_duration(5) == "5 minutes"
    assert format_duration(1) == "1 minute"
    assert format_duration(60) == "1 hour"
    assert format_duration(90) == "1.5 hours"
    assert format_duration(1440) == "1 day"


def test_next_occurrence_later_this_week():
    """Test the next weekly slot when it is still ahead this week."""
    now = datetime(2026, 3, 16, 8, 0, tzinfo=UTC)  # Monday
    assert next_occurrence(Day.WEDNESDAY, to_minutes("18:00"), now) == datetime(
        2026, 3, 18, 18, 0, tzinfo=UTC
    )
    assert next_occurrence(Day.MONDAY, to_minutes("09:00"), now) == datetime(
        2026, 3, 16, 9, 0, tzinfo=UTC
    )


def test_next_occurrence_rolls_to_next_week():
    """A slot already passed today moves to the following week."""
    now = datetime(2026, 3, 16, 10, 0, tzinfo=UTC)  # Monday
    assert next_occurrence(Day.MONDAY, to_minutes("09:00"), now) == datetime(
        2026, 3, 23, 9, 0, tzinfo=UTC
    )
