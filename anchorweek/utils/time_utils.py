"""Wall-clock time utilities.

Anchors, DND windows and reminders all live on a weekly grid of
``"HH:MM"`` strings; everything here converts between that representation,
minutes since midnight and user-facing text.
"""

import re
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

from dateutil.relativedelta import FR, MO, SA, SU, TH, TU, WE, relativedelta

from anchorweek.db.models import Day
from anchorweek.utils.constants import MINUTES_PER_DAY
from anchorweek.utils.errors import ValidationError

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

_RELATIVE_WEEKDAYS = [MO, TU, WE, TH, FR, SA, SU]


def to_minutes(value: str) -> int:
    """Convert ``"HH:MM"`` to minutes since midnight.

    Malformed or empty input yields 0; validate with :func:`parse_time`
    before storing anything.
    """
    if not value:
        return 0
    try:
        hours, minutes = value.split(":")
        return int(hours) * 60 + int(minutes)
    except (ValueError, AttributeError):
        return 0


def to_time_string(minutes: int) -> str:
    """Convert minutes since midnight to ``"HH:MM"``, wrapping modulo one day."""
    minutes = minutes % MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def overlaps(start_a: str, end_a: str, start_b: str, end_b: str) -> bool:
    """Check whether two same-day ``[start, end)`` intervals overlap.

    Touching intervals (one ends exactly when the other starts) do not overlap.
    """
    return to_minutes(start_a) < to_minutes(end_b) and to_minutes(end_a) > to_minutes(start_b)


def in_window(minute: int, start: str, end: str) -> bool:
    """Check if a minute-of-day falls inside a quiet-hours window.

    A window whose end is before its start wraps midnight and is treated as
    ``[start, 24:00) + [00:00, end)``.
    """
    start_min = to_minutes(start)
    end_min = to_minutes(end)

    if end_min < start_min:
        return minute >= start_min or minute < end_min
    return start_min <= minute < end_min


def parse_time(value: str) -> str:
    """Validate a 24-hour ``"HH:MM"`` string.

    Single-digit hours (``"9:30"``) are accepted and zero-padded.

    Raises:
        ValidationError: if the value is not a valid wall-clock time
    """
    if not isinstance(value, str):
        raise ValidationError(f"Invalid time: {value!r}")

    value = value.strip()
    if re.match(r"^\d:\d\d$", value):
        value = f"0{value}"

    if not TIME_PATTERN.match(value):
        raise ValidationError(f"Invalid time: {value!r}. Use HH:MM (24-hour format)")

    # Double check with the stdlib parser
    time.fromisoformat(value)
    return value


def day_of(dt: datetime) -> Day:
    """Get the weekday label of a datetime."""
    return list(Day)[dt.weekday()]


def minutes_of_day(dt: datetime) -> int:
    """Get the wall-clock minute of a datetime."""
    return dt.hour * 60 + dt.minute


def format_for_display(value: str) -> str:
    """Format ``"HH:MM"`` as 12-hour time.

    Examples:
        "09:00" -> "9 AM"
        "13:30" -> "1:30 PM"
        "00:00" -> "12 AM"
    """
    if not value:
        return ""
    hour_str, _, minute_str = value.partition(":")
    try:
        hour = int(hour_str)
    except ValueError:
        return value

    suffix = "PM" if hour >= 12 else "AM"
    hour = hour % 12 or 12
    if minute_str and minute_str != "00":
        return f"{hour}:{minute_str} {suffix}"
    return f"{hour} {suffix}"


def format_offset(offset_minutes: int) -> str:
    """Describe a reminder offset relative to its anchor.

    Examples:
        -10 -> "10 minutes before"
        0 -> "at the start of"
        1 -> "1 minute after"
    """
    if offset_minutes == 0:
        return "at the start of"
    minutes = abs(offset_minutes)
    before_or_after = "before" if offset_minutes < 0 else "after"
    return f"{minutes} minute{'s' if minutes != 1 else ''} {before_or_after}"


def format_duration(minutes: int) -> str:
    """Format minutes into a human-readable duration.

    Examples:
        15 -> "15 minutes"
        60 -> "1 hour"
        90 -> "1.5 hours"
        1440 -> "1 day"
    """
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    elif minutes < 1440:
        hours = minutes / 60
        if hours == int(hours):
            return f"{int(hours)} hour{'s' if hours != 1 else ''}"
        return f"{hours:.1f} hours"
    else:
        days = minutes / 1440
        if days == int(days):
            return f"{int(days)} day{'s' if days != 1 else ''}"
        return f"{days:.1f} days"


def next_occurrence(day: Day, minute: int, now: datetime) -> datetime:
    """Get the next datetime of a weekly slot at or after ``now``.

    ``minute`` is a same-day offset and may fall outside ``[0, 1440)``; the
    slot is anchored to ``day`` and shifted by whole minutes from midnight.
    """
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    weekday = _RELATIVE_WEEKDAYS[list(Day).index(day)]

    candidate = midnight + relativedelta(weekday=weekday) + timedelta(minutes=minute)
    if candidate < now:
        candidate += timedelta(weeks=1)
    return candidate


def local_now(tz: str) -> datetime:
    """Get the current time in a user's timezone."""
    return datetime.now(ZoneInfo(tz))
