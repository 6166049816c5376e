"""Data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal


class Day(str, Enum):
    """Weekday labels, Monday first."""

    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"

    @classmethod
    def parse(cls, value: "str | Day") -> "Day":
        """Parse a weekday name or three-letter abbreviation, case-insensitively."""
        if isinstance(value, Day):
            return value
        text = str(value).strip().lower()
        for day in cls:
            if text in (day.value.lower(), day.value[:3].lower()):
                return day
        raise ValueError(f"Unknown weekday: {value}")


WEEKDAYS = (Day.MONDAY, Day.TUESDAY, Day.WEDNESDAY, Day.THURSDAY, Day.FRIDAY)


class ContextTag(str, Enum):
    """Semantic labels attached to anchors."""

    RUSHED = "rushed"
    RELAXED = "relaxed"
    HIGH_ENERGY = "high-energy"
    LOW_ENERGY = "low-energy"
    WORK = "work"
    SCHOOL = "school"
    PERSONAL = "personal"
    PREP = "prep"
    TRAVEL = "travel"
    RECOVERY = "recovery"


class ReminderStatus(str, Enum):
    """Smart reminder states."""

    ACTIVE = "active"
    SNOOZED = "snoozed"
    DONE = "done"
    PAUSED = "paused"
    IGNORED = "ignored"


SuccessState = Literal["success", "snoozed", "ignored"]


@dataclass(frozen=True)
class Buffer:
    """Prep and recovery time around an anchor, in minutes."""

    prep: int = 0
    recovery: int = 0


@dataclass(frozen=True)
class Anchor:
    """A recurring weekly time block."""

    id: str
    day: Day
    title: str
    start_time: str  # HH:MM
    end_time: str  # HH:MM, after start_time
    context_tags: frozenset[ContextTag] = field(default_factory=frozenset)
    buffer: Buffer | None = None


@dataclass(frozen=True)
class DNDWindow:
    """Recurring quiet hours. end_time < start_time wraps midnight."""

    day: Day
    start_time: str  # HH:MM
    end_time: str  # HH:MM


@dataclass(frozen=True)
class SmartReminder:
    """A notification offset from an anchor's start time."""

    id: str
    event_id: str  # Anchor.id
    offset_minutes: int  # Negative = before the anchor starts
    message: str
    why: str = ""
    is_locked: bool = False
    is_exploratory: bool = False
    status: ReminderStatus = ReminderStatus.ACTIVE
    snooze_history: tuple[int, ...] = ()  # Most recent first
    snoozed_until: datetime | None = None
    success_history: tuple[SuccessState, ...] = ()  # Oldest first
    is_stacked_habit: bool = False
    habit_id: str | None = None
    original_offset_minutes: int | None = None
    last_interaction: datetime | None = None
    flexibility_minutes: int | None = None
    allow_exploration: bool = True


@dataclass(frozen=True)
class OnboardingBlock:
    """One row of the onboarding wizard: a time block repeated on some days."""

    start_time: str
    end_time: str
    days: tuple[Day, ...]


@dataclass(frozen=True)
class OnboardingPreview:
    """Candidate anchors and DND windows awaiting acceptance."""

    anchors: tuple[Anchor, ...] = ()
    dnd_windows: tuple[DNDWindow, ...] = ()


@dataclass(frozen=True)
class ReminderRequest:
    """Structured reminder candidate returned by a request parser."""

    anchor_title: str
    offset_minutes: int
    message: str
    why: str = "Because you asked to be reminded."


@dataclass
class User:
    """Telegram user."""

    telegram_id: int
    timezone: str
    created_at: datetime | None = None
