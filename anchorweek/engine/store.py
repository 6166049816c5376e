"""Schedule store - the authoritative, immutable schedule snapshot.

Every mutation returns a new ``ScheduleStore``; the previous snapshot is left
untouched, so a failed operation can never leave half-applied state behind and
an evaluator pass always sees a consistent view.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable

from anchorweek.db.models import (
    Anchor,
    Day,
    DNDWindow,
    OnboardingPreview,
    ReminderStatus,
    SmartReminder,
)
from anchorweek.utils.constants import (
    MAX_ANCHORS_PER_USER,
    MAX_MESSAGE_LENGTH,
    MAX_TITLE_LENGTH,
)
from anchorweek.utils.errors import NotFoundError, ValidationError
from anchorweek.utils.time_utils import parse_time, to_minutes

RECORDS = ("anchors", "dnd_windows", "reminders", "pause_until", "onboarding_preview")


def validate_anchor(anchor: Anchor) -> Anchor:
    """Validate an anchor and return it with normalized times."""
    title = anchor.title.strip() if anchor.title else ""
    if not title:
        raise ValidationError("Anchor title is required")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Anchor title is longer than {MAX_TITLE_LENGTH} characters")
    if not isinstance(anchor.day, Day):
        raise ValidationError(f"Unknown weekday: {anchor.day!r}")

    start = parse_time(anchor.start_time)
    end = parse_time(anchor.end_time)
    if to_minutes(end) <= to_minutes(start):
        raise ValidationError(
            f"Anchor must end after it starts ({start}-{end}); "
            "anchors cannot cross midnight"
        )

    if anchor.buffer and (anchor.buffer.prep < 0 or anchor.buffer.recovery < 0):
        raise ValidationError("Buffer minutes cannot be negative")

    return replace(anchor, title=title, start_time=start, end_time=end)


def validate_window(window: DNDWindow) -> DNDWindow:
    """Validate a DND window and return it with normalized times."""
    if not isinstance(window.day, Day):
        raise ValidationError(f"Unknown weekday: {window.day!r}")
    return replace(
        window,
        start_time=parse_time(window.start_time),
        end_time=parse_time(window.end_time),
    )


def validate_reminder(reminder: SmartReminder) -> SmartReminder:
    """Validate a smart reminder."""
    if not reminder.message or not reminder.message.strip():
        raise ValidationError("Reminder message is required")
    if len(reminder.message) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Reminder message is longer than {MAX_MESSAGE_LENGTH} characters")
    if isinstance(reminder.offset_minutes, bool) or not isinstance(reminder.offset_minutes, int):
        raise ValidationError(f"Offset must be a whole number of minutes: {reminder.offset_minutes!r}")
    if reminder.status == ReminderStatus.DONE and reminder.snoozed_until is not None:
        raise ValidationError("A done reminder cannot be snoozed")
    return replace(reminder, message=reminder.message.strip())


@dataclass(frozen=True)
class ScheduleStore:
    """Anchors, DND windows, smart reminders and the pause state."""

    anchors: tuple[Anchor, ...] = ()
    dnd_windows: tuple[DNDWindow, ...] = ()
    reminders: tuple[SmartReminder, ...] = ()
    pause_until: datetime | None = None
    onboarding_preview: OnboardingPreview | None = None

    # Queries

    def find_anchor(self, anchor_id: str) -> Anchor | None:
        """Get an anchor by id, or None."""
        for anchor in self.anchors:
            if anchor.id == anchor_id:
                return anchor
        return None

    def get_anchor(self, anchor_id: str) -> Anchor:
        """Get an anchor by id."""
        anchor = self.find_anchor(anchor_id)
        if anchor is None:
            raise NotFoundError(f"Anchor not found: {anchor_id}")
        return anchor

    def find_reminder(self, reminder_id: str) -> SmartReminder | None:
        """Get a reminder by id, or None."""
        for reminder in self.reminders:
            if reminder.id == reminder_id:
                return reminder
        return None

    def get_reminder(self, reminder_id: str) -> SmartReminder:
        """Get a reminder by id."""
        reminder = self.find_reminder(reminder_id)
        if reminder is None:
            raise NotFoundError(f"Reminder not found: {reminder_id}")
        return reminder

    def anchors_on(self, day: Day) -> list[Anchor]:
        """Get anchors on a day, ordered by start time."""
        return sorted(
            (a for a in self.anchors if a.day == day),
            key=lambda a: to_minutes(a.start_time),
        )

    def anchors_titled(self, title: str) -> list[Anchor]:
        """Get every anchor with an exact title."""
        return [a for a in self.anchors if a.title == title]

    def anchor_titles(self) -> list[str]:
        """Get the distinct anchor titles in insertion order."""
        return list(dict.fromkeys(a.title for a in self.anchors))

    def reminders_for(self, anchor_id: str) -> list[SmartReminder]:
        """Get reminders attached to an anchor."""
        return [r for r in self.reminders if r.event_id == anchor_id]

    def dnd_on(self, day: Day) -> list[DNDWindow]:
        """Get quiet-hours windows on a day."""
        return [w for w in self.dnd_windows if w.day == day]

    def is_paused(self, now: datetime) -> bool:
        """Check if all reminders are paused at ``now``."""
        return self.pause_until is not None and now < self.pause_until

    def is_empty(self) -> bool:
        """Check if nothing has been scheduled yet."""
        return not self.anchors and not self.dnd_windows and self.onboarding_preview is None

    # Anchor mutations

    def add_anchor(self, anchor: Anchor) -> "ScheduleStore":
        """Add an anchor. Placement conflicts are checked by the caller."""
        anchor = validate_anchor(anchor)
        if self.find_anchor(anchor.id) is not None:
            raise ValidationError(f"Duplicate anchor id: {anchor.id}")
        if len(self.anchors) >= MAX_ANCHORS_PER_USER:
            raise ValidationError(f"You can have at most {MAX_ANCHORS_PER_USER} anchors")
        return replace(self, anchors=self.anchors + (anchor,))

    def add_anchors(self, anchors: Iterable[Anchor]) -> "ScheduleStore":
        """Add several anchors, all or nothing."""
        store = self
        for anchor in anchors:
            store = store.add_anchor(anchor)
        return store

    def update_anchor(self, anchor: Anchor) -> "ScheduleStore":
        """Replace an existing anchor with the same id."""
        anchor = validate_anchor(anchor)
        self.get_anchor(anchor.id)
        return replace(
            self,
            anchors=tuple(anchor if a.id == anchor.id else a for a in self.anchors),
        )

    def remove_anchor(self, anchor_id: str) -> "ScheduleStore":
        """Remove an anchor and every reminder that references it."""
        self.get_anchor(anchor_id)
        return replace(
            self,
            anchors=tuple(a for a in self.anchors if a.id != anchor_id),
            reminders=tuple(r for r in self.reminders if r.event_id != anchor_id),
        )

    # DND mutations

    def add_dnd_window(self, window: DNDWindow) -> "ScheduleStore":
        """Add a quiet-hours window. Overlapping windows are allowed."""
        window = validate_window(window)
        return replace(self, dnd_windows=self.dnd_windows + (window,))

    def update_dnd_window(self, index: int, window: DNDWindow) -> "ScheduleStore":
        """Replace the window at a position."""
        window = validate_window(window)
        if not 0 <= index < len(self.dnd_windows):
            raise NotFoundError(f"DND window not found: {index}")
        windows = list(self.dnd_windows)
        windows[index] = window
        return replace(self, dnd_windows=tuple(windows))

    def remove_dnd_window(self, index: int) -> "ScheduleStore":
        """Remove the window at a position."""
        if not 0 <= index < len(self.dnd_windows):
            raise NotFoundError(f"DND window not found: {index}")
        windows = list(self.dnd_windows)
        del windows[index]
        return replace(self, dnd_windows=tuple(windows))

    # Reminder mutations

    def add_reminder(self, reminder: SmartReminder) -> "ScheduleStore":
        """Add a reminder attached to an existing anchor."""
        reminder = validate_reminder(reminder)
        self.get_anchor(reminder.event_id)
        if self.find_reminder(reminder.id) is not None:
            raise ValidationError(f"Duplicate reminder id: {reminder.id}")
        return replace(self, reminders=self.reminders + (reminder,))

    def update_reminder(self, reminder: SmartReminder) -> "ScheduleStore":
        """Replace an existing reminder with the same id."""
        reminder = validate_reminder(reminder)
        self.get_reminder(reminder.id)
        return replace(
            self,
            reminders=tuple(reminder if r.id == reminder.id else r for r in self.reminders),
        )

    def remove_reminder(self, reminder_id: str) -> "ScheduleStore":
        """Remove a single reminder."""
        self.get_reminder(reminder_id)
        return replace(
            self,
            reminders=tuple(r for r in self.reminders if r.id != reminder_id),
        )

    # Pause and onboarding state

    def with_pause(self, until: datetime | None) -> "ScheduleStore":
        """Pause all reminders until a time, or clear the pause with None."""
        return replace(self, pause_until=until)

    def with_preview(self, preview: OnboardingPreview | None) -> "ScheduleStore":
        """Hold or clear a detached onboarding preview."""
        return replace(self, onboarding_preview=preview)

    def restore(self, previous: "ScheduleStore", fields: Iterable[str]) -> "ScheduleStore":
        """Copy selected records back from an earlier snapshot."""
        fields = tuple(fields)
        unknown = set(fields) - set(RECORDS)
        if unknown:
            raise ValueError(f"Unknown store records: {sorted(unknown)}")
        return replace(self, **{name: getattr(previous, name) for name in fields})
