"""Weekly scheduler - the operational surface over one user's schedule.

All mutations go through ``_apply``: the next snapshot is built from the
current one while holding the writer lock and swapped in only if every step
succeeded. Evaluation reads whichever complete snapshot is current, so it
never sees an anchor removed while its reminders are still present.

Outbound callbacks (persistence, change notifications, habit suggestions) run
after the swap. They must not block; failures are logged and dropped.
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable, Protocol
from uuid import uuid4

from anchorweek.db.models import (
    Anchor,
    Buffer,
    ContextTag,
    Day,
    DNDWindow,
    OnboardingBlock,
    OnboardingPreview,
    ReminderRequest,
    ReminderStatus,
    SmartReminder,
)
from anchorweek.engine import interactions
from anchorweek.engine.evaluator import due_reminders, is_snooze_expired
from anchorweek.engine.onboarding import default_preview, generate_preview
from anchorweek.engine.placement import ensure_placeable
from anchorweek.engine.store import ScheduleStore, validate_anchor
from anchorweek.engine.undo import ChangeEntry, UndoLedger
from anchorweek.utils.constants import COPY_SUFFIX, RECENT_REQUEST_LIMIT
from anchorweek.utils.errors import (
    CollaboratorError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from anchorweek.utils.time_utils import format_duration, format_for_display, format_offset

logger = logging.getLogger(__name__)

# The undo action is None for changes that are not recorded in the ledger
ChangeListener = Callable[[str, Callable[[], ChangeEntry] | None], None]
DoneListener = Callable[[SmartReminder, Anchor], None]
CommitListener = Callable[[ScheduleStore], None]


class ReminderParser(Protocol):
    """Turns free text into a structured reminder request."""

    def parse(self, text: str, anchor_titles: list[str]) -> ReminderRequest:
        """Raise CollaboratorError when the text cannot be understood."""
        ...


def _parse_days(days: Iterable["str | Day"]) -> list[Day]:
    parsed = []
    for day in days:
        try:
            parsed.append(Day.parse(day))
        except ValueError as e:
            raise ValidationError(str(e)) from e
    if not parsed:
        raise ValidationError("Pick at least one day")
    return list(dict.fromkeys(parsed))


def _format_days(days: list[Day]) -> str:
    return ", ".join(day.value[:3] for day in days)


class WeeklyScheduler:
    """Anchors, quiet hours and smart reminders for one user."""

    def __init__(
        self,
        store: ScheduleStore | None = None,
        *,
        on_change: ChangeListener | None = None,
        on_done: DoneListener | None = None,
        on_commit: CommitListener | None = None,
        include_recent: bool = True,
        id_factory: Callable[[str], str] | None = None,
    ):
        self._store = store or ScheduleStore()
        self._lock = threading.RLock()
        self._seen_requests: OrderedDict[tuple, None] = OrderedDict()
        self.ledger = UndoLedger()
        self.on_change = on_change
        self.on_done = on_done
        self.on_commit = on_commit
        self.include_recent = include_recent
        self._new_id = id_factory or (lambda prefix: f"{prefix}-{uuid4().hex[:8]}")

    @property
    def store(self) -> ScheduleStore:
        """The current schedule snapshot."""
        return self._store

    # Internals

    def _apply(
        self,
        build: Callable[[ScheduleStore], tuple[ScheduleStore, object]],
        message: str | Callable[[object], str] | None = None,
        fields: tuple[str, ...] = (),
    ):
        """Build and commit the next snapshot.

        Args:
            build: Returns (next store, result) from the current store; may raise
            message: Change description (or a function of the result); recorded
                in the undo ledger when ``fields`` is non-empty
            fields: Store records the inverse operation restores

        Returns:
            The result produced by ``build``
        """
        with self._lock:
            previous = self._store
            store, result = build(previous)
            if store is previous:
                return result
            self._store = store

            text = message(result) if callable(message) else message
            recorded = bool(text and fields)
            if recorded:
                self.ledger.record(text, lambda current: current.restore(previous, fields))

        if text:
            logger.info(text)
        self._emit_commit(store)
        if text:
            self._emit_change(text, recorded)
        return result

    def _emit_commit(self, store: ScheduleStore) -> None:
        if self.on_commit is None:
            return
        try:
            self.on_commit(store)
        except Exception as e:
            logger.error(f"Failed to persist schedule: {e}")

    def _emit_change(self, message: str, recorded: bool) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change(message, self.undo if recorded else None)
        except Exception as e:
            logger.error(f"Failed to send change notification: {e}")

    def _emit_done(self, reminder: SmartReminder) -> None:
        if self.on_done is None:
            return
        anchor = self._store.find_anchor(reminder.event_id)
        if anchor is None:
            return
        try:
            self.on_done(reminder, anchor)
        except Exception as e:
            logger.error(f"Habit suggestion failed for reminder {reminder.id}: {e}")

    def _first_seen(self, key: tuple) -> bool:
        """Remember an interaction request; False if it was already applied."""
        with self._lock:
            if key in self._seen_requests:
                return False
            self._seen_requests[key] = None
            while len(self._seen_requests) > RECENT_REQUEST_LIMIT:
                self._seen_requests.popitem(last=False)
            return True

    # Evaluation

    def evaluate(self, now: datetime) -> list[SmartReminder]:
        """Get the reminders due at ``now``."""
        return due_reminders(self._store, now, include_recent=self.include_recent)

    def tick(self, now: datetime) -> list[SmartReminder]:
        """Return expired snoozes to active, then evaluate."""

        def build(store: ScheduleStore):
            expired = [r for r in store.reminders if is_snooze_expired(r, now)]
            for reminder in expired:
                store = store.update_reminder(interactions.wake(reminder, now))
            return store, len(expired)

        woken = self._apply(build)
        if woken:
            logger.debug(f"{woken} snoozed reminders back to active")
        return self.evaluate(now)

    # Anchors

    def add_anchor(
        self,
        title: str,
        start_time: str,
        end_time: str,
        days: Iterable["str | Day"],
        context_tags: Iterable[ContextTag] | None = None,
        buffer: Buffer | None = None,
    ) -> list[Anchor]:
        """Add an anchor on one or more days, all or nothing."""
        parsed_days = _parse_days(days)
        tags = frozenset(context_tags) if context_tags is not None else frozenset({ContextTag.PERSONAL})

        def build(store: ScheduleStore):
            created = []
            for day in parsed_days:
                anchor = validate_anchor(
                    Anchor(
                        id=self._new_id("anchor"),
                        day=day,
                        title=title,
                        start_time=start_time,
                        end_time=end_time,
                        context_tags=tags,
                        buffer=buffer,
                    )
                )
                ensure_placeable(anchor, store.anchors)
                store = store.add_anchor(anchor)
                created.append(anchor)
            return store, created

        def describe(created: list[Anchor]) -> str:
            first = created[0]
            return (
                f'Anchor added: "{first.title}" on {_format_days(parsed_days)}, '
                f"{format_for_display(first.start_time)}-{format_for_display(first.end_time)}."
            )

        try:
            return self._apply(build, describe, ("anchors",))
        except ConflictError as e:
            logger.warning(f"Rejected anchor {title!r}: {e}")
            raise

    def move_anchor(
        self,
        anchor_id: str,
        day: "str | Day",
        start_time: str | None = None,
        end_time: str | None = None,
    ) -> Anchor:
        """Move an anchor to another day (and optionally time).

        Rejected with ConflictError, leaving the schedule untouched, if it
        would overlap another anchor there.
        """
        target_day = _parse_days([day])[0]

        def build(store: ScheduleStore):
            anchor = store.get_anchor(anchor_id)
            moved = validate_anchor(
                replace(
                    anchor,
                    day=target_day,
                    start_time=start_time or anchor.start_time,
                    end_time=end_time or anchor.end_time,
                )
            )
            if moved == anchor:
                return store, anchor
            ensure_placeable(moved, store.anchors)
            return store.update_anchor(moved), moved

        try:
            return self._apply(
                build, lambda moved: f'Moved "{moved.title}" to {moved.day.value}.', ("anchors",)
            )
        except ConflictError as e:
            logger.warning(f"Rejected move of anchor {anchor_id}: {e}")
            raise

    def duplicate_anchor(self, anchor_id: str, day: "str | Day | None" = None) -> Anchor:
        """Copy an anchor under a new id with a "(Copy)" title suffix."""

        def build(store: ScheduleStore):
            anchor = store.get_anchor(anchor_id)
            copy = replace(
                anchor,
                id=self._new_id("anchor"),
                title=f"{anchor.title}{COPY_SUFFIX}",
                day=_parse_days([day])[0] if day is not None else anchor.day,
            )
            ensure_placeable(copy, store.anchors)
            return store.add_anchor(copy), copy

        return self._apply(
            build,
            lambda copy: f'Copied anchor "{copy.title[: -len(COPY_SUFFIX)]}" to {copy.day.value}.',
            ("anchors",),
        )

    def delete_anchor(self, anchor_id: str, missing_ok: bool = False) -> Anchor | None:
        """Delete an anchor and the reminders attached to it."""

        def build(store: ScheduleStore):
            anchor = store.find_anchor(anchor_id)
            if anchor is None:
                if missing_ok:
                    return store, None
                raise NotFoundError(f"Anchor not found: {anchor_id}")
            return store.remove_anchor(anchor_id), anchor

        return self._apply(
            build, lambda anchor: f'Deleted anchor "{anchor.title}".', ("anchors", "reminders")
        )

    # Quiet hours

    def add_dnd_window(
        self, days: Iterable["str | Day"], start_time: str, end_time: str
    ) -> list[DNDWindow]:
        """Add quiet hours on one or more days."""
        parsed_days = _parse_days(days)

        def build(store: ScheduleStore):
            before = len(store.dnd_windows)
            for day in parsed_days:
                store = store.add_dnd_window(DNDWindow(day=day, start_time=start_time, end_time=end_time))
            return store, list(store.dnd_windows[before:])

        return self._apply(
            build,
            lambda windows: (
                f"Quiet hours added: {format_for_display(windows[0].start_time)}-"
                f"{format_for_display(windows[0].end_time)} on {_format_days(parsed_days)}."
            ),
            ("dnd_windows",),
        )

    def remove_dnd_window(self, index: int) -> DNDWindow:
        """Remove the quiet-hours window at a position."""

        def build(store: ScheduleStore):
            if not 0 <= index < len(store.dnd_windows):
                raise NotFoundError(f"DND window not found: {index}")
            return store.remove_dnd_window(index), store.dnd_windows[index]

        return self._apply(
            build,
            lambda window: f"Quiet hours removed on {window.day.value}.",
            ("dnd_windows",),
        )

    # Reminders

    def add_reminder(
        self,
        anchor_id: str,
        offset_minutes: int,
        message: str,
        why: str = "",
        **flags,
    ) -> SmartReminder:
        """Attach a reminder to an anchor."""

        def build(store: ScheduleStore):
            anchor = store.get_anchor(anchor_id)
            reminder = SmartReminder(
                id=self._new_id(f"sr-{anchor.id}"),
                event_id=anchor.id,
                offset_minutes=offset_minutes,
                message=message,
                why=why,
                **flags,
            )
            store = store.add_reminder(reminder)
            return store, store.reminders[-1]

        def describe(reminder: SmartReminder) -> str:
            anchor = self._store.get_anchor(reminder.event_id)
            return f'Reminder set: "{reminder.message}" {format_offset(reminder.offset_minutes)} "{anchor.title}".'

        return self._apply(build, describe, ("reminders",))

    def add_reminders_from_request(self, request: ReminderRequest) -> list[SmartReminder]:
        """Create one reminder per anchor carrying the requested title.

        An unknown title is a ValidationError, never a silent no-op.
        """

        def build(store: ScheduleStore):
            targets = store.anchors_titled(request.anchor_title)
            if not targets:
                raise ValidationError(f'Couldn\'t find an anchor named "{request.anchor_title}".')

            created = []
            for anchor in targets:
                reminder = SmartReminder(
                    id=self._new_id(f"sr-{anchor.id}"),
                    event_id=anchor.id,
                    offset_minutes=request.offset_minutes,
                    message=request.message,
                    why=request.why,
                )
                store = store.add_reminder(reminder)
                created.append(store.reminders[-1])
            return store, created

        return self._apply(
            build,
            f'Reminder set: "{request.message}" {format_offset(request.offset_minutes)} "{request.anchor_title}".',
            ("reminders",),
        )

    def request_reminder(self, text: str, parser: ReminderParser) -> list[SmartReminder]:
        """Parse free text with a collaborator and create the reminders."""
        try:
            request = parser.parse(text, self._store.anchor_titles())
        except CollaboratorError as e:
            logger.error(f"Could not parse reminder request {text!r}: {e}")
            raise
        return self.add_reminders_from_request(request)

    def remove_reminder(self, reminder_id: str) -> SmartReminder:
        """Delete a single reminder."""

        def build(store: ScheduleStore):
            return store.remove_reminder(reminder_id), store.get_reminder(reminder_id)

        return self._apply(
            build, lambda reminder: f'Deleted reminder "{reminder.message}".', ("reminders",)
        )

    # Interactions

    def _transition(
        self,
        reminder_id: str,
        transition: Callable[[SmartReminder], SmartReminder],
        message: Callable[[SmartReminder], str],
    ) -> SmartReminder:
        def build(store: ScheduleStore):
            reminder = store.get_reminder(reminder_id)
            updated = transition(reminder)
            if updated == reminder:
                return store, reminder
            return store.update_reminder(updated), updated

        return self._apply(build, message, ("reminders",))

    def snooze(self, reminder_id: str, now: datetime, request_id: str | None = None) -> SmartReminder:
        """Snooze a reminder with backoff. Repeating a request is a no-op."""
        if not self._first_seen(("snooze", reminder_id, request_id or now.isoformat())):
            logger.info(f"Ignoring repeated snooze of reminder {reminder_id}")
            return self._store.get_reminder(reminder_id)

        return self._transition(
            reminder_id,
            lambda r: interactions.snooze(r, now),
            lambda r: f"Reminder snoozed for {format_duration(r.snooze_history[0])}.",
        )

    def done(self, reminder_id: str, now: datetime, request_id: str | None = None) -> SmartReminder:
        """Complete a reminder. Repeating a request is a no-op."""
        if not self._first_seen(("done", reminder_id, request_id or now.isoformat())):
            logger.info(f"Ignoring repeated completion of reminder {reminder_id}")
            return self._store.get_reminder(reminder_id)

        before = self._store.get_reminder(reminder_id)
        reminder = self._transition(
            reminder_id,
            lambda r: interactions.done(r, now),
            lambda r: "Reminder completed. Well done!",
        )
        if before.status != ReminderStatus.DONE:
            self._emit_done(reminder)
        return reminder

    def set_locked(self, reminder_id: str, locked: bool, now: datetime) -> SmartReminder:
        """Lock or unlock a reminder's timing."""
        return self._transition(
            reminder_id,
            lambda r: interactions.set_locked(r, locked, now),
            lambda r: "Reminder timing locked." if locked else "Reminder timing unlocked.",
        )

    def pause_reminder(self, reminder_id: str) -> SmartReminder:
        """Stop a single reminder from surfacing."""
        return self._transition(reminder_id, interactions.pause_reminder, lambda r: "Reminder paused.")

    def ignore_reminder(self, reminder_id: str, now: datetime) -> SmartReminder:
        """Mark a reminder as ignored."""
        return self._transition(
            reminder_id, lambda r: interactions.ignore(r, now), lambda r: "Reminder ignored."
        )

    def reactivate_reminder(self, reminder_id: str) -> SmartReminder:
        """Bring a paused or ignored reminder back."""
        return self._transition(reminder_id, interactions.reactivate, lambda r: "Reminder reactivated.")

    # Global pause

    def pause(self, until: datetime) -> None:
        """Silence every reminder until a time."""
        if not isinstance(until, datetime):
            raise ValidationError(f"Invalid pause time: {until!r}")
        self._apply(
            lambda store: (store.with_pause(until), None),
            f"Reminders paused until {until:%a %H:%M}.",
        )

    def resume(self) -> None:
        """Lift a global pause."""
        self._apply(
            lambda store: (store.with_pause(None), None) if store.pause_until else (store, None),
            "Reminders resumed.",
        )

    # Onboarding

    def preview_onboarding(
        self,
        blocks: Iterable[OnboardingBlock] | None = None,
        dnd_start: str | None = None,
        dnd_end: str | None = None,
    ) -> OnboardingPreview:
        """Generate and hold a starter layout without applying it."""
        if blocks is None:
            preview = default_preview()
        else:
            if not dnd_start or not dnd_end:
                raise ValidationError("Quiet hours start and end are required")
            preview = generate_preview(blocks, dnd_start, dnd_end)

        self._apply(lambda store: (store.with_preview(preview), None))
        return preview

    def accept_onboarding(self) -> OnboardingPreview:
        """Merge the held preview into the schedule."""

        def build(store: ScheduleStore):
            preview = store.onboarding_preview
            if preview is None:
                raise NotFoundError("There is no onboarding preview to accept")

            for anchor in preview.anchors:
                if store.find_anchor(anchor.id) is not None:
                    anchor = replace(anchor, id=self._new_id("anchor"))
                ensure_placeable(anchor, store.anchors)
                store = store.add_anchor(anchor)
            for window in preview.dnd_windows:
                store = store.add_dnd_window(window)
            return store.with_preview(None), preview

        return self._apply(
            build,
            "Your weekly map is set up!",
            ("anchors", "dnd_windows", "onboarding_preview"),
        )

    def discard_onboarding(self) -> None:
        """Drop the held preview."""
        self._apply(lambda store: (store.with_preview(None), None))

    # History

    def undo(self) -> ChangeEntry:
        """Revert the most recent recorded change."""
        with self._lock:
            store, entry = self.ledger.undo(self._store)
            self._store = store
        self._emit_commit(store)
        return entry

    def history(self) -> list[str]:
        """Recent change messages, most recent first."""
        return [entry.message for entry in self.ledger.entries]
