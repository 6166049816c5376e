"""Due-reminder evaluation.

A pure pass over a schedule snapshot; the heartbeat re-runs it on a fixed
cadence and after every mutation. Snooze expiry is detected here lazily by
comparing ``now`` with ``snoozed_until``; nothing schedules per-reminder timers.
"""

import logging
from datetime import datetime, timedelta

from anchorweek.db.models import Anchor, ReminderStatus, SmartReminder
from anchorweek.engine.store import ScheduleStore
from anchorweek.utils.constants import DUE_WINDOW_MINUTES, INTERACTION_GRACE_SECONDS
from anchorweek.utils.time_utils import day_of, in_window, minutes_of_day, to_minutes

logger = logging.getLogger(__name__)


def reminder_minutes(reminder: SmartReminder, anchor: Anchor) -> int:
    """Get a reminder's nominal minute on its anchor's day.

    Not wrapped: an offset that reaches past midnight stays on the anchor's day
    and the reminder simply never falls in a due window.
    """
    return to_minutes(anchor.start_time) + reminder.offset_minutes


def is_quiet(store: ScheduleStore, anchor: Anchor, minute: int) -> bool:
    """Check if a minute on the anchor's day falls in any DND window."""
    return any(
        in_window(minute, window.start_time, window.end_time)
        for window in store.dnd_on(anchor.day)
    )


def is_snooze_expired(reminder: SmartReminder, now: datetime) -> bool:
    """Check if a snoozed reminder has reached the end of its snooze."""
    return (
        reminder.status == ReminderStatus.SNOOZED
        and reminder.snoozed_until is not None
        and reminder.snoozed_until <= now
    )


def is_due(reminder: SmartReminder, anchor: Anchor, now: datetime) -> bool:
    """Check if a reminder is inside its due window at ``now``.

    The nominal window is ``[reminder time, reminder time + 15min)``. A snooze
    that has expired counts as active again and opens a second window starting
    at ``snoozed_until``.
    """
    if reminder.status != ReminderStatus.ACTIVE and not is_snooze_expired(reminder, now):
        return False

    current = minutes_of_day(now)
    nominal = reminder_minutes(reminder, anchor)
    if nominal <= current < nominal + DUE_WINDOW_MINUTES:
        return True

    resurfaced = reminder.snoozed_until
    return (
        resurfaced is not None
        and resurfaced <= now < resurfaced + timedelta(minutes=DUE_WINDOW_MINUTES)
    )


def recently_interacted(reminder: SmartReminder, now: datetime) -> bool:
    """Check if the user acted on a reminder within the grace period."""
    if reminder.last_interaction is None:
        return False
    elapsed = (now - reminder.last_interaction).total_seconds()
    return 0 <= elapsed < INTERACTION_GRACE_SECONDS


def due_reminders(
    store: ScheduleStore, now: datetime, include_recent: bool = True
) -> list[SmartReminder]:
    """Get the reminders that must be surfaced right now.

    Args:
        store: Schedule snapshot to evaluate
        now: Current wall-clock time in the user's timezone
        include_recent: Keep just-acted-on reminders visible for a short grace period

    Returns:
        Due reminders ordered by reminder time
    """
    if store.is_paused(now):
        return []

    current_day = day_of(now)
    due: list[tuple[int, SmartReminder]] = []

    for reminder in store.reminders:
        if reminder.status == ReminderStatus.DONE:
            continue

        anchor = store.find_anchor(reminder.event_id)
        if anchor is None:
            logger.debug(f"Skipping reminder {reminder.id}: anchor {reminder.event_id} missing")
            continue
        if anchor.day != current_day:
            continue

        minute = reminder_minutes(reminder, anchor)

        if is_quiet(store, anchor, minute):
            continue

        if reminder.snoozed_until is not None and now < reminder.snoozed_until:
            continue

        if is_due(reminder, anchor, now) or (include_recent and recently_interacted(reminder, now)):
            due.append((minute, reminder))

    due.sort(key=lambda item: item[0])
    return [reminder for _, reminder in due]
