"""Reminder state machine.

    active  --snooze--> snoozed --(expiry)--> active
    active  --done----> done (terminal)
    snoozed --done----> done

Paused and ignored are only reached through the administrative helpers at the
bottom of this module. Every transition is a pure function of
``(reminder, now)``; de-duplicating repeated presses is the scheduler's job.
"""

from dataclasses import replace
from datetime import datetime, timedelta

from anchorweek.db.models import ReminderStatus, SmartReminder, SuccessState
from anchorweek.utils.constants import (
    SNOOZE_BASE_MINUTES,
    SNOOZE_CAP_MINUTES,
    SNOOZE_HISTORY_LIMIT,
    SUCCESS_HISTORY_LIMIT,
)
from anchorweek.utils.errors import ValidationError


def next_snooze_minutes(snooze_history: tuple[int, ...]) -> int:
    """Get the next snooze duration.

    The first snooze lasts 5 minutes; each following one doubles the most
    recent duration, capped at 30 (5 -> 10 -> 20 -> 30 -> 30).
    """
    if not snooze_history:
        return SNOOZE_BASE_MINUTES
    return min(SNOOZE_CAP_MINUTES, snooze_history[0] * 2)


def record_outcome(
    history: tuple[SuccessState, ...], outcome: SuccessState
) -> tuple[SuccessState, ...]:
    """Append an outcome, keeping only the most recent entries."""
    return (history + (outcome,))[-SUCCESS_HISTORY_LIMIT:]


def snooze(reminder: SmartReminder, now: datetime) -> SmartReminder:
    """Defer a reminder with exponential backoff."""
    if reminder.status == ReminderStatus.DONE:
        raise ValidationError("This reminder is already done")

    duration = next_snooze_minutes(reminder.snooze_history)
    return replace(
        reminder,
        status=ReminderStatus.SNOOZED,
        snooze_history=((duration,) + reminder.snooze_history)[:SNOOZE_HISTORY_LIMIT],
        snoozed_until=now + timedelta(minutes=duration),
        success_history=record_outcome(reminder.success_history, "snoozed"),
        last_interaction=now,
    )


def done(reminder: SmartReminder, now: datetime) -> SmartReminder:
    """Complete a reminder. Completing a done reminder changes nothing."""
    if reminder.status == ReminderStatus.DONE:
        return reminder

    return replace(
        reminder,
        status=ReminderStatus.DONE,
        snoozed_until=None,
        success_history=record_outcome(reminder.success_history, "success"),
        last_interaction=now,
    )


def wake(reminder: SmartReminder, now: datetime) -> SmartReminder:
    """Return a snoozed reminder to active once its snooze has run out.

    ``snoozed_until`` is kept: the evaluator uses it as the time the reminder
    resurfaced.
    """
    if reminder.status != ReminderStatus.SNOOZED:
        return reminder
    if reminder.snoozed_until is not None and now < reminder.snoozed_until:
        return reminder
    return replace(reminder, status=ReminderStatus.ACTIVE)


def set_locked(reminder: SmartReminder, locked: bool, now: datetime) -> SmartReminder:
    """Lock or unlock a reminder's timing against automatic adjustment."""
    return replace(reminder, is_locked=locked, last_interaction=now)


# Administrative transitions


def pause_reminder(reminder: SmartReminder) -> SmartReminder:
    """Stop a single reminder from surfacing until it is reactivated."""
    if reminder.status == ReminderStatus.DONE:
        raise ValidationError("This reminder is already done")
    return replace(reminder, status=ReminderStatus.PAUSED, snoozed_until=None)


def ignore(reminder: SmartReminder, now: datetime) -> SmartReminder:
    """Mark a reminder as ignored and record the outcome."""
    if reminder.status == ReminderStatus.DONE:
        raise ValidationError("This reminder is already done")
    return replace(
        reminder,
        status=ReminderStatus.IGNORED,
        snoozed_until=None,
        success_history=record_outcome(reminder.success_history, "ignored"),
    )


def reactivate(reminder: SmartReminder) -> SmartReminder:
    """Bring a paused or ignored reminder back to active."""
    if reminder.status not in (ReminderStatus.PAUSED, ReminderStatus.IGNORED):
        raise ValidationError(f"Cannot reactivate a {reminder.status.value} reminder")
    return replace(reminder, status=ReminderStatus.ACTIVE)
