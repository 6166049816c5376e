"""Message text formatters."""

from datetime import datetime
from html import escape

from anchorweek.db.models import Anchor, Day, DNDWindow, OnboardingPreview, ReminderStatus, SmartReminder
from anchorweek.engine.evaluator import reminder_minutes
from anchorweek.engine.store import ScheduleStore
from anchorweek.utils.time_utils import (
    format_for_display,
    format_offset,
    next_occurrence,
    to_minutes,
    to_time_string,
)

STATUS_EMOJI = {
    ReminderStatus.ACTIVE: "🔔",
    ReminderStatus.SNOOZED: "⏸",
    ReminderStatus.DONE: "✓",
    ReminderStatus.PAUSED: "💤",
    ReminderStatus.IGNORED: "🙈",
}


def format_span(start_time: str, end_time: str) -> str:
    """Format a time span for display."""
    return f"{format_for_display(start_time)} - {format_for_display(end_time)}"


def format_anchor(anchor: Anchor, show_id: bool = True) -> str:
    """Format an anchor as a single line."""
    line = f"<b>{escape(anchor.title)}</b> {format_span(anchor.start_time, anchor.end_time)}"
    if show_id:
        line += f" (ID: <code>{anchor.id}</code>)"
    return line


def format_week(store: ScheduleStore, days: list[Day] | None = None) -> str:
    """Format anchors grouped by day."""
    if not store.anchors:
        return "You have no anchors yet. Use /onboard or /addanchor to set up your week."

    lines = ["<b>Your Week</b>"]
    for day in days or list(Day):
        anchors = store.anchors_on(day)
        if not anchors:
            continue
        lines.append(f"\n<b>{day.value}</b>")
        for anchor in anchors:
            lines.append(f"• {format_anchor(anchor)}")
            for reminder in store.reminders_for(anchor.id):
                lines.append(f"   ↳ {format_reminder(reminder, anchor, show_anchor=False)}")

    if store.dnd_windows:
        lines.append(f"\n🌙 {len(store.dnd_windows)} quiet-hours window(s). See /quiet")

    return "\n".join(lines)


def format_reminder(reminder: SmartReminder, anchor: Anchor, show_anchor: bool = True) -> str:
    """Format a reminder as a single line."""
    emoji = STATUS_EMOJI.get(reminder.status, "")
    lock = " 🔒" if reminder.is_locked else ""
    line = f"{emoji} {escape(reminder.message)} ({format_offset(reminder.offset_minutes)}"
    if show_anchor:
        line += f' "{escape(anchor.title)}" on {anchor.day.value}s'
    line += f"){lock} (ID: <code>{reminder.id}</code>)"
    return line


def format_reminder_list(store: ScheduleStore, now: datetime) -> str:
    """Format all reminders, ordered by their next occurrence."""
    if not store.reminders:
        return "You have no reminders. Try /remind pack my gym bag 30 minutes before Gym Session"

    entries = []
    for reminder in store.reminders:
        anchor = store.find_anchor(reminder.event_id)
        if anchor is None:
            continue
        when = next_occurrence(anchor.day, reminder_minutes(reminder, anchor), now)
        entries.append((when, reminder, anchor))

    entries.sort(key=lambda entry: entry[0])
    lines = [f"<b>Your Reminders ({len(entries)})</b>\n"]
    for when, reminder, anchor in entries:
        lines.append(f"{format_reminder(reminder, anchor)}\n   Next: {when.strftime('%a %b %d, %I:%M %p')}")
    return "\n\n".join(lines)


def format_due_message(reminder: SmartReminder, anchor: Anchor) -> str:
    """Format a due reminder notification."""
    minute = reminder_minutes(reminder, anchor)
    lines = [
        f"🔔 <b>{escape(reminder.message)}</b>",
        f"{format_offset(reminder.offset_minutes).capitalize()} <i>{escape(anchor.title)}</i> "
        f"({format_for_display(to_time_string(minute))})",
    ]
    if reminder.why:
        lines.append(f"\n💡 {escape(reminder.why)}")
    if reminder.is_exploratory:
        lines.append("🧪 Trying out this timing - your feedback helps.")
    return "\n".join(lines)


def format_due_list(store: ScheduleStore, reminders: list[SmartReminder]) -> str:
    """Format the currently due reminders."""
    if not reminders:
        return "Nothing is due right now."
    lines = [f"<b>Due Now ({len(reminders)})</b>\n"]
    for reminder in reminders:
        anchor = store.find_anchor(reminder.event_id)
        if anchor is not None:
            lines.append(format_reminder(reminder, anchor))
    return "\n".join(lines)


def format_dnd_windows(windows: tuple[DNDWindow, ...]) -> str:
    """Format quiet-hours windows with their positions."""
    if not windows:
        return "No quiet hours set."
    lines = ["<b>Quiet Hours</b>\n"]
    for index, window in enumerate(windows):
        overnight = " 🌙" if to_minutes(window.end_time) < to_minutes(window.start_time) else ""
        lines.append(f"{index}. {window.day.value}: {format_span(window.start_time, window.end_time)}{overnight}")
    return "\n".join(lines)


def format_preview(preview: OnboardingPreview) -> str:
    """Format an onboarding preview for review."""
    lines = ["<b>📝 Your Starter Week</b>\n"]

    if preview.anchors:
        by_span: dict[tuple[str, str], list[Day]] = {}
        for anchor in preview.anchors:
            by_span.setdefault((anchor.start_time, anchor.end_time), []).append(anchor.day)
        for (start, end), days in by_span.items():
            day_str = ", ".join(day.value[:3] for day in days)
            lines.append(f"• {escape(preview.anchors[0].title)}: {format_span(start, end)} on {day_str}")
    else:
        lines.append("• No time blocks")

    if preview.dnd_windows:
        window = preview.dnd_windows[0]
        lines.append(f"• Quiet hours: {format_span(window.start_time, window.end_time)} every day")

    lines.append("\nLooks good?")
    return "\n".join(lines)


def format_welcome_message() -> str:
    """Format the welcome message for /start."""
    return """
<b>Welcome to AnchorWeek!</b> ⚓

Anchors are the fixed blocks of your week: work, gym, school runs.
I'll nudge you around them with smart reminders, stay quiet during your quiet hours,
and back off when you snooze.

<b>Quick Start:</b>
• /onboard - Set up a starter week
• /addanchor - Add a weekly block
• /remind - "pack my gym bag 30 minutes before Gym Session"
• /help - Full command list
""".strip()


def format_help_message() -> str:
    """Format the help message."""
    return """
<b>AnchorWeek Commands ⚓</b>

<b>Anchors:</b>
/anchors [day] - Your week
/addanchor &lt;title&gt; &lt;start&gt; &lt;end&gt; &lt;days&gt; - e.g. <code>/addanchor Gym Session 18:00 19:00 Mon,Wed</code>
/move &lt;id&gt; &lt;day&gt; [start end] - Move an anchor
/copy &lt;id&gt; &lt;day&gt; - Copy an anchor to another day
/deleteanchor &lt;id&gt; - Delete an anchor and its reminders

<b>Reminders:</b>
/remind &lt;text&gt; - e.g. <code>/remind stretch 10 minutes after Deep Work</code>
/reminders - All reminders
/deletereminder &lt;id&gt; - Delete a reminder
/due - What's due right now
/done &lt;id&gt;, /snooze &lt;id&gt; - Respond to a reminder
/lock &lt;id&gt;, /unlock &lt;id&gt; - Freeze a reminder's timing

<b>Quiet & Pause:</b>
/quiet [start end [days]] - Quiet hours, e.g. <code>/quiet 23:00 07:00</code>
/unquiet &lt;n&gt; - Remove a quiet-hours window
/pause &lt;minutes&gt; - Pause all reminders
/resume - Resume reminders

<b>Setup & History:</b>
/onboard [start end days [quiet]] - Starter week preview
/timezone &lt;tz&gt; - Set timezone (e.g., America/Toronto)
/history - Recent changes
/undo - Undo the last change

<b>Tips:</b>
• Snoozing backs off: 5, 10, 20, then 30 minutes
• Reminders never fire during quiet hours
""".strip()
