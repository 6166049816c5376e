"""Command handlers."""

import logging
from datetime import timedelta
from html import escape
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from telegram import Update
from telegram.ext import ContextTypes

from anchorweek.bot.formatters import (
    format_anchor,
    format_dnd_windows,
    format_due_list,
    format_due_message,
    format_help_message,
    format_preview,
    format_reminder_list,
    format_week,
    format_welcome_message,
)
from anchorweek.bot.keyboards import (
    confirm_cancel_keyboard,
    onboarding_keyboard,
    reminder_keyboard,
    undo_keyboard,
)
from anchorweek.bot.session import get_session, load_scheduler
from anchorweek.config import Config
from anchorweek.db.models import ContextTag, Day, OnboardingBlock, User
from anchorweek.db.repository import Repository
from anchorweek.engine.onboarding import get_dnd_preset
from anchorweek.engine.placement import dnd_overlaps
from anchorweek.engine.scheduler import WeeklyScheduler
from anchorweek.parser.nlp import PatternReminderParser, parse_day_list
from anchorweek.utils.constants import DEFAULT_QUIET_END, DEFAULT_QUIET_START
from anchorweek.utils.errors import ValidationError
from anchorweek.utils.time_utils import format_duration, format_offset, local_now, parse_time

logger = logging.getLogger(__name__)

reminder_parser = PatternReminderParser()


async def _require_session(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> tuple[User, WeeklyScheduler] | None:
    """Get the caller's session, or tell them to /start first."""
    if not update.effective_user or not update.message:
        return None

    session = await get_session(context, update.effective_user.id)
    if session is None:
        await update.message.reply_text("Please /start the bot first.")
    return session


def _parse_tags(tokens: list[str]) -> tuple[list[str], set[ContextTag] | None]:
    """Split ``#tag`` tokens off a title."""
    words, tags = [], set()
    for token in tokens:
        if token.startswith("#") and len(token) > 1:
            try:
                tags.add(ContextTag(token[1:].lower()))
            except ValueError as e:
                known = ", ".join(f"#{tag.value}" for tag in ContextTag)
                raise ValidationError(f"Unknown tag {token}. Known tags: {known}") from e
        else:
            words.append(token)
    return words, tags or None


def _parse_minutes(value: str) -> int:
    try:
        minutes = int(value)
    except ValueError as e:
        raise ValidationError(f"Invalid number of minutes: {value}") from e
    if minutes <= 0:
        raise ValidationError("Minutes must be a positive number")
    return minutes


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start command."""
    if not update.effective_user or not update.message:
        return

    repo: Repository = context.bot_data["repo"]
    telegram_id = update.effective_user.id

    # Get or create user
    user = await repo.get_user(telegram_id)
    if user is None:
        user = await repo.create_user(telegram_id, Config.DEFAULT_TIMEZONE)
        logger.info(f"New user created: {telegram_id}")

    await update.message.reply_html(format_welcome_message())

    scheduler = await load_scheduler(context.bot_data, context.bot, user)
    if scheduler.store.is_empty():
        preview = scheduler.preview_onboarding()
        await update.message.reply_html(format_preview(preview), reply_markup=onboarding_keyboard())


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help command."""
    if not update.message:
        return

    await update.message.reply_html(format_help_message())


async def anchors_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /anchors [days] command - show the week."""
    session = await _require_session(update, context)
    if session is None:
        return
    _, scheduler = session

    days = parse_day_list(",".join(context.args)) if context.args else None
    await update.message.reply_html(format_week(scheduler.store, days))


async def addanchor_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /addanchor <title> <start> <end> <days> command."""
    session = await _require_session(update, context)
    if session is None:
        return
    _, scheduler = session

    if not context.args or len(context.args) < 4:
        await update.message.reply_html(
            "Usage: <code>/addanchor &lt;title&gt; &lt;start&gt; &lt;end&gt; &lt;days&gt;</code>\n\n"
            "Examples:\n"
            "• <code>/addanchor Gym Session 18:00 19:00 Mon,Wed</code>\n"
            "• <code>/addanchor Deep Work #work 09:00 11:00 weekdays</code>"
        )
        return

    *title_tokens, start, end, days_arg = context.args
    words, tags = _parse_tags(title_tokens)
    created = scheduler.add_anchor(
        " ".join(words),
        parse_time(start),
        parse_time(end),
        parse_day_list(days_arg),
        context_tags=tags,
    )

    lines = ["✓ <b>Anchor added</b>\n"]
    lines.extend(f"• {anchor.day.value}: {format_anchor(anchor)}" for anchor in created)
    quiet = [a for a in created if dnd_overlaps(a, scheduler.store.dnd_windows)]
    if quiet:
        lines.append("\n🌙 Heads up: this overlaps your quiet hours, so its reminders may stay silent.")
    await update.message.reply_html("\n".join(lines), reply_markup=undo_keyboard())


async def move_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /move <id> <day> [start end] command."""
    session = await _require_session(update, context)
    if session is None:
        return
    _, scheduler = session

    if not context.args or len(context.args) not in (2, 4):
        await update.message.reply_html(
            "Usage: <code>/move &lt;anchor_id&gt; &lt;day&gt; [start end]</code>\n\n"
            "Example: <code>/move anchor-1a2b3c4d Thu 18:30 19:30</code>"
        )
        return

    anchor_id, day = context.args[0], context.args[1]
    start = parse_time(context.args[2]) if len(context.args) == 4 else None
    end = parse_time(context.args[3]) if len(context.args) == 4 else None

    moved = scheduler.move_anchor(anchor_id, day, start, end)
    await update.message.reply_html(
        f"✓ Moved to <b>{moved.day.value}</b>: {format_anchor(moved)}", reply_markup=undo_keyboard()
    )


async def copy_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /copy <id> [day] command."""
    session = await _require_session(update, context)
    if session is None:
        return
    _, scheduler = session

    if not context.args or len(context.args) > 2:
        await update.message.reply_html("Usage: <code>/copy &lt;anchor_id&gt; [day]</code>")
        return

    day = context.args[1] if len(context.args) == 2 else None
    copy = scheduler.duplicate_anchor(context.args[0], day)
    await update.message.reply_html(
        f"✓ Copied to <b>{copy.day.value}</b>: {format_anchor(copy)}", reply_markup=undo_keyboard()
    )


async def deleteanchor_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /deleteanchor <id> command."""
    session = await _require_session(update, context)
    if session is None:
        return
    _, scheduler = session

    if not context.args or len(context.args) != 1:
        await update.message.reply_text("Usage: /deleteanchor <anchor_id>")
        return

    removed_reminders = len(scheduler.store.reminders_for(context.args[0]))
    anchor = scheduler.delete_anchor(context.args[0])
    text = f"🗑 Deleted: <b>{escape(anchor.title)}</b> ({anchor.day.value})"
    if removed_reminders:
        text += f"\nAlso removed {removed_reminders} reminder(s)."
    await update.message.reply_html(text, reply_markup=undo_keyboard())


async def quiet_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /quiet [start end [days]] command."""
    session = await _require_session(update, context)
    if session is None:
        return
    _, scheduler = session

    # If no args, show current
    if not context.args:
        await update.message.reply_html(
            format_dnd_windows(scheduler.store.dnd_windows)
            + "\n\nTo add: <code>/quiet 23:00 07:00 [days]</code>\n"
            "To remove: <code>/unquiet &lt;n&gt;</code>"
        )
        return

    if len(context.args) < 2:
        await update.message.reply_text("Usage: /quiet <start> <end> [days]\n\nExample: /quiet 23:00 07:00")
        return

    start, end = parse_time(context.args[0]), parse_time(context.args[1])
    days = parse_day_list(",".join(context.args[2:])) if len(context.args) > 2 else list(Day)
    scheduler.add_dnd_window(days, start, end)

    await update.message.reply_html(
        f"✓ Quiet hours added: <b>{start} - {end}</b>\n\nI won't remind you during these hours.",
        reply_markup=undo_keyboard(),
    )


async def unquiet_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /unquiet <n> command."""
    session = await _require_session(update, context)
    if session is None:
        return
    _, scheduler = session

    if not context.args or len(context.args) != 1 or not context.args[0].isdigit():
        await update.message.reply_text("Usage: /unquiet <n>\n\nSee /quiet for the numbers.")
        return

    window = scheduler.remove_dnd_window(int(context.args[0]))
    await update.message.reply_html(
        f"🗑 Removed quiet hours on {window.day.value} ({window.start_time} - {window.end_time})",
        reply_markup=undo_keyboard(),
    )


async def remind_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /remind <text> command - natural language reminder creation."""
    session = await _require_session(update, context)
    if session is None:
        return
    _, scheduler = session

    if not context.args:
        await update.message.reply_html(
            "<b>/remind - Smart Reminders</b>\n\n"
            "Usage: <code>/remind &lt;what&gt; &lt;when&gt; &lt;anchor&gt;</code>\n\n"
            "<b>Examples:</b>\n"
            "• /remind pack my gym bag 30 minutes before Gym Session\n"
            "• /remind stretch 10 minutes after Deep Work\n"
            "• /remind check my calendar at the start of Work/School"
        )
        return

    text = " ".join(context.args)
    request = reminder_parser.parse(text, scheduler.store.anchor_titles())
    targets = scheduler.store.anchors_titled(request.anchor_title)
    if not targets:
        raise ValidationError(f'Couldn\'t find an anchor named "{request.anchor_title}".')

    # Store in context for confirmation
    context.user_data["reminder_request"] = request

    days = ", ".join(anchor.day.value[:3] for anchor in targets)
    message = (
        "<b>📝 Parsed Reminder</b>\n\n"
        f"<b>Message:</b> {escape(request.message)}\n"
        f"<b>Anchor:</b> {escape(request.anchor_title)} ({days})\n"
        f"<b>When:</b> {format_offset(request.offset_minutes)} the anchor\n"
        "\nLooks good?"
    )
    await update.message.reply_html(message, reply_markup=confirm_cancel_keyboard("request"))


async def reminders_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /reminders command - show every reminder."""
    session = await _require_session(update, context)
    if session is None:
        return
    user, scheduler = session

    await update.message.reply_html(format_reminder_list(scheduler.store, local_now(user.timezone)))


async def due_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /due command - what needs attention right now."""
    session = await _require_session(update, context)
    if session is None:
        return
    user, scheduler = session

    now = local_now(user.timezone)
    due = scheduler.tick(now)
    if not due:
        await update.message.reply_text(format_due_list(scheduler.store, due))
        return

    for reminder in due:
        anchor = scheduler.store.get_anchor(reminder.event_id)
        await update.message.reply_html(
            format_due_message(reminder, anchor), reply_markup=reminder_keyboard(reminder)
        )


async def done_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /done <id> command."""
    session = await _require_session(update, context)
    if session is None:
        return
    user, scheduler = session

    if not context.args or len(context.args) != 1:
        await update.message.reply_text("Usage: /done <reminder_id>")
        return

    reminder = scheduler.done(
        context.args[0],
        local_now(user.timezone),
        request_id=f"msg-{update.message.message_id}",
    )
    await update.message.reply_html(f"✓ Marked done: <b>{escape(reminder.message)}</b>")


async def snooze_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /snooze <id> command."""
    session = await _require_session(update, context)
    if session is None:
        return
    user, scheduler = session

    if not context.args or len(context.args) != 1:
        await update.message.reply_text(
            "Usage: /snooze <reminder_id>\n\n"
            "Snoozes back off each time: 5, 10, 20, then 30 minutes."
        )
        return

    reminder = scheduler.snooze(
        context.args[0],
        local_now(user.timezone),
        request_id=f"msg-{update.message.message_id}",
    )
    await update.message.reply_html(
        f"⏸ <b>Snoozed:</b> {escape(reminder.message)}\n\n"
        f"Will remind you again in {format_duration(reminder.snooze_history[0])}."
    )


async def _set_locked(update: Update, context: ContextTypes.DEFAULT_TYPE, locked: bool) -> None:
    session = await _require_session(update, context)
    if session is None:
        return
    user, scheduler = session

    if not context.args or len(context.args) != 1:
        await update.message.reply_text(f"Usage: /{'lock' if locked else 'unlock'} <reminder_id>")
        return

    reminder = scheduler.set_locked(context.args[0], locked, local_now(user.timezone))
    state = "🔒 Locked" if locked else "🔓 Unlocked"
    await update.message.reply_html(f"{state}: <b>{escape(reminder.message)}</b>")


async def lock_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /lock <id> command."""
    await _set_locked(update, context, True)


async def unlock_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /unlock <id> command."""
    await _set_locked(update, context, False)


async def pause_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /pause [minutes] command."""
    session = await _require_session(update, context)
    if session is None:
        return
    user, scheduler = session

    minutes = _parse_minutes(context.args[0]) if context.args else 60
    until = local_now(user.timezone) + timedelta(minutes=minutes)
    scheduler.pause(until)

    await update.message.reply_html(
        f"💤 All reminders paused for <b>{format_duration(minutes)}</b> "
        f"(until {until.strftime('%a %I:%M %p')}).\n\nUse /resume to turn them back on."
    )


async def resume_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /resume command."""
    session = await _require_session(update, context)
    if session is None:
        return
    user, scheduler = session

    if not scheduler.store.is_paused(local_now(user.timezone)):
        await update.message.reply_text("Reminders aren't paused.")
        return

    scheduler.resume()
    await update.message.reply_text("🔔 Reminders resumed.")


async def onboard_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /onboard [start end days [quiet]] command."""
    session = await _require_session(update, context)
    if session is None:
        return
    _, scheduler = session

    if not context.args:
        preview = scheduler.preview_onboarding()
    elif len(context.args) < 3:
        await update.message.reply_html(
            "Usage: <code>/onboard [start end days [quiet]]</code>\n\n"
            "Examples:\n"
            "• <code>/onboard</code> (9 AM - 5 PM on weekdays)\n"
            "• <code>/onboard 08:00 16:00 Mon-Fri 22:00-06:00</code>"
        )
        return
    else:
        block = OnboardingBlock(
            start_time=context.args[0],
            end_time=context.args[1],
            days=tuple(parse_day_list(context.args[2])),
        )
        quiet_start, quiet_end = DEFAULT_QUIET_START, DEFAULT_QUIET_END
        if len(context.args) > 3:
            preset = get_dnd_preset(" ".join(context.args[3:]))
            quiet_start, quiet_end = preset.start_time, preset.end_time
        preview = scheduler.preview_onboarding([block], quiet_start, quiet_end)

    await update.message.reply_html(format_preview(preview), reply_markup=onboarding_keyboard())


async def undo_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /undo command."""
    session = await _require_session(update, context)
    if session is None:
        return
    _, scheduler = session

    entry = scheduler.undo()
    await update.message.reply_html(f"↩ Undone: {escape(entry.message)}")


async def history_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /history command - recent changes."""
    session = await _require_session(update, context)
    if session is None:
        return
    _, scheduler = session

    history = scheduler.history()
    if not history:
        await update.message.reply_text("No recent changes.")
        return

    lines = ["<b>Recent Changes</b>\n"]
    lines.extend(f"{i}. {escape(message)}" for i, message in enumerate(history, 1))
    lines.append("\nUse /undo to revert the most recent one.")
    await update.message.reply_html("\n".join(lines))


async def timezone_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /timezone <timezone> command."""
    session = await _require_session(update, context)
    if session is None:
        return
    user, _ = session

    # If no timezone provided, show current
    if not context.args:
        await update.message.reply_html(
            f"<b>Current timezone:</b> {user.timezone}\n\n"
            "To change: <code>/timezone America/Toronto</code>\n\n"
            "See full list: https://en.wikipedia.org/wiki/List_of_tz_database_time_zones"
        )
        return

    new_timezone = context.args[0]

    # Validate timezone
    try:
        ZoneInfo(new_timezone)
    except (ZoneInfoNotFoundError, ValueError):
        await update.message.reply_text(
            f"Invalid timezone: {new_timezone}\n\n"
            "Use format like: America/Toronto, Europe/London, etc."
        )
        return

    repo: Repository = context.bot_data["repo"]
    await repo.update_timezone(user.telegram_id, new_timezone)
    user.timezone = new_timezone

    await update.message.reply_html(
        f"✓ Timezone updated to <b>{new_timezone}</b>\n\n"
        "Your anchors and quiet hours now follow this timezone."
    )


async def deletereminder_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /deletereminder <id> command."""
    session = await _require_session(update, context)
    if session is None:
        return
    _, scheduler = session

    if not context.args or len(context.args) != 1:
        await update.message.reply_text("Usage: /deletereminder <reminder_id>")
        return

    reminder = scheduler.remove_reminder(context.args[0])
    await update.message.reply_html(
        f"🗑 Deleted reminder: <b>{escape(reminder.message)}</b>", reply_markup=undo_keyboard()
    )
