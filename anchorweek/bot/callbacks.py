"""Callback query handlers for inline buttons."""

import logging
from datetime import datetime
from html import escape

from telegram import Update
from telegram.ext import ContextTypes

from anchorweek.bot.formatters import format_reminder
from anchorweek.bot.keyboards import reminder_keyboard, undo_keyboard
from anchorweek.bot.session import get_session
from anchorweek.engine.scheduler import WeeklyScheduler
from anchorweek.utils.time_utils import format_duration, local_now

logger = logging.getLogger(__name__)


def _request_id(update: Update) -> str | None:
    """Key a button press by the message it belongs to."""
    message = update.callback_query.message
    return f"cb-{message.message_id}" if message else None


async def handle_done_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, scheduler: WeeklyScheduler, now: datetime, reminder_id: str
) -> None:
    """Handle 'Done' button press."""
    query = update.callback_query
    reminder = scheduler.done(reminder_id, now, request_id=_request_id(update))

    if query.message:
        await query.message.edit_text(
            f"✓ <b>Completed:</b> <s>{escape(reminder.message)}</s>",
            parse_mode="HTML",
        )
    await query.answer("✓ Well done!")


async def handle_snooze_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, scheduler: WeeklyScheduler, now: datetime, reminder_id: str
) -> None:
    """Handle 'Snooze' button press."""
    query = update.callback_query
    reminder = scheduler.snooze(reminder_id, now, request_id=_request_id(update))
    duration = format_duration(reminder.snooze_history[0]) if reminder.snooze_history else "a bit"

    if query.message:
        await query.message.edit_text(
            f"⏸ <b>Snoozed:</b> {escape(reminder.message)}\n\n"
            f"Will remind you again in {duration}.",
            parse_mode="HTML",
        )
    await query.answer(f"⏸ Snoozed for {duration}")


async def handle_lock_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, scheduler: WeeklyScheduler, now: datetime, reminder_id: str, locked: bool
) -> None:
    """Handle 'Lock' / 'Unlock' button press."""
    query = update.callback_query
    reminder = scheduler.set_locked(reminder_id, locked, now)
    anchor = scheduler.store.find_anchor(reminder.event_id)

    if query.message and anchor is not None:
        await query.message.edit_text(
            format_reminder(reminder, anchor),
            parse_mode="HTML",
            reply_markup=reminder_keyboard(reminder),
        )
    await query.answer("🔒 Timing locked" if locked else "🔓 Timing unlocked")


async def handle_request_confirmation(
    update: Update, context: ContextTypes.DEFAULT_TYPE, scheduler: WeeklyScheduler, confirmed: bool
) -> None:
    """Handle confirmation of a parsed reminder request."""
    query = update.callback_query
    request = context.user_data.pop("reminder_request", None)

    if not confirmed:
        if query.message:
            await query.message.edit_text("❌ Cancelled.")
        await query.answer()
        return

    if request is None:
        if query.message:
            await query.message.edit_text("Error: Session expired. Please try again.")
        await query.answer()
        return

    created = scheduler.add_reminders_from_request(request)
    if query.message:
        await query.message.edit_text(
            f"✓ <b>Reminder created!</b>\n\n"
            f"{escape(request.message)} on {len(created)} anchor(s).\n\n"
            "Use /reminders to see all your reminders.",
            parse_mode="HTML",
            reply_markup=undo_keyboard(),
        )
    await query.answer()


async def handle_onboarding_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, scheduler: WeeklyScheduler, action: str
) -> None:
    """Handle accept / discard of the onboarding preview."""
    query = update.callback_query

    if action == "accept":
        preview = scheduler.accept_onboarding()
        text = (
            "✓ <b>Your weekly map is set up!</b>\n\n"
            f"{len(preview.anchors)} anchor(s) and {len(preview.dnd_windows)} quiet-hours window(s) added.\n"
            "Use /anchors to see your week."
        )
        markup = undo_keyboard()
    else:
        scheduler.discard_onboarding()
        text = "Okay, starting from a blank week. Use /addanchor or /onboard any time."
        markup = None

    if query.message:
        await query.message.edit_text(text, parse_mode="HTML", reply_markup=markup)
    await query.answer()


async def handle_undo_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, scheduler: WeeklyScheduler
) -> None:
    """Handle 'Undo' button press."""
    query = update.callback_query
    entry = scheduler.undo()

    if query.message:
        await query.message.edit_text(f"↩ Undone: {escape(entry.message)}", parse_mode="HTML")
    await query.answer("↩ Undone")


async def callback_router(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Route callback queries to appropriate handlers."""
    if not update.callback_query or not update.effective_user:
        return

    query = update.callback_query
    data = query.data

    if not data:
        return

    session = await get_session(context, update.effective_user.id)
    if session is None:
        await query.answer("Please /start the bot first.")
        return
    user, scheduler = session
    now = local_now(user.timezone)

    # Parse callback data: "<action>[:<argument>]"
    action, _, argument = data.partition(":")

    if action == "done":
        await handle_done_callback(update, context, scheduler, now, argument)

    elif action == "snooze":
        await handle_snooze_callback(update, context, scheduler, now, argument)

    elif action in ("lock", "unlock"):
        await handle_lock_callback(update, context, scheduler, now, argument, action == "lock")

    elif action in ("confirm", "cancel") and argument == "request":
        await handle_request_confirmation(update, context, scheduler, action == "confirm")

    elif action == "onboard" and argument in ("accept", "discard"):
        await handle_onboarding_callback(update, context, scheduler, argument)

    elif action == "undo":
        await handle_undo_callback(update, context, scheduler)

    elif action == "cancel":
        # Generic cancel
        if query.message:
            await query.message.delete()
        await query.answer("Cancelled")

    else:
        logger.warning(f"Unknown callback data: {data}")
        await query.answer("Unknown action")
