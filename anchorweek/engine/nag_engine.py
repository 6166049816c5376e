"""Nag engine - the heartbeat that surfaces due reminders."""

import logging
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from telegram import Bot
from telegram.error import TelegramError

from anchorweek.bot.formatters import format_due_message
from anchorweek.bot.keyboards import reminder_keyboard
from anchorweek.bot.session import load_scheduler
from anchorweek.db.models import ReminderStatus, SmartReminder, User
from anchorweek.db.repository import Repository
from anchorweek.engine.evaluator import is_due
from anchorweek.utils.time_utils import local_now

logger = logging.getLogger(__name__)

# How long an "already sent" marker is kept; due windows are much shorter
ANNOUNCEMENT_TTL = timedelta(days=2)


def announcement_key(user: User, reminder: SmartReminder, now: datetime) -> tuple:
    """Identify one surfacing of a reminder.

    A reminder is announced once per day for its nominal window, and once more
    each time it resurfaces after a snooze.
    """
    return (user.telegram_id, reminder.id, now.date().isoformat(), reminder.snoozed_until)


def prune_announcements(announced: dict[tuple, datetime], now: datetime) -> None:
    """Forget announcement markers older than the TTL."""
    for key in [k for k, sent_at in announced.items() if now - sent_at > ANNOUNCEMENT_TTL]:
        del announced[key]


async def notify_user(bot: Bot, bot_data: dict, user: User) -> int:
    """Evaluate one user's schedule and send newly due reminders.

    Returns:
        Number of notifications sent
    """
    announced: dict[tuple, datetime] = bot_data.setdefault("announced", {})
    scheduler = await load_scheduler(bot_data, bot, user)
    now = local_now(user.timezone)
    sent = 0

    for reminder in scheduler.tick(now):
        if reminder.status != ReminderStatus.ACTIVE:
            continue

        # Just-acted-on reminders stay visible in /due but are only sent in their window
        anchor = scheduler.store.find_anchor(reminder.event_id)
        if anchor is None or not is_due(reminder, anchor, now):
            continue

        key = announcement_key(user, reminder, now)
        if key in announced:
            continue

        try:
            await bot.send_message(
                chat_id=user.telegram_id,
                text=format_due_message(reminder, anchor),
                parse_mode="HTML",
                reply_markup=reminder_keyboard(reminder),
            )
        except TelegramError as e:
            logger.error(f"Failed to send reminder {reminder.id}: {e}")
            # Not marked, will retry next heartbeat while still due
            continue

        announced[key] = datetime.now(ZoneInfo("UTC"))
        sent += 1
        logger.info(f"Sent reminder {reminder.id} to user {user.telegram_id}")

    return sent


async def heartbeat(bot: Bot, bot_data: dict) -> None:
    """Heartbeat job that checks every user's schedule for due reminders.

    This runs every HEARTBEAT_INTERVAL seconds and:
    1. Wakes reminders whose snooze has run out
    2. Evaluates what is due in each user's local time
    3. Sends reminders not yet announced in their current window
    """
    repo: Repository = bot_data["repo"]

    try:
        users = await repo.get_users()
    except Exception as e:
        logger.error(f"Heartbeat error: {e}")
        return

    total = 0
    for user in users:
        try:
            total += await notify_user(bot, bot_data, user)
        except Exception as e:
            logger.error(f"Error processing user {user.telegram_id}: {e}")
            continue

    prune_announcements(bot_data.setdefault("announced", {}), datetime.now(ZoneInfo("UTC")))
    if total:
        logger.info(f"Heartbeat: {total} reminders sent")


async def startup_recovery(bot: Bot, bot_data: dict) -> None:
    """Recovery on startup: load every schedule and wake expired snoozes.

    Snoozes that ran out while the bot was down return to active and are
    saved, so the first heartbeat sees a current state.
    """
    repo: Repository = bot_data["repo"]

    try:
        users = await repo.get_users()
        woken = 0
        for user in users:
            scheduler = await load_scheduler(bot_data, bot, user)
            before = sum(r.status == ReminderStatus.SNOOZED for r in scheduler.store.reminders)
            scheduler.tick(local_now(user.timezone))
            after = sum(r.status == ReminderStatus.SNOOZED for r in scheduler.store.reminders)
            woken += before - after

        logger.info(f"Startup recovery complete: {len(users)} schedules loaded, {woken} snoozes expired")

    except Exception as e:
        logger.error(f"Startup recovery error: {e}")
