"""Per-user schedulers and their outbound hooks.

Each Telegram user gets one WeeklyScheduler, loaded lazily from the database
and cached in ``bot_data``. Persistence and habit suggestions are started as
background tasks so the scheduler never waits on them.
"""

import asyncio
import logging
from typing import Coroutine

import aiosqlite
from telegram import Bot
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from anchorweek.config import Config
from anchorweek.db.models import Anchor, SmartReminder, User
from anchorweek.db.repository import Repository
from anchorweek.engine.scheduler import WeeklyScheduler
from anchorweek.engine.store import ScheduleStore
from anchorweek.utils.constants import HABIT_SUGGESTIONS

logger = logging.getLogger(__name__)

_background_tasks: set[asyncio.Task] = set()


def fire_and_forget(coro: Coroutine) -> None:
    """Run a coroutine in the background, keeping a reference until it finishes."""
    task = asyncio.get_running_loop().create_task(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)


async def _save(repo: Repository, user_id: int, store: ScheduleStore) -> None:
    try:
        await repo.save_store(user_id, store)
    except aiosqlite.Error as e:
        logger.error(f"Failed to save schedule for user {user_id}: {e}")


async def _suggest_habit(bot: Bot, chat_id: int, anchor: Anchor) -> None:
    suggestion = next(
        (HABIT_SUGGESTIONS[tag] for tag in sorted(anchor.context_tags) if tag in HABIT_SUGGESTIONS),
        None,
    )
    text = (
        f"Great job! Why not try a quick \"{suggestion}\"?"
        if suggestion
        else "Reminder completed. Well done!"
    )
    try:
        await bot.send_message(chat_id=chat_id, text=text)
    except TelegramError as e:
        logger.error(f"Failed to send habit suggestion to {chat_id}: {e}")


def build_scheduler(repo: Repository, bot: Bot, user: User, store: ScheduleStore) -> WeeklyScheduler:
    """Create a scheduler wired to the database and the chat."""

    def persist(snapshot: ScheduleStore) -> None:
        fire_and_forget(_save(repo, user.telegram_id, snapshot))

    def on_done(reminder: SmartReminder, anchor: Anchor) -> None:
        fire_and_forget(_suggest_habit(bot, user.telegram_id, anchor))

    return WeeklyScheduler(
        store,
        on_commit=persist,
        on_done=on_done,
        include_recent=Config.INTERACTION_GRACE,
    )


async def load_scheduler(
    bot_data: dict, bot: Bot, user: User
) -> WeeklyScheduler:
    """Get a user's cached scheduler, loading it from the database once."""
    schedulers: dict[int, WeeklyScheduler] = bot_data.setdefault("schedulers", {})
    scheduler = schedulers.get(user.telegram_id)
    if scheduler is None:
        repo: Repository = bot_data["repo"]
        store = await repo.load_store(user.telegram_id)
        scheduler = build_scheduler(repo, bot, user, store)
        schedulers[user.telegram_id] = scheduler
    return scheduler


async def get_session(
    context: ContextTypes.DEFAULT_TYPE, telegram_id: int
) -> tuple[User, WeeklyScheduler] | None:
    """Get a registered user and their scheduler, or None before /start."""
    repo: Repository = context.bot_data["repo"]
    user = await repo.get_user(telegram_id)
    if user is None:
        return None
    scheduler = await load_scheduler(context.bot_data, context.bot, user)
    return user, scheduler
