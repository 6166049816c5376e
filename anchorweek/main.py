"""Main entry point for AnchorWeek bot."""

import logging
import sys

from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
)

from anchorweek.bot.callbacks import callback_router
from anchorweek.bot.handlers import (
    addanchor_command,
    anchors_command,
    copy_command,
    deleteanchor_command,
    deletereminder_command,
    done_command,
    due_command,
    help_command,
    history_command,
    lock_command,
    move_command,
    onboard_command,
    pause_command,
    quiet_command,
    remind_command,
    reminders_command,
    resume_command,
    snooze_command,
    start_command,
    timezone_command,
    undo_command,
    unlock_command,
    unquiet_command,
)
from anchorweek.config import Config
from anchorweek.db.migrations import run_migrations
from anchorweek.db.repository import Repository
from anchorweek.engine.nag_engine import heartbeat, startup_recovery
from anchorweek.utils.error_handler import error_handler

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    stream=sys.stdout,
)
# httpx logs every Telegram poll at INFO
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

COMMANDS = {
    "start": start_command,
    "help": help_command,
    "anchors": anchors_command,
    "addanchor": addanchor_command,
    "move": move_command,
    "copy": copy_command,
    "deleteanchor": deleteanchor_command,
    "quiet": quiet_command,
    "unquiet": unquiet_command,
    "remind": remind_command,
    "reminders": reminders_command,
    "deletereminder": deletereminder_command,
    "due": due_command,
    "done": done_command,
    "snooze": snooze_command,
    "lock": lock_command,
    "unlock": unlock_command,
    "pause": pause_command,
    "resume": resume_command,
    "onboard": onboard_command,
    "undo": undo_command,
    "history": history_command,
    "timezone": timezone_command,
}


async def heartbeat_job(context: "ContextTypes.DEFAULT_TYPE") -> None:
    """Job callback for the heartbeat."""
    await heartbeat(context.bot, context.bot_data)


async def post_init(application: Application) -> None:
    """Initialize bot resources after application is created."""
    # Initialize database
    await run_migrations(Config.DATABASE_PATH)

    # Create repository and store in bot_data
    repo = Repository(Config.DATABASE_PATH)
    await repo.connect()
    application.bot_data["repo"] = repo

    # Run startup recovery
    await startup_recovery(application.bot, application.bot_data)

    # Start the heartbeat job
    job_queue = application.job_queue
    if job_queue:
        job_queue.run_repeating(
            heartbeat_job,
            interval=Config.HEARTBEAT_INTERVAL,
            first=10,  # Start after 10 seconds
            name="heartbeat",
        )
        logger.info(f"Heartbeat job scheduled (interval: {Config.HEARTBEAT_INTERVAL}s)")
    else:
        logger.warning("Job queue unavailable; install python-telegram-bot[job-queue]")

    logger.info("AnchorWeek initialized successfully")


async def post_shutdown(application: Application) -> None:
    """Cleanup resources on shutdown."""
    repo: Repository = application.bot_data.get("repo")
    if repo:
        await repo.close()

    logger.info("AnchorWeek shut down")


def main() -> None:
    """Start the bot."""
    # Validate configuration
    try:
        Config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    # Create application
    application = (
        Application.builder()
        .token(Config.TELEGRAM_BOT_TOKEN)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )

    # Commands
    for command, callback in COMMANDS.items():
        application.add_handler(CommandHandler(command, callback))

    # Callback queries (buttons)
    application.add_handler(CallbackQueryHandler(callback_router))

    # Error handler
    application.add_error_handler(error_handler)

    # Start the bot
    logger.info("Starting AnchorWeek bot...")
    application.run_polling(allowed_updates=["message", "callback_query"])


if __name__ == "__main__":
    main()
