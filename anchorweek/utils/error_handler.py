"""Global error handler for the bot."""

import logging
import traceback

from telegram import Update
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from anchorweek.utils.errors import (
    CollaboratorError,
    ConflictError,
    NotFoundError,
    SchedulingError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def describe_error(error: BaseException | None) -> str:
    """Pick the user-facing text for an error raised while handling an update."""
    if isinstance(error, ConflictError):
        return f"⚠️ {error}\n\nTry another day or time, or /move the other anchor first."
    if isinstance(error, NotFoundError):
        return f"❓ {error}\n\nUse /anchors or /reminders to see the IDs."
    if isinstance(error, ValidationError):
        return f"❌ {error}"
    if isinstance(error, CollaboratorError):
        return f"🤔 {error}"
    if isinstance(error, SchedulingError):
        return f"❌ {error}"

    text = str(error)
    if "Unauthorized" in text or "Forbidden" in text:
        return "❌ I don't have permission to send you messages.\n\nPlease /start the bot first."
    if "Bad Request" in text:
        return (
            "❌ Invalid request.\n\n"
            "Please check your command syntax and try again. Use /help for examples."
        )
    if "Timed out" in text or "Timeout" in text:
        return "⏱️ Request timed out.\n\nPlease try again in a moment."
    if "Network" in text:
        return "🌐 Network error.\n\nPlease check your connection and try again."

    return (
        "😅 Oops! Something went wrong.\n\n"
        "The error has been logged. Please try again or use /help for assistance."
    )


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle errors in the bot."""
    error = context.error

    if isinstance(error, SchedulingError):
        # Rejected user input; the schedule is unchanged
        logger.info(f"Rejected request: {error}")
    else:
        logger.error("Exception while handling an update:", exc_info=error)
        tb_string = "".join(traceback.format_exception(None, error, error.__traceback__))
        logger.error(f"Traceback:\n{tb_string}")

    if not isinstance(update, Update):
        return

    message = describe_error(error)
    try:
        if update.callback_query:
            await update.callback_query.answer(message[:200], show_alert=True)
        elif update.effective_message:
            await update.effective_message.reply_text(message)
    except TelegramError as e:
        logger.error(f"Failed to send error message to user: {e}")
