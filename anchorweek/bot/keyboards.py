"""Inline keyboard builders."""

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from anchorweek.db.models import SmartReminder


def reminder_keyboard(reminder: SmartReminder) -> InlineKeyboardMarkup:
    """Keyboard for due reminders: Done, Snooze, Lock/Unlock."""
    lock_button = (
        InlineKeyboardButton("🔓 Unlock", callback_data=f"unlock:{reminder.id}")
        if reminder.is_locked
        else InlineKeyboardButton("🔒 Lock", callback_data=f"lock:{reminder.id}")
    )
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton("✓ Done", callback_data=f"done:{reminder.id}"),
                InlineKeyboardButton("⏸ Snooze", callback_data=f"snooze:{reminder.id}"),
            ],
            [lock_button],
        ]
    )


def confirm_cancel_keyboard(action: str) -> InlineKeyboardMarkup:
    """Keyboard for confirmations: Confirm, Cancel."""
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton("✓ Confirm", callback_data=f"confirm:{action}"),
                InlineKeyboardButton("✗ Cancel", callback_data=f"cancel:{action}"),
            ]
        ]
    )


def onboarding_keyboard() -> InlineKeyboardMarkup:
    """Keyboard for the onboarding preview: Accept, Discard."""
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton("✓ Set up my week", callback_data="onboard:accept"),
                InlineKeyboardButton("✗ Discard", callback_data="onboard:discard"),
            ]
        ]
    )


def undo_keyboard() -> InlineKeyboardMarkup:
    """Single Undo button attached to change confirmations."""
    return InlineKeyboardMarkup([[InlineKeyboardButton("↩ Undo", callback_data="undo")]])
