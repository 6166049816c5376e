"""Database repository - all SQL queries."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, List

import aiosqlite

from anchorweek.db.models import (
    Anchor,
    Buffer,
    ContextTag,
    Day,
    DNDWindow,
    OnboardingPreview,
    ReminderStatus,
    SmartReminder,
    User,
)
from anchorweek.engine.store import ScheduleStore
from anchorweek.utils.constants import DEFAULT_TIMEZONE

logger = logging.getLogger(__name__)

class Repository:
    """Database access layer."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open database connection."""
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        # Off by default in SQLite; app_data rows cascade with their user
        await self._db.execute("PRAGMA foreign_keys = ON")
        logger.info(f"Connected to database at {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Database connection closed")

    @property
    def db(self) -> aiosqlite.Connection:
        """Get the database connection."""
        if self._db is None:
            raise RuntimeError("Database not connected")
        return self._db

    # User operations

    async def get_user(self, telegram_id: int) -> User | None:
        """Get user by Telegram ID."""
        async with self.db.execute(
            "SELECT * FROM users WHERE telegram_id = ?", (telegram_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_user(row)
            return None

    async def get_users(self) -> List[User]:
        """Get every registered user (heartbeat query)."""
        async with self.db.execute("SELECT * FROM users ORDER BY telegram_id") as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_user(row) for row in rows]

    async def create_user(self, telegram_id: int, timezone: str = DEFAULT_TIMEZONE) -> User:
        """Create a new user with default settings."""
        async with self.db.execute(
            "INSERT INTO users (telegram_id, timezone) VALUES (?, ?) RETURNING *",
            (telegram_id, timezone),
        ) as cursor:
            row = await cursor.fetchone()
        await self.db.commit()
        logger.info(f"Created user {telegram_id}")
        return self._row_to_user(row)

    async def update_timezone(self, telegram_id: int, timezone: str) -> None:
        """Update a user's timezone."""
        await self.db.execute(
            "UPDATE users SET timezone = ? WHERE telegram_id = ?", (timezone, telegram_id)
        )
        await self.db.commit()

    # Record operations

    async def load_record(self, user_id: int, key: str) -> Any:
        """Load one named record, or None if it was never saved."""
        async with self.db.execute(
            "SELECT data FROM app_data WHERE user_id = ? AND key = ?", (user_id, key)
        ) as cursor:
            row = await cursor.fetchone()
            if row is None or row["data"] is None:
                return None
            return json.loads(row["data"])

    async def save_record(self, user_id: int, key: str, value: Any) -> None:
        """Save one named record, replacing any previous value."""
        await self.db.execute(
            """
            INSERT INTO app_data (user_id, key, data, updated_at)
            VALUES (?, ?, ?, datetime('now'))
            ON CONFLICT (user_id, key) DO UPDATE SET
                data = excluded.data,
                updated_at = excluded.updated_at
            """,
            (user_id, key, json.dumps(value)),
        )
        await self.db.commit()

    async def load_store(self, user_id: int) -> ScheduleStore:
        """Load a user's schedule.

        Each record is read on its own: a missing or unreadable record
        defaults to empty without affecting the others.
        """
        async with self.db.execute(
            "SELECT key, data FROM app_data WHERE user_id = ?", (user_id,)
        ) as cursor:
            rows = await cursor.fetchall()
        raw = {row["key"]: row["data"] for row in rows}

        # record name -> (store field, decoder)
        decoders = {
            "anchors": ("anchors", lambda d: tuple(anchor_from_dict(a) for a in d or [])),
            "dnd_windows": ("dnd_windows", lambda d: tuple(window_from_dict(w) for w in d or [])),
            "smart_reminders": ("reminders", lambda d: tuple(reminder_from_dict(r) for r in d or [])),
            "pause_until": ("pause_until", _parse_dt),
            "onboarding_preview": ("onboarding_preview", preview_from_dict),
        }

        fields = {}
        for key, (field, decode) in decoders.items():
            if not raw.get(key):
                continue
            try:
                fields[field] = decode(json.loads(raw[key]))
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                # json.JSONDecodeError is a ValueError
                logger.error(f"Discarding unreadable record {key} for user {user_id}: {e}")

        return ScheduleStore(**fields)

    async def save_store(self, user_id: int, store: ScheduleStore) -> None:
        """Save every record of a user's schedule in one transaction."""
        documents = {
            "anchors": [anchor_to_dict(a) for a in store.anchors],
            "dnd_windows": [window_to_dict(w) for w in store.dnd_windows],
            "smart_reminders": [reminder_to_dict(r) for r in store.reminders],
            "pause_until": store.pause_until.isoformat() if store.pause_until else None,
            "onboarding_preview": preview_to_dict(store.onboarding_preview),
        }
        await self.db.executemany(
            """
            INSERT INTO app_data (user_id, key, data, updated_at)
            VALUES (?, ?, ?, datetime('now'))
            ON CONFLICT (user_id, key) DO UPDATE SET
                data = excluded.data,
                updated_at = excluded.updated_at
            """,
            [(user_id, key, json.dumps(value)) for key, value in documents.items()],
        )
        await self.db.commit()
        logger.debug(f"Saved schedule for user {user_id}")

    # Helper methods

    def _row_to_user(self, row: aiosqlite.Row) -> User:
        """Convert a database row to a User object."""
        return User(
            telegram_id=row["telegram_id"],
            timezone=row["timezone"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _format_dt(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def anchor_to_dict(anchor: Anchor) -> dict:
    """Convert an Anchor to a JSON document."""
    return {
        "id": anchor.id,
        "day": anchor.day.value,
        "title": anchor.title,
        "startTime": anchor.start_time,
        "endTime": anchor.end_time,
        "contextTags": sorted(tag.value for tag in anchor.context_tags),
        "bufferMinutes": (
            {"prep": anchor.buffer.prep, "recovery": anchor.buffer.recovery}
            if anchor.buffer
            else None
        ),
    }


def anchor_from_dict(data: dict) -> Anchor:
    """Convert a JSON document to an Anchor."""
    buffer = data.get("bufferMinutes")
    return Anchor(
        id=data["id"],
        day=Day(data["day"]),
        title=data["title"],
        start_time=data["startTime"],
        end_time=data["endTime"],
        context_tags=frozenset(ContextTag(tag) for tag in data.get("contextTags") or []),
        buffer=(
            Buffer(prep=buffer.get("prep", 0), recovery=buffer.get("recovery", 0))
            if buffer
            else None
        ),
    )


def window_to_dict(window: DNDWindow) -> dict:
    """Convert a DNDWindow to a JSON document."""
    return {"day": window.day.value, "startTime": window.start_time, "endTime": window.end_time}


def window_from_dict(data: dict) -> DNDWindow:
    """Convert a JSON document to a DNDWindow."""
    return DNDWindow(day=Day(data["day"]), start_time=data["startTime"], end_time=data["endTime"])


def reminder_to_dict(reminder: SmartReminder) -> dict:
    """Convert a SmartReminder to a JSON document."""
    return {
        "id": reminder.id,
        "eventId": reminder.event_id,
        "offsetMinutes": reminder.offset_minutes,
        "message": reminder.message,
        "why": reminder.why,
        "isLocked": reminder.is_locked,
        "isExploratory": reminder.is_exploratory,
        "status": reminder.status.value,
        "snoozeHistory": list(reminder.snooze_history),
        "snoozedUntil": _format_dt(reminder.snoozed_until),
        "successHistory": list(reminder.success_history),
        "isStackedHabit": reminder.is_stacked_habit,
        "habitId": reminder.habit_id,
        "originalOffsetMinutes": reminder.original_offset_minutes,
        "lastInteraction": _format_dt(reminder.last_interaction),
        "flexibilityMinutes": reminder.flexibility_minutes,
        "allowExploration": reminder.allow_exploration,
    }


def reminder_from_dict(data: dict) -> SmartReminder:
    """Convert a JSON document to a SmartReminder."""
    return SmartReminder(
        id=data["id"],
        event_id=data["eventId"],
        offset_minutes=int(data["offsetMinutes"]),
        message=data["message"],
        why=data.get("why", ""),
        is_locked=bool(data.get("isLocked", False)),
        is_exploratory=bool(data.get("isExploratory", False)),
        status=ReminderStatus(data.get("status", ReminderStatus.ACTIVE.value)),
        snooze_history=tuple(data.get("snoozeHistory") or ()),
        snoozed_until=_parse_dt(data.get("snoozedUntil")),
        success_history=tuple(data.get("successHistory") or ()),
        is_stacked_habit=bool(data.get("isStackedHabit", False)),
        habit_id=data.get("habitId"),
        original_offset_minutes=data.get("originalOffsetMinutes"),
        last_interaction=_parse_dt(data.get("lastInteraction")),
        flexibility_minutes=data.get("flexibilityMinutes"),
        allow_exploration=bool(data.get("allowExploration", True)),
    )


def preview_to_dict(preview: OnboardingPreview | None) -> dict | None:
    """Convert an OnboardingPreview to a JSON document."""
    if preview is None:
        return None
    return {
        "newAnchors": [anchor_to_dict(a) for a in preview.anchors],
        "newDnd": [window_to_dict(w) for w in preview.dnd_windows],
    }


def preview_from_dict(data: dict | None) -> OnboardingPreview | None:
    """Convert a JSON document to an OnboardingPreview."""
    if not data:
        return None
    return OnboardingPreview(
        anchors=tuple(anchor_from_dict(a) for a in data.get("newAnchors") or []),
        dnd_windows=tuple(window_from_dict(w) for w in data.get("newDnd") or []),
    )
