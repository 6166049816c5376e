"""Tests for the database repository."""

import asyncio
from datetime import datetime
from zoneinfo import ZoneInfo

import aiosqlite

from anchorweek.db.migrations import SCHEMA_VERSION, get_schema_version, run_migrations
from anchorweek.db.models import (
    Anchor,
    Buffer,
    ContextTag,
    Day,
    DNDWindow,
    OnboardingPreview,
    ReminderStatus,
    SmartReminder,
)
from anchorweek.db.repository import (
    Repository,
    anchor_from_dict,
    anchor_to_dict,
    reminder_from_dict,
    reminder_to_dict,
)
from anchorweek.engine.store import ScheduleStore

TZ = ZoneInfo("America/Toronto")

GYM = Anchor(
    id="gym",
    day=Day.MONDAY,
    title="Gym Session",
    start_time="18:00",
    end_time="19:00",
    context_tags=frozenset({ContextTag.HIGH_ENERGY, ContextTag.PERSONAL}),
    buffer=Buffer(prep=10, recovery=5),
)

SNOOZED = SmartReminder(
    id="sr-gym-1",
    event_id="gym",
    offset_minutes=-30,
    message="Pack gym bag",
    why="Because you asked to be reminded.",
    status=ReminderStatus.SNOOZED,
    snooze_history=(10, 5),
    snoozed_until=datetime(2026, 3, 16, 17, 45, tzinfo=TZ),
    success_history=("snoozed", "snoozed"),
    last_interaction=datetime(2026, 3, 16, 17, 35, tzinfo=TZ),
)


async def open_repo(tmp_path) -> Repository:
    db_path = tmp_path / "test.db"
    await run_migrations(db_path)
    repo = Repository(db_path)
    await repo.connect()
    return repo


def test_anchor_document_uses_camel_case():
    """Test the persisted anchor layout."""
    data = anchor_to_dict(GYM)

    assert data["startTime"] == "18:00"
    assert data["contextTags"] == ["high-energy", "personal"]
    assert data["bufferMinutes"] == {"prep": 10, "recovery": 5}
    assert anchor_from_dict(data) == GYM


def test_reminder_document_keeps_timezone():
    """Datetimes survive with their offset."""
    data = reminder_to_dict(SNOOZED)

    assert data["status"] == "snoozed"
    restored = reminder_from_dict(data)
    assert restored.snoozed_until == SNOOZED.snoozed_until
    assert restored.snooze_history == (10, 5)


def test_user_lifecycle(tmp_path):
    """Test creating, listing and updating users."""

    async def scenario():
        repo = await open_repo(tmp_path)
        try:
            assert await repo.get_user(42) is None

            user = await repo.create_user(42, "UTC")
            assert user.telegram_id == 42
            assert user.created_at is not None

            await repo.update_timezone(42, "Europe/Paris")
            assert (await repo.get_user(42)).timezone == "Europe/Paris"
            assert [u.telegram_id for u in await repo.get_users()] == [42]
        finally:
            await repo.close()

    asyncio.run(scenario())


def test_store_round_trip(tmp_path):
    """A saved schedule loads back unchanged."""
    preview = OnboardingPreview(dnd_windows=(DNDWindow(Day.SUNDAY, "22:00", "06:00"),))
    store = (
        ScheduleStore()
        .add_anchor(GYM)
        .add_dnd_window(DNDWindow(Day.MONDAY, "23:00", "07:00"))
        .add_reminder(SNOOZED)
        .with_pause(datetime(2026, 3, 16, 20, 0, tzinfo=TZ))
        .with_preview(preview)
    )

    async def scenario():
        repo = await open_repo(tmp_path)
        try:
            await repo.create_user(7)
            await repo.save_store(7, store)
            return await repo.load_store(7)
        finally:
            await repo.close()

    assert asyncio.run(scenario()) == store


def test_load_missing_records_defaults(tmp_path):
    """A user with nothing saved gets an empty schedule."""

    async def scenario():
        repo = await open_repo(tmp_path)
        try:
            await repo.create_user(7)
            return await repo.load_store(7)
        finally:
            await repo.close()

    assert asyncio.run(scenario()) == ScheduleStore()


def test_unreadable_record_is_skipped(tmp_path):
    """A corrupt record falls back to its default."""

    async def scenario():
        repo = await open_repo(tmp_path)
        try:
            await repo.create_user(7)
            await repo.save_store(7, ScheduleStore().add_anchor(GYM))
            await repo.db.execute(
                "UPDATE app_data SET data = '{not json' WHERE user_id = 7 AND key = 'dnd_windows'"
            )
            await repo.db.commit()
            return await repo.load_store(7)
        finally:
            await repo.close()

    store = asyncio.run(scenario())
    assert store.anchors == (GYM,)
    assert store.dnd_windows == ()


def test_save_and_load_record(tmp_path):
    """Test a single named record."""

    async def scenario():
        repo = await open_repo(tmp_path)
        try:
            await repo.create_user(7)
            await repo.save_record(7, "pause_until", None)
            first = await repo.load_record(7, "pause_until")
            await repo.save_record(7, "pause_until", "2026-03-16T20:00:00-04:00")
            return first, await repo.load_record(7, "pause_until"), await repo.load_record(7, "anchors")
        finally:
            await repo.close()

    first, second, missing = asyncio.run(scenario())
    assert first is None
    assert second == "2026-03-16T20:00:00-04:00"
    assert missing is None


def test_record_with_bad_field_is_skipped(tmp_path):
    """A well-formed document with a broken entry falls back to its default."""

    async def scenario():
        repo = await open_repo(tmp_path)
        try:
            await repo.create_user(7)
            await repo.save_store(7, ScheduleStore().add_anchor(GYM).add_reminder(SNOOZED))
            await repo.save_record(7, "anchors", [{"id": "gym", "day": "Someday"}])
            return await repo.load_store(7)
        finally:
            await repo.close()

    store = asyncio.run(scenario())
    assert store.anchors == ()
    assert store.reminders == (SNOOZED,)


def test_migrations_run_once(tmp_path):
    """Migrations record the schema version and are not applied twice."""
    db_path = tmp_path / "test.db"

    async def scenario():
        first = await run_migrations(db_path)
        second = await run_migrations(db_path)
        async with aiosqlite.connect(db_path) as db:
            version = await get_schema_version(db)
        return first, second, version

    first, second, version = asyncio.run(scenario())
    assert first == SCHEMA_VERSION
    assert second == 0
    assert version == SCHEMA_VERSION


def test_deleting_user_removes_records(tmp_path):
    """Saved records cascade with their user."""

    async def scenario():
        repo = await open_repo(tmp_path)
        try:
            await repo.create_user(7)
            await repo.save_store(7, ScheduleStore().add_anchor(GYM))
            await repo.db.execute("DELETE FROM users WHERE telegram_id = 7")
            await repo.db.commit()
            return await repo.load_record(7, "anchors")
        finally:
            await repo.close()

    assert asyncio.run(scenario()) is None
