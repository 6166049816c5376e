"""Tests for the heartbeat."""

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from anchorweek.db.migrations import run_migrations
from anchorweek.db.models import Anchor, Day, SmartReminder, User
from anchorweek.db.repository import Repository
from anchorweek.engine import nag_engine
from anchorweek.engine.store import ScheduleStore

UTC = ZoneInfo("UTC")


def monday(hour: int, minute: int = 0) -> datetime:
    # 2026-03-16 is a Monday
    return datetime(2026, 3, 16, hour, minute, tzinfo=UTC)


class FakeBot:
    """Records outgoing messages."""

    def __init__(self):
        self.sent = []

    async def send_message(self, chat_id, text, **kwargs):
        self.sent.append((chat_id, text, kwargs))


def make_store() -> ScheduleStore:
    anchor = Anchor(id="standup", day=Day.MONDAY, title="Standup", start_time="09:00", end_time="09:30")
    reminder = SmartReminder(id="r1", event_id="standup", offset_minutes=-10, message="Open notes")
    return ScheduleStore().add_anchor(anchor).add_reminder(reminder)


def run_heartbeats(tmp_path, monkeypatch, steps):
    """Run one heartbeat per clock reading against a fresh database.

    A callable step is applied to ``bot_data`` instead.
    """
    bot = FakeBot()

    async def scenario():
        db_path = tmp_path / "test.db"
        await run_migrations(db_path)
        repo = Repository(db_path)
        await repo.connect()
        try:
            await repo.create_user(1, "UTC")
            await repo.save_store(1, make_store())
            bot_data = {"repo": repo}
            for step in steps:
                if callable(step):
                    step(bot_data)
                    continue
                now = step
                monkeypatch.setattr(nag_engine, "local_now", lambda tz, now=now: now)
                await nag_engine.heartbeat(bot, bot_data)
            # Let background saves finish before closing
            await asyncio.sleep(0.05)
            return bot_data
        finally:
            await repo.close()

    bot_data = asyncio.run(scenario())
    return bot, bot_data


def test_heartbeat_sends_due_reminder_once(tmp_path, monkeypatch):
    """A due reminder is announced once per window."""
    bot, _ = run_heartbeats(tmp_path, monkeypatch, [monday(8, 55), monday(8, 56), monday(8, 57)])

    assert len(bot.sent) == 1
    chat_id, text, kwargs = bot.sent[0]
    assert chat_id == 1
    assert "Open notes" in text
    assert kwargs["parse_mode"] == "HTML"


def test_heartbeat_quiet_outside_window(tmp_path, monkeypatch):
    """Nothing is sent before or after the due window."""
    bot, _ = run_heartbeats(tmp_path, monkeypatch, [monday(8, 40), monday(9, 10)])

    assert bot.sent == []


def test_heartbeat_resends_after_snooze(tmp_path, monkeypatch):
    """A reminder resurfacing after a snooze is announced again."""

    def snooze(bot_data):
        bot_data["schedulers"][1].snooze("r1", monday(8, 55))

    bot, _ = run_heartbeats(tmp_path, monkeypatch, [monday(8, 55), snooze, monday(8, 57), monday(9, 0)])

    assert len(bot.sent) == 2


def test_heartbeat_waits_for_window_after_lock(tmp_path, monkeypatch):
    """Locking a reminder early does not send it before its window."""

    early = []

    def lock(bot_data):
        bot_data["schedulers"][1].set_locked("r1", True, monday(8, 0))

    def count_early(bot_data):
        early.append(len(bot_data.get("announced", {})))

    bot, _ = run_heartbeats(
        tmp_path,
        monkeypatch,
        [monday(8, 0), lock, monday(8, 0) + timedelta(seconds=30), count_early, monday(8, 55)],
    )

    assert early == [0]
    assert len(bot.sent) == 1
    assert "Open notes" in bot.sent[0][1]


def test_announcement_key_tracks_resurfacing():
    """Snoozing changes the key so the reminder can be sent again."""
    user = User(telegram_id=1, timezone="UTC")
    reminder = make_store().reminders[0]
    snoozed = replace(reminder, snoozed_until=monday(9, 0))

    first = nag_engine.announcement_key(user, reminder, monday(8, 55))
    assert first == nag_engine.announcement_key(user, reminder, monday(8, 58))
    assert first != nag_engine.announcement_key(user, snoozed, monday(9, 0))
    assert first != nag_engine.announcement_key(user, reminder, monday(8, 55) + timedelta(days=7))


def test_prune_announcements():
    """Old markers are forgotten."""
    now = monday(12)
    announced = {("old",): now - timedelta(days=3), ("new",): now - timedelta(hours=1)}

    nag_engine.prune_announcements(announced, now)

    assert list(announced) == [("new",)]
