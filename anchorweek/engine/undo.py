"""Undo ledger - inverse operations for recent changes."""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from itertools import count
from typing import Callable
from zoneinfo import ZoneInfo

from anchorweek.engine.store import ScheduleStore
from anchorweek.utils.constants import UNDO_HISTORY_LIMIT
from anchorweek.utils.errors import NotFoundError

logger = logging.getLogger(__name__)

Inverse = Callable[[ScheduleStore], ScheduleStore]

_ids = count(1)


@dataclass
class ChangeEntry:
    """A recorded change and the operation that reverts it."""

    message: str
    inverse: Inverse
    created_at: datetime = field(default_factory=lambda: datetime.now(ZoneInfo("UTC")))
    id: int = field(default_factory=lambda: next(_ids))


class UndoLedger:
    """Most-recent-first history of reversible changes. No redo."""

    def __init__(self, limit: int = UNDO_HISTORY_LIMIT):
        self._entries: deque[ChangeEntry] = deque(maxlen=limit)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[ChangeEntry]:
        """Recorded changes, most recent first."""
        return list(reversed(self._entries))

    def record(self, message: str, inverse: Inverse) -> ChangeEntry:
        """Record a change. The oldest entry falls off past the limit."""
        entry = ChangeEntry(message=message, inverse=inverse)
        self._entries.append(entry)
        return entry

    def undo(self, store: ScheduleStore) -> tuple[ScheduleStore, ChangeEntry]:
        """Revert the most recent change.

        Returns:
            Tuple of (restored store, reverted entry)
        """
        if not self._entries:
            raise NotFoundError("Nothing to undo")

        entry = self._entries[-1]
        restored = entry.inverse(store)
        self._entries.pop()
        logger.info(f"Undid change {entry.id}: {entry.message}")
        return restored, entry

    def clear(self) -> None:
        self._entries.clear()
