"""Scheduling error taxonomy."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from anchorweek.db.models import Anchor


class SchedulingError(Exception):
    """Base class for errors raised by the scheduling engine."""


class ValidationError(SchedulingError):
    """Malformed input rejected before any mutation."""


class NotFoundError(SchedulingError):
    """An anchor, reminder or window id does not exist."""


class ConflictError(SchedulingError):
    """An anchor placement overlaps an existing anchor.

    The blocking anchor is kept so callers can tell the user what is in the way.
    """

    def __init__(self, blocking: "Anchor", message: str | None = None):
        self.blocking = blocking
        super().__init__(
            message
            or f'Conflicts with "{blocking.title}" on {blocking.day.value} '
            f"({blocking.start_time}-{blocking.end_time})"
        )


class CollaboratorError(SchedulingError):
    """A collaborator (request parser, habit service) failed.

    Always recoverable: the schedule is left untouched.
    """
