"""Conflict and placement checks for anchors."""

from dataclasses import dataclass
from typing import Iterable

from anchorweek.db.models import Anchor, DNDWindow
from anchorweek.utils.errors import ConflictError
from anchorweek.utils.time_utils import in_window, overlaps, to_minutes


@dataclass(frozen=True)
class Placement:
    """Outcome of a placement check. ``conflict`` is the blocking anchor, if any."""

    conflict: Anchor | None = None

    @property
    def ok(self) -> bool:
        return self.conflict is None


def can_place(candidate: Anchor, existing: Iterable[Anchor]) -> Placement:
    """Check whether an anchor fits on its day.

    Scans anchors sharing the candidate's day, skipping the candidate's own id
    so an anchor never conflicts with its pre-move self, and reports the first
    one whose interval overlaps.
    """
    for anchor in existing:
        if anchor.day != candidate.day or anchor.id == candidate.id:
            continue
        if overlaps(candidate.start_time, candidate.end_time, anchor.start_time, anchor.end_time):
            return Placement(conflict=anchor)
    return Placement()


def ensure_placeable(candidate: Anchor, existing: Iterable[Anchor]) -> None:
    """Raise ConflictError if the candidate overlaps an existing anchor."""
    placement = can_place(candidate, existing)
    if placement.conflict is not None:
        raise ConflictError(
            placement.conflict,
            f'Cannot place "{candidate.title}" on {candidate.day.value}. '
            f'It conflicts with "{placement.conflict.title}" '
            f"({placement.conflict.start_time}-{placement.conflict.end_time}).",
        )


def dnd_overlaps(candidate: Anchor, windows: Iterable[DNDWindow]) -> list[DNDWindow]:
    """Get quiet-hours windows that intersect an anchor.

    Informational only: anchors may be placed inside quiet hours, their
    reminders are what gets suppressed.
    """
    start = to_minutes(candidate.start_time)
    end = to_minutes(candidate.end_time)
    hits = []
    for window in windows:
        if window.day != candidate.day:
            continue
        window_start = to_minutes(window.start_time)
        if in_window(start, window.start_time, window.end_time) or start <= window_start < end:
            hits.append(window)
    return hits
