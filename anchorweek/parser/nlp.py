"""Pattern-based reminder request parser.

Turns "remind me to pack my gym bag 30 minutes before Gym Session" into a
ReminderRequest. It only proposes an anchor title; the scheduler checks the
title against the real anchors and rejects unknown ones.
"""

import logging
import re

from anchorweek.db.models import WEEKDAYS, Day, ReminderRequest
from anchorweek.parser.patterns import HOUR_UNITS, OFFSET_PATTERN, REQUEST_PREFIX, START_PATTERNS
from anchorweek.utils.errors import CollaboratorError, ValidationError

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "I had trouble understanding that. Could you try rephrasing? e.g., "
    "'Remind me to pack my gym bag 30 minutes before Gym Session'"
)


def match_anchor_title(candidate: str, anchor_titles: list[str]) -> str:
    """Resolve free text to one of the known anchor titles.

    Exact (case-insensitive) matches win, then the longest title contained in
    the text or containing it. Falls back to the text itself.
    """
    wanted = candidate.strip().strip("\"'").lower()

    for title in anchor_titles:
        if title.lower() == wanted:
            return title

    partial = [
        title
        for title in anchor_titles
        if title.lower() in wanted or wanted in title.lower()
    ]
    if partial:
        return max(partial, key=len)

    return candidate.strip().strip("\"'")


def parse_reminder_request(text: str, anchor_titles: list[str]) -> ReminderRequest:
    """Parse a reminder request.

    Pipeline:
    1. Find the timing clause (offset before/after, or at the start of)
    2. Resolve the anchor title
    3. Extract the message (what's left, minus "remind me to")

    Raises:
        CollaboratorError: if no timing clause or message can be found
    """
    if not text or not text.strip():
        raise CollaboratorError(HELP_TEXT)

    offset = None
    match = OFFSET_PATTERN.search(text)
    if match:
        amount = int(match.group("amount"))
        if match.group("unit").lower() in HOUR_UNITS:
            amount *= 60
        offset = -amount if match.group("direction").lower() == "before" else amount
    else:
        for pattern in START_PATTERNS:
            match = pattern.search(text)
            if match:
                offset = 0
                break

    if match is None or offset is None:
        raise CollaboratorError(HELP_TEXT)

    anchor_title = match_anchor_title(match.group("anchor"), anchor_titles)

    message = text[: match.start()]
    message = REQUEST_PREFIX.sub("", message)
    message = re.sub(r"\s+", " ", message).strip().strip(".,!?;:")

    if not message:
        raise CollaboratorError(HELP_TEXT)

    message = message[0].upper() + message[1:]
    logger.debug(f"Parsed reminder request: {message!r} at {offset} min of {anchor_title!r}")

    return ReminderRequest(
        anchor_title=anchor_title,
        offset_minutes=offset,
        message=message,
        why="Because you asked to be reminded.",
    )


class PatternReminderParser:
    """Reminder parser backed by regex patterns."""

    def parse(self, text: str, anchor_titles: list[str]) -> ReminderRequest:
        return parse_reminder_request(text, anchor_titles)


DAY_GROUPS = {
    "weekdays": WEEKDAYS,
    "weekends": (Day.SATURDAY, Day.SUNDAY),
    "daily": tuple(Day),
    "everyday": tuple(Day),
}


def parse_day_list(text: str) -> list[Day]:
    """Parse a day selection from command arguments.

    Accepts comma-separated names ("Mon,Wed"), ranges ("Mon-Fri") and the
    keywords weekdays, weekends and daily.

    Raises:
        ValidationError: if a day cannot be recognised
    """
    days: list[Day] = []
    for part in text.replace(" ", "").split(","):
        if not part:
            continue
        group = DAY_GROUPS.get(part.lower())
        try:
            if group:
                days.extend(group)
            elif "-" in part:
                first, last = (Day.parse(p) for p in part.split("-", 1))
                order = list(Day)
                start, end = order.index(first), order.index(last)
                if end < start:
                    # Fri-Mon wraps the weekend
                    days.extend(order[start:] + order[: end + 1])
                else:
                    days.extend(order[start : end + 1])
            else:
                days.append(Day.parse(part))
        except ValueError as e:
            raise ValidationError(f"{e}. Use names like Mon,Wed or Mon-Fri") from e

    if not days:
        raise ValidationError("Pick at least one day, e.g. Mon,Wed or weekdays")
    return list(dict.fromkeys(days))
