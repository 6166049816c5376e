"""Regex patterns for reminder requests."""

import re

# "10 minutes before Gym Session", "1 hour after standup"
OFFSET_PATTERN = re.compile(
    r"\b(?P<amount>\d+)\s*(?P<unit>m|mins?|minutes?|h|hrs?|hours?)\s+"
    r"(?P<direction>before|after)\s+(?:the\s+)?(?:start\s+of\s+)?(?:my\s+)?"
    r"(?P<anchor>.+?)\s*[.!?]?\s*$",
    re.IGNORECASE,
)

# "at the start of Deep Work", "when Gym Session starts"
START_PATTERNS = [
    re.compile(
        r"\bat\s+the\s+(?:start|beginning)\s+of\s+(?:my\s+)?(?P<anchor>.+?)\s*[.!?]?\s*$",
        re.IGNORECASE,
    ),
    re.compile(
        r"\bwhen\s+(?:my\s+)?(?P<anchor>.+?)\s+(?:starts|begins)\s*[.!?]?\s*$",
        re.IGNORECASE,
    ),
]

# Leading request phrasing stripped from the message
REQUEST_PREFIX = re.compile(
    r"^\s*(?:please\s+)?(?:remind\s+me\s+(?:to\s+)?|reminder\s*(?:to|:)?\s*|nudge\s+me\s+(?:to\s+)?)",
    re.IGNORECASE,
)

HOUR_UNITS = {"h", "hr", "hrs", "hour", "hours"}
