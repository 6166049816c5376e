"""Constants and default values."""

from dataclasses import dataclass

from anchorweek.db.models import ContextTag


@dataclass
class DNDPreset:
    """A selectable quiet-hours option in the onboarding wizard."""

    label: str
    start_time: str
    end_time: str


# Due-reminder evaluation
DUE_WINDOW_MINUTES = 15
INTERACTION_GRACE_SECONDS = 60

# Snooze backoff: 5 -> 10 -> 20 -> 30 -> 30 ...
SNOOZE_BASE_MINUTES = 5
SNOOZE_CAP_MINUTES = 30

# History retention
SUCCESS_HISTORY_LIMIT = 10
SNOOZE_HISTORY_LIMIT = 10
UNDO_HISTORY_LIMIT = 10
RECENT_REQUEST_LIMIT = 200

MINUTES_PER_DAY = 1440

# Onboarding
ONBOARDING_TITLE = "Work/School"
ONBOARDING_PREP_MINUTES = 15
ONBOARDING_RECOVERY_MINUTES = 15

DND_PRESETS = [
    DNDPreset("10 PM - 6 AM", "22:00", "06:00"),
    DNDPreset("11 PM - 7 AM", "23:00", "07:00"),
    DNDPreset("12 AM - 8 AM", "00:00", "08:00"),
]

# Default quiet hours (24-hour format)
DEFAULT_QUIET_START = "23:00"
DEFAULT_QUIET_END = "07:00"

# Default work block for the onboarding preview
DEFAULT_WORK_START = "09:00"
DEFAULT_WORK_END = "17:00"

COPY_SUFFIX = " (Copy)"

# Limits
MAX_ANCHORS_PER_USER = 200
MAX_TITLE_LENGTH = 200
MAX_MESSAGE_LENGTH = 500

# Default timezone
DEFAULT_TIMEZONE = "UTC"

# Habit to stack after completing a reminder, by anchor context
HABIT_SUGGESTIONS = {
    ContextTag.HIGH_ENERGY: "drink a glass of water",
    ContextTag.WORK: "2-minute desk stretch",
    ContextTag.SCHOOL: "2-minute desk stretch",
    ContextTag.LOW_ENERGY: "step outside for fresh air",
    ContextTag.PERSONAL: "tidy one surface",
}
