"""Onboarding wizard - a starter weekly layout for new users.

The generated preview is detached: nothing here touches the schedule store.
The scheduler holds it until the user accepts (merge) or discards it.
"""

from typing import Iterable

from anchorweek.db.models import (
    WEEKDAYS,
    Anchor,
    Buffer,
    ContextTag,
    Day,
    DNDWindow,
    OnboardingBlock,
    OnboardingPreview,
)
from anchorweek.utils.constants import (
    DEFAULT_QUIET_END,
    DEFAULT_QUIET_START,
    DEFAULT_WORK_END,
    DEFAULT_WORK_START,
    DND_PRESETS,
    ONBOARDING_PREP_MINUTES,
    ONBOARDING_RECOVERY_MINUTES,
    ONBOARDING_TITLE,
    DNDPreset,
)
from anchorweek.utils.errors import ValidationError
from anchorweek.utils.time_utils import parse_time, to_minutes

ONBOARDING_TAGS = frozenset({ContextTag.WORK, ContextTag.HIGH_ENERGY})


def get_dnd_preset(label: str) -> DNDPreset:
    """Get a quiet-hours preset by label or by its ``HH:MM-HH:MM`` span."""
    wanted = label.strip().lower()
    for preset in DND_PRESETS:
        span = f"{preset.start_time}-{preset.end_time}"
        if wanted in (preset.label.lower(), span):
            return preset
    raise ValidationError(f"Unknown quiet-hours preset: {label}")


def generate_preview(
    blocks: Iterable[OnboardingBlock], dnd_start: str, dnd_end: str
) -> OnboardingPreview:
    """Build candidate anchors and DND windows from wizard input.

    One anchor per (block, day) pair, ids derived from the block position so
    regenerating the same input yields the same ids. Blocks missing a time or
    without any day are skipped, as the wizard allows half-filled rows.
    """
    anchors: list[Anchor] = []

    for index, block in enumerate(blocks):
        if not block.start_time or not block.end_time or not block.days:
            continue

        start = parse_time(block.start_time)
        end = parse_time(block.end_time)
        if to_minutes(end) <= to_minutes(start):
            raise ValidationError(f"Block {index + 1} must end after it starts ({start}-{end})")

        for day in dict.fromkeys(block.days):
            anchors.append(
                Anchor(
                    id=f"onboard-{index}-{day.value}",
                    day=day,
                    title=ONBOARDING_TITLE,
                    start_time=start,
                    end_time=end,
                    context_tags=ONBOARDING_TAGS,
                    buffer=Buffer(prep=ONBOARDING_PREP_MINUTES, recovery=ONBOARDING_RECOVERY_MINUTES),
                )
            )

    dnd_start = parse_time(dnd_start)
    dnd_end = parse_time(dnd_end)
    windows = tuple(DNDWindow(day=day, start_time=dnd_start, end_time=dnd_end) for day in Day)

    return OnboardingPreview(anchors=tuple(anchors), dnd_windows=windows)


def default_preview() -> OnboardingPreview:
    """Weekday 9-5 work blocks with 11 PM - 7 AM quiet hours."""
    block = OnboardingBlock(start_time=DEFAULT_WORK_START, end_time=DEFAULT_WORK_END, days=WEEKDAYS)
    return generate_preview([block], DEFAULT_QUIET_START, DEFAULT_QUIET_END)
