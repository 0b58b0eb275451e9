"""Schedule intensity classification."""
from __future__ import annotations

from typing import Iterable

from calmday.services.intervals import clip_blocks, union_minutes
from calmday.services.scheduling_types import BusyBlock, IntensityLevel, ScheduleIntensity, TimeInterval

HIGH_THRESHOLD = 0.70
MEDIUM_THRESHOLD = 0.40


def classify_ratio(ratio: float) -> IntensityLevel:
    """Map a busy ratio to a level; exact thresholds fall into the lower bucket."""
    if ratio > HIGH_THRESHOLD:
        return IntensityLevel.HIGH
    if ratio > MEDIUM_THRESHOLD:
        return IntensityLevel.MEDIUM
    return IntensityLevel.LOW


def classify_intensity(busy_blocks: Iterable[BusyBlock], waking_window: TimeInterval) -> ScheduleIntensity:
    total_minutes = waking_window.minutes
    busy_minutes = union_minutes(clip_blocks(busy_blocks, waking_window))
    ratio = busy_minutes / total_minutes
    return ScheduleIntensity(
        level=classify_ratio(ratio),
        ratio=ratio,
        busy_minutes=busy_minutes,
        total_waking_minutes=total_minutes,
    )
