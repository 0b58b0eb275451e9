"""Public scheduling operations: intensity, gaps and cached activity generation."""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Sequence

from calmday.core.config import settings
from calmday.core.context import bound_user, get_request_id
from calmday.observability.metrics import log_metric, timed
from calmday.observability.tracing import trace
from calmday.services import gap_finder, intensity as intensity_classifier
from calmday.services.activity_cache import ActivityCache, new_entry
from calmday.services.activity_generator import generate_activities
from calmday.services.intervals import energy_window_instances, resolve_zone, waking_window
from calmday.services.recommenders.base import Recommender
from calmday.services.scheduling_types import (
    Activity,
    ActivitySource,
    ActivityType,
    BusyBlock,
    CacheEntry,
    Gap,
    IntensityLevel,
    ScheduleIntensity,
    SchedulingContext,
    SchedulingInputError,
    TimeInterval,
)

logger = logging.getLogger(__name__)

activity_cache = ActivityCache()


@dataclass
class GenerationResult:
    activities: List[Activity]
    cached: bool
    intensity: ScheduleIntensity | None
    generated_at: datetime
    source: ActivitySource


def compute_intensity(busy_blocks: Iterable[BusyBlock], waking_window: TimeInterval) -> ScheduleIntensity:
    return intensity_classifier.classify_intensity(busy_blocks, waking_window)


def find_gaps(
    busy_blocks: Iterable[BusyBlock],
    waking_window: TimeInterval,
    energy_windows: Sequence[TimeInterval] = (),
    min_gap_minutes: int | None = None,
) -> List[Gap]:
    minimum = settings.min_gap_minutes if min_gap_minutes is None else min_gap_minutes
    return gap_finder.find_gaps(busy_blocks, waking_window, energy_windows, minimum)


def waking_window_for(context: SchedulingContext) -> TimeInterval:
    """UTC interval between the context's wake and bed time on its date."""
    return waking_window(context.date, context.wake_time, context.bed_time, resolve_zone(context.timezone))


def energy_windows_for(context: SchedulingContext) -> List[TimeInterval]:
    return energy_window_instances(context.date, context.energy_windows, resolve_zone(context.timezone))


def validate_context(context: SchedulingContext, day: date) -> None:
    """Raise SchedulingInputError for a context that cannot be scheduled."""
    if context.date != day:
        raise SchedulingInputError(f"Context date {context.date} does not match requested date {day}")
    resolve_zone(context.timezone)
    waking_window_for(context)
    for block in context.all_busy_blocks():
        if not isinstance(block, TimeInterval):
            raise SchedulingInputError(f"Busy block must be a TimeInterval, got {type(block).__name__}")


def get_or_generate_activities(
    user_id: str,
    day: date,
    context: SchedulingContext,
    recommender: Recommender | None = None,
    force_regenerate: bool = False,
) -> GenerationResult:
    """
    Return the day's accepted activities, generating them at most once per (user, date).

    Concurrent callers for the same key share one generation. `force_regenerate` discards
    any cached set first. Input errors raise SchedulingInputError; recommender trouble
    only changes which path produced the activities.
    """
    validate_context(context, day)
    request_id = get_request_id()
    metadata = {
        "date": day.isoformat(),
        "force_regenerate": force_regenerate,
        "recommender": recommender.name if recommender else None,
    }

    with bound_user(user_id), trace(
        "activities.generate", metadata=metadata, user_id=user_id, request_id=request_id
    ), timed("activities.generate", metadata={"user_id": user_id}):
        result = activity_cache.get_or_generate(
            user_id,
            day,
            lambda: _generate_entry(user_id, day, context, recommender),
            force_regenerate=force_regenerate,
        )

    entry = result.entry
    log_metric("activities.cache_hit", 1 if result.cached else 0, metadata={"user_id": user_id})
    log_metric(
        "activities.accepted",
        len(entry.activities),
        metadata={"user_id": user_id, "source": entry.source.value, "cached": result.cached},
    )
    return GenerationResult(
        activities=result.activities,
        cached=result.cached,
        intensity=entry.intensity,
        generated_at=entry.generated_at,
        source=entry.source,
    )


def clear_activities(user_id: str, day: date) -> bool:
    """Invalidate the cached set for (user_id, day); True when something was removed."""
    with bound_user(user_id):
        removed = activity_cache.clear(user_id, day)
    log_metric("activities.cleared", 1 if removed else 0, metadata={"user_id": user_id})
    return removed


def _generate_entry(
    user_id: str,
    day: date,
    context: SchedulingContext,
    recommender: Recommender | None,
) -> CacheEntry:
    window = waking_window_for(context)
    busy = context.all_busy_blocks()
    day_intensity = compute_intensity(busy, window)
    gaps = find_gaps(busy, window, energy_windows_for(context))
    logger.info(
        "Generating activities for %s: %s intensity (%.0f%% busy), %d gaps",
        day,
        day_intensity.level.value,
        day_intensity.ratio * 100,
        len(gaps),
    )

    generated = generate_activities(
        context,
        gaps,
        day_intensity,
        recommender=recommender,
        max_accepted=settings.max_accepted_activities,
    )
    logger.info("Accepted %d %s activities for %s", len(generated.activities), generated.source.value, day)
    return new_entry(user_id, day, generated.activities, day_intensity, generated.source)


def build_reasoning(
    context: SchedulingContext,
    intensity: ScheduleIntensity | None,
    activities: Sequence[Activity],
) -> str:
    """Short human-readable explanation of why the day's set looks the way it does."""
    notes: List[str] = []
    stress = (context.stress_level or "").lower()
    energy = (context.energy_level or "").lower()

    if stress in {"high", "overwhelming"}:
        notes.append("High stress detected - prioritized breathing and calm activities")
    if intensity is not None and intensity.level is IntensityLevel.HIGH:
        notes.append("Busy schedule - focused on short, stress-relieving breaks")
    elif intensity is not None and intensity.level is IntensityLevel.LOW:
        notes.append("Open schedule - room for longer activities")
    if energy in {"low", "very_low"}:
        notes.append("Low energy - selected gentle, restorative activities")
    if context.mood_score is not None and context.mood_score < 5:
        notes.append("Lower mood - included supportive wellness activities")

    counts = Counter(activity.type for activity in activities)
    breakdown = ", ".join(f"{counts[kind]} {kind.value}" for kind in ActivityType)
    notes.append(f"Generated {len(activities)} activities: {breakdown}")
    return ". ".join(notes) + "."
