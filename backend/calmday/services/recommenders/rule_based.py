"""Deterministic rule-based activity proposals."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import List, Optional, Sequence
from zoneinfo import ZoneInfo

from calmday.services.activity_validator import usable_span
from calmday.services.intervals import (
    energy_window_instances,
    local_span,
    resolve_zone,
    to_local,
    whole_minutes,
)
from calmday.services.micro_steps import DESCRIPTIONS, steps_for, title_for
from calmday.services.recommenders.base import Recommender
from calmday.services.scheduling_types import (
    Activity,
    ActivityPriority,
    ActivitySource,
    ActivityType,
    Gap,
    IntensityLevel,
    ScheduleIntensity,
    SchedulingContext,
    TimeInterval,
    make_activity,
)

logger = logging.getLogger(__name__)

HIGH_STRESS_LEVELS = {"high", "overwhelming"}
LOW_ENERGY_LEVELS = {"low", "very_low"}

MIN_DURATION = {
    ActivityType.BREATHING: 3,
    ActivityType.MOVEMENT: 10,
    ActivityType.MEAL: 20,
    ActivityType.WORKOUT: 20,
}

MEAL_MINUTES = 30
MOVEMENT_MINUTES = 15
BREATHING_MINUTES = 10
WORKOUT_SETUP_MINUTES = 20


@dataclass
class _Slot:
    gap: Gap
    type: ActivityType
    duration: int
    priority: ActivityPriority
    meal_prep: bool = False
    anchor: Optional[datetime] = None


class RuleBasedRecommender(Recommender):
    """Picks activities from gap sizes, schedule intensity, stress and energy."""

    name = "rule_based"

    def __init__(
        self,
        *,
        max_workout_minutes: int = 45,
        day_start: time = time(hour=7),
        day_end: time = time(hour=22),
    ) -> None:
        self.max_workout_minutes = max_workout_minutes
        self.day_start = day_start
        self.day_end = day_end

    def propose(
        self,
        context: SchedulingContext,
        gaps: Sequence[Gap],
        intensity: ScheduleIntensity,
    ) -> List[Activity]:
        zone = resolve_zone(context.timezone)
        stress = (context.stress_level or "").lower()

        if intensity.level is IntensityLevel.HIGH or stress in HIGH_STRESS_LEVELS:
            strategy = "calming"
            slots = self._calming_slots(gaps)
        elif intensity.level is IntensityLevel.MEDIUM:
            strategy = "recharge"
            slots = self._medium_slots(gaps)
        else:
            strategy = "open"
            slots = self._low_slots(gaps, context, zone)

        bounds = local_span(context.date, self.day_start, self.day_end, zone)
        activities = [
            activity
            for activity in (self._build(slot, context, zone, bounds) for slot in slots)
            if activity is not None
        ]
        logger.debug(
            "Rule-based %s strategy: %d slots, %d placeable activities",
            strategy,
            len(slots),
            len(activities),
        )
        return activities

    # ------------------------------------------------------------------
    # Slot selection per intensity tier
    # ------------------------------------------------------------------

    def _calming_slots(self, gaps: Sequence[Gap]) -> List[_Slot]:
        return [
            _Slot(gap, ActivityType.BREATHING, min(gap.minutes, BREATHING_MINUTES), ActivityPriority.HIGH)
            for gap in gaps
            if 5 <= gap.minutes < 20
        ]

    def _medium_slots(self, gaps: Sequence[Gap]) -> List[_Slot]:
        slots: List[_Slot] = []
        used: set[int] = set()
        for index, gap in enumerate(gaps):
            if 30 <= gap.minutes < 60:
                slots.append(_Slot(gap, ActivityType.MEAL, MEAL_MINUTES, ActivityPriority.HIGH))
                used.add(index)
            elif 15 <= gap.minutes < 30:
                slots.append(
                    _Slot(gap, ActivityType.MOVEMENT, min(gap.minutes, MOVEMENT_MINUTES), ActivityPriority.MEDIUM)
                )
                used.add(index)
        for index, gap in enumerate(gaps):
            if index not in used and gap.minutes >= 5:
                slots.append(
                    _Slot(gap, ActivityType.BREATHING, min(gap.minutes, BREATHING_MINUTES), ActivityPriority.LOW)
                )
        return slots

    def _low_slots(self, gaps: Sequence[Gap], context: SchedulingContext, zone: ZoneInfo) -> List[_Slot]:
        allow_workout = (context.energy_level or "").lower() not in LOW_ENERGY_LEVELS
        energy = energy_window_instances(context.date, context.energy_windows, zone)
        slots: List[_Slot] = []
        for gap in gaps:
            if allow_workout and gap.minutes >= 60 and gap.in_energy_window:
                duration = min(gap.minutes - WORKOUT_SETUP_MINUTES, self.max_workout_minutes)
                slots.append(
                    _Slot(
                        gap,
                        ActivityType.WORKOUT,
                        duration,
                        ActivityPriority.HIGH,
                        anchor=_energy_anchor(gap, energy),
                    )
                )
            elif 45 <= gap.minutes < 60:
                slots.append(_Slot(gap, ActivityType.MEAL, MEAL_MINUTES, ActivityPriority.MEDIUM, meal_prep=True))
            elif gap.minutes >= 15:
                slots.append(
                    _Slot(gap, ActivityType.MOVEMENT, min(gap.minutes, MOVEMENT_MINUTES), ActivityPriority.LOW)
                )
        return slots

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    def _build(
        self,
        slot: _Slot,
        context: SchedulingContext,
        zone: ZoneInfo,
        bounds: TimeInterval,
    ) -> Activity | None:
        placed = _place(slot, context, bounds)
        if placed is None:
            logger.debug("No room for %s in %d-minute gap at %s", slot.type.value, slot.gap.minutes, slot.gap.start)
            return None
        start, minutes = placed
        local_start = to_local(start, zone)
        return make_activity(
            id=f"rb-{context.date.isoformat()}-{slot.type.value}-{local_start:%H%M}",
            type=slot.type,
            title=title_for(slot.type, minutes, local_start, meal_prep=slot.meal_prep),
            start=start,
            duration_minutes=minutes,
            micro_steps=steps_for(slot.type, meal_prep=slot.meal_prep),
            priority=slot.priority,
            source=ActivitySource.RULE_BASED,
            description=DESCRIPTIONS[slot.type],
        )


def _energy_anchor(gap: Gap, energy: Sequence[TimeInterval]) -> Optional[datetime]:
    for window in energy:
        if window.overlaps(gap.interval):
            return max(window.start, gap.start)
    return None


def _place(slot: _Slot, context: SchedulingContext, bounds: TimeInterval) -> tuple[datetime, int] | None:
    """Start instant and minutes for a slot inside its buffered gap, or None when it is too tight."""
    span = usable_span(slot.gap, context.buffer_policy)
    if span is None:
        return None
    low = max(span.start, bounds.start)
    high = min(span.end, bounds.end)
    if low >= high:
        return None
    minutes = min(slot.duration, whole_minutes(low, high))
    if minutes < MIN_DURATION[slot.type]:
        return None
    start = low
    if slot.anchor is not None:
        start = max(low, min(slot.anchor, high - timedelta(minutes=minutes)))
    return start, minutes
