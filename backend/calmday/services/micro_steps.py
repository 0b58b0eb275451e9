"""Titles, descriptions and micro-step templates for generated activities."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, Tuple

from calmday.services.scheduling_types import ActivityType

MICRO_STEPS: Dict[str, Tuple[str, ...]] = {
    "breathing": (
        "Find a quiet, comfortable spot",
        "Put on headphones if you have them",
        "Breathe in for 4, hold for 4, out for 4, hold for 4",
        "Repeat until the timer ends",
    ),
    "movement": (
        "Stand up and stretch your arms overhead",
        "Take a 10-minute walk",
        "Fill your water bottle",
        "Return and roll your shoulders",
    ),
    "meal": (
        "Get ingredients from the fridge",
        "Prepare the meal (15 min max)",
        "Eat slowly away from screens",
        "Clean up quickly (5 min)",
    ),
    "meal_prep": (
        "Pick two recipes for the next few days",
        "Chop vegetables and portion proteins",
        "Cook one batch while cleaning as you go",
        "Pack portions into labelled containers",
    ),
    "workout": (
        "Change into workout clothes",
        "Set up your workout space",
        "Warm up for 5 minutes",
        "Do your main workout routine",
        "Cool down and stretch",
    ),
}

DESCRIPTIONS: Dict[ActivityType, str] = {
    ActivityType.BREATHING: "Calm your nervous system with guided breathing",
    ActivityType.MOVEMENT: "Quick movement to reset energy",
    ActivityType.MEAL: "Time to nourish your body",
    ActivityType.WORKOUT: "Full workout during a peak energy window",
}


def steps_for(activity_type: ActivityType, *, meal_prep: bool = False) -> Tuple[str, ...]:
    if activity_type is ActivityType.MEAL and meal_prep:
        return MICRO_STEPS["meal_prep"]
    return MICRO_STEPS[activity_type.value]


def meal_label(local_start: datetime) -> str:
    """Breakfast, lunch, dinner or snack by local hour."""
    hour = local_start.hour
    if 6 <= hour < 10:
        return "Breakfast"
    if 11 <= hour < 14:
        return "Lunch"
    if 17 <= hour < 21:
        return "Dinner"
    return "Snack"


def title_for(activity_type: ActivityType, duration_minutes: int, local_start: datetime, *, meal_prep: bool = False) -> str:
    if activity_type is ActivityType.BREATHING:
        return f"Breathing Break ({duration_minutes} min)"
    if activity_type is ActivityType.MOVEMENT:
        return f"Movement Break ({duration_minutes} min)"
    if activity_type is ActivityType.WORKOUT:
        return f"Workout ({duration_minutes} min)"
    if meal_prep:
        return f"Meal Prep ({duration_minutes} min)"
    return f"{meal_label(local_start)} ({duration_minutes} min)"
