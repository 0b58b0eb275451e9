"""Recommender interface."""
from __future__ import annotations

from typing import List, Sequence

from calmday.services.scheduling_types import Activity, Gap, ScheduleIntensity, SchedulingContext


class RecommenderError(RuntimeError):
    """A recommender could not produce a usable proposal."""


class Recommender:
    """Base interface for activity recommenders."""

    name = "base"

    def propose(
        self,
        context: SchedulingContext,
        gaps: Sequence[Gap],
        intensity: ScheduleIntensity,
    ) -> List[Activity]:
        raise NotImplementedError
