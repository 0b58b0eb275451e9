"""Candidate generation: external recommender with a deterministic rule-based fallback."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from datetime import time
from typing import List, Optional, Sequence

from calmday.core.config import settings
from calmday.observability.metrics import log_metric
from calmday.services.activity_validator import DEFAULT_MAX_ACCEPTED, validate_activities
from calmday.services.intervals import local_span, resolve_zone
from calmday.services.recommenders.base import Recommender, RecommenderError
from calmday.services.recommenders.rule_based import RuleBasedRecommender
from calmday.services.scheduling_types import (
    Activity,
    ActivitySource,
    Gap,
    ScheduleIntensity,
    SchedulingContext,
    TimeInterval,
)

logger = logging.getLogger(__name__)

_recommender_pool = ThreadPoolExecutor(
    max_workers=settings.recommender_max_workers,
    thread_name_prefix="recommender",
)


@dataclass
class GeneratedActivities:
    activities: List[Activity]
    source: ActivitySource
    fallback_reason: Optional[str] = None


def day_bounds_for(
    context: SchedulingContext,
    day_start: time | None = None,
    day_end: time | None = None,
) -> TimeInterval:
    """UTC interval for the local clock span activities may occupy."""
    zone = resolve_zone(context.timezone)
    return local_span(
        context.date,
        day_start or settings.activity_day_start,
        day_end or settings.activity_day_end,
        zone,
    )


def generate_activities(
    context: SchedulingContext,
    gaps: Sequence[Gap],
    intensity: ScheduleIntensity,
    *,
    recommender: Recommender | None = None,
    timeout_seconds: float | None = None,
    max_accepted: int = DEFAULT_MAX_ACCEPTED,
) -> GeneratedActivities:
    """
    Propose and validate the day's activities.

    A supplied recommender runs first under a timeout; any failure, timeout or empty
    proposal switches to the rule-based path. Both paths pass the same validator.
    """
    bounds = day_bounds_for(context)
    fallback_reason: Optional[str] = None

    if recommender is not None:
        timeout = settings.recommender_timeout_seconds if timeout_seconds is None else timeout_seconds
        try:
            accepted = _run_recommender(recommender, context, gaps, intensity, bounds, timeout, max_accepted)
            log_metric("activities.recommender.accepted", len(accepted), metadata={"recommender": recommender.name})
            return GeneratedActivities(activities=accepted, source=ActivitySource.RECOMMENDER)
        except FuturesTimeoutError:
            fallback_reason = f"timed out after {timeout:g}s"
        except Exception as exc:
            fallback_reason = f"{type(exc).__name__}: {exc}"
        logger.warning("Recommender %s failed (%s); using rule-based activities", recommender.name, fallback_reason)
        log_metric("activities.recommender.fallback", 1, metadata={"recommender": recommender.name})

    rule_based = RuleBasedRecommender(
        max_workout_minutes=settings.max_workout_minutes,
        day_start=settings.activity_day_start,
        day_end=settings.activity_day_end,
    )
    candidates = rule_based.propose(context, gaps, intensity)
    accepted = validate_activities(
        candidates,
        gaps,
        context.existing_events,
        day_bounds=bounds,
        buffer_policy=context.buffer_policy,
        max_accepted=max_accepted,
    )
    return GeneratedActivities(activities=accepted, source=ActivitySource.RULE_BASED, fallback_reason=fallback_reason)


def _run_recommender(
    recommender: Recommender,
    context: SchedulingContext,
    gaps: Sequence[Gap],
    intensity: ScheduleIntensity,
    bounds: TimeInterval,
    timeout: float,
    max_accepted: int,
) -> List[Activity]:
    future = _recommender_pool.submit(recommender.propose, context, gaps, intensity)
    try:
        candidates = future.result(timeout=timeout)
    except FuturesTimeoutError:
        if not future.cancel():
            logger.warning(
                "Recommender %s still running after %gs; its worker thread stays busy until the call returns",
                recommender.name,
                timeout,
            )
        raise

    if not isinstance(candidates, (list, tuple)) or not all(isinstance(item, Activity) for item in candidates):
        raise RecommenderError("Recommender returned something other than a list of activities")
    if not candidates:
        raise RecommenderError("Recommender proposed no activities")

    return validate_activities(
        list(candidates),
        gaps,
        context.existing_events,
        day_bounds=bounds,
        buffer_policy=context.buffer_policy,
        max_accepted=max_accepted,
    )
