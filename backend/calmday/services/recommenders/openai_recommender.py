"""LLM-backed recommender using OpenAI chat completions in JSON mode."""
from __future__ import annotations

import json
import logging
from datetime import datetime, time
from typing import List, Literal, Optional, Sequence
from uuid import uuid4

import openai
from pydantic import BaseModel, Field, ValidationError, field_validator

from calmday.services.activity_validator import usable_span
from calmday.services.intervals import local_instant, resolve_zone, to_local, whole_minutes
from calmday.services.micro_steps import DESCRIPTIONS
from calmday.services.recommenders.base import Recommender, RecommenderError
from calmday.services.scheduling_types import (
    Activity,
    ActivityPriority,
    ActivitySource,
    ActivityType,
    Gap,
    ScheduleIntensity,
    SchedulingContext,
)

logger = logging.getLogger(__name__)


class CandidateActivityPayload(BaseModel):
    """One activity as returned by the model."""

    type: Literal["breathing", "movement", "meal", "workout"]
    title: str = Field(..., min_length=1)
    start_time: time = Field(..., description="Local HH:MM start.")
    end_time: time = Field(..., description="Local HH:MM end.")
    micro_steps: List[str] = Field(..., min_length=3, max_length=5)
    priority: Literal["high", "medium", "low"] = "medium"
    description: Optional[str] = None

    @field_validator("type", "priority", mode="before")
    @classmethod
    def _lowercase(cls, value: object) -> object:
        return value.lower() if isinstance(value, str) else value

    @field_validator("micro_steps")
    @classmethod
    def _non_blank_steps(cls, steps: List[str]) -> List[str]:
        cleaned = [step.strip() for step in steps if step and step.strip()]
        if len(cleaned) < 3:
            raise ValueError("micro_steps needs at least 3 non-empty entries")
        return cleaned


class RecommenderProposal(BaseModel):
    assessment: Optional[str] = None
    activities: List[CandidateActivityPayload] = Field(default_factory=list)


SYSTEM_PROMPT = (
    "You are CalmDay, a scheduling coach for people with ADHD and anxiety. "
    "Place short wellness activities into free gaps of the user's day without touching existing events. "
    "Prefer breathing breaks when the day is packed or stress is high, meals around meal times, "
    "and workouts only in peak-energy gaps of an open day."
)


class OpenAIRecommender(Recommender):
    name = "openai"

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gpt-4o-mini",
        timeout_seconds: float = 15.0,
        client: Optional[openai.OpenAI] = None,
    ) -> None:
        self.model = model
        self.client = client or openai.OpenAI(api_key=api_key, timeout=timeout_seconds, max_retries=0)

    def propose(
        self,
        context: SchedulingContext,
        gaps: Sequence[Gap],
        intensity: ScheduleIntensity,
    ) -> List[Activity]:
        completion = self.client.chat.completions.create(
            model=self.model,
            response_format={"type": "json_object"},
            temperature=0.6,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(context, gaps, intensity)},
            ],
        )
        content = completion.choices[0].message.content or ""
        proposal = parse_proposal(content)
        if proposal.assessment:
            logger.info("Recommender assessment: %s", proposal.assessment[:200])
        return [to_activity(item, context) for item in proposal.activities]


def parse_proposal(content: str) -> RecommenderProposal:
    """Parse model output, tolerating markdown code fences."""
    text = content.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise RecommenderError(f"Recommender returned non-JSON content: {exc}") from exc
    if isinstance(payload, list):
        payload = {"activities": payload}
    try:
        return RecommenderProposal.model_validate(payload)
    except ValidationError as exc:
        raise RecommenderError(f"Recommender returned an invalid proposal: {exc.error_count()} errors") from exc


def to_activity(item: CandidateActivityPayload, context: SchedulingContext) -> Activity:
    zone = resolve_zone(context.timezone)
    start = local_instant(context.date, item.start_time, zone)
    end = local_instant(context.date, item.end_time, zone)
    activity_type = ActivityType(item.type)
    return Activity(
        id=f"ai-{uuid4().hex[:12]}",
        type=activity_type,
        title=item.title.strip(),
        start=start,
        end=end,
        duration_minutes=max(whole_minutes(start, end), 0),
        micro_steps=tuple(item.micro_steps),
        priority=ActivityPriority(item.priority),
        source=ActivitySource.RECOMMENDER,
        description=item.description or DESCRIPTIONS[activity_type],
    )


def build_prompt(context: SchedulingContext, gaps: Sequence[Gap], intensity: ScheduleIntensity) -> str:
    zone = resolve_zone(context.timezone)
    gap_lines = []
    for index, gap in enumerate(gaps):
        span = usable_span(gap, context.buffer_policy)
        if span is None:
            continue
        usable_start = to_local(span.start, zone)
        usable_end = to_local(span.end, zone)
        peak = " (PEAK ENERGY)" if gap.in_energy_window else ""
        gap_lines.append(
            f"- gap {index}: usable {_clock(usable_start)}-{_clock(usable_end)} "
            f"({whole_minutes(span.start, span.end)} min){peak}"
        )
    busy_lines = [
        f"- {_clock(to_local(event.start, zone))}-{_clock(to_local(event.end, zone))}"
        for event in context.existing_events[:15]
    ]
    energy = ", ".join(
        f"{window.start.strftime('%H:%M')}-{window.end.strftime('%H:%M')}" for window in context.energy_windows
    )
    mood = f"{context.mood_score}/10" if context.mood_score is not None else "unknown"
    return (
        f"Date: {context.date.isoformat()} ({context.timezone})\n"
        f"Schedule intensity: {intensity.level.value} ({round(intensity.ratio * 100)}% of "
        f"{round(intensity.total_waking_minutes)} waking minutes busy)\n"
        f"Mood: {mood}, energy: {context.energy_level}, stress: {context.stress_level}\n"
        f"Energy windows: {energy or 'not set'}\n"
        f"Existing events (never overlap these):\n{chr(10).join(busy_lines) or '- none'}\n"
        f"Usable gaps (schedule only inside these):\n{chr(10).join(gap_lines) or '- none'}\n"
        "Schedule activities between 07:00 and 22:00 local time.\n"
        "Return a JSON object with keys 'assessment' (one sentence) and 'activities'. "
        "Each activity needs 'type' (breathing, movement, meal or workout), 'title', "
        "'start_time' and 'end_time' (local HH:MM), 'priority' (high, medium or low), "
        "'description', and 'micro_steps' (3-5 short, concrete steps). Propose at most 6 activities."
    )


def _clock(value: datetime) -> str:
    return value.strftime("%H:%M")
