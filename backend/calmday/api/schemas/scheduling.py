"""Schemas for the scheduling and activity endpoints."""
# No postponed annotations here: the `date` fields would otherwise resolve to themselves.
from datetime import date, datetime, time, timezone
from typing import List, Literal, Optional

from pydantic import AwareDatetime, BaseModel, Field, field_validator, model_validator

from calmday.services.scheduling_types import (
    Activity,
    BufferPolicy,
    EnergyWindow,
    Gap,
    ScheduleIntensity,
    SchedulingContext,
    TimeInterval,
)


class IntervalPayload(BaseModel):
    start: AwareDatetime
    end: AwareDatetime

    @model_validator(mode="after")
    def check_order(self) -> "IntervalPayload":
        if self.start >= self.end:
            raise ValueError("start must be before end")
        return self

    def to_interval(self) -> TimeInterval:
        return TimeInterval(self.start.astimezone(timezone.utc), self.end.astimezone(timezone.utc))


class EnergyWindowPayload(BaseModel):
    start: time = Field(..., description="Local HH:MM")
    end: time = Field(..., description="Local HH:MM")

    @model_validator(mode="after")
    def check_order(self) -> "EnergyWindowPayload":
        if self.start >= self.end:
            raise ValueError("energy window start must be before end")
        return self


class BufferPolicyPayload(BaseModel):
    before: int = Field(default=0, ge=0, le=120)
    after: int = Field(default=0, ge=0, le=120)


class DayRequest(BaseModel):
    date: date
    wake_time: time = Field(..., description="Local HH:MM")
    bed_time: time = Field(..., description="Local HH:MM")
    timezone: Optional[str] = Field(default=None, description="IANA zone; defaults to the server setting")
    busy_blocks: List[IntervalPayload] = Field(default_factory=list)
    energy_windows: List[EnergyWindowPayload] = Field(default_factory=list)


class GapsRequest(DayRequest):
    min_gap_minutes: Optional[int] = Field(default=None, ge=1, le=240)


class GenerateActivitiesRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=128)
    date: date
    wake_time: time = Field(..., description="Local HH:MM")
    bed_time: time = Field(..., description="Local HH:MM")
    timezone: Optional[str] = None
    existing_events: List[IntervalPayload] = Field(default_factory=list)
    busy_blocks: Optional[List[IntervalPayload]] = None
    energy_windows: List[EnergyWindowPayload] = Field(default_factory=list)
    buffer_policy: BufferPolicyPayload = Field(default_factory=BufferPolicyPayload)
    mood_score: Optional[float] = Field(default=None, ge=0, le=10)
    energy_level: str = "medium"
    stress_level: str = "medium"
    force_regenerate: bool = False

    @field_validator("energy_level", "stress_level")
    @classmethod
    def normalize_level(cls, value: str) -> str:
        return value.strip().lower()

    def to_context(self, default_timezone: str) -> SchedulingContext:
        return SchedulingContext(
            date=self.date,
            wake_time=self.wake_time,
            bed_time=self.bed_time,
            timezone=self.timezone or default_timezone,
            energy_windows=tuple(EnergyWindow(start=w.start, end=w.end) for w in self.energy_windows),
            buffer_policy=BufferPolicy(before=self.buffer_policy.before, after=self.buffer_policy.after),
            mood_score=self.mood_score,
            energy_level=self.energy_level,
            stress_level=self.stress_level,
            existing_events=tuple(event.to_interval() for event in self.existing_events),
            busy_blocks=(
                tuple(block.to_interval() for block in self.busy_blocks) if self.busy_blocks is not None else None
            ),
        )


class ClearActivitiesRequest(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=128)
    date: date


class IntensityPayload(BaseModel):
    level: Literal["low", "medium", "high"]
    ratio: float
    busy_minutes: float
    total_waking_minutes: float

    @classmethod
    def from_intensity(cls, intensity: ScheduleIntensity) -> "IntensityPayload":
        return cls(
            level=intensity.level.value,
            ratio=round(intensity.ratio, 4),
            busy_minutes=intensity.busy_minutes,
            total_waking_minutes=intensity.total_waking_minutes,
        )


class GapPayload(BaseModel):
    start: datetime
    end: datetime
    minutes: int
    in_energy_window: bool

    @classmethod
    def from_gap(cls, gap: Gap) -> "GapPayload":
        return cls(start=gap.start, end=gap.end, minutes=gap.minutes, in_energy_window=gap.in_energy_window)


class ActivityPayload(BaseModel):
    id: str
    type: Literal["breathing", "movement", "meal", "workout"]
    title: str
    start: datetime
    end: datetime
    duration_minutes: int
    micro_steps: List[str]
    priority: Literal["high", "medium", "low"]
    source: Literal["recommender", "rule_based"]
    description: str = ""

    @classmethod
    def from_activity(cls, activity: Activity) -> "ActivityPayload":
        return cls(
            id=activity.id,
            type=activity.type.value,
            title=activity.title,
            start=activity.start,
            end=activity.end,
            duration_minutes=activity.duration_minutes,
            micro_steps=list(activity.micro_steps),
            priority=activity.priority.value,
            source=activity.source.value,
            description=activity.description,
        )


class ScheduleIntensityResponse(IntensityPayload):
    date: date
    request_id: str


class GapsResponse(BaseModel):
    date: date
    gaps: List[GapPayload]
    request_id: str


class GenerateActivitiesResponse(BaseModel):
    user_id: str
    date: date
    activities: List[ActivityPayload]
    cached: bool
    source: Literal["recommender", "rule_based"]
    generated_at: datetime
    intensity: Optional[IntensityPayload] = None
    reasoning: str
    request_id: str


class ClearActivitiesResponse(BaseModel):
    user_id: str
    date: date
    cleared: bool
    request_id: str
