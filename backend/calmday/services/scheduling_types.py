"""Value objects shared by the scheduling engine."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Optional, Tuple


class SchedulingInputError(ValueError):
    """Raised when an interval, activity or scheduling context is malformed."""


class IntensityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ActivityType(str, Enum):
    BREATHING = "breathing"
    MOVEMENT = "movement"
    MEAL = "meal"
    WORKOUT = "workout"


class ActivityPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort key: lower ranks are considered first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    ActivityPriority.HIGH: 0,
    ActivityPriority.MEDIUM: 1,
    ActivityPriority.LOW: 2,
}


class ActivitySource(str, Enum):
    RECOMMENDER = "recommender"
    RULE_BASED = "rule_based"


def _require_aware(value: datetime, label: str) -> None:
    if not isinstance(value, datetime):
        raise SchedulingInputError(f"{label} must be a datetime, got {type(value).__name__}")
    if value.tzinfo is None or value.utcoffset() is None:
        raise SchedulingInputError(f"{label} must be timezone-aware")


@dataclass(frozen=True)
class TimeInterval:
    """Half-open [start, end) span between two aware instants."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        _require_aware(self.start, "start")
        _require_aware(self.end, "end")
        if self.start >= self.end:
            raise SchedulingInputError(
                f"Interval start must precede end ({self.start.isoformat()} >= {self.end.isoformat()})"
            )

    @property
    def minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60

    def overlaps(self, other: "TimeInterval") -> bool:
        return self.start < other.end and self.end > other.start

    def contains(self, other: "TimeInterval") -> bool:
        return self.start <= other.start and other.end <= self.end

    def clip(self, window: "TimeInterval") -> Optional["TimeInterval"]:
        """Return the part of this interval inside window, or None."""
        start = max(self.start, window.start)
        end = min(self.end, window.end)
        if start >= end:
            return None
        return TimeInterval(start, end)


BusyBlock = TimeInterval


@dataclass(frozen=True)
class EnergyWindow:
    """Recurring daily period of peak energy, in local clock time."""

    start: time
    end: time

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise SchedulingInputError(f"Energy window start {self.start} must precede end {self.end}")


@dataclass(frozen=True)
class SleepSchedule:
    wake: time
    bed: time


@dataclass(frozen=True)
class BufferPolicy:
    before: int = 0
    after: int = 0

    def __post_init__(self) -> None:
        if self.before < 0 or self.after < 0:
            raise SchedulingInputError("Buffer minutes cannot be negative")


@dataclass(frozen=True)
class Gap:
    start: datetime
    end: datetime
    minutes: int
    in_energy_window: bool = False

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.start, self.end)


@dataclass(frozen=True)
class ScheduleIntensity:
    level: IntensityLevel
    ratio: float
    busy_minutes: float
    total_waking_minutes: float


@dataclass(frozen=True)
class Activity:
    id: str
    type: ActivityType
    title: str
    start: datetime
    end: datetime
    duration_minutes: int
    micro_steps: Tuple[str, ...]
    priority: ActivityPriority = ActivityPriority.MEDIUM
    source: ActivitySource = ActivitySource.RULE_BASED
    description: str = ""

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.start, self.end)


def make_activity(
    *,
    id: str,
    type: ActivityType,
    title: str,
    start: datetime,
    duration_minutes: int,
    micro_steps: Tuple[str, ...] | list[str],
    priority: ActivityPriority,
    source: ActivitySource,
    description: str = "",
) -> Activity:
    """Build an Activity whose end is derived from its duration."""
    return Activity(
        id=id,
        type=type,
        title=title,
        start=start,
        end=start + timedelta(minutes=duration_minutes),
        duration_minutes=duration_minutes,
        micro_steps=tuple(micro_steps),
        priority=priority,
        source=source,
        description=description,
    )


@dataclass(frozen=True)
class SchedulingContext:
    date: date
    wake_time: time
    bed_time: time
    timezone: str = "UTC"
    energy_windows: Tuple[EnergyWindow, ...] = ()
    buffer_policy: BufferPolicy = field(default_factory=BufferPolicy)
    mood_score: Optional[float] = None
    energy_level: str = "medium"
    stress_level: str = "medium"
    existing_events: Tuple[BusyBlock, ...] = ()
    busy_blocks: Optional[Tuple[BusyBlock, ...]] = None

    @property
    def sleep_schedule(self) -> SleepSchedule:
        return SleepSchedule(wake=self.wake_time, bed=self.bed_time)

    def all_busy_blocks(self) -> Tuple[BusyBlock, ...]:
        """Busy blocks used for gaps and intensity: union with existing events."""
        if self.busy_blocks is None:
            return tuple(self.existing_events)
        return tuple(self.busy_blocks) + tuple(self.existing_events)


@dataclass(frozen=True)
class CacheEntry:
    user_id: str
    date: date
    activities: Tuple[Activity, ...]
    intensity: Optional[ScheduleIntensity]
    generated_at: datetime
    source: ActivitySource = ActivitySource.RULE_BASED
