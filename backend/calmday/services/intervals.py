"""Interval algebra and local-clock/UTC conversion for a single calendar day."""
from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Iterable, List, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from calmday.services.scheduling_types import (
    BusyBlock,
    EnergyWindow,
    SchedulingInputError,
    TimeInterval,
)


def resolve_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise SchedulingInputError(f"Unknown timezone '{name}'") from exc


def local_instant(day: date, clock: time, zone: ZoneInfo) -> datetime:
    """Return the UTC instant of `clock` on `day` in `zone`."""
    return datetime.combine(day, clock, tzinfo=zone).astimezone(timezone.utc)


def to_local(instant: datetime, zone: ZoneInfo) -> datetime:
    return instant.astimezone(zone)


def local_span(day: date, start: time, end: time, zone: ZoneInfo) -> TimeInterval:
    """UTC interval for a local start/end clock pair on one day."""
    if start >= end:
        raise SchedulingInputError(f"Start {start.isoformat('minutes')} must precede end {end.isoformat('minutes')}")
    return TimeInterval(local_instant(day, start, zone), local_instant(day, end, zone))


def waking_window(day: date, wake: time, bed: time, zone: ZoneInfo) -> TimeInterval:
    """The interval between wake and bed time; wake must precede bed."""
    if wake >= bed:
        raise SchedulingInputError(
            f"Wake time {wake.isoformat('minutes')} must be earlier than bed time {bed.isoformat('minutes')}"
        )
    return local_span(day, wake, bed, zone)


def energy_window_instances(
    day: date,
    windows: Iterable[EnergyWindow],
    zone: ZoneInfo,
) -> List[TimeInterval]:
    return [local_span(day, window.start, window.end, zone) for window in windows]


def clip_blocks(blocks: Iterable[BusyBlock], window: TimeInterval) -> List[TimeInterval]:
    """Clip blocks to window, dropping those fully outside; sorted by start."""
    clipped = [part for part in (block.clip(window) for block in blocks) if part is not None]
    clipped.sort(key=lambda block: (block.start, block.end))
    return clipped


def union_minutes(blocks: Sequence[TimeInterval]) -> float:
    """Total minutes covered by sorted blocks, counting overlaps once."""
    total = 0.0
    cursor: datetime | None = None
    for block in blocks:
        start = block.start if cursor is None else max(block.start, cursor)
        if cursor is None or block.end > cursor:
            total += (block.end - start).total_seconds() / 60
            cursor = block.end
    return total


def overlaps_any(interval: TimeInterval, others: Iterable[TimeInterval]) -> bool:
    return any(interval.overlaps(other) for other in others)


def whole_minutes(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)
