"""Constraint filter for proposed activities."""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

from calmday.services.intervals import overlaps_any
from calmday.services.scheduling_types import (
    Activity,
    BufferPolicy,
    BusyBlock,
    Gap,
    SchedulingInputError,
    TimeInterval,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_ACCEPTED = 4

# (minimum gap minutes, buffer minutes), checked top-down.
ADAPTIVE_BUFFER_TABLE: Tuple[Tuple[int, int], ...] = (
    (120, 15),
    (60, 10),
    (30, 5),
    (0, 2),
)


def adaptive_buffer(gap_minutes: int) -> int:
    for threshold, buffer in ADAPTIVE_BUFFER_TABLE:
        if gap_minutes >= threshold:
            return buffer
    return ADAPTIVE_BUFFER_TABLE[-1][1]


def effective_buffers(gap: Gap, policy: BufferPolicy) -> Tuple[int, int]:
    """(before, after) padding for a gap: the adaptive value or the user's, whichever is larger."""
    adaptive = adaptive_buffer(gap.minutes)
    return max(adaptive, policy.before), max(adaptive, policy.after)


def usable_span(gap: Gap, policy: BufferPolicy) -> Optional[TimeInterval]:
    """The part of a gap an activity may occupy once buffers are applied."""
    before, after = effective_buffers(gap, policy)
    start = gap.start + timedelta(minutes=before)
    end = gap.end - timedelta(minutes=after)
    if start >= end:
        return None
    return TimeInterval(start, end)


def fits_some_gap(interval: TimeInterval, gaps: Iterable[Gap], policy: BufferPolicy) -> bool:
    for gap in gaps:
        span = usable_span(gap, policy)
        if span is not None and span.contains(interval):
            return True
    return False


def validate_activities(
    candidates: Sequence[Activity],
    gaps: Sequence[Gap],
    existing_events: Sequence[BusyBlock],
    *,
    day_bounds: TimeInterval,
    buffer_policy: BufferPolicy | None = None,
    max_accepted: int = DEFAULT_MAX_ACCEPTED,
) -> List[Activity]:
    """
    Accept candidates in priority order until max_accepted is reached.

    A candidate is kept only if it sits inside `day_bounds`, fits a gap after buffers, and
    collides with neither an existing event nor an activity accepted earlier in this pass.
    Rejected candidates are logged and skipped. Malformed candidates raise
    SchedulingInputError before any filtering happens.
    """
    policy = buffer_policy or BufferPolicy()
    for candidate in candidates:
        _check_well_formed(candidate)

    ordered = sorted(enumerate(candidates), key=lambda item: (item[1].priority.rank, item[0]))
    accepted: List[Activity] = []
    accepted_intervals: List[TimeInterval] = []

    for _, candidate in ordered:
        if len(accepted) >= max_accepted:
            logger.debug("Reached max of %d accepted activities", max_accepted)
            break

        interval = candidate.interval
        reason = _rejection_reason(interval, gaps, existing_events, accepted_intervals, day_bounds, policy)
        if reason:
            logger.debug(
                "Rejected %s '%s' %s-%s: %s",
                candidate.type.value,
                candidate.title,
                candidate.start.isoformat(),
                candidate.end.isoformat(),
                reason,
            )
            continue

        accepted.append(candidate)
        accepted_intervals.append(interval)

    logger.debug("Accepted %d of %d candidates", len(accepted), len(candidates))
    return accepted


def _rejection_reason(
    interval: TimeInterval,
    gaps: Sequence[Gap],
    existing_events: Sequence[BusyBlock],
    accepted: Sequence[TimeInterval],
    day_bounds: TimeInterval,
    policy: BufferPolicy,
) -> str | None:
    if interval.start < day_bounds.start or interval.end > day_bounds.end:
        return "outside allowed time of day"
    if not fits_some_gap(interval, gaps, policy):
        return "does not fit any gap with buffers"
    if overlaps_any(interval, existing_events):
        return "overlaps an existing event"
    if overlaps_any(interval, accepted):
        return "overlaps an accepted activity"
    return None


def _check_well_formed(candidate: Activity) -> None:
    if candidate.start is None or candidate.end is None:
        raise SchedulingInputError(f"Activity '{candidate.title}' is missing start or end")
    if not candidate.title or not candidate.title.strip():
        raise SchedulingInputError("Activity is missing a title")
    if not candidate.micro_steps:
        raise SchedulingInputError(f"Activity '{candidate.title}' has no micro-steps")
    TimeInterval(candidate.start, candidate.end)  # raises on naive or inverted times
