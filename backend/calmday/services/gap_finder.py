"""Free-time gap detection inside the waking window."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Sequence

from calmday.services.intervals import clip_blocks, overlaps_any, whole_minutes
from calmday.services.scheduling_types import BusyBlock, Gap, TimeInterval

logger = logging.getLogger(__name__)

DEFAULT_MIN_GAP_MINUTES = 10


def find_gaps(
    busy_blocks: Iterable[BusyBlock],
    waking_window: TimeInterval,
    energy_windows: Sequence[TimeInterval] = (),
    min_gap_minutes: int = DEFAULT_MIN_GAP_MINUTES,
) -> List[Gap]:
    """
    Walk the clipped busy blocks in start order and return the free gaps between them.

    `energy_windows` are the day's energy-window instances as UTC intervals. Overlapping or
    adjacent blocks are absorbed by the running cursor, so a gap length is never negative.
    """
    blocks = clip_blocks(busy_blocks, waking_window)
    gaps: List[Gap] = []
    cursor = waking_window.start

    for block in blocks:
        _maybe_emit(gaps, cursor, block.start, energy_windows, min_gap_minutes)
        cursor = max(cursor, block.end)

    _maybe_emit(gaps, cursor, waking_window.end, energy_windows, min_gap_minutes)

    logger.debug(
        "Found %d gaps (%d blocks clipped, min %d min): %s",
        len(gaps),
        len(blocks),
        min_gap_minutes,
        ", ".join(f"{gap.start:%H:%M}-{gap.end:%H:%M}" for gap in gaps) or "none",
    )
    return gaps


def _maybe_emit(
    gaps: List[Gap],
    start: datetime,
    end: datetime,
    energy_windows: Sequence[TimeInterval],
    min_gap_minutes: int,
) -> None:
    if end <= start:
        return
    minutes = whole_minutes(start, end)
    if minutes < min_gap_minutes:
        return
    in_energy = overlaps_any(TimeInterval(start, end), energy_windows)
    gaps.append(Gap(start=start, end=end, minutes=minutes, in_energy_window=in_energy))
