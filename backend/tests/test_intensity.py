from __future__ import annotations

from datetime import datetime, timezone

import pytest

from calmday.services.intensity import classify_intensity, classify_ratio
from calmday.services.scheduling_types import IntensityLevel, SchedulingInputError, TimeInterval


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 10, 19, hour, minute, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "ratio, expected",
    [
        (0.71, IntensityLevel.HIGH),
        (0.70, IntensityLevel.MEDIUM),
        (0.41, IntensityLevel.MEDIUM),
        (0.40, IntensityLevel.LOW),
        (0.0, IntensityLevel.LOW),
        (1.0, IntensityLevel.HIGH),
    ],
)
def test_classify_ratio_thresholds(ratio: float, expected: IntensityLevel) -> None:
    assert classify_ratio(ratio) is expected


def test_medium_day() -> None:
    window = TimeInterval(_at(8), _at(22))
    blocks = [
        TimeInterval(_at(9), _at(12)),
        TimeInterval(_at(13), _at(17)),
        TimeInterval(_at(18), _at(19)),
    ]

    intensity = classify_intensity(blocks, window)

    assert intensity.level is IntensityLevel.MEDIUM
    assert intensity.busy_minutes == 480
    assert intensity.total_waking_minutes == 840
    assert intensity.ratio == pytest.approx(0.571, abs=1e-3)


def test_low_day() -> None:
    window = TimeInterval(_at(7), _at(23))

    intensity = classify_intensity([TimeInterval(_at(14), _at(15))], window)

    assert intensity.level is IntensityLevel.LOW
    assert intensity.ratio == pytest.approx(0.0625)


def test_overlapping_blocks_count_once() -> None:
    window = TimeInterval(_at(8), _at(22))
    blocks = [TimeInterval(_at(9), _at(11)), TimeInterval(_at(10), _at(12))]

    assert classify_intensity(blocks, window).busy_minutes == 180


def test_busy_time_is_clipped_to_waking_window() -> None:
    window = TimeInterval(_at(8), _at(22))
    blocks = [TimeInterval(_at(6), _at(9)), TimeInterval(_at(21), _at(23))]

    assert classify_intensity(blocks, window).busy_minutes == 120


def test_more_busy_time_never_lowers_level() -> None:
    window = TimeInterval(_at(8), _at(22))
    order = [IntensityLevel.LOW, IntensityLevel.MEDIUM, IntensityLevel.HIGH]
    previous = IntensityLevel.LOW
    for end_hour in range(9, 23):
        level = classify_intensity([TimeInterval(_at(8), _at(end_hour))], window).level
        assert order.index(level) >= order.index(previous)
        previous = level
    assert previous is IntensityLevel.HIGH


def test_inverted_interval_is_rejected() -> None:
    with pytest.raises(SchedulingInputError):
        TimeInterval(_at(12), _at(11))


def test_naive_interval_is_rejected() -> None:
    with pytest.raises(SchedulingInputError):
        TimeInterval(datetime(2026, 10, 19, 8), datetime(2026, 10, 19, 9))
