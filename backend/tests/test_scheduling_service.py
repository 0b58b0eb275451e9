from __future__ import annotations

from datetime import date, datetime, time, timezone

import pytest

from calmday.services import scheduling_service
from calmday.services.activity_cache import ActivityCache
from calmday.services.scheduling_types import (
    Activity,
    ActivityPriority,
    ActivitySource,
    ActivityType,
    EnergyWindow,
    IntensityLevel,
    SchedulingContext,
    SchedulingInputError,
    TimeInterval,
    make_activity,
)

DAY = date(2026, 10, 19)


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 10, 19, hour, minute, tzinfo=timezone.utc)


def _context(**overrides) -> SchedulingContext:
    values = dict(
        date=DAY,
        wake_time=time(7),
        bed_time=time(23),
        energy_windows=(EnergyWindow(time(9), time(12)),),
        existing_events=(TimeInterval(_at(14), _at(15)),),
    )
    values.update(overrides)
    return SchedulingContext(**values)


@pytest.fixture()
def fresh_cache(monkeypatch) -> ActivityCache:
    cache = ActivityCache()
    monkeypatch.setattr(scheduling_service, "activity_cache", cache)
    return cache


def test_generation_is_idempotent_per_user_and_date(fresh_cache) -> None:
    first = scheduling_service.get_or_generate_activities("user-1", DAY, _context())
    second = scheduling_service.get_or_generate_activities("user-1", DAY, _context())

    assert first.cached is False
    assert second.cached is True
    assert [a.id for a in first.activities] == [a.id for a in second.activities]
    assert second.generated_at == first.generated_at
    assert first.intensity.level is IntensityLevel.LOW
    assert first.source is ActivitySource.RULE_BASED


def test_force_regenerate_and_clear(fresh_cache) -> None:
    scheduling_service.get_or_generate_activities("user-1", DAY, _context())

    forced = scheduling_service.get_or_generate_activities("user-1", DAY, _context(), force_regenerate=True)
    assert forced.cached is False

    assert scheduling_service.clear_activities("user-1", DAY) is True
    assert scheduling_service.clear_activities("user-1", DAY) is False
    again = scheduling_service.get_or_generate_activities("user-1", DAY, _context())
    assert again.cached is False


def test_cached_set_ignores_changed_context_until_cleared(fresh_cache) -> None:
    scheduling_service.get_or_generate_activities("user-1", DAY, _context())

    busier = _context(existing_events=(TimeInterval(_at(7), _at(22)),))
    cached = scheduling_service.get_or_generate_activities("user-1", DAY, busier)

    assert cached.cached is True
    assert cached.intensity.level is IntensityLevel.LOW


def test_wake_after_bed_is_rejected(fresh_cache) -> None:
    with pytest.raises(SchedulingInputError):
        scheduling_service.get_or_generate_activities("user-1", DAY, _context(wake_time=time(23), bed_time=time(7)))
    assert len(fresh_cache) == 0


def test_unknown_timezone_is_rejected(fresh_cache) -> None:
    with pytest.raises(SchedulingInputError):
        scheduling_service.get_or_generate_activities("user-1", DAY, _context(timezone="Mars/Olympus"))


def test_date_mismatch_is_rejected(fresh_cache) -> None:
    with pytest.raises(SchedulingInputError):
        scheduling_service.get_or_generate_activities("user-1", date(2026, 10, 20), _context())


def test_waking_window_uses_local_zone() -> None:
    context = _context(date=date(2026, 3, 10), wake_time=time(8), bed_time=time(22), timezone="America/New_York")

    window = scheduling_service.waking_window_for(context)

    assert window.start == datetime(2026, 3, 10, 12, tzinfo=timezone.utc)
    assert window.end == datetime(2026, 3, 11, 2, tzinfo=timezone.utc)


def test_busy_blocks_and_existing_events_are_combined(fresh_cache) -> None:
    context = _context(
        busy_blocks=(TimeInterval(_at(7), _at(13)),),
        existing_events=(TimeInterval(_at(13), _at(20)),),
    )

    result = scheduling_service.get_or_generate_activities("user-1", DAY, context)

    assert result.intensity.busy_minutes == 780
    assert result.intensity.level is IntensityLevel.HIGH


def test_find_gaps_uses_configured_minimum(monkeypatch) -> None:
    window = TimeInterval(_at(8), _at(10))
    blocks = [TimeInterval(_at(8, 8), _at(10))]

    assert scheduling_service.find_gaps(blocks, window) == []
    monkeypatch.setattr(scheduling_service.settings, "min_gap_minutes", 5)
    assert [gap.minutes for gap in scheduling_service.find_gaps(blocks, window)] == [8]


def _activity(activity_type: ActivityType) -> Activity:
    return make_activity(
        id=activity_type.value,
        type=activity_type,
        title=activity_type.value,
        start=_at(10),
        duration_minutes=10,
        micro_steps=("a", "b", "c"),
        priority=ActivityPriority.HIGH,
        source=ActivitySource.RULE_BASED,
    )


def test_reasoning_mentions_stress_and_counts() -> None:
    context = _context(stress_level="high", mood_score=3)
    window = scheduling_service.waking_window_for(context)
    intensity = scheduling_service.compute_intensity([TimeInterval(_at(7), _at(22))], window)

    reasoning = scheduling_service.build_reasoning(
        context,
        intensity,
        [_activity(ActivityType.BREATHING), _activity(ActivityType.BREATHING), _activity(ActivityType.MEAL)],
    )

    assert "High stress detected" in reasoning
    assert "Busy schedule" in reasoning
    assert "Lower mood" in reasoning
    assert "Generated 3 activities: 2 breathing, 0 movement, 1 meal, 0 workout" in reasoning
    assert reasoning.endswith(".")
