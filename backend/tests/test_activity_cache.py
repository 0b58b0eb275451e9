from __future__ import annotations

import threading
import time
from datetime import date

import pytest

from calmday.services.activity_cache import ActivityCache, new_entry
from calmday.services.scheduling_types import ActivitySource

DAY = date(2026, 10, 19)


class _CountingGenerator:
    def __init__(self, block: bool = False):
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()
        self.started = threading.Event()
        self.release = threading.Event()
        if not block:
            self.release.set()

    def __call__(self):
        with self._lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        self.started.set()
        self.release.wait(timeout=5)
        with self._lock:
            self.active -= 1
        return new_entry("user-1", DAY, [], None, ActivitySource.RULE_BASED)


def test_second_call_is_a_cache_hit() -> None:
    cache = ActivityCache()
    generate = _CountingGenerator()

    first = cache.get_or_generate("user-1", DAY, generate)
    second = cache.get_or_generate("user-1", DAY, generate)

    assert generate.calls == 1
    assert first.cached is False
    assert second.cached is True
    assert second.entry is first.entry


def test_force_regenerate_replaces_entry() -> None:
    cache = ActivityCache()
    generate = _CountingGenerator()

    first = cache.get_or_generate("user-1", DAY, generate)
    forced = cache.get_or_generate("user-1", DAY, generate, force_regenerate=True)

    assert generate.calls == 2
    assert forced.cached is False
    assert forced.entry is not first.entry
    assert cache.peek("user-1", DAY) is forced.entry


def test_clear_resets_key() -> None:
    cache = ActivityCache()
    generate = _CountingGenerator()
    cache.get_or_generate("user-1", DAY, generate)

    assert cache.clear("user-1", DAY) is True
    assert cache.clear("user-1", DAY) is False
    assert cache.peek("user-1", DAY) is None

    again = cache.get_or_generate("user-1", DAY, generate)
    assert again.cached is False
    assert generate.calls == 2


def test_keys_are_independent() -> None:
    cache = ActivityCache()
    generate = _CountingGenerator()

    cache.get_or_generate("user-1", DAY, generate)
    cache.get_or_generate("user-2", DAY, generate)
    cache.get_or_generate("user-1", date(2026, 10, 20), generate)

    assert generate.calls == 3
    assert len(cache) == 3


def test_concurrent_callers_share_one_generation() -> None:
    cache = ActivityCache()
    generate = _CountingGenerator(block=True)
    results = []

    def call() -> None:
        results.append(cache.get_or_generate("user-1", DAY, generate))

    threads = [threading.Thread(target=call) for _ in range(6)]
    for thread in threads:
        thread.start()
    assert generate.started.wait(timeout=5)
    time.sleep(0.05)
    generate.release.set()
    for thread in threads:
        thread.join(timeout=5)

    assert generate.calls == 1
    assert len(results) == 6
    assert len({id(result.entry) for result in results}) == 1


def test_failed_generation_resets_key_and_reraises() -> None:
    cache = ActivityCache()

    def explode():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        cache.get_or_generate("user-1", DAY, explode)

    generate = _CountingGenerator()
    result = cache.get_or_generate("user-1", DAY, generate)
    assert result.cached is False
    assert generate.calls == 1


def test_clear_during_generation_discards_result() -> None:
    cache = ActivityCache()
    generate = _CountingGenerator(block=True)
    results = []
    worker = threading.Thread(target=lambda: results.append(cache.get_or_generate("user-1", DAY, generate)))
    worker.start()
    assert generate.started.wait(timeout=5)

    assert cache.clear("user-1", DAY) is True
    generate.release.set()
    worker.join(timeout=5)

    assert results[0].cached is False
    assert cache.peek("user-1", DAY) is None


def test_call_after_clear_waits_for_cleared_generation() -> None:
    cache = ActivityCache()
    generate = _CountingGenerator(block=True)
    results = {}
    first = threading.Thread(target=lambda: results.setdefault("first", cache.get_or_generate("user-1", DAY, generate)))
    first.start()
    assert generate.started.wait(timeout=5)

    assert cache.clear("user-1", DAY) is True
    assert cache.clear("user-1", DAY) is False
    second = threading.Thread(target=lambda: results.setdefault("second", cache.get_or_generate("user-1", DAY, generate)))
    second.start()
    time.sleep(0.05)
    assert generate.calls == 1

    generate.release.set()
    first.join(timeout=5)
    second.join(timeout=5)

    assert generate.calls == 2
    assert generate.max_active == 1
    assert results["second"].cached is False
    assert results["second"].entry is not results["first"].entry
    assert cache.peek("user-1", DAY) is results["second"].entry


def test_returned_activity_lists_are_fresh() -> None:
    cache = ActivityCache()
    result = cache.get_or_generate("user-1", DAY, _CountingGenerator())

    result.activities.append("mutation")

    assert result.activities == []


def test_prune_drops_only_older_dates() -> None:
    cache = ActivityCache()
    generate = _CountingGenerator()
    cache.get_or_generate("user-1", date(2026, 10, 1), generate)
    cache.get_or_generate("user-1", date(2026, 10, 10), generate)

    removed = cache.prune(date(2026, 10, 5))

    assert removed == 1
    assert len(cache) == 1
    assert cache.peek("user-1", date(2026, 10, 10)) is not None
