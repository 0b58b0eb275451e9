"""Per-(user, date) activity cache with single-flight generation."""
from __future__ import annotations

import logging
from concurrent.futures import Future, wait
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from threading import Lock
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from calmday.services.scheduling_types import Activity, ActivitySource, CacheEntry, ScheduleIntensity

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, date]


@dataclass(frozen=True)
class _Generating:
    future: "Future[CacheEntry]"
    # Set by clear(): the result will be discarded and new callers wait, then start over.
    stale: bool = False


@dataclass(frozen=True)
class _Cached:
    entry: CacheEntry


_KeyState = Union[_Generating, _Cached]


@dataclass
class CacheResult:
    entry: CacheEntry
    cached: bool

    @property
    def activities(self) -> List[Activity]:
        return list(self.entry.activities)


class ActivityCache:
    """
    Process-wide map of (user_id, date) to Empty | Generating | Cached.

    Each key has its own lock, held only while that key's state is read or swapped; the
    generation itself runs outside every lock. A caller that finds a key Generating
    waits on that generation's future instead of starting another one, so at most one
    generation per key is ever in flight.
    """

    def __init__(self) -> None:
        self._registry_lock = Lock()
        self._key_locks: Dict[CacheKey, Lock] = {}
        self._states: Dict[CacheKey, _KeyState] = {}

    def get_or_generate(
        self,
        user_id: str,
        day: date,
        generate_fn: Callable[[], CacheEntry],
        *,
        force_regenerate: bool = False,
    ) -> CacheResult:
        key = (user_id, day)
        while True:
            in_flight: Optional["Future[CacheEntry]"] = None
            superseded: Optional["Future[CacheEntry]"] = None
            future: "Future[CacheEntry]" = Future()

            with self._locked(key):
                state = self._states.get(key)
                if force_regenerate and isinstance(state, _Cached):
                    logger.info("Forced regeneration for %s on %s", user_id, day)
                    del self._states[key]
                    state = None
                if isinstance(state, _Cached):
                    logger.debug("Cache hit for %s on %s", user_id, day)
                    return CacheResult(entry=state.entry, cached=True)
                if isinstance(state, _Generating) and state.stale:
                    superseded = state.future
                elif isinstance(state, _Generating):
                    in_flight = state.future
                else:
                    self._states[key] = _Generating(future)

            if superseded is None:
                break
            logger.debug("Waiting for cleared generation for %s on %s to finish", user_id, day)
            wait([superseded])
            # Anything cached from here on was generated after the clear.
            force_regenerate = False

        if in_flight is not None:
            logger.debug("Joining in-flight generation for %s on %s", user_id, day)
            return CacheResult(entry=in_flight.result(), cached=False)

        return CacheResult(entry=self._generate(key, future, generate_fn), cached=False)

    def clear(self, user_id: str, day: date) -> bool:
        """
        Reset the key to Empty.

        An in-flight generation is marked stale instead: it still completes and its waiters
        receive the result, but it is not stored, and callers arriving meanwhile wait for it
        before generating afresh.
        """
        key = (user_id, day)
        with self._locked(key):
            state = self._states.get(key)
            if isinstance(state, _Generating):
                removed = not state.stale
                self._states[key] = _Generating(state.future, stale=True)
            else:
                removed = self._states.pop(key, None) is not None
        if removed:
            logger.info("Cleared cached activities for %s on %s", user_id, day)
        return removed

    def peek(self, user_id: str, day: date) -> CacheEntry | None:
        with self._locked((user_id, day)):
            state = self._states.get((user_id, day))
        return state.entry if isinstance(state, _Cached) else None

    def prune(self, before: date) -> int:
        """Drop cached entries for dates earlier than `before`; returns how many."""
        with self._registry_lock:
            stale = [key for key in self._key_locks if key[1] < before]
        removed = 0
        for key in stale:
            with self._locked(key):
                if isinstance(self._states.get(key), _Cached):
                    del self._states[key]
                    removed += 1
                if key not in self._states:
                    with self._registry_lock:
                        del self._key_locks[key]
        if removed:
            logger.info("Pruned %d cached activity sets older than %s", removed, before)
        return removed

    def keys(self) -> Iterable[CacheKey]:
        with self._registry_lock:
            return [key for key in self._key_locks if key in self._states]

    def __len__(self) -> int:
        return len(list(self.keys()))

    @contextmanager
    def _locked(self, key: CacheKey) -> Iterator[None]:
        # prune() may retire a key's lock; re-fetch until the held lock is the registered one.
        while True:
            with self._registry_lock:
                lock = self._key_locks.get(key)
                if lock is None:
                    lock = self._key_locks[key] = Lock()
            lock.acquire()
            with self._registry_lock:
                current = self._key_locks.get(key)
            if current is lock:
                break
            lock.release()
        try:
            yield
        finally:
            lock.release()

    def _generate(
        self,
        key: CacheKey,
        future: "Future[CacheEntry]",
        generate_fn: Callable[[], CacheEntry],
    ) -> CacheEntry:
        try:
            entry = generate_fn()
        except BaseException as exc:
            with self._locked(key):
                if self._owns(key, future):
                    del self._states[key]
            future.set_exception(exc)
            raise

        with self._locked(key):
            owned = self._owns(key, future)
            if owned and not self._states[key].stale:
                self._states[key] = _Cached(entry)
            else:
                logger.info("Discarding activities for %s on %s: key was cleared during generation", *key)
                if owned:
                    del self._states[key]
        future.set_result(entry)
        return entry

    def _owns(self, key: CacheKey, future: "Future[CacheEntry]") -> bool:
        state = self._states.get(key)
        return isinstance(state, _Generating) and state.future is future


def new_entry(
    user_id: str,
    day: date,
    activities: Iterable[Activity],
    intensity: ScheduleIntensity | None,
    source: ActivitySource,
) -> CacheEntry:
    return CacheEntry(
        user_id=user_id,
        date=day,
        activities=tuple(activities),
        intensity=intensity,
        generated_at=datetime.now(timezone.utc),
        source=source,
    )
