"""In-memory sliding-log event store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state, which also makes
  ``record_if_under_limit`` atomic within the process.
- Events expire lazily once their TTL has elapsed.
"""

from __future__ import annotations

import bisect
import threading
import time
from typing import Callable, Sequence

from window_limiter.adapters.event_store.base import (
    AbstractEventStore,
    AtomicRecord,
    EventKey,
)


class InMemoryEventStore(AbstractEventStore):
    """Event store keeping sorted timestamps per key in process memory.

    Important:
        This store is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    supports_atomic = True

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the store.

        Args:
            clock: Time source used to expire events.
        """
        self._clock = clock
        self._lock = threading.RLock()
        # key -> parallel ascending lists of timestamps and expiry times
        self._events: dict[EventKey, list[float]] = {}
        self._expiry: dict[EventKey, list[float]] = {}

    def _purge_expired_locked(self, key: EventKey) -> list[float]:
        timestamps = self._events.get(key)
        if timestamps is None:
            return []
        expiry = self._expiry[key]
        now = self._clock()
        live = [i for i, expires_at in enumerate(expiry) if expires_at > now]
        if len(live) != len(expiry):
            timestamps[:] = [timestamps[i] for i in live]
            expiry[:] = [expiry[i] for i in live]
        if not timestamps:
            del self._events[key]
            del self._expiry[key]
            return []
        return timestamps

    def _insert_locked(self, key: EventKey, timestamp: float, ttl: int) -> None:
        timestamps = self._events.setdefault(key, [])
        expiry = self._expiry.setdefault(key, [])
        index = bisect.bisect_right(timestamps, timestamp)
        timestamps.insert(index, timestamp)
        expiry.insert(index, self._clock() + ttl)

    def _since_locked(self, key: EventKey, since: float) -> list[float]:
        timestamps = self._purge_expired_locked(key)
        return timestamps[bisect.bisect_right(timestamps, since):]

    def record_event(self, key: EventKey, timestamp: float, ttl: int) -> None:
        with self._lock:
            self._insert_locked(key, timestamp, ttl)

    def fetch_events(self, key: EventKey, since: float) -> list[float]:
        with self._lock:
            return list(self._since_locked(key, since))

    def record_if_under_limit(
        self,
        key: EventKey,
        timestamp: float,
        ttl: int,
        thresholds: Sequence[tuple[int, float]],
    ) -> AtomicRecord:
        widest = min(since for _, since in thresholds)
        with self._lock:
            for requests, since in thresholds:
                if len(self._since_locked(key, since)) >= requests:
                    return AtomicRecord(
                        recorded=False,
                        timestamps=tuple(self._since_locked(key, widest)),
                    )
            self._insert_locked(key, timestamp, ttl)
            return AtomicRecord(recorded=True, timestamps=tuple(self._since_locked(key, widest)))

    def clear(self) -> None:
        """Remove all events."""

        with self._lock:
            self._events.clear()
            self._expiry.clear()
