"""Sliding-window accounting.

A window of length ``w`` evaluated at ``now`` contains every event with
``timestamp > now - w``. ``WindowSnapshot`` holds the timestamps of the
longest window read in one store round trip so every limit of a call is
evaluated against the same state.
"""

from __future__ import annotations

import bisect
import math
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from window_limiter.adapters.event_store.base import AbstractEventStore, EventKey
from window_limiter.schemas.limits import Limit


def reset_seconds_for(limit: Limit, oldest: float | None, now: float) -> int:
    """Seconds until ``oldest`` leaves ``limit``'s window, in ``[0, limit.seconds]``."""

    if oldest is None:
        return 0
    reset = math.floor(limit.seconds - (now - oldest))
    return min(max(reset, 0), limit.seconds)


@dataclass(frozen=True)
class WindowUsage:
    """Usage of one limit's trailing window.

    Attributes:
        count: Events inside the window.
        oldest: Earliest event inside the window, if any.
        remaining: ``requests - count``; negative when already over.
        reset_seconds: Seconds until ``oldest`` ages out (0 without events).
    """

    count: int
    oldest: float | None
    remaining: int
    reset_seconds: int


@dataclass(frozen=True)
class WindowSnapshot:
    """Ascending event timestamps observed at ``now``."""

    now: float
    timestamps: tuple[float, ...] = ()

    def usage(self, limit: Limit) -> WindowUsage:
        start = bisect.bisect_right(self.timestamps, self.now - limit.seconds)
        in_window = self.timestamps[start:]
        oldest = in_window[0] if in_window else None
        return WindowUsage(
            count=len(in_window),
            oldest=oldest,
            remaining=limit.requests - len(in_window),
            reset_seconds=reset_seconds_for(limit, oldest, self.now),
        )

    def with_event(self, timestamp: float) -> "WindowSnapshot":
        """Return a snapshot that also contains a just-recorded event."""

        timestamps = list(self.timestamps)
        bisect.insort(timestamps, timestamp)
        return WindowSnapshot(now=self.now, timestamps=tuple(timestamps))


def longest_window(limits: Iterable[Limit]) -> int:
    return max(limit.seconds for limit in limits)


class WindowAccountant:
    """Computes window usage for (identity, bucket) histories in a store."""

    def __init__(
        self,
        store: AbstractEventStore,
        namespace: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._namespace = namespace
        self._clock = clock

    def key(self, identity: str, bucket: str) -> EventKey:
        return EventKey(namespace=self._namespace, identity=identity, bucket=bucket)

    def remaining(self, limit: Limit, identity: str, bucket: str) -> int:
        """Requests left in ``limit``'s window; negative when already over."""

        now = self._clock()
        counted = self._store.count_events(self.key(identity, bucket), now - limit.seconds)
        return limit.requests - counted.count

    def reset_seconds(self, limit: Limit, identity: str, bucket: str) -> int:
        """Seconds until the oldest event in ``limit``'s window ages out."""

        now = self._clock()
        counted = self._store.count_events(self.key(identity, bucket), now - limit.seconds)
        return reset_seconds_for(limit, counted.oldest, now)

    def snapshot(
        self,
        identity: str,
        bucket: str,
        limits: Sequence[Limit],
        now: float | None = None,
    ) -> WindowSnapshot:
        """Read the longest window of ``limits`` in one store call."""

        now = self._clock() if now is None else now
        timestamps = self._store.fetch_events(
            self.key(identity, bucket), now - longest_window(limits)
        )
        return WindowSnapshot(now=now, timestamps=tuple(timestamps))
