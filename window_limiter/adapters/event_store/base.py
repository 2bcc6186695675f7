"""Event store interfaces.

The limiter depends on this abstraction (not the concrete implementation)
so the shared store can be Redis in production and an in-process store in
tests or single-worker deployments.

Events are addressed by ``EventKey`` (namespace, identity, bucket) and carry
a float UNIX timestamp. All counts are derived from stored events; nothing
else is persisted.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class EventKey:
    """Composite address of one (namespace, identity, bucket) event history."""

    namespace: str
    identity: str
    bucket: str

    def __str__(self) -> str:
        return "/".join((self.namespace, self.identity, self.bucket))


@dataclass(frozen=True)
class EventCount:
    """Result of ``count_events``.

    Attributes:
        count: Events with timestamp strictly greater than ``since``.
        oldest: Earliest qualifying timestamp, or None when count is 0.
    """

    count: int
    oldest: float | None = None


@dataclass(frozen=True)
class AtomicRecord:
    """Result of ``record_if_under_limit``.

    Attributes:
        recorded: Whether the event was written.
        timestamps: Ascending timestamps after the widest threshold, as seen
            by the atomic operation (including the new event when recorded).
    """

    recorded: bool
    timestamps: tuple[float, ...]


class AbstractEventStore(ABC):
    """Interface for shared event stores."""

    supports_atomic: bool = False

    @abstractmethod
    def record_event(self, key: EventKey, timestamp: float, ttl: int) -> None:
        """Store one event that expires after ``ttl`` seconds.

        Raises:
            StoreUnavailableError: If the store cannot be reached.
        """
        raise NotImplementedError

    @abstractmethod
    def fetch_events(self, key: EventKey, since: float) -> list[float]:
        """Return ascending timestamps strictly greater than ``since``.

        Raises:
            StoreUnavailableError: If the store cannot be reached.
        """
        raise NotImplementedError

    def count_events(self, key: EventKey, since: float) -> EventCount:
        """Count events strictly newer than ``since`` and report the oldest.

        Implementations backed by a network store should override this with
        a cheaper server-side count.
        """
        timestamps = self.fetch_events(key, since)
        return EventCount(count=len(timestamps), oldest=timestamps[0] if timestamps else None)

    def record_if_under_limit(
        self,
        key: EventKey,
        timestamp: float,
        ttl: int,
        thresholds: Sequence[tuple[int, float]],
    ) -> AtomicRecord:
        """Atomically record the event only if every threshold has room.

        Args:
            key: Event history to check and write.
            timestamp: Timestamp of the new event.
            ttl: Event lifetime in seconds.
            thresholds: ``(requests, since)`` pairs; the event is written only
                if fewer than ``requests`` events are newer than ``since`` for
                every pair.

        Raises:
            NotImplementedError: If the store has no atomic primitive.
            StoreUnavailableError: If the store cannot be reached.
        """
        raise NotImplementedError(f"{type(self).__name__} has no atomic check-and-record")
