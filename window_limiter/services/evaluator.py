"""Admit/deny decision over all limits of a bucket."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from window_limiter.schemas.limits import Limit
from window_limiter.services.window import WindowSnapshot


@dataclass(frozen=True)
class Admit:
    """Every limit has at least one request left."""


@dataclass(frozen=True)
class Deny:
    """At least one limit is exhausted.

    Attributes:
        limit: The violated limit with the longest window.
        retry_after: Seconds until that limit frees one unit of capacity.
    """

    limit: Limit
    retry_after: int


Decision = Admit | Deny


def evaluate(limits: Sequence[Limit], snapshot: WindowSnapshot) -> Decision:
    """Decide whether a request may be admitted.

    The snapshot must not contain the event for the request being decided.
    When several limits are violated, the one with the largest ``seconds``
    wins (the first configured among equals), since it recovers slowest.

    Args:
        limits: Ordered limits of the bucket.
        snapshot: Window state covering the longest limit.

    Returns:
        Admit, or Deny carrying the selected limit and its retry-after.
    """
    violated: tuple[Limit, int] | None = None
    for limit in limits:
        usage = snapshot.usage(limit)
        if usage.remaining >= 1:
            continue
        if violated is None or limit.seconds > violated[0].seconds:
            violated = (limit, usage.reset_seconds)

    if violated is None:
        return Admit()
    return Deny(limit=violated[0], retry_after=violated[1])
