"""Outcome types returned by ``RateLimiter.check_and_record``."""

from __future__ import annotations

from dataclasses import dataclass

from window_limiter.schemas.limits import Limit

EXCEEDED_MESSAGE = (
    "Rate limit exceeded ({requests} requests in {seconds} seconds). "
    "Try again in {try_again} seconds."
)


@dataclass(frozen=True)
class QuotaEntry:
    """Quota metadata for one limit of a bucket.

    Attributes:
        label: Position of the limit ("1", "2", ...) or None for a single-limit bucket.
        limit: Configured maximum requests.
        remaining: Requests left in the window (never negative).
        reset: Seconds until the oldest event in the window ages out.
    """

    label: str | None
    limit: int
    remaining: int
    reset: int


@dataclass(frozen=True)
class Admitted:
    """The request was admitted and recorded as an event."""

    bucket: str
    identity: str
    quotas: tuple[QuotaEntry, ...] = ()

    allowed = True


@dataclass(frozen=True)
class Exceeded:
    """The request was denied; no event was recorded.

    Attributes:
        limit: The violated limit with the longest window.
        retry_after: Seconds until that limit frees one unit of capacity.
    """

    bucket: str
    identity: str
    limit: Limit
    retry_after: int
    quotas: tuple[QuotaEntry, ...] = ()

    allowed = False

    @property
    def locals(self) -> dict[str, int]:
        """Values available to error templates."""

        return {
            "requests": self.limit.requests,
            "seconds": self.limit.seconds,
            "try_again": self.retry_after,
        }

    @property
    def message(self) -> str:
        return EXCEEDED_MESSAGE.format(**self.locals)


Outcome = Admitted | Exceeded
