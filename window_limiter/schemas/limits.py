"""Limit and bucket value types."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Sequence

from window_limiter.core.errors import InvalidBucketNameError, InvalidLimitSpecError

DEFAULT_BUCKET = "default"

_BUCKET_RE = re.compile(r"[A-Za-z0-9-]*")
_LIMIT_RE = re.compile(r"\s*([0-9]+)\s*/\s*([0-9]+)\s*")


def _is_positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


@dataclass(frozen=True)
class Limit:
    """At most ``requests`` events per trailing ``seconds``-second window."""

    requests: int
    seconds: int

    def __post_init__(self) -> None:
        if not _is_positive_int(self.requests) or not _is_positive_int(self.seconds):
            raise InvalidLimitSpecError(
                "Limit requests and seconds must be positive integers.",
                details={"requests": repr(self.requests), "seconds": repr(self.seconds)},
            )

    def __str__(self) -> str:
        return f"{self.requests}/{self.seconds}"

    @classmethod
    def parse(cls, text: str) -> "Limit":
        """Parse the compact ``"<requests>/<seconds>"`` form.

        Examples:
            >>> Limit.parse("10/60")
            Limit(requests=10, seconds=60)
        """

        match = _LIMIT_RE.fullmatch(text)
        if match is None:
            raise InvalidLimitSpecError(
                f"Cannot parse limit {text!r}; expected '<requests>/<seconds>'.",
            )
        return cls(int(match.group(1)), int(match.group(2)))

    @classmethod
    def coerce(cls, value: "Limit | Sequence[int]") -> "Limit":
        """Accept a ``Limit`` or a ``(requests, seconds)`` pair."""

        if isinstance(value, Limit):
            return value
        if isinstance(value, (tuple, list)) and len(value) == 2:
            return cls(value[0], value[1])
        raise InvalidLimitSpecError(
            "Each limit must be a Limit or a (requests, seconds) pair.",
            details={"context": {"value": repr(value)}},
        )


def normalize_bucket(name: str | None) -> str:
    """Return the bucket name, substituting ``"default"`` for empty input.

    Raises:
        InvalidBucketNameError: If the name has characters outside [A-Za-z0-9-].
    """

    if name is None or name == "":
        return DEFAULT_BUCKET
    if not isinstance(name, str) or not _BUCKET_RE.fullmatch(name):
        raise InvalidBucketNameError(str(name))
    return name


def validate_limits(
    limits: Iterable["Limit | Sequence[int]"] | None,
    defaults: Sequence[Limit] = (),
) -> tuple[Limit, ...]:
    """Coerce and validate a limit list, falling back to ``defaults``.

    Raises:
        InvalidLimitSpecError: If no limits remain or an entry is malformed.
    """

    resolved = tuple(Limit.coerce(limit) for limit in (limits or ()))
    if not resolved:
        resolved = tuple(defaults)
    if not resolved:
        raise InvalidLimitSpecError(
            "No explicit or default limits values provided.",
            details={"hint": "Pass limits or set RATE_LIMIT_DEFAULT_LIMITS"},
        )
    return resolved
