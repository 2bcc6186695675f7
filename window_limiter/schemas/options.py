"""Per-call options for ``RateLimiter.check_and_record``."""

from __future__ import annotations

from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field


class RateLimitOptions(BaseModel):
    """Recognized per-call options. Unknown fields are rejected."""

    send_quota_metadata: bool = Field(
        True,
        description="Compute the per-limit quota table for response headers",
    )
    header_prefix: str | None = Field(
        None,
        description="Header prefix override, consumed by the HTTP integration",
    )
    identifier: Callable[[Any], str | None] | None = Field(
        None,
        description="Identity resolver overriding the configured one for this call",
    )

    model_config = ConfigDict(frozen=True, extra="forbid")


DEFAULT_OPTIONS = RateLimitOptions()
