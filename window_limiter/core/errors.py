"""Limiter exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and HTTP responses.

Validation errors are raised before any store access. Store errors are
never converted into an admit or deny decision by the engine; the
integrating caller picks the fail-open/fail-closed policy.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NotRequired, TypedDict

if TYPE_CHECKING:
    from window_limiter.schemas.outcome import Exceeded


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    bucket: str
    requests: Any
    seconds: Any
    retention_seconds: int
    reason: str
    backend: str
    retry_after: int
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for limiter failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class InvalidBucketNameError(ValidationAppError, ValueError):
    """Bucket name contains characters outside ``[A-Za-z0-9-]``."""

    def __init__(self, bucket: str) -> None:
        super().__init__(
            code="invalid_bucket_name",
            message="Bucket name must contain only a-z, A-Z, 0-9, and -.",
            details={"bucket": bucket},
        )


class InvalidLimitSpecError(ValidationAppError, ValueError):
    """Limits are missing or malformed."""

    def __init__(self, message: str, details: ErrorDetails | None = None) -> None:
        super().__init__(code="invalid_limit_spec", message=message, details=details)


class StoreUnavailableError(AppError):
    """The shared event store failed or timed out.

    The original store exception is chained as ``__cause__``.
    """

    def __init__(self, reason: str, message: str, details: ErrorDetails | None = None) -> None:
        merged: ErrorDetails = {"reason": reason}
        if details:
            merged.update(details)
        super().__init__(code="store_unavailable", message=message, details=merged)


class RateLimitExceededError(AppError):
    """Carries an ``Exceeded`` outcome from the HTTP dependency to its handler.

    Attributes:
        outcome: The denial decision.
        headers: Response headers to attach (quota headers and Retry-After).
    """

    def __init__(self, outcome: "Exceeded", headers: dict[str, str] | None = None) -> None:
        self.outcome = outcome
        self.headers = headers or {}
        super().__init__(
            code="rate_limit_exceeded",
            message=outcome.message,
            details={
                "bucket": outcome.bucket,
                "requests": outcome.limit.requests,
                "seconds": outcome.limit.seconds,
                "retry_after": outcome.retry_after,
            },
        )
