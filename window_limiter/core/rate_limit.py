"""Rate limiting dependency for FastAPI routes.

This module wires the limiter engine into the HTTP layer. The engine itself
knows nothing about FastAPI; this adapter owns everything request-shaped:

- Convenience argument forms (``rate_limit("api", 2, 5, 100, 3600)``)
- Enabled/environment switch
- Quota and Retry-After response headers
- The fail-open/fail-closed choice when the store is unavailable

Usage:
    @router.get("/items", dependencies=[Depends(rate_limit("items", (10, 60)))])
    async def list_items(): ...
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

from fastapi import FastAPI, Request, Response
from fastapi.concurrency import run_in_threadpool

from window_limiter.adapters.event_store import create_event_store
from window_limiter.core.config import LimiterSettings, get_settings
from window_limiter.core.errors import (
    InvalidLimitSpecError,
    RateLimitExceededError,
    StoreUnavailableError,
)
from window_limiter.core.exception_handlers import setup_exception_handlers
from window_limiter.schemas.limits import Limit, normalize_bucket
from window_limiter.schemas.options import RateLimitOptions
from window_limiter.schemas.outcome import Admitted, Exceeded, Outcome
from window_limiter.services.identity import hash_identity
from window_limiter.services.limiter import RateLimiter
from window_limiter.services.quota import quota_headers

logger = logging.getLogger(__name__)


_limiter: RateLimiter | None = None
_limiter_config: tuple[LimiterSettings, Any] | None = None


def get_rate_limiter() -> RateLimiter:
    """Return a process-wide limiter built from the cached settings.

    The instance is cached in-module. If the cached settings are reloaded
    (``get_settings.cache_clear()``, primarily in tests), the limiter is rebuilt.

    Returns:
        RateLimiter: Configured limiter instance.
    """

    global _limiter, _limiter_config

    settings = get_settings()
    config = (settings.limiter, settings.store)

    if _limiter is None or _limiter_config != config:
        _limiter = RateLimiter(settings.limiter, create_event_store(settings.store))
        _limiter_config = config

    return _limiter


def install_rate_limiter(
    app: FastAPI, limiter: RateLimiter | None = None, *, catch_all: bool = False
) -> RateLimiter:
    """Attach a limiter to ``app`` and register the error handlers.

    Args:
        app: FastAPI application.
        limiter: Limiter to use; defaults to ``get_rate_limiter()``.
        catch_all: Also install the generic 500 handler for ``Exception``.

    Returns:
        The installed limiter.
    """

    installed = limiter or get_rate_limiter()
    app.state.rate_limiter = installed
    setup_exception_handlers(app, catch_all=catch_all)
    return installed


def _limiter_for(request: Request) -> RateLimiter:
    limiter = getattr(request.app.state, "rate_limiter", None)
    return limiter if limiter is not None else get_rate_limiter()


def parse_limit_args(args: Sequence[Any]) -> tuple[str, tuple[Limit, ...]]:
    """Split convenience arguments into a bucket name and limits.

    Accepted forms (after an optional leading bucket name):
    ``Limit`` objects, ``(requests, seconds)`` pairs, or a flat even-length
    run of integers ``requests, seconds, requests, seconds, ...``.
    No limits means "use the configured defaults".

    Raises:
        InvalidBucketNameError: If the bucket name is malformed.
        InvalidLimitSpecError: If the remaining arguments are malformed.
    """

    values = list(args)
    bucket = normalize_bucket(values.pop(0) if values and isinstance(values[0], str) else None)

    if all(isinstance(value, (Limit, tuple, list)) for value in values):
        return bucket, tuple(Limit.coerce(value) for value in values)

    if any(not isinstance(value, int) or isinstance(value, bool) for value in values):
        raise InvalidLimitSpecError(
            "All parameters must be integers except the first, which may be a bucket name.",
        )
    if len(values) % 2:
        raise InvalidLimitSpecError("Wrong number of integer parameters supplied.")
    return bucket, tuple(Limit(values[i], values[i + 1]) for i in range(0, len(values), 2))


def _headers_for(outcome: Outcome, limiter: RateLimiter, options: RateLimitOptions) -> dict[str, str]:
    if not limiter.config.send_headers:
        return {}
    prefix = options.header_prefix or limiter.config.header_prefix
    headers = quota_headers(outcome.quotas, outcome.bucket, prefix)
    if isinstance(outcome, Exceeded):
        headers["Retry-After"] = str(outcome.retry_after)
    return headers


def _on_store_unavailable(
    exc: StoreUnavailableError, limiter: RateLimiter, bucket: str, limits: Sequence[Limit]
) -> None:
    policy = limiter.config.store_failure_policy
    logger.error(
        "rate_limit.store_unavailable",
        extra={"bucket": bucket, "policy": policy, "reason": (exc.details or {}).get("reason")},
    )
    if policy == "open":
        return
    if policy == "closed":
        longest = max(limits, key=lambda limit: limit.seconds)
        outcome = Exceeded(bucket=bucket, identity="", limit=longest, retry_after=longest.seconds)
        headers = {"Retry-After": str(longest.seconds)} if limiter.config.send_headers else {}
        raise RateLimitExceededError(outcome, headers) from exc
    raise exc


def rate_limit(*args: Any, **options: Any) -> Callable[..., Any]:
    """Build a FastAPI dependency enforcing limits on a bucket.

    Arguments are parsed once, when the route is declared, so malformed
    buckets or limits fail at import time rather than per request.

    Args:
        *args: Optional bucket name followed by limits (see ``parse_limit_args``).
        **options: ``RateLimitOptions`` fields (send_quota_metadata,
            header_prefix, identifier).

    Returns:
        An async dependency returning the outcome (or None when inactive).

    Raises:
        RateLimitExceededError: From the dependency, when a limit is exceeded.
    """

    bucket, limits = parse_limit_args(args)
    call_options = RateLimitOptions(**options)

    async def dependency(request: Request, response: Response) -> Outcome | None:
        limiter = _limiter_for(request)
        if not limiter.active:
            return None

        try:
            outcome = await run_in_threadpool(
                limiter.check_and_record,
                bucket,
                limits,
                request=request,
                options=call_options,
            )
        except StoreUnavailableError as exc:
            _on_store_unavailable(exc, limiter, bucket, limits or limiter.config.default_limits)
            return None

        headers = _headers_for(outcome, limiter, call_options)
        if isinstance(outcome, Admitted):
            response.headers.update(headers)
            return outcome

        logger.info(
            "rate_limit.rejected",
            extra={
                "bucket": outcome.bucket,
                "identity_hash": hash_identity(outcome.identity),
                "path": request.url.path,
                "retry_after_s": outcome.retry_after,
            },
        )
        raise RateLimitExceededError(outcome, headers)

    return dependency
