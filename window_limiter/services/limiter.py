"""Rate limiter facade: check, then record or report.

This is the single entry point used per request. It ties together bucket
and limit validation, identity resolution, window accounting, the admit/deny
decision, event recording, and quota reporting.

Consistency:
- Evaluation always sees state without the current request's event.
- With a store that supports atomic check-and-record (Redis, in-memory) and
  ``atomic`` enabled, check and record happen in one store operation and
  limits are exact across processes.
- Otherwise check and record are two store calls. Concurrent requests for
  the same identity and bucket may then over-admit by up to the number of
  in-flight requests minus one. This is a soft limit.

Store failures propagate as ``StoreUnavailableError``; the limiter never
turns them into an admit or a deny.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable, Sequence

from window_limiter.adapters.event_store.base import AbstractEventStore
from window_limiter.core.config import LimiterSettings
from window_limiter.core.errors import InvalidLimitSpecError
from window_limiter.schemas.limits import Limit, normalize_bucket, validate_limits
from window_limiter.schemas.options import DEFAULT_OPTIONS, RateLimitOptions
from window_limiter.schemas.outcome import Admitted, Exceeded, Outcome, QuotaEntry
from window_limiter.services.evaluator import Admit, Decision, Deny, evaluate
from window_limiter.services.identity import hash_identity, resolve_identity
from window_limiter.services.quota import build_quota_table
from window_limiter.services.window import (
    WindowAccountant,
    WindowSnapshot,
    longest_window,
)

logger = logging.getLogger(__name__)

LimitsArg = Iterable["Limit | Sequence[int]"] | None


class RateLimiter:
    """Sliding-log rate limiter over a shared event store.

    The instance holds no mutable state besides its store reference and is
    safe to share between threads.
    """

    def __init__(
        self,
        config: LimiterSettings,
        store: AbstractEventStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            config: Explicit limiter configuration.
            store: Shared event store.
            clock: Time source returning UNIX time in seconds.
        """
        self._config = config
        self._store = store
        self._clock = clock
        self._accountant = WindowAccountant(store, config.namespace, clock)

    @property
    def config(self) -> LimiterSettings:
        return self._config

    @property
    def accountant(self) -> WindowAccountant:
        return self._accountant

    @property
    def active(self) -> bool:
        """Whether enforcement is enabled for the configured environment."""

        return self._config.active

    def _prepare(self, bucket: str | None, limits: LimitsArg) -> tuple[str, tuple[Limit, ...]]:
        name = normalize_bucket(bucket)
        resolved = validate_limits(limits, self._config.default_limits)
        longest = longest_window(resolved)
        if longest >= self._config.retention_seconds:
            raise InvalidLimitSpecError(
                "Limit window must be shorter than the event retention.",
                details={
                    "seconds": longest,
                    "retention_seconds": self._config.retention_seconds,
                },
            )
        return name, resolved

    def _identity(self, identity: str | None, request: Any, options: RateLimitOptions) -> str:
        if identity is not None:
            return identity
        return resolve_identity(request, options.identifier or self._config.identifier)

    def check_and_record(
        self,
        bucket: str | None,
        limits: LimitsArg = None,
        identity: str | None = None,
        *,
        request: Any = None,
        options: RateLimitOptions | None = None,
    ) -> Outcome:
        """Check every limit of ``bucket`` and record the request if admitted.

        Each call records at most one event.

        Args:
            bucket: Bucket name; empty or None means ``"default"``.
            limits: Ordered limits (``Limit`` or ``(requests, seconds)``);
                falls back to the configured default limits.
            identity: Client identity. Resolved from ``request`` when omitted.
            request: Request context used for identity resolution.
            options: Per-call options.

        Returns:
            ``Admitted`` or ``Exceeded``, each with the quota table for all
            limits (empty when quota metadata is disabled).

        Raises:
            InvalidBucketNameError: Before any store access.
            InvalidLimitSpecError: Before any store access.
            StoreUnavailableError: If the store fails or times out.
        """
        options = options or DEFAULT_OPTIONS
        name, resolved = self._prepare(bucket, limits)
        who = self._identity(identity, request, options)

        now = self._clock()
        if self._config.atomic and self._store.supports_atomic:
            decision, snapshot = self._check_and_record_atomic(who, name, resolved, now)
        else:
            decision, snapshot = self._check_then_record(who, name, resolved, now)

        quotas: tuple[QuotaEntry, ...] = ()
        if options.send_quota_metadata:
            quotas = build_quota_table(resolved, snapshot)

        if isinstance(decision, Deny):
            logger.warning(
                "rate_limit.exceeded",
                extra={
                    "bucket": name,
                    "identity_hash": hash_identity(who),
                    "limit": str(decision.limit),
                    "retry_after_s": decision.retry_after,
                },
            )
            return Exceeded(
                bucket=name,
                identity=who,
                limit=decision.limit,
                retry_after=decision.retry_after,
                quotas=quotas,
            )

        logger.debug(
            "rate_limit.admitted",
            extra={"bucket": name, "identity_hash": hash_identity(who), "limits": len(resolved)},
        )
        return Admitted(bucket=name, identity=who, quotas=quotas)

    def _check_then_record(
        self, identity: str, bucket: str, limits: Sequence[Limit], now: float
    ) -> tuple[Decision, WindowSnapshot]:
        snapshot = self._accountant.snapshot(identity, bucket, limits, now)
        decision = evaluate(limits, snapshot)
        if isinstance(decision, Admit):
            self._store.record_event(
                self._accountant.key(identity, bucket), now, self._config.retention_seconds
            )
            snapshot = snapshot.with_event(now)
        return decision, snapshot

    def _check_and_record_atomic(
        self, identity: str, bucket: str, limits: Sequence[Limit], now: float
    ) -> tuple[Decision, WindowSnapshot]:
        record = self._store.record_if_under_limit(
            self._accountant.key(identity, bucket),
            now,
            self._config.retention_seconds,
            [(limit.requests, now - limit.seconds) for limit in limits],
        )
        snapshot = WindowSnapshot(now=now, timestamps=record.timestamps)
        if record.recorded:
            return Admit(), snapshot

        decision = evaluate(limits, snapshot)
        if isinstance(decision, Admit):
            # Store refused but its returned range shows room; report the longest window.
            longest = max(limits, key=lambda limit: limit.seconds)
            decision = Deny(limit=longest, retry_after=snapshot.usage(longest).reset_seconds)
        return decision, snapshot

    def quota(
        self,
        bucket: str | None,
        limits: LimitsArg = None,
        identity: str | None = None,
        *,
        request: Any = None,
        options: RateLimitOptions | None = None,
    ) -> tuple[QuotaEntry, ...]:
        """Report the quota table without recording an event."""

        options = options or DEFAULT_OPTIONS
        name, resolved = self._prepare(bucket, limits)
        who = self._identity(identity, request, options)
        snapshot = self._accountant.snapshot(who, name, resolved)
        return build_quota_table(resolved, snapshot)
