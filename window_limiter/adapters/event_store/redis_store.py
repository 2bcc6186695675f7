"""Redis-backed sliding-log event store.

Each (namespace, identity, bucket) history is one sorted set named
``namespace/identity/bucket``. Members are ``"<timestamp>:<nonce>"`` scored
by the timestamp, so windows are exact ``ZCOUNT``/``ZRANGEBYSCORE`` range
queries instead of key scans.

Retention: the sorted set's TTL is refreshed to the retention on every
write, and members older than the retention are pruned in the same
transaction. An event therefore lives exactly as long as the retention.
"""

from __future__ import annotations

import logging
import secrets
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

import redis

from window_limiter.adapters.event_store.base import (
    AbstractEventStore,
    AtomicRecord,
    EventCount,
    EventKey,
)
from window_limiter.adapters.event_store.redis_lua import RECORD_IF_UNDER_LIMIT_SCRIPT
from window_limiter.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


def _score(value: float) -> str:
    # repr round-trips floats exactly through Redis' double parser
    return repr(float(value))


def _member(timestamp: float) -> str:
    return f"{_score(timestamp)}:{secrets.token_hex(4)}"


@contextmanager
def _store_errors(operation: str, key: EventKey) -> Iterator[None]:
    """Translate redis-py availability failures into ``StoreUnavailableError``.

    ``redis.ResponseError`` (wrong key type, script error) propagates unchanged
    and is never subject to the store failure policy.
    """

    try:
        yield
    except redis.TimeoutError as exc:
        logger.warning(
            "event_store.unavailable",
            extra={"operation": operation, "reason": "timeout", "bucket": key.bucket},
        )
        raise StoreUnavailableError(
            "timeout",
            f"Event store timed out during {operation}",
            details={"backend": "redis"},
        ) from exc
    except redis.ConnectionError as exc:
        logger.error(
            "event_store.unavailable",
            extra={"operation": operation, "reason": "connection_error", "bucket": key.bucket},
        )
        raise StoreUnavailableError(
            "connection_error",
            f"Event store connection failed during {operation}",
            details={"backend": "redis"},
        ) from exc
    except redis.ResponseError:
        # Not an outage
        raise
    except redis.RedisError as exc:
        logger.error(
            "event_store.unavailable",
            extra={
                "operation": operation,
                "reason": "redis_error",
                "bucket": key.bucket,
                "error_type": type(exc).__name__,
            },
        )
        raise StoreUnavailableError(
            "redis_error",
            f"Event store error during {operation}",
            details={"backend": "redis"},
        ) from exc


class RedisEventStore(AbstractEventStore):
    """Distributed event store using Redis sorted sets.

    ``record_if_under_limit`` runs as a single Lua script, so admission is
    exact across processes when the limiter is configured to use it.
    """

    supports_atomic = True

    def __init__(self, client: redis.Redis) -> None:
        """Initialize the store.

        Args:
            client: Synchronous redis-py client. Timeouts configured on the
                client surface as ``StoreUnavailableError``.
        """
        self._redis = client
        self._record_script = client.register_script(RECORD_IF_UNDER_LIMIT_SCRIPT)

    def record_event(self, key: EventKey, timestamp: float, ttl: int) -> None:
        name = str(key)
        with _store_errors("record_event", key):
            pipe = self._redis.pipeline(transaction=True)
            pipe.zremrangebyscore(name, "-inf", _score(timestamp - ttl))
            pipe.zadd(name, {_member(timestamp): timestamp})
            pipe.expire(name, ttl)
            pipe.execute()

    def fetch_events(self, key: EventKey, since: float) -> list[float]:
        with _store_errors("fetch_events", key):
            rows = self._redis.zrangebyscore(str(key), f"({_score(since)}", "+inf", withscores=True)
        return [float(score) for _, score in rows]

    def count_events(self, key: EventKey, since: float) -> EventCount:
        name = str(key)
        lower = f"({_score(since)}"
        with _store_errors("count_events", key):
            pipe = self._redis.pipeline(transaction=False)
            pipe.zcount(name, lower, "+inf")
            pipe.zrangebyscore(name, lower, "+inf", start=0, num=1, withscores=True)
            count, first = pipe.execute()
        if not count:
            return EventCount(count=0)
        return EventCount(count=int(count), oldest=float(first[0][1]))

    def record_if_under_limit(
        self,
        key: EventKey,
        timestamp: float,
        ttl: int,
        thresholds: Sequence[tuple[int, float]],
    ) -> AtomicRecord:
        widest = min(since for _, since in thresholds)
        args: list[Any] = [
            _score(timestamp),
            _member(timestamp),
            ttl,
            _score(timestamp - ttl),
            _score(widest),
        ]
        for requests, since in thresholds:
            args.extend((requests, _score(since)))

        with _store_errors("record_if_under_limit", key):
            recorded, flat = self._record_script(keys=[str(key)], args=args)

        # WITHSCORES inside Lua yields a flat [member, score, ...] list
        timestamps = tuple(float(score) for score in flat[1::2])
        return AtomicRecord(recorded=bool(int(recorded)), timestamps=timestamps)
