"""Factory for creating event store instances."""

from __future__ import annotations

import redis

from window_limiter.adapters.event_store.base import AbstractEventStore
from window_limiter.adapters.event_store.in_memory import InMemoryEventStore
from window_limiter.adapters.event_store.redis_store import RedisEventStore
from window_limiter.core.config import StoreSettings
from window_limiter.core.errors import ValidationAppError


def create_event_store(store_settings: StoreSettings) -> AbstractEventStore:
    """Instantiate the configured event store.

    Building a Redis client does not open a connection; connectivity
    problems surface on first use as ``StoreUnavailableError``.

    Args:
        store_settings: Resolved store settings.

    Returns:
        AbstractEventStore: Configured store instance.

    Raises:
        ValidationAppError: If the backend name is unknown.
    """
    backend = store_settings.backend.lower()

    if backend == "redis":
        client = redis.Redis.from_url(
            store_settings.redis_url,
            socket_timeout=store_settings.socket_timeout_seconds,
            socket_connect_timeout=store_settings.connect_timeout_seconds,
        )
        return RedisEventStore(client)

    if backend == "memory":
        return InMemoryEventStore()

    raise ValidationAppError(
        code="unknown_store_backend",
        message=f"Unknown event store backend: '{backend}'. Supported backends: redis, memory",
    )
