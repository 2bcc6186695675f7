"""Event store adapter layer - abstracts over the shared store.

Redis is the production store; the in-memory store serves tests and
single-worker deployments behind the same interface.
"""

from window_limiter.adapters.event_store.base import (
    AbstractEventStore,
    AtomicRecord,
    EventCount,
    EventKey,
)
from window_limiter.adapters.event_store.factory import create_event_store
from window_limiter.adapters.event_store.in_memory import InMemoryEventStore
from window_limiter.adapters.event_store.redis_store import RedisEventStore

__all__ = [
    "AbstractEventStore",
    "AtomicRecord",
    "EventCount",
    "EventKey",
    "InMemoryEventStore",
    "RedisEventStore",
    "create_event_store",
]
