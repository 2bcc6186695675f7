"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets the environment before any import that might load settings, so
no .env file is read during tests.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("RATE_LIMIT_STORE_BACKEND", "memory")

import pytest

from window_limiter.adapters.event_store import InMemoryEventStore
from window_limiter.core.config import LimiterSettings
from window_limiter.services.limiter import RateLimiter


class FakeClock:
    """Deterministic clock; ``clock()`` returns the current fake UNIX time."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds

    def at(self, offset: float, start: float = 1_000.0) -> None:
        self.current = start + offset


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryEventStore:
    return InMemoryEventStore(clock=clock)


@pytest.fixture
def make_limiter(store: InMemoryEventStore, clock: FakeClock):
    """Build a RateLimiter over the in-memory store with config overrides."""

    def _make(event_store=None, **overrides) -> RateLimiter:
        values = {"enabled": True, "environments": ["testing"], "environment": "testing"}
        values.update(overrides)
        config = LimiterSettings(**values)
        return RateLimiter(config, event_store or store, clock=clock)

    return _make
