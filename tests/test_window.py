"""Tests for sliding-window accounting."""

import pytest

from window_limiter.adapters.event_store import EventKey
from window_limiter.schemas.limits import Limit
from window_limiter.services.window import (
    WindowAccountant,
    WindowSnapshot,
    reset_seconds_for,
)


class TestWindowSnapshot:
    def test_usage_counts_events_strictly_inside_window(self) -> None:
        snapshot = WindowSnapshot(now=1005.0, timestamps=(1000.0, 1001.0, 1004.0))

        usage = snapshot.usage(Limit(5, 5))

        # 1000.0 is exactly 5 seconds old and no longer counts
        assert usage.count == 2
        assert usage.oldest == 1001.0
        assert usage.remaining == 3
        assert usage.reset_seconds == 1

    def test_empty_window_is_fully_available(self) -> None:
        usage = WindowSnapshot(now=1000.0).usage(Limit(3, 60))

        assert usage.count == 0
        assert usage.oldest is None
        assert usage.remaining == 3
        assert usage.reset_seconds == 0

    def test_remaining_may_be_negative(self) -> None:
        snapshot = WindowSnapshot(now=1000.0, timestamps=(999.0, 999.5, 999.9))

        assert snapshot.usage(Limit(1, 10)).remaining == -2

    def test_with_event_keeps_order(self) -> None:
        snapshot = WindowSnapshot(now=1000.0, timestamps=(998.0, 999.0))

        updated = snapshot.with_event(998.5)

        assert updated.timestamps == (998.0, 998.5, 999.0)
        assert snapshot.timestamps == (998.0, 999.0)


class TestResetSeconds:
    def test_rounds_down(self) -> None:
        assert reset_seconds_for(Limit(2, 5), 1000.0, 1002.4) == 2

    def test_just_recorded_event_resets_full_window(self) -> None:
        assert reset_seconds_for(Limit(2, 5), 1000.0, 1000.0) == 5

    def test_clamped_to_window(self) -> None:
        # Clock skew between writers must not escape [0, seconds]
        assert reset_seconds_for(Limit(2, 5), 1010.0, 1000.0) == 5
        assert reset_seconds_for(Limit(2, 5), 900.0, 1000.0) == 0

    def test_decreases_as_time_passes(self) -> None:
        limit = Limit(1, 60)
        resets = [reset_seconds_for(limit, 1000.0, 1000.0 + t) for t in (0, 10, 30, 59.5)]

        assert resets == [60, 50, 30, 0]
        assert all(0 <= r <= limit.seconds for r in resets)


class TestWindowAccountant:
    @pytest.fixture
    def accountant(self, store, clock) -> WindowAccountant:
        return WindowAccountant(store, "rate_limit", clock)

    def test_key_layout(self, accountant: WindowAccountant) -> None:
        key = accountant.key("1.2.3.4", "api")

        assert key == EventKey("rate_limit", "1.2.3.4", "api")
        assert str(key) == "rate_limit/1.2.3.4/api"

    def test_remaining_and_reset_from_store(self, accountant, store, clock) -> None:
        key = accountant.key("1.2.3.4", "api")
        store.record_event(key, 1000.0, ttl=3600)
        store.record_event(key, 1001.0, ttl=3600)
        clock.at(2)

        limit = Limit(2, 5)
        assert accountant.remaining(limit, "1.2.3.4", "api") == 0
        assert accountant.reset_seconds(limit, "1.2.3.4", "api") == 3

    def test_no_events_means_full_quota(self, accountant) -> None:
        limit = Limit(4, 60)

        assert accountant.remaining(limit, "nobody", "api") == 4
        assert accountant.reset_seconds(limit, "nobody", "api") == 0

    def test_snapshot_reads_longest_window_once(self, accountant, store, clock) -> None:
        key = accountant.key("1.2.3.4", "api")
        for ts in (100.0, 990.0, 999.0):
            store.record_event(key, ts, ttl=3600)

        snapshot = accountant.snapshot("1.2.3.4", "api", [Limit(5, 10), Limit(50, 600)])

        assert snapshot.now == 1000.0
        assert snapshot.timestamps == (990.0, 999.0)
        assert snapshot.usage(Limit(5, 10)).count == 1
