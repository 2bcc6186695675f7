"""Tests for the admit/deny decision."""

from window_limiter.schemas.limits import Limit
from window_limiter.services.evaluator import Admit, Deny, evaluate
from window_limiter.services.window import WindowSnapshot


def test_admits_when_every_limit_has_room() -> None:
    snapshot = WindowSnapshot(now=1000.0, timestamps=(999.0,))

    assert evaluate([Limit(2, 5), Limit(10, 60)], snapshot) == Admit()


def test_denies_on_single_exhausted_limit() -> None:
    snapshot = WindowSnapshot(now=1002.0, timestamps=(1000.0, 1001.0))

    decision = evaluate([Limit(2, 5)], snapshot)

    assert decision == Deny(limit=Limit(2, 5), retry_after=3)


def test_longest_violated_window_wins() -> None:
    # Six requests in the last ten seconds violate both limits
    timestamps = tuple(1000.0 + i for i in range(6))
    snapshot = WindowSnapshot(now=1006.0, timestamps=timestamps)

    decision = evaluate([Limit(5, 10), Limit(6, 3600)], snapshot)

    assert isinstance(decision, Deny)
    assert decision.limit == Limit(6, 3600)
    assert decision.retry_after == 3594


def test_only_violated_limits_are_candidates() -> None:
    timestamps = tuple(1000.0 + i for i in range(5))
    snapshot = WindowSnapshot(now=1005.0, timestamps=timestamps)

    decision = evaluate([Limit(5, 10), Limit(100, 3600)], snapshot)

    assert decision == Deny(limit=Limit(5, 10), retry_after=5)


def test_first_configured_wins_among_equal_windows() -> None:
    snapshot = WindowSnapshot(now=1001.0, timestamps=(1000.0, 1000.5))

    decision = evaluate([Limit(2, 60), Limit(1, 60)], snapshot)

    assert isinstance(decision, Deny)
    assert decision.limit == Limit(2, 60)
