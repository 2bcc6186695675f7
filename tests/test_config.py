"""Tests for limiter settings loading and validation."""

import pytest
from pydantic import ValidationError

from window_limiter.core.config import (
    LimiterSettings,
    StoreSettings,
    env_file_for,
    get_settings,
)
from window_limiter.schemas.limits import Limit


def test_defaults(monkeypatch) -> None:
    monkeypatch.delenv("RATE_LIMIT_ENABLED", raising=False)

    config = LimiterSettings()

    assert config.enabled is False
    assert config.environments == ["production"]
    assert config.default_limits == []
    assert config.error_status_code == 429
    assert config.header_prefix == "Rate-Limit"
    assert config.store_failure_policy == "raise"
    assert config.atomic is True


def test_compact_default_limits_from_env(monkeypatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_DEFAULT_LIMITS", "10/60, 100/3600")

    assert LimiterSettings().default_limits == [Limit(10, 60), Limit(100, 3600)]


def test_json_default_limits_from_env(monkeypatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_DEFAULT_LIMITS", '[{"requests": 5, "seconds": 10}]')

    assert LimiterSettings().default_limits == [Limit(5, 10)]


def test_empty_default_limits_from_env(monkeypatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_DEFAULT_LIMITS", "")

    assert LimiterSettings().default_limits == []


def test_malformed_default_limits_rejected() -> None:
    with pytest.raises(ValueError):
        LimiterSettings(default_limits="ten/sixty")


def test_retention_must_exceed_longest_default_window() -> None:
    with pytest.raises(ValidationError, match="retention_seconds"):
        LimiterSettings(default_limits=[Limit(1, 3600)], retention_seconds=3600)


def test_identifier_from_dotted_path() -> None:
    from window_limiter.services.identity import remote_address

    config = LimiterSettings(identifier="window_limiter.services.identity.remote_address")

    assert config.identifier is remote_address


def test_unknown_failure_policy_rejected() -> None:
    with pytest.raises(ValidationError):
        LimiterSettings(store_failure_policy="retry")


@pytest.mark.parametrize(
    ("enabled", "environment", "expected"),
    [
        (True, "production", True),
        (True, "development", False),
        (False, "production", False),
    ],
)
def test_active(enabled, environment, expected) -> None:
    config = LimiterSettings(
        enabled=enabled, environments=["production", "staging"], environment=environment
    )

    assert config.active is expected


def test_store_backend_from_env(monkeypatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_STORE_BACKEND", "memory")
    monkeypatch.setenv("RATE_LIMIT_STORE_SOCKET_TIMEOUT_SECONDS", "0.25")

    store = StoreSettings()

    assert store.backend == "memory"
    assert store.socket_timeout_seconds == 0.25


class TestGetSettings:
    @pytest.fixture
    def fresh_settings(self, monkeypatch, tmp_path):
        """Run get_settings() uncached from an isolated working directory."""

        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("TESTING")
        get_settings.cache_clear()
        yield tmp_path
        get_settings.cache_clear()

    def test_is_cached(self) -> None:
        assert get_settings() is get_settings()

    def test_env_file_does_not_override_environment(self, monkeypatch, fresh_settings) -> None:
        (fresh_settings / ".env.testing").write_text(
            "RATE_LIMIT_NAMESPACE=from_file\nRATE_LIMIT_HEADER_PREFIX=X-From-File\n",
            encoding="utf-8",
        )
        monkeypatch.setenv("RATE_LIMIT_NAMESPACE", "from_env")
        # Registered so monkeypatch removes the value load_dotenv writes
        monkeypatch.setenv("RATE_LIMIT_HEADER_PREFIX", "placeholder")
        monkeypatch.delenv("RATE_LIMIT_HEADER_PREFIX")

        loaded = get_settings()

        assert loaded.limiter.namespace == "from_env"
        assert loaded.limiter.header_prefix == "X-From-File"

    def test_missing_env_file_is_fine(self, fresh_settings) -> None:
        assert env_file_for("testing", fresh_settings) is None
        assert get_settings().app_env == "testing"

    def test_env_file_lookup(self, tmp_path) -> None:
        (tmp_path / ".env.production").write_text("", encoding="utf-8")

        assert env_file_for("production", tmp_path) == tmp_path / ".env.production"
        assert env_file_for("unknown", tmp_path) is None
