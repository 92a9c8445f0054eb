"""Tests for hookboard.core.config module."""

import pytest

from hookboard.core.config import Settings, get_settings
from hookboard.shared.exceptions import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove variables a developer shell might export."""
    for name in ("DATABASE_URL", "WEBHOOK_SECRET", "LOG_LEVEL", "EVENTS_LIMIT"):
        monkeypatch.delenv(name, raising=False)


def test_settings_load_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that settings load correctly from environment variables."""
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db:5432/events")
    monkeypatch.setenv("WEBHOOK_SECRET", "shh")
    monkeypatch.setenv("SERVER_PORT", "9000")

    settings = Settings(_env_file=None)

    assert settings.database_url == "postgresql://u:p@db:5432/events"
    assert settings.webhook_secret == "shh"
    assert settings.server_port == 9000
    assert settings.database_configured is True
    assert settings.webhook_secret_configured is True


def test_settings_default_values() -> None:
    """Test that default values are applied correctly."""
    settings = Settings(_env_file=None)

    assert settings.database_url is None
    assert settings.webhook_secret is None
    assert settings.log_level == "INFO"
    assert settings.github_refresh_seconds == 15
    assert settings.events_limit == 50
    assert settings.environment == "development"


def test_blank_secret_disables_verification(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that an empty WEBHOOK_SECRET is treated as unset."""
    monkeypatch.setenv("WEBHOOK_SECRET", "  ")

    settings = Settings(_env_file=None)

    assert settings.webhook_secret is None
    assert settings.webhook_secret_configured is False


def test_settings_log_level_normalized() -> None:
    """Test that log level is upper-cased."""
    assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"


def test_settings_log_level_validation_invalid() -> None:
    """Test that invalid log levels raise ConfigError."""
    with pytest.raises(ConfigError, match="Invalid log level"):
        Settings(_env_file=None, log_level="VERBOSE")


@pytest.mark.parametrize("seconds", [0, 3601])
def test_refresh_interval_out_of_range(seconds: int) -> None:
    """Test that refresh intervals outside 1-3600 seconds are rejected."""
    with pytest.raises(ConfigError, match="Refresh interval"):
        Settings(_env_file=None, github_refresh_seconds=seconds)


def test_events_limit_out_of_range() -> None:
    """Test that the page size is bounded."""
    with pytest.raises(ConfigError, match="Events limit"):
        Settings(_env_file=None, events_limit=0)


def test_get_settings_returns_cached_instance(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that get_settings() returns the same instance on repeated calls."""
    monkeypatch.chdir("/")

    first = get_settings()
    second = get_settings()

    assert first is second
