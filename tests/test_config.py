"""Unit tests for core/config.py -- signing-secret policy."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings, get_settings

ACCESS = "a" * 32
REFRESH = "r" * 32


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    for name in ("ACCESS_SECRET_KEY", "REFRESH_SECRET_KEY"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_production_requires_secrets(monkeypatch) -> None:
    monkeypatch.setenv("DEBUG", "false")
    with pytest.raises(ValidationError, match="ACCESS_SECRET_KEY is required"):
        Settings(_env_file=None)


def test_production_accepts_distinct_long_secrets(monkeypatch) -> None:
    monkeypatch.setenv("DEBUG", "false")
    monkeypatch.setenv("ACCESS_SECRET_KEY", ACCESS)
    monkeypatch.setenv("REFRESH_SECRET_KEY", REFRESH)
    settings = Settings(_env_file=None)
    assert settings.access_secret_key == ACCESS
    assert settings.refresh_secret_key == REFRESH


def test_short_secret_rejected(monkeypatch) -> None:
    monkeypatch.setenv("ACCESS_SECRET_KEY", "too-short")
    monkeypatch.setenv("REFRESH_SECRET_KEY", REFRESH)
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(_env_file=None)


def test_identical_secrets_rejected(monkeypatch) -> None:
    monkeypatch.setenv("ACCESS_SECRET_KEY", ACCESS)
    monkeypatch.setenv("REFRESH_SECRET_KEY", ACCESS)
    with pytest.raises(ValidationError, match="must differ"):
        Settings(_env_file=None)


def test_debug_generates_distinct_secrets(monkeypatch, caplog) -> None:
    monkeypatch.setenv("DEBUG", "true")
    settings = Settings(_env_file=None)
    assert len(settings.access_secret_key) >= 32
    assert len(settings.refresh_secret_key) >= 32
    assert settings.access_secret_key != settings.refresh_secret_key
    assert "auto-generated ACCESS_SECRET_KEY" in caplog.text


def test_lifetimes_default_to_fifteen_minutes_and_seven_days(monkeypatch) -> None:
    monkeypatch.setenv("DEBUG", "true")
    settings = Settings(_env_file=None)
    assert settings.access_token_expire_seconds == 900
    assert settings.refresh_token_expire_seconds == 604800
    assert settings.max_login_attempts == 5
    assert settings.lockout_seconds == 900


def test_get_settings_is_cached() -> None:
    assert get_settings() is get_settings()
