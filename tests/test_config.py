"""Tests for settings loading and timezone helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from notification_sync.config import Settings, get_settings, reset_settings_cache
from notification_sync.utils import datetime as datetime_utils


@pytest.fixture
def fresh_settings():
    reset_settings_cache()
    datetime_utils.get_app_timezone.cache_clear()
    yield
    reset_settings_cache()
    datetime_utils.get_app_timezone.cache_clear()


def test_settings_read_environment(monkeypatch, fresh_settings) -> None:
    monkeypatch.setenv("PAGE_SIZE", "5")
    monkeypatch.setenv("API_BASE_URL", "https://api.example.com/v1")
    monkeypatch.setenv("MAX_RECONNECT_ATTEMPTS", "3")

    settings = get_settings()

    assert settings.page_size == 5
    assert settings.api_base_url == "https://api.example.com/v1"
    assert settings.max_reconnect_attempts == 3
    assert get_settings() is settings


def test_backoff_bounds_are_validated() -> None:
    with pytest.raises(ValidationError):
        Settings(reconnect_initial_delay=10, reconnect_max_delay=1)


def test_offset_timezone(monkeypatch, fresh_settings) -> None:
    monkeypatch.setenv("APP_TIMEZONE", "UTC-05:00")

    tz = datetime_utils.get_app_timezone()

    assert tz.utcoffset(None) == timedelta(hours=-5)


def test_naive_values_are_treated_as_utc(fresh_settings) -> None:
    value = datetime_utils.ensure_app_timezone(datetime(2024, 5, 1, 12, 0))

    assert value == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_parse_timestamp_accepts_z_suffix(fresh_settings) -> None:
    parsed = datetime_utils.parse_timestamp("2024-05-01T12:00:00Z")

    assert parsed == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert datetime_utils.parse_timestamp("") is None
