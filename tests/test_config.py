from __future__ import annotations

import pytest

from devflow_api.config import DatabaseSettings, Settings, TraceabilitySettings, get_settings
from devflow_api.traceability.models import APPROVED_RFC_STATUS


def test_defaults(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("DEVFLOW_DB_URL", raising=False)
    settings = Settings()

    assert settings.app_name == "DevFlow Studio"
    assert settings.log_level == "INFO"
    assert settings.db.url.startswith("postgresql+psycopg2://")
    assert settings.db.is_sqlite is False
    assert settings.traceability.enabled is True
    assert settings.traceability.include_overall_score is True


def test_nested_settings_read_their_own_prefix(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DEVFLOW_DB_URL", "sqlite:///devflow.db")
    monkeypatch.setenv("DEVFLOW_DB_POOL_SIZE", "12")
    monkeypatch.setenv("DEVFLOW_TRACE_INCLUDE_OVERALL_SCORE", "false")
    monkeypatch.setenv("DEVFLOW_LOG_LEVEL", "DEBUG")

    settings = Settings()

    assert settings.db.url == "sqlite:///devflow.db"
    assert settings.db.is_sqlite is True
    assert settings.db.pool_size == 12
    assert settings.traceability.include_overall_score is False
    assert settings.log_level == "DEBUG"


def test_get_settings_is_cached():
    assert get_settings() is get_settings()


def test_explicit_database_url_wins(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DEVFLOW_DB_URL", "postgresql+psycopg2://elsewhere/db")

    assert DatabaseSettings(url="sqlite://").url == "sqlite://"


def test_approved_rfc_status_is_fixed(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DEVFLOW_TRACE_APPROVED_RFC_STATUS", "implemented")

    assert APPROVED_RFC_STATUS == "approved"
    assert "approved_rfc_status" not in TraceabilitySettings().model_dump()
