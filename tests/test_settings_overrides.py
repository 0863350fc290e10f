from __future__ import annotations

import logging
from typing import Iterable

import pytest

from datastore.mock_backend import build_default_backend
from logging_config import ContextualFormatter
from models.records import Severity
from services.monitor import build_default_monitor
from settings import get_settings

_ENV_NAMES = (
    "MONITOR_CRITICAL_MARGIN",
    "MONITOR_TREND_DEAD_BAND",
    "MONITOR_ALERTS_ENABLED",
    "DRIFT_ENABLED",
    "DRIFT_INTERVAL_SECONDS",
    "DRIFT_MAX_DELTA",
    "DRIFT_FLIP_PROBABILITY",
    "BACKEND_PERSISTENCE_PATH",
    "LOG_LEVEL",
)

_CACHES = (get_settings, build_default_backend, build_default_monitor)


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    _clear_caches(_CACHES)
    yield
    _clear_caches(_CACHES)


def test_defaults_without_environment() -> None:
    settings = get_settings()

    assert settings.critical_margin == 2.0
    assert settings.trend_dead_band == 0.05
    assert settings.alerts_enabled is True
    assert settings.drift_enabled is False
    assert settings.drift_interval == 60.0
    assert settings.drift_max_delta == 0.3
    assert settings.drift_flip_probability == 0.1
    assert settings.backend_persistence_path == "./tmp/chill_backend.json"
    assert settings.log_level == "INFO"


def test_environment_overrides_apply(monkeypatch, tmp_path) -> None:
    backend_path = tmp_path / "backend.json"

    monkeypatch.setenv("MONITOR_CRITICAL_MARGIN", "0.5")
    monkeypatch.setenv("MONITOR_TREND_DEAD_BAND", "0.2")
    monkeypatch.setenv("MONITOR_ALERTS_ENABLED", "off")
    monkeypatch.setenv("DRIFT_ENABLED", "yes")
    monkeypatch.setenv("DRIFT_INTERVAL_SECONDS", "5")
    monkeypatch.setenv("DRIFT_MAX_DELTA", "1.5")
    monkeypatch.setenv("DRIFT_FLIP_PROBABILITY", "0.25")
    monkeypatch.setenv("BACKEND_PERSISTENCE_PATH", str(backend_path))
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = get_settings()
    backend = build_default_backend()
    monitor = build_default_monitor()

    assert settings.critical_margin == 0.5
    assert settings.trend_dead_band == 0.2
    assert settings.alerts_enabled is False
    assert settings.drift_enabled is True
    assert settings.drift_interval == 5.0
    assert settings.drift_max_delta == 1.5
    assert settings.drift_flip_probability == 0.25
    assert settings.log_level == "DEBUG"
    assert backend.persistence_path == backend_path
    assert monitor.backend is backend
    assert monitor.simulator.interval == 5.0
    assert monitor.registry.update_reading("ZONE-001", -15.8, True) is None


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("MONITOR_CRITICAL_MARGIN", "wide")
    monkeypatch.setenv("MONITOR_TREND_DEAD_BAND", "-1")
    monkeypatch.setenv("MONITOR_ALERTS_ENABLED", "maybe")
    monkeypatch.setenv("DRIFT_INTERVAL_SECONDS", "0")
    monkeypatch.setenv("DRIFT_FLIP_PROBABILITY", "1.5")
    monkeypatch.setenv("LOG_LEVEL", "  ")

    settings = get_settings()

    assert settings.critical_margin == 2.0
    assert settings.trend_dead_band == 0.05
    assert settings.alerts_enabled is True
    assert settings.drift_interval == 60.0
    assert settings.drift_flip_probability == 0.1
    assert settings.log_level == "INFO"


def test_blank_backend_path_disables_persistence(monkeypatch) -> None:
    monkeypatch.setenv("BACKEND_PERSISTENCE_PATH", "   ")

    assert get_settings().backend_persistence_path is None
    assert build_default_backend().persistence_path is None


def test_contextual_formatter_appends_extra_fields() -> None:
    formatter = ContextualFormatter(fmt="%(levelname)s %(message)s")
    record = logging.LogRecord("services.registry", logging.WARNING, __file__, 1, "Zone status changed", None, None)
    record.zone_id = "ZONE-001"
    record.severity = Severity.critical
    record.temperature = -15.8

    assert formatter.format(record) == (
        "WARNING Zone status changed | zone_id=ZONE-001 severity=critical temperature=-15.8"
    )
