from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_CRITICAL_MARGIN_ENV = "MONITOR_CRITICAL_MARGIN"
_DEAD_BAND_ENV = "MONITOR_TREND_DEAD_BAND"
_ALERTS_ENABLED_ENV = "MONITOR_ALERTS_ENABLED"
_DRIFT_ENABLED_ENV = "DRIFT_ENABLED"
_DRIFT_INTERVAL_ENV = "DRIFT_INTERVAL_SECONDS"
_DRIFT_MAX_DELTA_ENV = "DRIFT_MAX_DELTA"
_DRIFT_FLIP_ENV = "DRIFT_FLIP_PROBABILITY"
_BACKEND_PATH_ENV = "BACKEND_PERSISTENCE_PATH"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    critical_margin: float
    trend_dead_band: float
    alerts_enabled: bool
    drift_enabled: bool
    drift_interval: float
    drift_max_delta: float
    drift_flip_probability: float
    backend_persistence_path: Optional[str]
    log_level: str


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_float(name: str, default: float, minimum: float = 0.0) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def _read_probability(name: str, default: float) -> float:
    parsed = _read_float(name, default)
    return parsed if parsed <= 1.0 else default


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in _TRUTHY:
        return True
    if candidate in _FALSY:
        return False
    return default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    interval = _read_float(_DRIFT_INTERVAL_ENV, 60.0)
    return Settings(
        critical_margin=_read_float(_CRITICAL_MARGIN_ENV, 2.0),
        trend_dead_band=_read_float(_DEAD_BAND_ENV, 0.05),
        alerts_enabled=_read_bool(_ALERTS_ENABLED_ENV, True),
        drift_enabled=_read_bool(_DRIFT_ENABLED_ENV, False),
        drift_interval=interval if interval > 0 else 60.0,
        drift_max_delta=_read_float(_DRIFT_MAX_DELTA_ENV, 0.3),
        drift_flip_probability=_read_probability(_DRIFT_FLIP_ENV, 0.1),
        backend_persistence_path=_read_optional_env(
            _BACKEND_PATH_ENV, "./tmp/chill_backend.json"
        ),
        log_level=_read_log_level("INFO"),
    )
