"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class ZoneStatus(str, Enum):
    normal = "normal"
    warning = "warning"
    critical = "critical"


class Trend(str, Enum):
    increasing = "increasing"
    decreasing = "decreasing"
    stable = "stable"


class AlertType(str, Enum):
    temperature_high = "TemperatureHigh"
    temperature_low = "TemperatureLow"
    sensor_malfunction = "SensorMalfunction"
    sensor_offline = "SensorOffline"


class Severity(str, Enum):
    info = "info"
    warning = "warning"
    critical = "critical"


TEMPERATURE_ALERT_TYPES = frozenset({AlertType.temperature_high, AlertType.temperature_low})


@dataclass(frozen=True, slots=True)
class ZoneConfig:
    """Startup configuration for a single monitored zone."""

    id: str
    name: str
    location: str
    sensor_id: str
    target_temp: float
    min_threshold: float
    max_threshold: float
    current_temp: Optional[float] = None


@dataclass(slots=True)
class TemperatureZone:
    """Live state of a monitored zone."""

    id: str
    name: str
    location: str
    sensor_id: str
    current_temp: float
    target_temp: float
    min_threshold: float
    max_threshold: float
    status: ZoneStatus
    trend: Trend
    is_online: bool
    last_update: datetime
    alert_count: int = 0


@dataclass(frozen=True, slots=True)
class AlertEvent:
    """A recorded status breach or connectivity loss for a zone."""

    id: str
    zone_id: str
    type: AlertType
    severity: Severity
    temperature: float
    threshold: float
    message: str
    timestamp: datetime
    zone_name: Optional[str] = None
    acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None
    auto_resolved: bool = False

    @property
    def is_active(self) -> bool:
        return not self.acknowledged
