"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from models.records import AlertEvent, AlertType, Severity, TemperatureZone, Trend, ZoneStatus
from services.classifier import severity_badge, status_badge, trend_indicator
from services.registry import MonitorSummary


class ZoneView(BaseModel):
    """A zone's live state plus its derived display fields."""

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
    alert_count: int = Field(..., ge=0)
    status_color: str
    trend_indicator: Dict[str, str]

    @classmethod
    def from_zone(cls, zone: TemperatureZone) -> "ZoneView":
        return cls(
            id=zone.id,
            name=zone.name,
            location=zone.location,
            sensor_id=zone.sensor_id,
            current_temp=zone.current_temp,
            target_temp=zone.target_temp,
            min_threshold=zone.min_threshold,
            max_threshold=zone.max_threshold,
            status=zone.status,
            trend=zone.trend,
            is_online=zone.is_online,
            last_update=zone.last_update,
            alert_count=zone.alert_count,
            status_color=status_badge(zone.status),
            trend_indicator=trend_indicator(zone.trend),
        )


class AlertView(BaseModel):
    """A recorded alert as exposed over the API."""

    id: str
    zone_id: str
    zone_name: Optional[str] = None
    type: AlertType
    severity: Severity
    temperature: float
    threshold: float
    message: str
    timestamp: datetime
    acknowledged: bool
    acknowledged_at: Optional[datetime] = None
    auto_resolved: bool
    severity_color: str

    @classmethod
    def from_event(cls, event: AlertEvent) -> "AlertView":
        return cls(
            id=event.id,
            zone_id=event.zone_id,
            zone_name=event.zone_name,
            type=event.type,
            severity=event.severity,
            temperature=event.temperature,
            threshold=event.threshold,
            message=event.message,
            timestamp=event.timestamp,
            acknowledged=event.acknowledged,
            acknowledged_at=event.acknowledged_at,
            auto_resolved=event.auto_resolved,
            severity_color=severity_badge(event.severity),
        )


class ReadingUpdate(BaseModel):
    """Request body for pushing a sensor reading into a zone."""

    temperature: float = Field(..., description="Reading in degrees Celsius.")
    online: bool = Field(default=True, description="Whether the sensor is reachable.")


class ReadingResult(BaseModel):
    zone: ZoneView
    alert: Optional[AlertView] = None


class SummaryView(BaseModel):
    """Overview figures for the monitoring dashboard."""

    total_zones: int = Field(..., ge=0)
    active_alerts: int = Field(..., ge=0)
    normal_zones: int = Field(..., ge=0)
    average_temp: Optional[float] = None

    @classmethod
    def from_summary(cls, summary: MonitorSummary) -> "SummaryView":
        return cls(
            total_zones=summary.total_zones,
            active_alerts=summary.active_alerts,
            normal_zones=summary.normal_zones,
            average_temp=summary.average_temp,
        )


def zone_views(zones: List[TemperatureZone]) -> List[ZoneView]:
    return [ZoneView.from_zone(zone) for zone in zones]


def alert_views(events: List[AlertEvent]) -> List[AlertView]:
    return [AlertView.from_event(event) for event in events]
