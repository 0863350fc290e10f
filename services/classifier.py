"""Status, trend and alert derivation for temperature zones."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from models.records import AlertType, Severity, Trend, ZoneStatus

DEFAULT_CRITICAL_MARGIN = 2.0
DEFAULT_TREND_DEAD_BAND = 0.05

_STATUS_RANK = {
    ZoneStatus.normal: 0,
    ZoneStatus.warning: 1,
    ZoneStatus.critical: 2,
}

# Badge colour tokens used by the dashboard and exposed over the API.
_STATUS_BADGES: Dict[ZoneStatus, str] = {
    ZoneStatus.normal: "success",
    ZoneStatus.warning: "warning",
    ZoneStatus.critical: "destructive",
}

_SEVERITY_BADGES: Dict[Severity, str] = {
    Severity.info: "info",
    Severity.warning: "warning",
    Severity.critical: "destructive",
}

_TREND_INDICATORS: Dict[Trend, Dict[str, str]] = {
    Trend.increasing: {"icon": "trending-up", "color": "danger"},
    Trend.decreasing: {"icon": "trending-down", "color": "info"},
    Trend.stable: {"icon": "dot", "color": "success"},
}


@dataclass(frozen=True)
class Classification:
    """Result of classifying one reading against a threshold band."""

    status: ZoneStatus
    breached_bound: Optional[float] = None
    breach: Optional[str] = None  # "high", "low" or None

    @property
    def in_band(self) -> bool:
        return self.breach is None


@dataclass(frozen=True)
class AlertDecision:
    """What a single reading update should record, if anything."""

    alert_type: Optional[AlertType] = None
    severity: Optional[Severity] = None
    threshold: Optional[float] = None
    resolve_previous: bool = False

    @property
    def emits_alert(self) -> bool:
        return self.alert_type is not None


def classify(
    current_temp: float,
    min_threshold: float,
    max_threshold: float,
    critical_margin: float = DEFAULT_CRITICAL_MARGIN,
) -> Classification:
    """Classify a reading; a reading exactly on a bound is in band."""
    if current_temp > max_threshold:
        distance = current_temp - max_threshold
        bound, breach = max_threshold, "high"
    elif current_temp < min_threshold:
        distance = min_threshold - current_temp
        bound, breach = min_threshold, "low"
    else:
        return Classification(status=ZoneStatus.normal)

    status = ZoneStatus.critical if distance > critical_margin else ZoneStatus.warning
    return Classification(status=status, breached_bound=bound, breach=breach)


def classify_trend(
    previous_temp: Optional[float],
    current_temp: float,
    dead_band: float = DEFAULT_TREND_DEAD_BAND,
) -> Trend:
    if previous_temp is None:
        return Trend.stable
    # Rounded so float noise on an exact dead-band step does not register as movement.
    delta = round(current_temp - previous_temp, 6)
    if delta > dead_band:
        return Trend.increasing
    if delta < -dead_band:
        return Trend.decreasing
    return Trend.stable


def is_escalation(previous: ZoneStatus, current: ZoneStatus) -> bool:
    return _STATUS_RANK[current] > _STATUS_RANK[previous]


def status_badge(status: ZoneStatus) -> str:
    return _STATUS_BADGES[ZoneStatus(status)]


def severity_badge(severity: Severity) -> str:
    return _SEVERITY_BADGES[Severity(severity)]


def trend_indicator(trend: Trend) -> Dict[str, str]:
    return dict(_TREND_INDICATORS[Trend(trend)])


class StatusClassifier:
    """Pure classification component configured with the critical margin and dead-band."""

    def __init__(
        self,
        critical_margin: float = DEFAULT_CRITICAL_MARGIN,
        trend_dead_band: float = DEFAULT_TREND_DEAD_BAND,
    ) -> None:
        self.critical_margin = critical_margin
        self.trend_dead_band = trend_dead_band

    def classify(self, current_temp: float, min_threshold: float, max_threshold: float) -> Classification:
        return classify(current_temp, min_threshold, max_threshold, self.critical_margin)

    def trend(self, previous_temp: Optional[float], current_temp: float) -> Trend:
        return classify_trend(previous_temp, current_temp, self.trend_dead_band)

    def assess(
        self,
        previous_status: ZoneStatus,
        classification: Classification,
        was_online: bool,
        online: bool,
        malfunction_started: bool = False,
        pending_escalation: bool = False,
    ) -> AlertDecision:
        """Decide the single alert (and auto-resolution) produced by one update.

        Connectivity loss outranks a sensor malfunction, which outranks a
        temperature escalation. Returning to normal never emits an alert; it
        only flags the zone's latest open temperature alert as auto-resolved.
        A breach hidden behind an earlier offline alert (``pending_escalation``)
        is reported on the next online update that is still out of band.
        """
        resolve = (
            previous_status is not ZoneStatus.normal
            and classification.status is ZoneStatus.normal
        )

        if was_online and not online:
            return AlertDecision(
                alert_type=AlertType.sensor_offline,
                severity=Severity.warning,
                resolve_previous=resolve,
            )

        if malfunction_started:
            return AlertDecision(
                alert_type=AlertType.sensor_malfunction,
                severity=Severity.info,
            )

        escalated = is_escalation(previous_status, classification.status) or (
            pending_escalation and online and not classification.in_band
        )
        if escalated:
            alert_type = (
                AlertType.temperature_high
                if classification.breach == "high"
                else AlertType.temperature_low
            )
            return AlertDecision(
                alert_type=alert_type,
                severity=Severity(classification.status.value),
                threshold=classification.breached_bound,
            )

        return AlertDecision(resolve_previous=resolve)
