"""Zone registry: configured zones, live readings and alert emission."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from threading import Lock
from typing import Callable, Dict, Iterable, List, Optional, Union

from models.errors import NotFoundError, ValidationError
from models.records import (
    TEMPERATURE_ALERT_TYPES,
    AlertEvent,
    AlertType,
    TemperatureZone,
    Trend,
    ZoneConfig,
    ZoneStatus,
)
from services.classifier import AlertDecision, StatusClassifier, is_escalation
from services.ledger import AlertLedger, format_temperature

logger = logging.getLogger(__name__)

ALL_ZONES = "all"

CommitHook = Callable[[TemperatureZone, Optional[AlertEvent]], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class MonitorSummary:
    """Overview figures shown above the zone cards."""

    total_zones: int
    active_alerts: int
    normal_zones: int
    average_temp: Optional[float]


def validate_config(config: ZoneConfig) -> None:
    if not config.id:
        raise ValidationError("Zone id must not be empty.")
    bounds = (config.min_threshold, config.target_temp, config.max_threshold)
    if not all(math.isfinite(value) for value in bounds):
        raise ValidationError(f"Zone {config.id!r} has non-finite thresholds.")
    if not config.min_threshold < config.target_temp < config.max_threshold:
        raise ValidationError(
            f"Zone {config.id!r} requires min_threshold < target_temp < max_threshold "
            f"(got {config.min_threshold} / {config.target_temp} / {config.max_threshold})."
        )
    if config.current_temp is not None and not math.isfinite(config.current_temp):
        raise ValidationError(f"Zone {config.id!r} has a non-finite initial reading.")


class ZoneRegistry:
    """Holds the configured zones in display order and applies reading updates."""

    def __init__(
        self,
        configs: Iterable[ZoneConfig] = (),
        ledger: Optional[AlertLedger] = None,
        classifier: Optional[StatusClassifier] = None,
        clock: Callable[[], datetime] = _utcnow,
        alerts_enabled: bool = True,
    ) -> None:
        self.ledger = ledger if ledger is not None else AlertLedger(clock=clock)
        self.classifier = classifier if classifier is not None else StatusClassifier()
        self.alerts_enabled = alerts_enabled
        self._clock = clock
        self._zones: Dict[str, TemperatureZone] = {}
        self._malfunctioning: set[str] = set()
        self._masked_escalations: set[str] = set()
        self._lock = Lock()
        for config in configs:
            try:
                self.register(config)
            except ValidationError as exc:
                logger.warning(
                    "Skipping zone configuration",
                    extra={"zone_id": config.id or None, "reason": str(exc)},
                )

    def register(self, config: ZoneConfig) -> TemperatureZone:
        validate_config(config)
        current = config.current_temp if config.current_temp is not None else config.target_temp
        classification = self.classifier.classify(
            current, config.min_threshold, config.max_threshold
        )
        zone = TemperatureZone(
            id=config.id,
            name=config.name,
            location=config.location,
            sensor_id=config.sensor_id,
            current_temp=current,
            target_temp=config.target_temp,
            min_threshold=config.min_threshold,
            max_threshold=config.max_threshold,
            status=classification.status,
            trend=Trend.stable,
            is_online=True,
            last_update=self._clock(),
        )
        with self._lock:
            if config.id in self._zones:
                raise ValidationError(f"Zone {config.id!r} is already registered.")
            self._zones[config.id] = zone
        logger.debug("Registered zone", extra={"zone_id": zone.id, "status": zone.status})
        return self._snapshot(zone)

    def list_zones(self) -> List[TemperatureZone]:
        with self._lock:
            zones = list(self._zones.values())
        return [self._snapshot(zone) for zone in zones]

    def get_zone(self, zone_id: str) -> TemperatureZone:
        with self._lock:
            zone = self._get_locked(zone_id)
        return self._snapshot(zone)

    def filter_by_status(self, status: Union[ZoneStatus, str]) -> List[TemperatureZone]:
        zones = self.list_zones()
        if status == ALL_ZONES:
            return zones
        try:
            wanted = ZoneStatus(status)
        except ValueError as exc:
            raise ValidationError(f"Unknown zone status {status!r}.") from exc
        return [zone for zone in zones if zone.status is wanted]

    def update_reading(
        self,
        zone_id: str,
        new_temp: float,
        online: bool,
        before_commit: Optional[CommitHook] = None,
    ) -> Optional[AlertEvent]:
        """Apply one sensor reading and record at most one alert.

        A non-finite reading is treated as a sensor malfunction: the last good
        temperature, status and trend are kept. ``before_commit`` receives the
        updated zone and the pending alert; if it raises, nothing is applied.
        """
        now = self._clock()
        with self._lock:
            zone = self._get_locked(zone_id)
            previous_status = zone.status
            was_online = zone.is_online
            finite = math.isfinite(new_temp)
            malfunction_started = not finite and zone_id not in self._malfunctioning

            if finite:
                classification = self.classifier.classify(
                    new_temp, zone.min_threshold, zone.max_threshold
                )
                updated = replace(
                    zone,
                    trend=self.classifier.trend(zone.current_temp, new_temp),
                    current_temp=new_temp,
                    status=classification.status,
                    is_online=online,
                    last_update=now,
                )
            else:
                classification = self.classifier.classify(
                    zone.current_temp, zone.min_threshold, zone.max_threshold
                )
                updated = replace(zone, is_online=online, last_update=now)

            decision = self.classifier.assess(
                previous_status,
                classification,
                was_online=was_online,
                online=online,
                malfunction_started=malfunction_started,
                pending_escalation=zone_id in self._masked_escalations,
            )
            event = None
            if decision.emits_alert and self.alerts_enabled:
                event = self._build_alert(updated, decision, reading=new_temp, timestamp=now)

            if before_commit is not None:
                before_commit(replace(updated), event)

            self._zones[zone_id] = updated
            if finite:
                self._malfunctioning.discard(zone_id)
            else:
                self._malfunctioning.add(zone_id)
            self._track_masked_escalation(zone_id, previous_status, updated.status, decision)
            if decision.resolve_previous:
                self.ledger.resolve_latest(zone_id)
            if event is not None:
                self.ledger.record(event)

        if previous_status is not updated.status:
            logger.info(
                "Zone status changed",
                extra={
                    "zone_id": zone_id,
                    "previous_status": previous_status,
                    "status": updated.status,
                    "temperature": updated.current_temp,
                },
            )
        return event

    def summary(self) -> MonitorSummary:
        zones = self.list_zones()
        average = None
        if zones:
            average = round(sum(zone.current_temp for zone in zones) / len(zones), 1)
        return MonitorSummary(
            total_zones=len(zones),
            active_alerts=self.ledger.active_count(),
            normal_zones=sum(1 for zone in zones if zone.status is ZoneStatus.normal),
            average_temp=average,
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._zones)

    def _track_masked_escalation(
        self,
        zone_id: str,
        previous_status: ZoneStatus,
        status: ZoneStatus,
        decision: AlertDecision,
    ) -> None:
        # An offline alert can hide a breach; it is reported on a later online update.
        if decision.alert_type is AlertType.sensor_offline and is_escalation(previous_status, status):
            self._masked_escalations.add(zone_id)
        elif status is ZoneStatus.normal or decision.alert_type in TEMPERATURE_ALERT_TYPES:
            self._masked_escalations.discard(zone_id)

    def _get_locked(self, zone_id: str) -> TemperatureZone:
        zone = self._zones.get(zone_id)
        if zone is None:
            raise NotFoundError(f"Zone {zone_id!r} not found.")
        return zone

    def _snapshot(self, zone: TemperatureZone) -> TemperatureZone:
        return replace(zone, alert_count=self.ledger.active_count_for_zone(zone.id))

    def _build_alert(
        self,
        zone: TemperatureZone,
        decision: AlertDecision,
        reading: float,
        timestamp: datetime,
    ) -> AlertEvent:
        threshold = decision.threshold if decision.threshold is not None else zone.target_temp
        temperature = reading if math.isfinite(reading) else zone.current_temp
        return AlertEvent(
            id=self.ledger.next_id(),
            zone_id=zone.id,
            zone_name=zone.name,
            type=decision.alert_type,
            severity=decision.severity,
            temperature=temperature,
            threshold=threshold,
            message=_alert_message(zone, decision.alert_type, temperature, threshold),
            timestamp=timestamp,
        )


def _alert_message(
    zone: TemperatureZone,
    alert_type: AlertType,
    temperature: float,
    threshold: float,
) -> str:
    if alert_type is AlertType.temperature_high:
        return (
            f"Temperature risen above safe threshold: {format_temperature(temperature)} "
            f"exceeds {format_temperature(threshold)}"
        )
    if alert_type is AlertType.temperature_low:
        return (
            f"Temperature dropped below optimal range: {format_temperature(temperature)} "
            f"is under {format_temperature(threshold)}"
        )
    if alert_type is AlertType.sensor_offline:
        return f"Sensor {zone.sensor_id} in {zone.name} went offline"
    return f"Sensor {zone.sensor_id} in {zone.name} reported an invalid reading"
