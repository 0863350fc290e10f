"""Composition of registry, ledger, simulator and the backing row store."""

from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable, List, Optional

from datastore.mock_backend import (
    ALERTS_ENTITY,
    ZONES_ENTITY,
    MockBackend,
    build_default_backend,
    load_zone_configs,
    seed_default_zones,
)
from models.errors import BackendUnavailable, NotFoundError
from models.records import AlertEvent, TemperatureZone, ZoneConfig
from services.classifier import StatusClassifier
from services.ledger import AlertLedger
from services.registry import ZoneRegistry
from services.simulator import DriftSimulator, SimulatorHandle
from settings import get_settings

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def alert_row(event: AlertEvent) -> dict:
    return {
        "id": event.id,
        "zone_id": event.zone_id,
        "alert_type": event.type.value,
        "severity": event.severity.value,
        "temperature": event.temperature,
        "message": event.message,
        "created_at": event.timestamp.isoformat(),
        "acknowledged": event.acknowledged,
        "acknowledged_at": event.acknowledged_at.isoformat() if event.acknowledged_at else None,
    }


class MonitoringService:
    """Owns one registry/ledger pair and mirrors changes into the backend."""

    def __init__(
        self,
        registry: ZoneRegistry,
        backend: Optional[MockBackend] = None,
        simulator: Optional[DriftSimulator] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.registry = registry
        self.ledger = registry.ledger
        self.backend = backend
        self.simulator = simulator or DriftSimulator(registry, feed=self.update_reading)
        self._clock = clock

    @classmethod
    def from_configs(
        cls,
        configs: List[ZoneConfig],
        backend: Optional[MockBackend] = None,
        critical_margin: float = 2.0,
        trend_dead_band: float = 0.05,
        alerts_enabled: bool = True,
        drift_interval: float = 60.0,
        drift_max_delta: float = 0.3,
        drift_flip_probability: float = 0.1,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = _utcnow,
        first_alert_sequence: int = 1,
    ) -> "MonitoringService":
        registry = ZoneRegistry(
            configs,
            ledger=AlertLedger(clock=clock, first_sequence=first_alert_sequence),
            classifier=StatusClassifier(critical_margin, trend_dead_band),
            clock=clock,
            alerts_enabled=alerts_enabled,
        )
        service = cls(registry, backend=backend, clock=clock)
        service.simulator = DriftSimulator(
            registry,
            interval=drift_interval,
            max_delta=drift_max_delta,
            flip_probability=drift_flip_probability,
            rng=rng,
            feed=service.update_reading,
        )
        return service

    def update_reading(self, zone_id: str, temperature: float, online: bool = True) -> Optional[AlertEvent]:
        """Apply a reading, writing the zone and alert rows before memory changes.

        A backend failure propagates as ``BackendUnavailable`` and leaves the
        registry and ledger as they were.
        """
        try:
            return self.registry.update_reading(
                zone_id, temperature, online, before_commit=self._sync_reading
            )
        except BackendUnavailable:
            logger.error(
                "Reading rejected, backend sync failed",
                extra={"zone_id": zone_id, "entity": ZONES_ENTITY},
            )
            raise

    def acknowledge(self, alert_id: str) -> AlertEvent:
        event = self.ledger.get(alert_id)
        if event.acknowledged:
            return event
        acknowledged_at = self._clock()
        if self.backend is not None:
            changes = {"acknowledged": True, "acknowledged_at": acknowledged_at.isoformat()}
            try:
                self.backend.update_row(ALERTS_ENTITY, alert_id, changes)
            except NotFoundError:
                # Alerts recorded before the backend was attached have no row yet.
                self.backend.insert_row(ALERTS_ENTITY, {**alert_row(event), **changes})
        return self.ledger.acknowledge(alert_id, at=acknowledged_at)

    def start_simulation(self) -> SimulatorHandle:
        return self.simulator.start()

    def _sync_reading(self, zone: TemperatureZone, event: Optional[AlertEvent]) -> None:
        if self.backend is None:
            return
        changes = {
            "current_temp": zone.current_temp,
            "status": zone.status.value,
            "is_online": zone.is_online,
            "last_reading_at": zone.last_update.isoformat(),
        }
        try:
            self.backend.update_row(ZONES_ENTITY, zone.id, changes)
        except NotFoundError:
            logger.debug("Zone has no backend row", extra={"zone_id": zone.id})
        if event is not None:
            self.backend.insert_row(ALERTS_ENTITY, alert_row(event))


@lru_cache
def build_default_monitor() -> MonitoringService:
    """Factory that wires the monitor from settings and the default backend."""
    settings = get_settings()
    backend = build_default_backend()
    seed_default_zones(backend)
    # Continue numbering after alerts persisted by earlier sessions.
    persisted_alerts = len(backend.fetch_rows(ALERTS_ENTITY))
    return MonitoringService.from_configs(
        load_zone_configs(backend),
        backend=backend,
        critical_margin=settings.critical_margin,
        trend_dead_band=settings.trend_dead_band,
        alerts_enabled=settings.alerts_enabled,
        drift_interval=settings.drift_interval,
        drift_max_delta=settings.drift_max_delta,
        drift_flip_probability=settings.drift_flip_probability,
        first_alert_sequence=persisted_alerts + 1,
    )
