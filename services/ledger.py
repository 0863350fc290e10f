"""In-memory alert ledger with acknowledgement tracking and CSV export."""

from __future__ import annotations

import csv
import io
import itertools
import logging
from dataclasses import replace
from datetime import datetime, timezone
from threading import Lock
from typing import Callable, Dict, List, Optional

from models.errors import NotFoundError, ValidationError
from models.records import TEMPERATURE_ALERT_TYPES, AlertEvent, Severity

logger = logging.getLogger(__name__)

CSV_HEADER = ("ID", "Zone", "Type", "Severity", "Temperature", "Threshold", "Timestamp", "Status")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_temperature(value: float) -> str:
    value = float(value)
    if value.is_integer():
        return f"{int(value)}°C"
    return f"{value!r}°C"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return _as_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


class AlertLedger:
    """Append-only record of alert events, listed newest first."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow, first_sequence: int = 1) -> None:
        self._events: List[AlertEvent] = []
        self._positions: Dict[str, int] = {}
        self._sequence = itertools.count(max(first_sequence, 1))
        self._clock = clock
        self._lock = Lock()

    def next_id(self) -> str:
        with self._lock:
            while True:
                candidate = f"ALT-{next(self._sequence):03d}"
                if candidate not in self._positions:
                    return candidate

    def record(self, event: AlertEvent) -> str:
        with self._lock:
            if event.id in self._positions:
                raise ValidationError(f"Alert {event.id!r} is already recorded.")
            self._positions[event.id] = len(self._events)
            self._events.append(event)
        logger.info(
            "Recorded %s alert",
            event.type.value,
            extra={
                "alert_id": event.id,
                "zone_id": event.zone_id,
                "severity": event.severity,
                "temperature": event.temperature,
            },
        )
        return event.id

    def get(self, alert_id: str) -> AlertEvent:
        with self._lock:
            return self._get_locked(alert_id)

    def list(
        self,
        severity: Optional[Severity] = None,
        acknowledged_only: bool = False,
        active_only: bool = False,
        zone_id: Optional[str] = None,
    ) -> List[AlertEvent]:
        with self._lock:
            events = self._ordered_locked()
        if severity is not None:
            wanted = Severity(severity)
            events = [event for event in events if event.severity is wanted]
        if acknowledged_only:
            events = [event for event in events if event.acknowledged]
        if active_only:
            events = [event for event in events if not event.acknowledged]
        if zone_id is not None:
            events = [event for event in events if event.zone_id == zone_id]
        return events

    def acknowledge(self, alert_id: str, at: Optional[datetime] = None) -> AlertEvent:
        """Mark an alert as acknowledged; repeated calls leave it unchanged.

        ``at`` pins the acknowledgement time so callers can share one timestamp
        with the backend row.
        """
        with self._lock:
            event = self._get_locked(alert_id)
            if event.acknowledged:
                return event
            acknowledged_at = at if at is not None else self._clock()
            updated = replace(event, acknowledged=True, acknowledged_at=acknowledged_at)
            self._events[self._positions[alert_id]] = updated
        logger.info(
            "Acknowledged alert",
            extra={"alert_id": alert_id, "zone_id": updated.zone_id},
        )
        return updated

    def resolve_latest(self, zone_id: str) -> Optional[AlertEvent]:
        """Flag the zone's newest open temperature alert as auto-resolved."""
        with self._lock:
            for position in range(len(self._events) - 1, -1, -1):
                event = self._events[position]
                if (
                    event.zone_id == zone_id
                    and event.type in TEMPERATURE_ALERT_TYPES
                    and not event.acknowledged
                    and not event.auto_resolved
                ):
                    updated = replace(event, auto_resolved=True)
                    self._events[position] = updated
                    break
            else:
                return None
        logger.info(
            "Auto-resolved alert",
            extra={"alert_id": updated.id, "zone_id": zone_id},
        )
        return updated

    def active_count(self) -> int:
        with self._lock:
            return sum(1 for event in self._events if not event.acknowledged)

    def active_count_for_zone(self, zone_id: str) -> int:
        with self._lock:
            return sum(
                1
                for event in self._events
                if event.zone_id == zone_id and not event.acknowledged
            )

    def export_csv(self) -> bytes:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for event in self.list():
            writer.writerow(
                (
                    event.id,
                    event.zone_name or event.zone_id,
                    event.type.value,
                    event.severity.value,
                    format_temperature(event.temperature),
                    format_temperature(event.threshold),
                    format_timestamp(event.timestamp),
                    "Acknowledged" if event.acknowledged else "Active",
                )
            )
        return buffer.getvalue().encode("utf-8")

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def _get_locked(self, alert_id: str) -> AlertEvent:
        position = self._positions.get(alert_id)
        if position is None:
            raise NotFoundError(f"Alert {alert_id!r} not found.")
        return self._events[position]

    def _ordered_locked(self) -> List[AlertEvent]:
        # Stable sort on the reversed log keeps later insertions first on equal timestamps.
        return sorted(
            reversed(self._events),
            key=lambda event: _as_utc(event.timestamp),
            reverse=True,
        )
