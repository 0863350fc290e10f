from __future__ import annotations

import copy
import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from models.errors import BackendUnavailable, NotFoundError
from models.records import ZoneConfig
from settings import get_settings

logger = logging.getLogger(__name__)

Row = Dict[str, Any]
RowPredicate = Callable[[Row], bool]

ZONES_ENTITY = "temperature_zones"
ALERTS_ENTITY = "temperature_alerts"

DEFAULT_ZONE_ROWS: List[Row] = [
    {
        "id": "ZONE-001",
        "name": "Main Freezer A",
        "location": "Warehouse Section 1",
        "sensor_id": "SNS-001",
        "current_temp": -18.5,
        "target_temp": -18.0,
        "min_threshold": -20.0,
        "max_threshold": -16.0,
        "is_active": True,
    },
    {
        "id": "ZONE-002",
        "name": "Ice Cream Storage",
        "location": "Warehouse Section 2",
        "sensor_id": "SNS-002",
        "current_temp": -22.1,
        "target_temp": -20.0,
        "min_threshold": -22.0,
        "max_threshold": -18.0,
        "is_active": True,
    },
    {
        "id": "ZONE-003",
        "name": "Fresh Fish Freezer",
        "location": "Warehouse Section 3",
        "sensor_id": "SNS-003",
        "current_temp": -15.8,
        "target_temp": -18.0,
        "min_threshold": -20.0,
        "max_threshold": -16.0,
        "is_active": True,
    },
    {
        "id": "ZONE-004",
        "name": "Delivery Truck 1",
        "location": "Vehicle Fleet",
        "sensor_id": "SNS-004",
        "current_temp": -17.2,
        "target_temp": -18.0,
        "min_threshold": -20.0,
        "max_threshold": -15.0,
        "is_active": True,
    },
]


class MockBackend:
    """Row store keyed by entity name, standing in for the hosted database."""

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self._entities: Dict[str, Dict[str, Row]] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            try:
                persistence_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise BackendUnavailable(f"Cannot prepare {persistence_path}: {exc}") from exc
            self._load_from_disk()

    def fetch_rows(self, entity: str, predicate: Optional[RowPredicate] = None) -> List[Row]:
        with self._lock:
            rows = [copy.deepcopy(row) for row in self._entities.get(entity, {}).values()]
        if predicate is None:
            return rows
        return [row for row in rows if predicate(row)]

    def insert_row(self, entity: str, row: Row) -> Row:
        key = row.get("id")
        if not key:
            raise ValueError(f"Rows inserted into {entity!r} need an 'id'.")
        with self._lock:
            rows = {**self._entities.get(entity, {}), str(key): copy.deepcopy(row)}
            self._commit(entity, rows)
        return copy.deepcopy(row)

    def update_row(self, entity: str, key: str, changes: Row) -> Row:
        with self._lock:
            current = self._entities.get(entity, {}).get(key)
            if current is None:
                raise NotFoundError(f"Row {key!r} not found in {entity!r}.")
            updated = {**current, **copy.deepcopy(changes), "id": key}
            self._commit(entity, {**self._entities[entity], key: updated})
            return copy.deepcopy(updated)

    def _commit(self, entity: str, rows: Dict[str, Row]) -> None:
        # Memory only changes once the write has succeeded.
        candidate = {**self._entities, entity: rows}
        self._persist(candidate)
        self._entities = candidate

    def _persist(self, entities: Dict[str, Dict[str, Row]]) -> None:
        if not self.persistence_path:
            return
        try:
            self.persistence_path.write_text(
                json.dumps(entities, indent=2, sort_keys=True, default=str)
            )
        except (OSError, TypeError) as exc:
            logger.error(
                "Backend write failed",
                extra={"reason": str(exc)},
            )
            raise BackendUnavailable(f"Cannot write {self.persistence_path}: {exc}") from exc

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError) as exc:
            raise BackendUnavailable(f"Cannot read {self.persistence_path}: {exc}") from exc

        for entity, rows in data.items():
            self._entities[entity] = {str(key): row for key, row in rows.items()}


def seed_default_zones(backend: MockBackend) -> int:
    """Insert the demo zones when the backend has none; returns rows inserted."""
    if backend.fetch_rows(ZONES_ENTITY):
        return 0
    for row in DEFAULT_ZONE_ROWS:
        backend.insert_row(ZONES_ENTITY, row)
    logger.info("Seeded default zones", extra={"entity": ZONES_ENTITY})
    return len(DEFAULT_ZONE_ROWS)


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def zone_config_from_row(row: Row) -> ZoneConfig:
    try:
        return ZoneConfig(
            id=str(row["id"]),
            name=str(row.get("name") or row["id"]),
            location=str(row.get("location") or ""),
            sensor_id=str(row.get("sensor_id") or row["id"]),
            target_temp=float(row["target_temp"]),
            min_threshold=float(row["min_threshold"]),
            max_threshold=float(row["max_threshold"]),
            current_temp=_optional_float(row.get("current_temp")),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError(f"Malformed zone row {row.get('id')!r}: {exc}") from exc


def load_zone_configs(backend: MockBackend) -> List[ZoneConfig]:
    """Read active zone configuration rows; malformed rows are logged and skipped."""
    configs: List[ZoneConfig] = []
    rows = backend.fetch_rows(ZONES_ENTITY, lambda row: row.get("is_active", True) is not False)
    for row in sorted(rows, key=lambda item: str(item.get("id"))):
        try:
            configs.append(zone_config_from_row(row))
        except ValueError as exc:
            logger.warning(
                "Skipping zone row",
                extra={"zone_id": row.get("id"), "entity": ZONES_ENTITY, "reason": str(exc)},
            )
    return configs


@lru_cache
def build_default_backend(path: Optional[str] = None) -> MockBackend:
    settings = get_settings()
    backend_path = settings.backend_persistence_path if path is None else path
    persistence = Path(backend_path) if backend_path else None
    return MockBackend(persistence_path=persistence)
