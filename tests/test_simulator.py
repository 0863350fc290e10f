"""Tests for the drift simulator and its timer handle."""

from __future__ import annotations

import random
import threading

import pytest

from models.records import AlertType, ZoneConfig, ZoneStatus
from services.registry import ZoneRegistry
from services.simulator import DriftSimulator


class ScriptedRandom:
    """Deterministic stand-in: always drifts upward by the full delta."""

    def __init__(self, flip_draw: float = 0.99) -> None:
        self.flip_draw = flip_draw

    def choice(self, seq):
        return seq[-1]

    def random(self) -> float:
        return self.flip_draw

    def uniform(self, low: float, high: float) -> float:
        return high


def _registry() -> ZoneRegistry:
    return ZoneRegistry(
        [
            ZoneConfig(
                id="ZONE-001",
                name="Main Freezer A",
                location="Warehouse Section 1",
                sensor_id="SNS-001",
                target_temp=-18.0,
                min_threshold=-20.0,
                max_threshold=-16.0,
            ),
            ZoneConfig(
                id="ZONE-002",
                name="Ice Cream Storage",
                location="Warehouse Section 2",
                sensor_id="SNS-002",
                target_temp=-20.0,
                min_threshold=-22.0,
                max_threshold=-18.0,
            ),
        ]
    )


def test_tick_drifts_every_zone_through_update_reading() -> None:
    registry = _registry()
    simulator = DriftSimulator(registry, max_delta=0.5, rng=ScriptedRandom())

    alerts = [simulator.tick() for _ in range(5)]

    zone = registry.get_zone("ZONE-001")
    assert zone.current_temp == -15.5
    assert zone.status is ZoneStatus.warning
    assert registry.get_zone("ZONE-002").current_temp == -17.5
    assert alerts == [0, 0, 0, 0, 2]
    assert {event.type for event in registry.ledger.list()} == {AlertType.temperature_high}


def test_flip_probability_reverses_direction() -> None:
    registry = _registry()
    simulator = DriftSimulator(
        registry,
        max_delta=0.5,
        flip_probability=0.5,
        rng=ScriptedRandom(flip_draw=0.0),
    )

    simulator.tick()
    assert registry.get_zone("ZONE-001").current_temp == -18.5
    simulator.tick()
    assert registry.get_zone("ZONE-001").current_temp == -18.0


def test_zero_delta_keeps_readings_stable() -> None:
    registry = _registry()
    simulator = DriftSimulator(registry, max_delta=0.0, rng=random.Random(7))

    for _ in range(3):
        assert simulator.tick() == 0

    assert [zone.current_temp for zone in registry.list_zones()] == [-18.0, -20.0]


def test_tick_uses_injected_feed() -> None:
    calls = []

    def feed(zone_id: str, temperature: float, online: bool):
        calls.append((zone_id, temperature, online))
        return None

    simulator = DriftSimulator(_registry(), max_delta=0.5, rng=ScriptedRandom(), feed=feed)
    simulator.tick()

    assert calls == [("ZONE-001", -17.5, True), ("ZONE-002", -19.5, True)]


def test_handle_runs_ticks_until_closed() -> None:
    ticked = threading.Event()

    def feed(zone_id: str, temperature: float, online: bool):
        ticked.set()
        return None

    simulator = DriftSimulator(_registry(), interval=0.01, rng=random.Random(1), feed=feed)

    handle = simulator.start()
    try:
        assert ticked.wait(timeout=2.0)
        assert simulator.running
    finally:
        handle.close()

    assert not handle.running
    assert not simulator.running


def test_handle_is_a_scoped_resource() -> None:
    simulator = DriftSimulator(_registry(), interval=30.0)

    with simulator.start() as handle:
        assert handle.running
        with pytest.raises(RuntimeError):
            simulator.start()

    assert not simulator.running
    handle.close()

    with simulator.start():
        assert simulator.running
    assert not simulator.running


def test_handle_stops_when_block_raises() -> None:
    simulator = DriftSimulator(_registry(), interval=30.0)

    with pytest.raises(ValueError):
        with simulator.start():
            raise ValueError("boom")

    assert not simulator.running


def test_interval_must_be_positive() -> None:
    with pytest.raises(ValueError):
        DriftSimulator(_registry(), interval=0)


def test_tick_keeps_offline_zones_offline() -> None:
    registry = _registry()
    registry.update_reading("ZONE-002", -20.0, False)
    simulator = DriftSimulator(registry, max_delta=0.5, rng=ScriptedRandom())

    simulator.tick()

    assert registry.get_zone("ZONE-002").is_online is False
    assert registry.get_zone("ZONE-001").is_online is True
    assert len(registry.ledger) == 1
