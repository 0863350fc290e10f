"""Demo drift simulator standing in for a live sensor feed."""

from __future__ import annotations

import logging
import random
import threading
from typing import Callable, Dict, Optional

from models.errors import MonitorError
from models.records import AlertEvent
from services.registry import ZoneRegistry

logger = logging.getLogger(__name__)

ReadingFeed = Callable[[str, float, bool], Optional[AlertEvent]]


class SimulatorHandle:
    """Owns the repeating timer thread; closing it always stops the timer."""

    def __init__(self, simulator: "DriftSimulator", interval: float) -> None:
        self._simulator = simulator
        self._interval = interval
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name="drift-simulator", daemon=True
        )

    @property
    def running(self) -> bool:
        return self._thread.is_alive() and not self._stop.is_set()

    def start(self) -> "SimulatorHandle":
        self._thread.start()
        return self

    def close(self, timeout: Optional[float] = 5.0) -> None:
        if self._stop.is_set():
            return
        self._stop.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
        self._simulator._release(self)

    def __enter__(self) -> "SimulatorHandle":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._simulator.tick()
            except MonitorError:
                logger.exception("Drift tick failed")


class DriftSimulator:
    """Perturbs every zone's reading by a small random delta on each tick."""

    def __init__(
        self,
        registry: ZoneRegistry,
        interval: float = 60.0,
        max_delta: float = 0.3,
        flip_probability: float = 0.1,
        rng: Optional[random.Random] = None,
        feed: Optional[ReadingFeed] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("Simulator interval must be positive.")
        self.registry = registry
        self.interval = interval
        self.max_delta = max_delta
        self.flip_probability = flip_probability
        self._rng = rng or random.Random()
        self._feed: ReadingFeed = feed or registry.update_reading
        self._directions: Dict[str, int] = {}
        self._handle: Optional[SimulatorHandle] = None
        self._handle_lock = threading.Lock()

    def tick(self) -> int:
        """Advance every zone once, in registry order; returns alerts recorded."""
        recorded = 0
        for zone in self.registry.list_zones():
            direction = self._directions.get(zone.id)
            if direction is None:
                direction = self._rng.choice((-1, 1))
            if self._rng.random() < self.flip_probability:
                direction = -direction
            self._directions[zone.id] = direction

            delta = self._rng.uniform(0.0, self.max_delta) * direction
            new_temp = round(zone.current_temp + delta, 1)
            if self._feed(zone.id, new_temp, zone.is_online) is not None:
                recorded += 1
        logger.debug("Drift tick complete (%d alerts)", recorded)
        return recorded

    def start(self) -> SimulatorHandle:
        with self._handle_lock:
            if self._handle is not None:
                raise RuntimeError("Drift simulator is already running.")
            self._handle = SimulatorHandle(self, self.interval)
            handle = self._handle
        logger.info("Starting drift simulator (interval=%ss)", self.interval)
        return handle.start()

    @property
    def running(self) -> bool:
        with self._handle_lock:
            return self._handle is not None and self._handle.running

    def _release(self, handle: SimulatorHandle) -> None:
        with self._handle_lock:
            if self._handle is handle:
                self._handle = None
        logger.info("Drift simulator stopped")
