"""Per-vehicle periodic telemetry simulation.

The scheduler owns one asyncio task per vehicle id. Tasks are enumerable
and live until :meth:`TelemetryScheduler.shutdown`; there is no
per-vehicle stop. A failing tick is logged and the task keeps going, and no
task can affect another vehicle's task.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
from collections.abc import Awaitable, Callable

from pyv2x._constants import SIMULATED_MODE
from pyv2x.config import V2xConfig
from pyv2x.models.telemetry import TelemetrySample
from pyv2x.models.worker import StartResult, StartStatus

_logger = logging.getLogger(__name__)

SampleSink = Callable[[TelemetrySample], Awaitable[object]]


class RandomWalk:
    """Bounded random-walk motion model for one vehicle.

    Each step moves latitude and longitude by ``uniform(-0.5, 0.5) * step``
    degrees, samples an integer speed in ``[min_speed, max_speed]`` and
    forces a stop with probability ``stop_probability``.
    """

    def __init__(
        self,
        vehicle_id: str,
        *,
        lat: float,
        long: float,
        step: float,
        min_speed: int,
        max_speed: int,
        stop_probability: float,
        rng: random.Random | None = None,
    ) -> None:
        self.vehicle_id = vehicle_id
        self.lat = lat
        self.long = long
        self.speed = 0
        self._step = step
        self._min_speed = min_speed
        self._max_speed = max_speed
        self._stop_probability = stop_probability
        self._rng = rng or random.Random()

    @classmethod
    def from_config(cls, vehicle_id: str, config: V2xConfig, *, rng: random.Random | None = None) -> RandomWalk:
        return cls(
            vehicle_id,
            lat=config.start_latitude,
            long=config.start_longitude,
            step=config.walk_step,
            min_speed=config.min_speed_kmh,
            max_speed=config.max_speed_kmh,
            stop_probability=config.stop_probability,
            rng=rng,
        )

    def step(self) -> TelemetrySample:
        self.lat = min(90.0, max(-90.0, self.lat + self._rng.uniform(-0.5, 0.5) * self._step))
        self.long = min(180.0, max(-180.0, self.long + self._rng.uniform(-0.5, 0.5) * self._step))
        self.speed = self._rng.randint(self._min_speed, self._max_speed)
        if self._rng.random() < self._stop_probability:
            self.speed = 0
        return TelemetrySample(vehicle_id=self.vehicle_id, lat=self.lat, long=self.long, speed_kmh=self.speed)


class TelemetryScheduler:
    """At most one simulated telemetry task per vehicle id.

    Parameters
    ----------
    sink : callable
        Awaited with every produced sample (normally
        :meth:`pyv2x.telemetry.TelemetryService.update`).
    config : V2xConfig
        Tick period and motion model bounds.
    rng_factory : callable, optional
        Builds the random source of each vehicle's walk (tests pass seeded
        generators).
    """

    def __init__(
        self,
        sink: SampleSink,
        *,
        config: V2xConfig,
        rng_factory: Callable[[str], random.Random] | None = None,
    ) -> None:
        self._sink = sink
        self._config = config
        self._rng_factory = rng_factory
        self._tasks: dict[str, asyncio.Task[None]] = {}

    def running(self) -> list[str]:
        return [vehicle_id for vehicle_id, task in self._tasks.items() if not task.done()]

    def is_running(self, vehicle_id: str) -> bool:
        task = self._tasks.get(vehicle_id)
        return task is not None and not task.done()

    def start(self, vehicle_id: str) -> StartResult:
        if self.is_running(vehicle_id):
            return StartResult(vehicle_id=vehicle_id, status=StartStatus.ALREADY_RUNNING, mode=SIMULATED_MODE)

        rng = self._rng_factory(vehicle_id) if self._rng_factory is not None else None
        walk = RandomWalk.from_config(vehicle_id, self._config, rng=rng)
        task = asyncio.get_running_loop().create_task(self._run(walk), name=f"telemetry-{vehicle_id}")
        self._tasks[vehicle_id] = task
        task.add_done_callback(lambda done, vid=vehicle_id: self._forget(vid, done))
        _logger.info("Simulated telemetry started for %s", vehicle_id)
        return StartResult(vehicle_id=vehicle_id, status=StartStatus.STARTED, mode=SIMULATED_MODE)

    def _forget(self, vehicle_id: str, task: asyncio.Task[None]) -> None:
        if self._tasks.get(vehicle_id) is task:
            del self._tasks[vehicle_id]

    async def _tick(self, walk: RandomWalk) -> None:
        await self._sink(walk.step())

    async def _run(self, walk: RandomWalk) -> None:
        interval = self._config.telemetry_interval
        while True:
            await asyncio.sleep(interval)
            try:
                await self._tick(walk)
            except Exception:
                _logger.warning("Telemetry tick for %s failed", walk.vehicle_id, exc_info=True)

    async def shutdown(self) -> None:
        """Cancel every task and wait for them to finish."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()
