from __future__ import annotations

import asyncio
import random

import pytest

from pyv2x.models.telemetry import TelemetrySample
from pyv2x.models.worker import StartStatus
from pyv2x.scheduler import RandomWalk, TelemetryScheduler


class _RecordingSink:
    def __init__(self, failing: set[str] | None = None) -> None:
        self.samples: dict[str, list[TelemetrySample]] = {}
        self.attempts: dict[str, int] = {}
        self._failing = failing or set()

    async def __call__(self, sample: TelemetrySample) -> None:
        self.attempts[sample.vehicle_id] = self.attempts.get(sample.vehicle_id, 0) + 1
        if sample.vehicle_id in self._failing:
            raise RuntimeError("settlement exploded")
        self.samples.setdefault(sample.vehicle_id, []).append(sample)


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.005)


def test_random_walk_stays_near_start_and_within_speed_bounds() -> None:
    walk = RandomWalk(
        "V1",
        lat=12.9716,
        long=77.5946,
        step=0.001,
        min_speed=20,
        max_speed=79,
        stop_probability=0.0,
        rng=random.Random(7),
    )

    for _ in range(50):
        sample = walk.step()
        assert sample.vehicle_id == "V1"
        assert 20 <= sample.speed_kmh <= 79
    assert abs(walk.lat - 12.9716) <= 50 * 0.0005
    assert abs(walk.long - 77.5946) <= 50 * 0.0005


def test_random_walk_forced_stop() -> None:
    walk = RandomWalk(
        "V1",
        lat=0.0,
        long=0.0,
        step=0.001,
        min_speed=20,
        max_speed=79,
        stop_probability=1.0,
        rng=random.Random(1),
    )
    assert walk.step().speed_kmh == 0


@pytest.mark.asyncio
async def test_second_start_reports_already_running(config) -> None:
    sink = _RecordingSink()
    scheduler = TelemetryScheduler(sink, config=config)
    try:
        first = scheduler.start("V1")
        second = scheduler.start("V1")

        assert first.status == StartStatus.STARTED
        assert second.status == StartStatus.ALREADY_RUNNING
        assert first.mode == "simulated"
        assert scheduler.running() == ["V1"]

        await _wait_for(lambda: len(sink.samples.get("V1", [])) >= 2)
    finally:
        await scheduler.shutdown()


@pytest.mark.asyncio
async def test_failing_tick_does_not_stop_task_or_other_vehicles(config) -> None:
    sink = _RecordingSink(failing={"V1"})
    scheduler = TelemetryScheduler(sink, config=config, rng_factory=lambda vid: random.Random(vid))
    try:
        scheduler.start("V1")
        scheduler.start("V2")

        await _wait_for(lambda: sink.attempts.get("V1", 0) >= 3 and len(sink.samples.get("V2", [])) >= 3)

        assert scheduler.is_running("V1")
        assert scheduler.is_running("V2")
        assert "V1" not in sink.samples
    finally:
        await scheduler.shutdown()


@pytest.mark.asyncio
async def test_shutdown_cancels_every_task(config) -> None:
    scheduler = TelemetryScheduler(_RecordingSink(), config=config)
    scheduler.start("V1")
    scheduler.start("V2")

    await scheduler.shutdown()

    assert scheduler.running() == []
    assert not scheduler.is_running("V1")
