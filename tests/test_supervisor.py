from __future__ import annotations

import asyncio
import dataclasses
import logging
import sys
from pathlib import Path

import pytest

from pyv2x._crypto.signing import generate_account
from pyv2x.exceptions import ProcessSpawnError, V2xValidationError
from pyv2x.models.worker import StartStatus
from pyv2x.supervisor import WorkerSupervisor

_DUMP_ENV = (
    "import os, sys; "
    "open(sys.argv[1], 'w').write(os.environ['V2X_VEHICLE_ID'] + '|' + os.environ['V2X_VEHICLE_PRIVATE_KEY'])"
)
_SLEEP = "import time; time.sleep(30)"


async def _wait_for(predicate, timeout: float = 10.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_worker_receives_identity_through_environment_only(config, tmp_path: Path, caplog) -> None:
    out = tmp_path / "env.txt"
    supervisor = WorkerSupervisor(
        dataclasses.replace(config, worker_command=(sys.executable, "-c", _DUMP_ENV, str(out))),
    )
    key = generate_account().private_key
    caplog.set_level(logging.DEBUG, logger="pyv2x.supervisor")
    try:
        result = await supervisor.start_chain_client("V1", key)
        assert result.status == StartStatus.STARTED
        assert result.mode == "chain"

        await _wait_for(lambda: not supervisor.is_running("V1"))
    finally:
        await supervisor.shutdown()

    assert out.read_text() == f"V1|{key}"
    assert key not in caplog.text
    assert supervisor.running() == []


@pytest.mark.asyncio
async def test_second_start_while_alive_is_already_running(config) -> None:
    supervisor = WorkerSupervisor(dataclasses.replace(config, worker_command=(sys.executable, "-c", _SLEEP)))
    key = generate_account().private_key
    try:
        first = await supervisor.start_chain_client("V1", key)
        second = await supervisor.start_chain_client("V1", key)
        other = await supervisor.start_chain_client("V2", key)

        assert first.status == StartStatus.STARTED
        assert second.status == StartStatus.ALREADY_RUNNING
        assert other.status == StartStatus.STARTED
        assert sorted(supervisor.running()) == [("V1", "chain"), ("V2", "chain")]
        assert supervisor.pid("V1") is not None
    finally:
        await supervisor.shutdown()

    assert supervisor.running() == []
    assert not supervisor.is_running("V1")


@pytest.mark.asyncio
async def test_exited_worker_can_be_started_again(config) -> None:
    supervisor = WorkerSupervisor(dataclasses.replace(config, worker_command=(sys.executable, "-c", "pass")))
    key = generate_account().private_key
    try:
        await supervisor.start_chain_client("V1", key)
        await _wait_for(lambda: not supervisor.is_running("V1"))

        again = await supervisor.start_chain_client("V1", key)
        assert again.status == StartStatus.STARTED
    finally:
        await supervisor.shutdown()


@pytest.mark.asyncio
async def test_spawn_failure_raises_and_tracks_nothing(config, tmp_path: Path) -> None:
    supervisor = WorkerSupervisor(dataclasses.replace(config, worker_command=(str(tmp_path / "missing-binary"),)))

    with pytest.raises(ProcessSpawnError) as exc_info:
        await supervisor.start_chain_client("V1", generate_account().private_key)

    assert exc_info.value.vehicle_id == "V1"
    assert supervisor.running() == []


@pytest.mark.asyncio
async def test_start_requires_id_and_key(config) -> None:
    supervisor = WorkerSupervisor(config)

    with pytest.raises(V2xValidationError):
        await supervisor.start_chain_client("", "0x01")
    with pytest.raises(V2xValidationError):
        await supervisor.start_chain_client("V1", "")
