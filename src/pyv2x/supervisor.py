"""Supervisor for detached ledger-connected worker processes.

At most one worker runs per ``(vehicle_id, "chain")`` key. The vehicle's
signing key reaches the worker only through its environment; the argument
vector (visible in process listings) never carries it, and log records
redact it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from pyv2x._constants import CHAIN_MODE, WORKER_ENV_PRIVATE_KEY, WORKER_ENV_VEHICLE_ID
from pyv2x._keyed import KeyedLocks
from pyv2x._redact import redact_for_log
from pyv2x.config import V2xConfig
from pyv2x.exceptions import ProcessSpawnError, V2xValidationError
from pyv2x.models.worker import StartResult, StartStatus

_logger = logging.getLogger(__name__)

WorkerKey = tuple[str, str]


@dataclass(slots=True)
class _Worker:
    process: asyncio.subprocess.Process
    watcher: asyncio.Task[None] | None = None


class WorkerSupervisor:
    """Start and track worker processes.

    Parameters
    ----------
    config : V2xConfig
        Supplies ``worker_command`` and ``worker_stop_timeout``.
    base_env : Mapping, optional
        Environment the worker inherits; defaults to ``os.environ``.
    """

    def __init__(self, config: V2xConfig, *, base_env: Mapping[str, str] | None = None) -> None:
        self._config = config
        self._base_env = base_env
        self._workers: dict[WorkerKey, _Worker] = {}
        self._locks = KeyedLocks()

    def running(self) -> list[WorkerKey]:
        return [key for key, worker in self._workers.items() if worker.process.returncode is None]

    def is_running(self, vehicle_id: str, mode: str = CHAIN_MODE) -> bool:
        worker = self._workers.get((vehicle_id, mode))
        return worker is not None and worker.process.returncode is None

    def pid(self, vehicle_id: str, mode: str = CHAIN_MODE) -> int | None:
        worker = self._workers.get((vehicle_id, mode))
        return worker.process.pid if worker is not None else None

    def _child_env(self, vehicle_id: str, private_key: str) -> dict[str, str]:
        env = dict(os.environ if self._base_env is None else self._base_env)
        env[WORKER_ENV_VEHICLE_ID] = vehicle_id
        env[WORKER_ENV_PRIVATE_KEY] = private_key
        return env

    async def start_chain_client(self, vehicle_id: str, private_key: str) -> StartResult:
        """Spawn the ledger-connected worker for *vehicle_id* unless one is alive.

        Raises
        ------
        V2xValidationError
            Missing vehicle id or private key.
        ProcessSpawnError
            The worker could not be started; nothing is tracked.
        """
        if not vehicle_id or not vehicle_id.strip():
            raise V2xValidationError("vehicleId is required")
        if not private_key:
            raise V2xValidationError("privateKey is required")

        key: WorkerKey = (vehicle_id, CHAIN_MODE)
        async with self._locks.hold(key):
            if self.is_running(vehicle_id):
                return StartResult(vehicle_id=vehicle_id, status=StartStatus.ALREADY_RUNNING, mode=CHAIN_MODE)

            command = tuple(self._config.worker_command)
            env = self._child_env(vehicle_id, private_key)
            _logger.debug(
                "Spawning worker %s",
                redact_for_log(
                    {
                        "command": list(command),
                        WORKER_ENV_VEHICLE_ID: vehicle_id,
                        WORKER_ENV_PRIVATE_KEY: private_key,
                    }
                ),
            )
            try:
                process = await asyncio.create_subprocess_exec(
                    *command,
                    env=env,
                    stdin=asyncio.subprocess.DEVNULL,
                    start_new_session=True,
                )
            except (OSError, ValueError) as exc:
                raise ProcessSpawnError(f"Failed to start chain vehicle client: {exc}", vehicle_id=vehicle_id) from exc

            worker = _Worker(process=process)
            self._workers[key] = worker
            worker.watcher = asyncio.get_running_loop().create_task(
                self._watch(key, worker),
                name=f"worker-watch-{vehicle_id}",
            )

        _logger.info("Chain vehicle client started for %s (pid=%s)", vehicle_id, process.pid)
        return StartResult(vehicle_id=vehicle_id, status=StartStatus.STARTED, mode=CHAIN_MODE)

    async def _watch(self, key: WorkerKey, worker: _Worker) -> None:
        returncode = await worker.process.wait()
        if self._workers.get(key) is worker:
            del self._workers[key]
        _logger.info("Chain vehicle client for %s exited (code=%s)", key[0], returncode)

    async def _stop(self, worker: _Worker) -> None:
        process = worker.process
        if process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.terminate()
            try:
                await asyncio.wait_for(process.wait(), self._config.worker_stop_timeout)
            except TimeoutError:
                _logger.warning("Worker pid=%s ignored terminate, killing", process.pid)
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()
        if worker.watcher is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await worker.watcher

    async def shutdown(self) -> None:
        """Terminate every live worker (kill after the grace period)."""
        workers = list(self._workers.values())
        await asyncio.gather(*(self._stop(worker) for worker in workers))
        self._workers.clear()
