"""Ledger-connected vehicle client, run as a detached worker process.

The vehicle id and signing key arrive through the ``V2X_VEHICLE_ID`` and
``V2X_VEHICLE_PRIVATE_KEY`` environment variables. Ledger settings come from
the usual ``ETH_RPC_URL`` / ``CONTRACT_ADDRESS`` variables; the node's own
``PRIVATE_KEY`` is not needed, every transaction is signed with the vehicle key.

Usage::

    V2X_VEHICLE_ID=V2X-1A2B3C4D V2X_VEHICLE_PRIVATE_KEY=0x... pyv2x-worker -v
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import random
import signal
import sys
from decimal import Decimal

import aiohttp

from pyv2x._constants import ACCIDENT_DETAILS, WORKER_ENV_PRIVATE_KEY, WORKER_ENV_VEHICLE_ID
from pyv2x._crypto.hashing import hash_vehicle_id_hex
from pyv2x._crypto.signing import address_of
from pyv2x._transport import Web3Backend
from pyv2x._units import to_display_units, to_ledger_units
from pyv2x.config import V2xConfig
from pyv2x.exceptions import V2xError
from pyv2x.geofence import GeofenceIndex
from pyv2x.ledger import LedgerGateway
from pyv2x.models.geofence import AccidentOutcome, SettlementOutcome
from pyv2x.scheduler import RandomWalk
from pyv2x.settlement import SettlementEngine

_logger = logging.getLogger(__name__)


class ChainVehicleClient:
    """Drive one vehicle against the ledger with its own signing account.

    Parameters
    ----------
    gateway : LedgerGateway
        Gateway whose backend signs with the vehicle's key.
    config : V2xConfig
        Motion model, geofence and top-up policy.
    vehicle_id : str
        Registered vehicle id.
    vehicle_address : str
        Address of the vehicle's signing account.
    rng : random.Random, optional
        Random source for motion and simulated crashes.
    """

    def __init__(
        self,
        gateway: LedgerGateway,
        config: V2xConfig,
        vehicle_id: str,
        vehicle_address: str,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self._gateway = gateway
        self._config = config
        self.vehicle_id = vehicle_id
        self.vehicle_address = vehicle_address
        self._rng = rng or random.Random()
        self._walk = RandomWalk.from_config(vehicle_id, config, rng=self._rng)
        self._engine = SettlementEngine(gateway, GeofenceIndex(config.pois))

    @property
    def engine(self) -> SettlementEngine:
        return self._engine

    async def prepare(self) -> bool:
        """Check the identity is active and top up a low prepaid balance.

        Returns ``False`` when the vehicle is not active on the ledger.
        """
        if not await self._gateway.query_active(self.vehicle_id):
            _logger.error("Vehicle %s is not active on the ledger", self.vehicle_id)
            return False

        balance = to_display_units(await self._gateway.query_balance(self.vehicle_address))
        _logger.info("Vehicle %s balance: %s ether", self.vehicle_id, balance)
        if balance < Decimal(self._config.low_balance_threshold):
            _logger.info("Depositing %s ether for %s", self._config.deposit_amount, self.vehicle_id)
            await self._gateway.deposit(to_ledger_units(self._config.deposit_amount))
        return True

    async def tick(self) -> tuple[SettlementOutcome, AccidentOutcome | None]:
        sample = self._walk.step()
        _logger.debug("GPS [%s]: %.6f, %.6f @ %skm/h", self.vehicle_id, sample.lat, sample.long, sample.speed_kmh)
        outcome = await self._engine.process_sample(sample)

        accident: AccidentOutcome | None = None
        if self._rng.random() < self._config.accident_probability:
            location = f"{sample.lat:.4f},{sample.long:.4f}"
            _logger.warning("Simulated crash for %s at %s", self.vehicle_id, location)
            accident = await self._engine.report_accident(
                self.vehicle_id,
                location,
                sample.speed_kmh,
                ACCIDENT_DETAILS,
                timestamp=sample.timestamp,
            )
        return outcome, accident

    async def run(self, stop: asyncio.Event, *, max_ticks: int | None = None) -> int:
        """Tick every ``telemetry_interval`` seconds until *stop* is set.

        Returns the number of completed ticks.
        """
        ticks = 0
        while not stop.is_set() and (max_ticks is None or ticks < max_ticks):
            try:
                await asyncio.wait_for(stop.wait(), self._config.telemetry_interval)
            except TimeoutError:
                pass
            else:
                break
            try:
                await self.tick()
            except V2xError:
                _logger.warning("Tick for %s failed", self.vehicle_id, exc_info=True)
            ticks += 1
        return ticks


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ledger-connected V2X vehicle client")
    parser.add_argument(
        "--max-ticks",
        type=int,
        default=None,
        help="Stop after N telemetry ticks (default: run until terminated).",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> int:
    vehicle_id = os.environ.get(WORKER_ENV_VEHICLE_ID, "").strip()
    private_key = os.environ.get(WORKER_ENV_PRIVATE_KEY, "").strip()
    if not vehicle_id or not private_key:
        print(f"{WORKER_ENV_VEHICLE_ID} and {WORKER_ENV_PRIVATE_KEY} must be set", file=sys.stderr)
        return 2

    config = V2xConfig.from_env()
    address = address_of(private_key)
    _logger.info("Starting chain client for %s (hash: %s, address: %s)", vehicle_id, hash_vehicle_id_hex(vehicle_id), address)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop.set)

    async with aiohttp.ClientSession() as session:
        gateway = LedgerGateway(Web3Backend(config, session, private_key=private_key))
        client = ChainVehicleClient(gateway, config, vehicle_id, address)
        if not await client.prepare():
            return 1
        ticks = await client.run(stop, max_ticks=args.max_ticks)

    _logger.info("Chain client for %s stopped after %d ticks", vehicle_id, ticks)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except V2xError as exc:
        print(f"Chain client failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
