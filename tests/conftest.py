from __future__ import annotations

import asyncio
from collections import Counter
from typing import Any

import pytest

from pyv2x._constants import ZERO_ADDRESS
from pyv2x._crypto.signing import canonical_address, generate_account
from pyv2x._transport import CALL_EXCEPTION
from pyv2x.config import V2xConfig
from pyv2x.exceptions import LedgerRejectionError
from pyv2x.ledger import LedgerGateway

GATEWAY_ADDRESS = "0x00000000000000000000000000000000000000a1"


class InMemoryLedger:
    """In-memory stand-in for the V2XAuth contract behind a LedgerBackend.

    Reverts the way the contract does: duplicate registration, revoking an
    unknown or already revoked hash and paying a toll without balance.
    ``failures`` maps a contract function to exceptions raised (in order) on
    its next invocations; ``gates`` blocks a function until the event is set.
    """

    def __init__(self, sender: str = GATEWAY_ADDRESS) -> None:
        self.sender = canonical_address(sender)
        self.vehicles: dict[bytes, dict[str, Any]] = {}
        self.balances: dict[str, int] = {}
        self.accidents: list[tuple[bytes, str, int, str]] = []
        self.tolls: list[tuple[str, str, int]] = []
        self.failures: dict[str, list[Exception]] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: Counter[str] = Counter()
        self.clock = 1_700_000_000
        self._tx = 0

    def fail(self, function: str, *errors: Exception) -> None:
        self.failures.setdefault(function, []).extend(errors)

    async def _enter(self, function: str) -> None:
        self.calls[function] += 1
        gate = self.gates.get(function)
        if gate is not None:
            await gate.wait()
        pending = self.failures.get(function)
        if pending:
            raise pending.pop(0)

    def _revert(self, function: str, reason: str) -> LedgerRejectionError:
        return LedgerRejectionError(f"{function} reverted: {reason}", code=CALL_EXCEPTION, operation=function, reason=reason)

    async def call(self, function: str, *args: Any) -> Any:
        await self._enter(function)
        if function == "isVehicleActive":
            record = self.vehicles.get(args[0])
            return bool(record and record["active"])
        if function == "getVehicle":
            record = self.vehicles.get(args[0])
            if record is None:
                return (ZERO_ADDRESS, False, 0, 0)
            return (record["address"], record["active"], record["registered_at"], record["revoked_at"])
        if function == "balances":
            return self.balances.get(canonical_address(args[0]), 0)
        raise AssertionError(f"unexpected call {function}")

    async def transact(self, function: str, *args: Any, value: int = 0) -> str:
        await self._enter(function)
        self.clock += 1
        if function == "registerVehicle":
            id_hash, address = args
            if id_hash in self.vehicles:
                raise self._revert(function, "Vehicle already registered")
            self.vehicles[id_hash] = {
                "address": canonical_address(address),
                "active": True,
                "registered_at": self.clock,
                "revoked_at": 0,
            }
        elif function == "revokeVehicle":
            record = self.vehicles.get(args[0])
            if record is None or not record["active"]:
                raise self._revert(function, "Vehicle not active")
            record["active"] = False
            record["revoked_at"] = self.clock
        elif function == "deposit":
            self.balances[self.sender] = self.balances.get(self.sender, 0) + value
        elif function == "payToll":
            operator, amount = canonical_address(args[0]), int(args[1])
            if self.balances.get(self.sender, 0) < amount:
                raise self._revert(function, "Insufficient balance")
            self.balances[self.sender] -= amount
            self.balances[operator] = self.balances.get(operator, 0) + amount
            self.tolls.append((self.sender, operator, amount))
        elif function == "reportAccident":
            id_hash, location, speed, details = args
            self.accidents.append((id_hash, location, speed, details))
        else:
            raise AssertionError(f"unexpected transaction {function}")
        self._tx += 1
        return "0x" + f"{self._tx:064x}"


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def gateway(ledger: InMemoryLedger) -> LedgerGateway:
    return LedgerGateway(ledger)


@pytest.fixture
def config() -> V2xConfig:
    return V2xConfig(
        private_key=generate_account().private_key,
        contract_address="0x5FbDB2315678afecb367f032d93F642f64180aa3",
        telemetry_interval=0.01,
    )
