from __future__ import annotations

from typing import Any

import aiohttp
import pytest
from web3.exceptions import ContractLogicError, TimeExhausted, Web3RPCError

from pyv2x._transport import CALL_EXCEPTION, INSUFFICIENT_FUNDS, NETWORK_ERROR, SERVER_ERROR, Web3Backend
from pyv2x.config import V2xConfig
from pyv2x.exceptions import LedgerRejectionError, LedgerTimeoutError, LedgerTransportError, V2xConfigError


class _FakeEth:
    def __init__(self, receipt: dict[str, Any] | None = None, error: Exception | None = None) -> None:
        self._receipt = receipt or {"status": 1, "blockNumber": 7}
        self._error = error

    async def wait_for_transaction_receipt(self, _tx_hash: bytes, timeout: float, poll_latency: float) -> dict[str, Any]:
        if self._error is not None:
            raise self._error
        return self._receipt


class _FakeWeb3:
    def __init__(self, eth: _FakeEth) -> None:
        self.eth = eth


def _backend(session: aiohttp.ClientSession, config: V2xConfig, monkeypatch: pytest.MonkeyPatch, *, send_error=None, eth=None) -> Web3Backend:
    backend = Web3Backend(config, session)

    async def _no_session() -> None:
        return None

    async def _send(_function: str, _args: tuple[Any, ...], _value: int) -> bytes:
        if send_error is not None:
            raise send_error
        return b"\x11" * 32

    monkeypatch.setattr(backend, "_ensure_session", _no_session)
    monkeypatch.setattr(backend, "_send", _send)
    monkeypatch.setattr(backend, "_w3", _FakeWeb3(eth or _FakeEth()))
    return backend


@pytest.mark.asyncio
async def test_missing_settings_raise_config_error() -> None:
    async with aiohttp.ClientSession() as session:
        with pytest.raises(V2xConfigError):
            Web3Backend(V2xConfig(), session)


@pytest.mark.asyncio
async def test_confirmed_transaction_returns_hex_hash(config, monkeypatch: pytest.MonkeyPatch) -> None:
    async with aiohttp.ClientSession() as session:
        backend = _backend(session, config, monkeypatch)
        assert await backend.transact("revokeVehicle", b"\x00" * 32) == "0x" + "11" * 32


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error", "code"),
    [
        (ContractLogicError("execution reverted: Vehicle already registered"), CALL_EXCEPTION),
        (Web3RPCError("insufficient funds for gas * price + value"), INSUFFICIENT_FUNDS),
        (Web3RPCError("nonce too low"), SERVER_ERROR),
    ],
)
async def test_submission_errors_map_to_rejection_codes(config, monkeypatch: pytest.MonkeyPatch, error, code) -> None:
    async with aiohttp.ClientSession() as session:
        backend = _backend(session, config, monkeypatch, send_error=error)
        with pytest.raises(LedgerRejectionError) as exc_info:
            await backend.transact("registerVehicle", b"\x00" * 32, "0x70997970C51812dc3A010C7d01b50e0d17dc79C8")
    assert exc_info.value.code == code
    assert exc_info.value.operation == "registerVehicle"


@pytest.mark.asyncio
async def test_network_failure_maps_to_transport_error(config, monkeypatch: pytest.MonkeyPatch) -> None:
    async with aiohttp.ClientSession() as session:
        backend = _backend(session, config, monkeypatch, send_error=aiohttp.ClientConnectionError("refused"))
        with pytest.raises(LedgerTransportError) as exc_info:
            await backend.transact("deposit", value=1)
    assert exc_info.value.code == NETWORK_ERROR


@pytest.mark.asyncio
async def test_receipt_wait_exhausted_maps_to_timeout(config, monkeypatch: pytest.MonkeyPatch) -> None:
    async with aiohttp.ClientSession() as session:
        backend = _backend(session, config, monkeypatch, eth=_FakeEth(error=TimeExhausted("not mined")))
        with pytest.raises(LedgerTimeoutError):
            await backend.transact("deposit", value=1)


@pytest.mark.asyncio
async def test_reverted_receipt_is_call_exception(config, monkeypatch: pytest.MonkeyPatch) -> None:
    async with aiohttp.ClientSession() as session:
        backend = _backend(session, config, monkeypatch, eth=_FakeEth(receipt={"status": 0, "blockNumber": 9}))
        with pytest.raises(LedgerRejectionError) as exc_info:
            await backend.transact("payToll", "0x8626f6940E2eb28930eFb4CeF49B2d1F2C9C1199", 1)
    assert exc_info.value.code == CALL_EXCEPTION
