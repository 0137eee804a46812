"""Ledger transport: contract calls and confirmed transactions over JSON-RPC."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

import aiohttp
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception, Web3RPCError

from pyv2x._abi import V2X_AUTH_ABI
from pyv2x._crypto.signing import canonical_address
from pyv2x.config import V2xConfig
from pyv2x.exceptions import (
    LedgerRejectionError,
    LedgerTimeoutError,
    LedgerTransportError,
    V2xConfigError,
)

_logger = logging.getLogger(__name__)

#: Error codes raised by backends, in the vocabulary of EVM client libraries.
CALL_EXCEPTION = "CALL_EXCEPTION"
INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
SERVER_ERROR = "SERVER_ERROR"
UNKNOWN_ERROR = "UNKNOWN_ERROR"
NETWORK_ERROR = "NETWORK_ERROR"
TIMEOUT = "TIMEOUT"


class LedgerBackend(Protocol):
    """Structural ledger interface used by :class:`pyv2x.ledger.LedgerGateway`.

    ``call`` runs a read-only contract function. ``transact`` submits a
    state-changing call and returns the transaction hash only after the
    ledger confirmed inclusion.

    Implementations raise :class:`LedgerRejectionError` (with a ``code``
    from this module's vocabulary) for rejected writes,
    :class:`LedgerTimeoutError` when confirmation is not observed in time and
    :class:`LedgerTransportError` for network failures.
    """

    async def call(self, function: str, *args: Any) -> Any: ...

    async def transact(self, function: str, *args: Any, value: int = 0) -> str: ...


def _classify_rpc_message(message: str) -> str:
    if "insufficient funds" in message.lower():
        return INSUFFICIENT_FUNDS
    return SERVER_ERROR


class Web3Backend:
    """V2XAuth contract backend built on web3.py.

    The JSON-RPC provider reuses the caller's aiohttp session so connection
    pooling and shutdown stay with the owner of the session.
    """

    def __init__(
        self,
        config: V2xConfig,
        http_session: aiohttp.ClientSession,
        *,
        private_key: str | None = None,
    ) -> None:
        key = private_key or config.private_key
        if not config.rpc_url or not key or not config.contract_address:
            raise V2xConfigError("Missing ledger config (ETH_RPC_URL, PRIVATE_KEY, CONTRACT_ADDRESS)")
        self._config = config
        self._http = http_session
        self._provider = AsyncHTTPProvider(
            config.rpc_url,
            request_kwargs={"timeout": aiohttp.ClientTimeout(total=config.request_timeout)},
        )
        self._w3 = AsyncWeb3(self._provider)
        self._account: LocalAccount = Account.from_key(key)
        self._contract = self._w3.eth.contract(
            address=Web3.to_checksum_address(canonical_address(config.contract_address)),
            abi=V2X_AUTH_ABI,
        )
        self._session_cached = False
        # Transactions from one signing account must take consecutive nonces.
        self._send_lock = asyncio.Lock()
        self._chain_id: int | None = None

    @property
    def address(self) -> str:
        """Address of the signing account paying for transactions."""
        return str(self._account.address)

    async def _ensure_session(self) -> None:
        if not self._session_cached:
            await self._provider.cache_async_session(self._http)
            self._session_cached = True

    async def _get_chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = int(await self._w3.eth.chain_id)
        return self._chain_id

    def _function(self, function: str, args: tuple[Any, ...]) -> Any:
        return getattr(self._contract.functions, function)(*args)

    async def call(self, function: str, *args: Any) -> Any:
        await self._ensure_session()
        _logger.debug("call %s", function)
        try:
            return await self._function(function, args).call()
        except ContractLogicError as exc:
            raise LedgerRejectionError(
                f"{function} reverted: {exc}",
                code=CALL_EXCEPTION,
                operation=function,
                reason=str(exc),
            ) from exc
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise LedgerTransportError(
                f"{function} failed: {exc!r}",
                code=NETWORK_ERROR,
                operation=function,
            ) from exc
        except Web3Exception as exc:
            raise LedgerRejectionError(
                f"{function} failed: {exc}",
                code=SERVER_ERROR if isinstance(exc, Web3RPCError) else UNKNOWN_ERROR,
                operation=function,
                reason=str(exc),
            ) from exc

    async def _send(self, function: str, args: tuple[Any, ...], value: int) -> Any:
        async with self._send_lock:
            nonce = await self._w3.eth.get_transaction_count(self._account.address, "pending")
            tx = await self._function(function, args).build_transaction(
                {
                    "from": self._account.address,
                    "nonce": nonce,
                    "value": value,
                    "chainId": await self._get_chain_id(),
                }
            )
            signed = self._account.sign_transaction(tx)
            return await self._w3.eth.send_raw_transaction(signed.raw_transaction)

    async def transact(self, function: str, *args: Any, value: int = 0) -> str:
        await self._ensure_session()
        try:
            tx_hash = await self._send(function, args, value)
            tx_hex = Web3.to_hex(tx_hash)
            _logger.debug("%s submitted tx=%s, waiting for confirmation", function, tx_hex)
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self._config.confirmation_timeout,
                poll_latency=self._config.poll_interval,
            )
        except TimeExhausted as exc:
            raise LedgerTimeoutError(
                f"{function} not confirmed within {self._config.confirmation_timeout}s",
                code=TIMEOUT,
                operation=function,
            ) from exc
        except ContractLogicError as exc:
            raise LedgerRejectionError(
                f"{function} reverted: {exc}",
                code=CALL_EXCEPTION,
                operation=function,
                reason=str(exc),
            ) from exc
        except Web3RPCError as exc:
            message = str(exc)
            raise LedgerRejectionError(
                f"{function} rejected: {message}",
                code=_classify_rpc_message(message),
                operation=function,
                reason=message,
            ) from exc
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise LedgerTransportError(
                f"{function} failed: {exc!r}",
                code=NETWORK_ERROR,
                operation=function,
            ) from exc
        except Web3Exception as exc:
            raise LedgerRejectionError(
                f"{function} failed: {exc}",
                code=UNKNOWN_ERROR,
                operation=function,
                reason=str(exc),
            ) from exc

        if int(receipt["status"]) != 1:
            raise LedgerRejectionError(
                f"{function} reverted in block {receipt.get('blockNumber')}",
                code=CALL_EXCEPTION,
                operation=function,
                reason="transaction reverted",
            )
        return tx_hex
