"""Ledger gateway: idempotent, confirmation-blocking identity and settlement writes.

Every state-changing operation returns only after the ledger confirmed the
transaction. A rejection that the :class:`~pyv2x.classifier.ErrorClassifier`
recognises as an already-applied transition comes back as a receipt with
status :attr:`~pyv2x.models.ledger.ReceiptStatus.IDEMPOTENT`, so callers never
need to distinguish "first success" from "already done". Everything else
propagates. The gateway never retries.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from pyv2x._constants import ZERO_ADDRESS
from pyv2x._crypto.hashing import hash_vehicle_id, hash_vehicle_id_hex
from pyv2x._crypto.signing import canonical_address, is_valid_address
from pyv2x._transport import LedgerBackend
from pyv2x.classifier import ErrorClassifier, FailureKind, evm_classifier
from pyv2x.exceptions import LedgerRejectionError, V2xValidationError
from pyv2x.models.identity import VehicleIdentity
from pyv2x.models.ledger import LedgerReceipt, ReceiptStatus

_logger = logging.getLogger(__name__)

REGISTER_IDENTITY = "register_identity"
REVOKE_IDENTITY = "revoke_identity"
CHARGE_ACCOUNT = "charge_account"
REPORT_ACCIDENT = "report_accident_on_ledger"
DEPOSIT = "deposit"


def _require_vehicle_id(vehicle_id: str) -> str:
    if not isinstance(vehicle_id, str) or not vehicle_id.strip():
        raise V2xValidationError("vehicleId is required")
    return vehicle_id.strip()


def _require_address(address: str, *, field: str = "address") -> str:
    if not is_valid_address(address):
        raise V2xValidationError(f"Invalid {field}: {address!r}")
    return canonical_address(address)


def _identity_from_raw(vehicle_id: str, raw: Any) -> VehicleIdentity | None:
    """Build a :class:`VehicleIdentity` from a ``getVehicle`` struct.

    Accepts the positional tuple web3 returns as well as a mapping with the
    struct's field names. The contract returns the zero address for unknown
    hashes.
    """
    if isinstance(raw, Mapping):
        address = raw.get("vehicleAddress")
        active = raw.get("active")
        registered_at = raw.get("registeredAt")
        revoked_at = raw.get("revokedAt")
    elif isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)) and len(raw) >= 4:
        address, active, registered_at, revoked_at = raw[0], raw[1], raw[2], raw[3]
    else:
        return None

    if not address or not is_valid_address(address) or canonical_address(address) == ZERO_ADDRESS:
        return None
    return VehicleIdentity(
        vehicle_id=vehicle_id,
        id_hash=hash_vehicle_id_hex(vehicle_id),
        signing_address=canonical_address(address),
        active=bool(active),
        registered_at=registered_at,
        revoked_at=revoked_at,
    )


class LedgerGateway:
    """Typed, classified access to the V2XAuth contract.

    Parameters
    ----------
    backend : LedgerBackend
        Contract transport (see :class:`pyv2x._transport.Web3Backend`).
    classifier : ErrorClassifier, optional
        Duplicate-vs-genuine rejection mapping. Defaults to the EVM rules.
    """

    def __init__(self, backend: LedgerBackend, *, classifier: ErrorClassifier | None = None) -> None:
        self._backend = backend
        self._classifier = classifier or evm_classifier()

    @property
    def classifier(self) -> ErrorClassifier:
        return self._classifier

    async def _write(self, operation: str, function: str, *args: Any, value: int = 0) -> LedgerReceipt:
        try:
            tx_hash = await self._backend.transact(function, *args, value=value)
        except LedgerRejectionError as exc:
            kind = self._classifier.classify(operation, exc.code, exc.reason)
            if kind == FailureKind.IDEMPOTENT:
                _logger.warning("%s: ledger reports already applied (code=%s), treating as success", operation, exc.code)
                return LedgerReceipt(operation=operation, status=ReceiptStatus.IDEMPOTENT)
            raise LedgerRejectionError(
                f"{operation} rejected: {exc}",
                code=exc.code,
                operation=operation,
                reason=exc.reason,
            ) from exc
        _logger.debug("%s confirmed tx=%s", operation, tx_hash)
        return LedgerReceipt(operation=operation, status=ReceiptStatus.CONFIRMED, tx_hash=tx_hash)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    async def register_identity(self, vehicle_id: str, address: str) -> LedgerReceipt:
        """Bind ``hash(vehicle_id)`` to *address*; idempotent."""
        vehicle_id = _require_vehicle_id(vehicle_id)
        address = _require_address(address, field="vehicleAddress")
        _logger.info("Registering vehicle %s (hash: %s) to %s", vehicle_id, hash_vehicle_id_hex(vehicle_id), address)
        return await self._write(REGISTER_IDENTITY, "registerVehicle", hash_vehicle_id(vehicle_id), address)

    async def revoke_identity(self, vehicle_id: str) -> LedgerReceipt:
        """Mark the identity inactive. Unknown identities are a genuine rejection."""
        vehicle_id = _require_vehicle_id(vehicle_id)
        _logger.info("Revoking vehicle %s", vehicle_id)
        return await self._write(REVOKE_IDENTITY, "revokeVehicle", hash_vehicle_id(vehicle_id))

    async def query_active(self, vehicle_id: str) -> bool:
        vehicle_id = _require_vehicle_id(vehicle_id)
        return bool(await self._backend.call("isVehicleActive", hash_vehicle_id(vehicle_id)))

    async def query_identity(self, vehicle_id: str) -> VehicleIdentity | None:
        """Read the identity record; ``None`` when the hash was never registered."""
        vehicle_id = _require_vehicle_id(vehicle_id)
        raw = await self._backend.call("getVehicle", hash_vehicle_id(vehicle_id))
        return _identity_from_raw(vehicle_id, raw)

    # ------------------------------------------------------------------
    # Balances and settlement
    # ------------------------------------------------------------------

    async def query_balance(self, address: str) -> int:
        """Prepaid balance of *address* in ledger units."""
        address = _require_address(address)
        return int(await self._backend.call("balances", address))

    async def charge_account(self, operator: str, amount: int) -> LedgerReceipt:
        """Pay *amount* ledger units to the toll *operator*."""
        operator = _require_address(operator, field="operator")
        if amount <= 0:
            raise V2xValidationError(f"amount must be positive, got {amount}")
        return await self._write(CHARGE_ACCOUNT, "payToll", operator, int(amount))

    async def report_accident_on_ledger(
        self,
        id_hash: bytes,
        location: str,
        speed: int,
        details: str,
    ) -> LedgerReceipt:
        if len(id_hash) != 32:
            raise V2xValidationError("id_hash must be 32 bytes")
        return await self._write(REPORT_ACCIDENT, "reportAccident", bytes(id_hash), location, max(0, int(speed)), details)

    async def deposit(self, amount: int) -> LedgerReceipt:
        """Top up the signing account's prepaid balance by *amount* ledger units."""
        if amount <= 0:
            raise V2xValidationError(f"amount must be positive, got {amount}")
        return await self._write(DEPOSIT, "deposit", value=int(amount))
