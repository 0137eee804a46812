"""Vehicle registry: the logical view of ledger-held identities.

Identity state (address, active flag, timestamps) is always read through
the ledger gateway and never cached. The registry only keeps two volatile
in-process indexes: the list of vehicles registered through this node and
the mobile-number lookup.
"""

from __future__ import annotations

import logging
import re
import secrets

from pyv2x._constants import VEHICLE_ID_PREFIX
from pyv2x._crypto.signing import canonical_address, generate_account, is_valid_address
from pyv2x._keyed import KeyedLocks
from pyv2x.exceptions import V2xValidationError
from pyv2x.ledger import LedgerGateway
from pyv2x.models.identity import RegisteredVehicle, RegistrationResult, VehicleIdentity
from pyv2x.models.ledger import LedgerReceipt

_logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


def normalize_mobile(mobile: str) -> str:
    """Strip everything but digits from a phone number."""
    return _NON_DIGITS.sub("", mobile)


def generate_vehicle_id() -> str:
    """Return a fresh ``V2X-XXXXXXXX`` identifier."""
    return f"{VEHICLE_ID_PREFIX}{secrets.token_hex(4).upper()}"


class VehicleRegistry:
    """Register, revoke and inspect vehicle identities."""

    def __init__(self, gateway: LedgerGateway) -> None:
        self._gateway = gateway
        self._locks = KeyedLocks()
        self._registered: dict[str, RegisteredVehicle] = {}
        self._mobile_index: dict[str, str] = {}

    async def register(
        self,
        vehicle_id: str | None = None,
        address: str | None = None,
        mobile: str | None = None,
    ) -> RegistrationResult:
        """Register a vehicle identity on the ledger.

        A missing *vehicle_id* is generated. A missing *address* requires a
        *mobile* number; a signing account is then generated and its private
        key returned in the result (and only there). Re-registering an
        existing id succeeds with ``tx_hash=None``.
        """
        final_id = vehicle_id.strip() if vehicle_id else ""
        if not final_id:
            final_id = generate_vehicle_id()

        private_key: str | None = None
        if address:
            if not is_valid_address(address):
                raise V2xValidationError("Invalid vehicleAddress")
            final_address = canonical_address(address)
        else:
            if not mobile or not normalize_mobile(mobile):
                raise V2xValidationError("Either vehicleAddress or mobileNumber is required")
            account = generate_account()
            final_address = account.address
            private_key = account.private_key

        async with self._locks.hold(final_id):
            receipt = await self._gateway.register_identity(final_id, final_address)
            if final_id not in self._registered:
                self._registered[final_id] = RegisteredVehicle(vehicle_id=final_id, vehicle_address=final_address)
            if mobile and normalize_mobile(mobile):
                self._mobile_index[normalize_mobile(mobile)] = final_id

        _logger.info("Vehicle %s registered (%s)", final_id, receipt.status)
        return RegistrationResult(
            vehicle_id=final_id,
            address=final_address,
            tx_hash=receipt.tx_hash,
            private_key=private_key,
        )

    async def revoke(self, vehicle_id: str) -> LedgerReceipt:
        if not vehicle_id or not vehicle_id.strip():
            raise V2xValidationError("vehicleId is required")
        async with self._locks.hold(vehicle_id.strip()):
            receipt = await self._gateway.revoke_identity(vehicle_id)
        _logger.info("Vehicle %s revoked", vehicle_id)
        return receipt

    async def is_active(self, vehicle_id: str) -> bool:
        return await self._gateway.query_active(vehicle_id)

    async def identity(self, vehicle_id: str) -> VehicleIdentity | None:
        return await self._gateway.query_identity(vehicle_id)

    async def status(self, vehicle_id: str) -> VehicleIdentity | None:
        """Registry snapshot of *vehicle_id* (``None`` when not registered)."""
        return await self.identity(vehicle_id)

    def registered(self) -> list[RegisteredVehicle]:
        """Vehicles registered through this node during the current session."""
        return list(self._registered.values())

    def lookup_mobile(self, mobile: str) -> str | None:
        return self._mobile_index.get(normalize_mobile(mobile))
