"""Nonce-based challenge-response authentication.

Per vehicle id the protocol moves through
``UNCHALLENGED -> NONCE_ISSUED -> {AUTHENTICATED | REJECTED} -> UNCHALLENGED``.

* Issuing a nonce requires the vehicle to be active on the ledger and
  replaces any challenge still pending for that vehicle.
* Verification consumes the pending nonce before anything else is checked,
  so a ``(vehicle_id, nonce, signature)`` triplet yields at most one verdict.
* The signing address is re-read from the ledger on every verification; a
  revocation between issue and verify is always observed.
"""

from __future__ import annotations

import logging
import secrets
import uuid

from pyv2x._crypto.signing import addresses_match, recover_signer
from pyv2x._keyed import KeyedLocks
from pyv2x.exceptions import V2xValidationError, VehicleNotActiveError
from pyv2x.models.auth import AuthenticationResult, NonceChallenge
from pyv2x.registry import VehicleRegistry

_logger = logging.getLogger(__name__)

REASON_INVALID_NONCE = "Invalid or expired nonce"
REASON_NOT_ACTIVE = "Vehicle not active or not registered"
REASON_SIGNATURE_MISMATCH = "Signature does not match registered vehicle"


class NonceStore:
    """At most one outstanding challenge per vehicle id."""

    def __init__(self) -> None:
        self._pending: dict[str, NonceChallenge] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def issue(self, vehicle_id: str, value: str) -> NonceChallenge:
        challenge = NonceChallenge(vehicle_id=vehicle_id, value=value)
        self._pending[vehicle_id] = challenge
        return challenge

    def take(self, vehicle_id: str) -> NonceChallenge | None:
        """Remove and return the pending challenge (single use)."""
        return self._pending.pop(vehicle_id, None)

    def pending(self, vehicle_id: str) -> NonceChallenge | None:
        return self._pending.get(vehicle_id)


def _new_nonce() -> str:
    return str(uuid.UUID(bytes=secrets.token_bytes(16), version=4))


class ChallengeAuthenticator:
    """Issue and verify single-use challenges against the vehicle registry."""

    def __init__(self, registry: VehicleRegistry, *, nonces: NonceStore | None = None) -> None:
        self._registry = registry
        self._nonces = nonces if nonces is not None else NonceStore()
        self._locks = KeyedLocks()

    @property
    def nonces(self) -> NonceStore:
        return self._nonces

    async def request_nonce(self, vehicle_id: str) -> str:
        """Issue a fresh challenge for an active vehicle.

        Raises
        ------
        V2xValidationError
            If *vehicle_id* is empty.
        VehicleNotActiveError
            If the ledger reports the vehicle revoked or unknown.
        """
        if not vehicle_id or not vehicle_id.strip():
            raise V2xValidationError("vehicleId is required")
        vehicle_id = vehicle_id.strip()
        async with self._locks.hold(vehicle_id):
            if not await self._registry.is_active(vehicle_id):
                raise VehicleNotActiveError(vehicle_id)
            challenge = self._nonces.issue(vehicle_id, _new_nonce())
        _logger.debug("Nonce issued for %s", vehicle_id)
        return challenge.value

    async def authenticate(self, vehicle_id: str, nonce: str, signature: str) -> AuthenticationResult:
        """Verify that *signature* over *nonce* was produced by the registered key.

        The pending nonce is consumed whatever the outcome. Denials are
        returned, not raised; ledger failures while re-reading the identity
        propagate (the nonce stays consumed).
        """
        vehicle_id = vehicle_id.strip() if vehicle_id else ""
        if not vehicle_id or not nonce or not signature:
            raise V2xValidationError("vehicleId, nonce and signature are required")

        async with self._locks.hold(vehicle_id):
            pending = self._nonces.take(vehicle_id)

        if pending is None or not secrets.compare_digest(pending.value.encode(), nonce.encode()):
            _logger.info("Authentication denied for %s: invalid or expired nonce", vehicle_id)
            return AuthenticationResult(vehicle_id=vehicle_id, authenticated=False, reason=REASON_INVALID_NONCE)

        identity = await self._registry.identity(vehicle_id)
        if identity is None or not identity.active:
            _logger.info("Authentication denied for %s: not active", vehicle_id)
            return AuthenticationResult(vehicle_id=vehicle_id, authenticated=False, reason=REASON_NOT_ACTIVE)

        recovered = recover_signer(nonce, signature)
        if recovered is None or not addresses_match(recovered, identity.signing_address):
            _logger.info("Authentication denied for %s: signature mismatch", vehicle_id)
            return AuthenticationResult(vehicle_id=vehicle_id, authenticated=False, reason=REASON_SIGNATURE_MISMATCH)

        _logger.info("Vehicle %s authenticated", vehicle_id)
        return AuthenticationResult(
            vehicle_id=vehicle_id,
            authenticated=True,
            address=identity.signing_address,
        )
