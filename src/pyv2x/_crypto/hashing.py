"""Identifier hashing for ledger keys.

The ledger never sees raw vehicle identifiers, only their keccak-256 digest.
"""

from __future__ import annotations

from web3 import Web3


def hash_vehicle_id(vehicle_id: str) -> bytes:
    """Return the 32-byte keccak-256 digest of a vehicle id.

    Mirrors ``keccak256(toUtf8Bytes(vehicleId))`` used by the contract tooling.

    Parameters
    ----------
    vehicle_id : str
        The vehicle identifier, hashed as UTF-8 exactly as given.

    Returns
    -------
    bytes
        32-byte digest suitable for a ``bytes32`` contract argument.
    """
    return bytes(Web3.keccak(text=vehicle_id))


def hash_vehicle_id_hex(vehicle_id: str) -> str:
    """``0x``-prefixed hex form of :func:`hash_vehicle_id` (for logs and models)."""
    return Web3.to_hex(hash_vehicle_id(vehicle_id))
