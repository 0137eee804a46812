"""Ledger cryptographic primitives: id hashing, addresses and signatures."""

from __future__ import annotations

from pyv2x._crypto.hashing import hash_vehicle_id, hash_vehicle_id_hex
from pyv2x._crypto.signing import (
    GeneratedAccount,
    address_of,
    addresses_match,
    canonical_address,
    generate_account,
    is_valid_address,
    recover_signer,
    sign_message,
)

__all__ = [
    "GeneratedAccount",
    "address_of",
    "addresses_match",
    "canonical_address",
    "generate_account",
    "hash_vehicle_id",
    "hash_vehicle_id_hex",
    "is_valid_address",
    "recover_signer",
    "sign_message",
]
