"""Address handling and message signature recovery."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneratedAccount:
    """A freshly generated signing account.

    ``private_key`` is handed back to the caller exactly once and is never
    stored by the library.
    """

    address: str
    private_key: str

    def __repr__(self) -> str:
        return f"GeneratedAccount(address={self.address!r}, private_key=<redacted>)"


def is_valid_address(value: object) -> bool:
    """Whether *value* is a well-formed ledger address.

    Mixed-case input must carry a valid EIP-55 checksum; all-lower and
    all-upper hex is accepted.
    """
    if not isinstance(value, str):
        return False
    return bool(Web3.is_address(value))


def canonical_address(value: str) -> str:
    """Return the checksummed form of *value* (raises ``ValueError`` when invalid)."""
    if not is_valid_address(value):
        raise ValueError(f"invalid address: {value!r}")
    return str(Web3.to_checksum_address(value))


def addresses_match(left: str, right: str) -> bool:
    """Compare two addresses case-insensitively after canonicalization."""
    if not is_valid_address(left) or not is_valid_address(right):
        return False
    return canonical_address(left) == canonical_address(right)


def recover_signer(message: str, signature: str | bytes) -> str | None:
    """Recover the address that signed *message* (EIP-191 personal message).

    Returns ``None`` for any malformed signature instead of raising; the
    caller treats that as a verification failure.
    """
    try:
        recovered = Account.recover_message(encode_defunct(text=message), signature=signature)
    except Exception:
        _logger.debug("Signature recovery failed", exc_info=True)
        return None
    return canonical_address(recovered)


def sign_message(message: str, private_key: str) -> str:
    """Sign *message* as an EIP-191 personal message, returning ``0x`` hex."""
    signed = Account.sign_message(encode_defunct(text=message), private_key=private_key)
    return Web3.to_hex(signed.signature)


def generate_account() -> GeneratedAccount:
    """Create a new random signing account."""
    account = Account.create()
    return GeneratedAccount(address=account.address, private_key=Web3.to_hex(account.key))


def address_of(private_key: str) -> str:
    """Derive the address controlled by *private_key*."""
    return str(Account.from_key(private_key).address)
