"""Conversion between ledger integer units (wei) and display units (ether)."""

from __future__ import annotations

from decimal import Decimal

from web3 import Web3


def to_ledger_units(amount: Decimal | str | int) -> int:
    """Convert a display-unit amount (ether) to ledger integer units (wei)."""
    value = Decimal(str(amount))
    if value < 0:
        raise ValueError(f"amount must not be negative, got {value}")
    return int(Web3.to_wei(value, "ether"))


def to_display_units(amount: int) -> Decimal:
    """Convert ledger integer units (wei) to a display-unit ``Decimal`` (ether)."""
    return Decimal(Web3.from_wei(int(amount), "ether"))
