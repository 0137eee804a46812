"""Ledger write receipts."""

from __future__ import annotations

from enum import StrEnum

from pyv2x.models._base import V2xBaseModel


class ReceiptStatus(StrEnum):
    CONFIRMED = "confirmed"
    IDEMPOTENT = "idempotent"


class LedgerReceipt(V2xBaseModel):
    """Result of a confirmed (or already-applied) ledger write."""

    operation: str
    status: ReceiptStatus
    tx_hash: str | None = None

    @property
    def ok(self) -> bool:
        """Always ``True``; failed writes raise instead of returning a receipt."""
        return self.status in (ReceiptStatus.CONFIRMED, ReceiptStatus.IDEMPOTENT)
