"""Custom exception hierarchy for pyv2x."""

from __future__ import annotations


class V2xError(Exception):
    """Base exception for all pyv2x errors."""


class V2xConfigError(V2xError):
    """Invalid or missing configuration."""


class V2xValidationError(V2xError):
    """Malformed input (vehicle id, address, missing field).

    Raised before any side effect takes place.
    """


class VehicleNotActiveError(V2xError):
    """Vehicle is revoked or was never registered on the ledger."""

    def __init__(self, vehicle_id: str) -> None:
        self.vehicle_id = vehicle_id
        super().__init__(f"Vehicle {vehicle_id} not active or not registered")


class LedgerError(V2xError):
    """Ledger-level failure."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "",
        operation: str = "",
    ) -> None:
        self.code = code
        self.operation = operation
        super().__init__(message)


class LedgerRejectionError(LedgerError):
    """The ledger rejected a state change.

    Rejections that the gateway classifies as idempotent duplicates never
    reach callers; anything raised with this type is a genuine rejection
    (insufficient funds, unknown identity, invalid target).
    """

    def __init__(
        self,
        message: str,
        *,
        code: str = "",
        operation: str = "",
        reason: str = "",
    ) -> None:
        self.reason = reason
        super().__init__(message, code=code, operation=operation)


class LedgerTimeoutError(LedgerError):
    """Confirmation was not observed within the configured timeout.

    The transaction may still be included later; retrying is the caller's
    decision.
    """


class LedgerTransportError(LedgerError):
    """Network-level failure talking to the ledger node."""


class ProcessSpawnError(V2xError):
    """An external worker process could not be started."""

    def __init__(self, message: str, *, vehicle_id: str = "") -> None:
        self.vehicle_id = vehicle_id
        super().__init__(message)
