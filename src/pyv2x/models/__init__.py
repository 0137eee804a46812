"""Pydantic models for pyv2x."""

from __future__ import annotations

from pyv2x.models._base import V2xBaseModel, now_ms, parse_ledger_timestamp
from pyv2x.models.auth import AuthenticationResult, NonceChallenge
from pyv2x.models.geofence import (
    AccidentOutcome,
    GeofencePOI,
    PoiKind,
    ProximityState,
    SettlementOutcome,
)
from pyv2x.models.identity import RegisteredVehicle, RegistrationResult, VehicleIdentity
from pyv2x.models.ledger import LedgerReceipt, ReceiptStatus
from pyv2x.models.telemetry import AccidentReport, TelemetrySample
from pyv2x.models.worker import StartResult, StartStatus

__all__ = [
    "AccidentOutcome",
    "AccidentReport",
    "AuthenticationResult",
    "GeofencePOI",
    "LedgerReceipt",
    "NonceChallenge",
    "PoiKind",
    "ProximityState",
    "ReceiptStatus",
    "RegisteredVehicle",
    "RegistrationResult",
    "SettlementOutcome",
    "StartResult",
    "StartStatus",
    "TelemetrySample",
    "V2xBaseModel",
    "VehicleIdentity",
    "now_ms",
    "parse_ledger_timestamp",
]
