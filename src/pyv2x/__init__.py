"""pyv2x - Async V2X vehicle identity, authentication and settlement node."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyv2x")
except PackageNotFoundError:
    __version__ = "0+local"
from pyv2x.classifier import ClassifierRule, FailureKind, RuleClassifier, evm_classifier
from pyv2x.config import V2xConfig
from pyv2x.exceptions import (
    LedgerError,
    LedgerRejectionError,
    LedgerTimeoutError,
    LedgerTransportError,
    ProcessSpawnError,
    V2xConfigError,
    V2xError,
    V2xValidationError,
    VehicleNotActiveError,
)
from pyv2x.ledger import LedgerGateway
from pyv2x.models import (
    AccidentOutcome,
    AccidentReport,
    AuthenticationResult,
    GeofencePOI,
    LedgerReceipt,
    PoiKind,
    ProximityState,
    ReceiptStatus,
    RegisteredVehicle,
    RegistrationResult,
    SettlementOutcome,
    StartResult,
    StartStatus,
    TelemetrySample,
    VehicleIdentity,
)
from pyv2x.node import V2xNode

__all__ = [
    "__version__",
    "AccidentOutcome",
    "AccidentReport",
    "AuthenticationResult",
    "ClassifierRule",
    "FailureKind",
    "GeofencePOI",
    "LedgerError",
    "LedgerGateway",
    "LedgerReceipt",
    "LedgerRejectionError",
    "LedgerTimeoutError",
    "LedgerTransportError",
    "PoiKind",
    "ProcessSpawnError",
    "ProximityState",
    "ReceiptStatus",
    "RegisteredVehicle",
    "RegistrationResult",
    "RuleClassifier",
    "SettlementOutcome",
    "StartResult",
    "StartStatus",
    "TelemetrySample",
    "V2xConfig",
    "V2xConfigError",
    "V2xError",
    "V2xNode",
    "V2xValidationError",
    "VehicleIdentity",
    "VehicleNotActiveError",
    "evm_classifier",
]
