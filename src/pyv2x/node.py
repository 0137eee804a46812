"""High-level async facade wiring the ledger gateway and all node components."""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Mapping
from decimal import Decimal
from typing import Any

import aiohttp

from pyv2x._transport import LedgerBackend, Web3Backend
from pyv2x._units import to_display_units
from pyv2x.auth import ChallengeAuthenticator
from pyv2x.classifier import ErrorClassifier
from pyv2x.config import V2xConfig
from pyv2x.exceptions import V2xError
from pyv2x.geofence import GeofenceIndex
from pyv2x.ledger import LedgerGateway
from pyv2x.models.auth import AuthenticationResult
from pyv2x.models.geofence import AccidentOutcome, ProximityState, SettlementOutcome
from pyv2x.models.identity import RegisteredVehicle, RegistrationResult, VehicleIdentity
from pyv2x.models.ledger import LedgerReceipt
from pyv2x.models.telemetry import AccidentReport, TelemetrySample
from pyv2x.models.worker import StartResult
from pyv2x.registry import VehicleRegistry
from pyv2x.scheduler import TelemetryScheduler
from pyv2x.settlement import SettlementEngine
from pyv2x.supervisor import WorkerSupervisor
from pyv2x.telemetry import TelemetryService, TelemetryStore

_logger = logging.getLogger(__name__)


class V2xNode:
    """Vehicle identity and settlement node.

    Usage::

        async with V2xNode(V2xConfig.from_env()) as node:
            result = await node.register(mobile="+91 98450 00000")
            nonce = await node.request_nonce(result.vehicle_id)

    Parameters
    ----------
    config : V2xConfig
        Node configuration.
    session : aiohttp.ClientSession, optional
        Externally owned HTTP session for the ledger RPC; a private one is
        created (and closed on exit) otherwise.
    backend : LedgerBackend, optional
        Replaces the web3 backend (e.g. an in-memory ledger).
    classifier : ErrorClassifier, optional
        Replaces the default EVM duplicate-rejection rules.
    """

    def __init__(
        self,
        config: V2xConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        backend: LedgerBackend | None = None,
        classifier: ErrorClassifier | None = None,
        rng_factory: Callable[[str], random.Random] | None = None,
        worker_env: Mapping[str, str] | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._backend = backend
        self._classifier = classifier
        self._rng_factory = rng_factory
        self._worker_env = worker_env

        self._gateway: LedgerGateway | None = None
        self._registry: VehicleRegistry | None = None
        self._authenticator: ChallengeAuthenticator | None = None
        self._engine: SettlementEngine | None = None
        self._telemetry: TelemetryService | None = None
        self._scheduler: TelemetryScheduler | None = None
        self._supervisor: WorkerSupervisor | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> V2xNode:
        backend = self._backend
        if backend is None:
            self._config.validate()
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            backend = Web3Backend(self._config, self._http_session)

        self._gateway = LedgerGateway(backend, classifier=self._classifier)
        self._registry = VehicleRegistry(self._gateway)
        self._authenticator = ChallengeAuthenticator(self._registry)
        self._engine = SettlementEngine(self._gateway, GeofenceIndex(self._config.pois))
        self._telemetry = TelemetryService(TelemetryStore(), self._engine)
        self._scheduler = TelemetryScheduler(
            self._telemetry.update,
            config=self._config,
            rng_factory=self._rng_factory,
        )
        self._supervisor = WorkerSupervisor(self._config, base_env=self._worker_env)
        _logger.debug("V2X node started with %d POIs", len(self._config.pois))
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._scheduler is not None:
            await self._scheduler.shutdown()
        if self._supervisor is not None:
            await self._supervisor.shutdown()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._gateway = None
        self._registry = None
        self._authenticator = None
        self._engine = None
        self._telemetry = None
        self._scheduler = None
        self._supervisor = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_started(self) -> None:
        if self._gateway is None:
            raise V2xError("Node not started. Use 'async with V2xNode(...) as node:'")

    @property
    def gateway(self) -> LedgerGateway:
        self._require_started()
        assert self._gateway is not None  # noqa: S101
        return self._gateway

    @property
    def registry(self) -> VehicleRegistry:
        self._require_started()
        assert self._registry is not None  # noqa: S101
        return self._registry

    @property
    def authenticator(self) -> ChallengeAuthenticator:
        self._require_started()
        assert self._authenticator is not None  # noqa: S101
        return self._authenticator

    @property
    def settlement(self) -> SettlementEngine:
        self._require_started()
        assert self._engine is not None  # noqa: S101
        return self._engine

    @property
    def telemetry(self) -> TelemetryService:
        self._require_started()
        assert self._telemetry is not None  # noqa: S101
        return self._telemetry

    @property
    def scheduler(self) -> TelemetryScheduler:
        self._require_started()
        assert self._scheduler is not None  # noqa: S101
        return self._scheduler

    @property
    def supervisor(self) -> WorkerSupervisor:
        self._require_started()
        assert self._supervisor is not None  # noqa: S101
        return self._supervisor

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    async def register(
        self,
        vehicle_id: str | None = None,
        address: str | None = None,
        mobile: str | None = None,
    ) -> RegistrationResult:
        return await self.registry.register(vehicle_id, address, mobile)

    async def revoke(self, vehicle_id: str) -> LedgerReceipt:
        return await self.registry.revoke(vehicle_id)

    async def status(self, vehicle_id: str) -> VehicleIdentity | None:
        """Registry snapshot; also makes sure the vehicle's simulated telemetry runs."""
        identity = await self.registry.status(vehicle_id)
        if identity is not None:
            self.scheduler.start(vehicle_id)
        return identity

    def registered(self) -> list[RegisteredVehicle]:
        return self.registry.registered()

    def lookup_mobile(self, mobile: str) -> str | None:
        return self.registry.lookup_mobile(mobile)

    # ------------------------------------------------------------------
    # Challenge-response
    # ------------------------------------------------------------------

    async def request_nonce(self, vehicle_id: str) -> str:
        return await self.authenticator.request_nonce(vehicle_id)

    async def authenticate(self, vehicle_id: str, nonce: str, signature: str) -> AuthenticationResult:
        return await self.authenticator.authenticate(vehicle_id, nonce, signature)

    # ------------------------------------------------------------------
    # Telemetry and settlement
    # ------------------------------------------------------------------

    async def telemetry_update(self, sample: TelemetrySample | Mapping[str, Any]) -> SettlementOutcome:
        if not isinstance(sample, TelemetrySample):
            sample = TelemetrySample.model_validate(dict(sample))
        return await self.telemetry.update(sample)

    def telemetry_latest(self, vehicle_id: str) -> TelemetrySample | None:
        return self.telemetry.latest(vehicle_id)

    def telemetry_all(self) -> list[TelemetrySample]:
        return self.telemetry.all()

    def proximity(self, vehicle_id: str) -> ProximityState:
        return self.settlement.proximity(vehicle_id)

    async def report_accident(
        self,
        vehicle_id: str,
        location: str,
        speed: float,
        details: str,
        timestamp: int | None = None,
    ) -> AccidentOutcome:
        return await self.telemetry.report_accident(vehicle_id, location, speed, details, timestamp)

    def accidents(self) -> list[AccidentReport]:
        return self.telemetry.accidents()

    async def balance(self, address: str) -> Decimal:
        """Prepaid balance of *address* in display units."""
        return to_display_units(await self.gateway.query_balance(address))

    # ------------------------------------------------------------------
    # Simulated and ledger-connected vehicle clients
    # ------------------------------------------------------------------

    def start_simulated_client(self, vehicle_id: str) -> StartResult:
        return self.scheduler.start(vehicle_id)

    async def start_chain_client(self, vehicle_id: str, private_key: str) -> StartResult:
        return await self.supervisor.start_chain_client(vehicle_id, private_key)
