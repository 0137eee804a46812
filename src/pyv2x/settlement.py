"""Geofence-triggered settlement.

For every telemetry sample the engine charges each toll POI whose radius
contains the vehicle, at most once per POI and vehicle for the lifetime of
the process (the *session*). A charge is recorded only after the ledger
confirmed it; a failed charge leaves the POI open for the next sample.

The charged set is a fast-path de-duplicator, not a hard guarantee: it is
volatile across restarts, and concurrent writes for the same pair are only
deduplicated by the in-flight guard of this process.

Accident reports are externally triggered and fan out into two independent
legs, the ledger record and the local accident log.
"""

from __future__ import annotations

import logging
import math

from pyv2x._crypto.hashing import hash_vehicle_id
from pyv2x._units import to_ledger_units
from pyv2x.exceptions import V2xError, V2xValidationError
from pyv2x.geofence import GeofenceIndex
from pyv2x.ledger import LedgerGateway
from pyv2x.models.geofence import AccidentOutcome, GeofencePOI, ProximityState, SettlementOutcome
from pyv2x.models.telemetry import AccidentReport, TelemetrySample
from pyv2x.telemetry import AccidentLog

_logger = logging.getLogger(__name__)


class SettlementEngine:
    """Consume telemetry samples and settle toll crossings on the ledger."""

    def __init__(
        self,
        gateway: LedgerGateway,
        geofence: GeofenceIndex,
        *,
        accident_log: AccidentLog | None = None,
    ) -> None:
        self._gateway = gateway
        self._geofence = geofence
        self._accident_log = accident_log if accident_log is not None else AccidentLog()
        self._charged: dict[str, set[str]] = {}
        self._in_flight: set[tuple[str, str]] = set()
        self._last_sample: dict[str, TelemetrySample] = {}
        self._nearby_fuel: dict[str, list[str]] = {}

    @property
    def accident_log(self) -> AccidentLog:
        return self._accident_log

    @property
    def geofence(self) -> GeofenceIndex:
        return self._geofence

    def charged(self, vehicle_id: str) -> frozenset[str]:
        """POI ids already charged to *vehicle_id* in this session."""
        return frozenset(self._charged.get(vehicle_id, ()))

    def proximity(self, vehicle_id: str) -> ProximityState:
        return ProximityState(
            vehicle_id=vehicle_id,
            last_sample=self._last_sample.get(vehicle_id),
            nearby_fuel=list(self._nearby_fuel.get(vehicle_id, [])),
            charged=sorted(self._charged.get(vehicle_id, ())),
        )

    async def process_sample(self, sample: TelemetrySample) -> SettlementOutcome:
        vehicle_id = sample.vehicle_id
        nearby_fuel = [poi.poi_id for poi in self._geofence.fuel_within(sample)]
        self._last_sample[vehicle_id] = sample
        self._nearby_fuel[vehicle_id] = nearby_fuel
        if nearby_fuel:
            _logger.debug("Refuel advisory for %s: %s", vehicle_id, nearby_fuel)

        charged_set = self._charged.setdefault(vehicle_id, set())
        due = [
            poi
            for poi in self._geofence.tolls_within(sample)
            if poi.poi_id not in charged_set and (vehicle_id, poi.poi_id) not in self._in_flight
        ]
        outcome = SettlementOutcome(vehicle_id=vehicle_id, nearby_fuel=nearby_fuel)
        if not due:
            return outcome

        # Claimed before the first await so overlapping samples skip these POIs.
        keys = [(vehicle_id, poi.poi_id) for poi in due]
        self._in_flight.update(keys)
        try:
            return await self._settle(vehicle_id, due, charged_set, outcome)
        finally:
            self._in_flight.difference_update(keys)

    async def _settle(
        self,
        vehicle_id: str,
        due: list[GeofencePOI],
        charged_set: set[str],
        outcome: SettlementOutcome,
    ) -> SettlementOutcome:
        try:
            active = await self._gateway.query_active(vehicle_id)
        except V2xError:
            _logger.warning("Settlement skipped for %s: activity check failed", vehicle_id, exc_info=True)
            return outcome.model_copy(update={"failed": [poi.poi_id for poi in due]})
        if not active:
            _logger.info("Settlement skipped for %s: vehicle not active", vehicle_id)
            return outcome

        charged: list[str] = []
        failed: list[str] = []
        for poi in due:
            try:
                assert poi.operator_address is not None  # noqa: S101
                receipt = await self._gateway.charge_account(poi.operator_address, to_ledger_units(poi.amount))
            except V2xError as exc:
                _logger.warning("Toll %s charge for %s failed: %s", poi.poi_id, vehicle_id, exc)
                failed.append(poi.poi_id)
            else:
                charged_set.add(poi.poi_id)
                charged.append(poi.poi_id)
                _logger.info("Toll %s charged to %s (%s ether, tx=%s)", poi.poi_id, vehicle_id, poi.amount, receipt.tx_hash)

        return outcome.model_copy(update={"charged": charged, "failed": failed})

    async def report_accident(
        self,
        vehicle_id: str,
        location: str,
        speed: float,
        details: str,
        *,
        timestamp: int | None = None,
    ) -> AccidentOutcome:
        """Record an accident on the ledger and in the local log.

        The two legs are independent: either may fail without affecting the
        other, and nothing is rolled back.
        """
        if not vehicle_id or not vehicle_id.strip():
            raise V2xValidationError("vehicleId is required")
        if not isinstance(speed, (int, float)) or not math.isfinite(speed) or speed < 0:
            raise V2xValidationError(f"speed must be a finite non-negative number, got {speed!r}")

        fields: dict[str, object] = {
            "vehicle_id": vehicle_id,
            "location": location,
            "speed": speed,
            "details": details,
        }
        if timestamp:
            fields["timestamp"] = timestamp

        report: AccidentReport | None = None
        log_error: str | None = None
        try:
            report = self._accident_log.append(AccidentReport.model_validate(fields))
        except ValueError as exc:
            _logger.warning("Accident log append for %s failed: %s", vehicle_id, exc)
            log_error = str(exc)

        ledger_tx_hash: str | None = None
        ledger_error: str | None = None
        recorded = False
        try:
            receipt = await self._gateway.report_accident_on_ledger(
                hash_vehicle_id(vehicle_id),
                location,
                int(round(speed)),
                details,
            )
        except V2xError as exc:
            _logger.warning("Accident ledger report for %s failed: %s", vehicle_id, exc)
            ledger_error = str(exc)
        else:
            recorded = True
            ledger_tx_hash = receipt.tx_hash
            _logger.info("Accident for %s reported on ledger (tx=%s)", vehicle_id, ledger_tx_hash)

        return AccidentOutcome(
            vehicle_id=vehicle_id,
            report=report,
            ledger_recorded=recorded,
            ledger_tx_hash=ledger_tx_hash,
            ledger_error=ledger_error,
            log_error=log_error,
        )
