"""Latest-sample telemetry store, accident log and the telemetry service."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pyv2x.models.geofence import AccidentOutcome, SettlementOutcome
from pyv2x.models.telemetry import AccidentReport, TelemetrySample

if TYPE_CHECKING:
    from pyv2x.settlement import SettlementEngine

_logger = logging.getLogger(__name__)


class TelemetryStore:
    """Latest sample per vehicle; every update overwrites the previous one."""

    def __init__(self) -> None:
        self._latest: dict[str, TelemetrySample] = {}

    def update(self, sample: TelemetrySample) -> None:
        self._latest[sample.vehicle_id] = sample

    def latest(self, vehicle_id: str) -> TelemetrySample | None:
        return self._latest.get(vehicle_id)

    def all(self) -> list[TelemetrySample]:
        return list(self._latest.values())


class AccidentLog:
    """Append-only local accident history."""

    def __init__(self) -> None:
        self._records: list[AccidentReport] = []

    def __len__(self) -> int:
        return len(self._records)

    def append(self, report: AccidentReport) -> AccidentReport:
        self._records.append(report)
        _logger.warning("Accident reported for %s at %s (%s km/h): %s", report.vehicle_id, report.location, report.speed, report.details)
        return report

    def all(self) -> list[AccidentReport]:
        return list(self._records)

    def for_vehicle(self, vehicle_id: str) -> list[AccidentReport]:
        return [record for record in self._records if record.vehicle_id == vehicle_id]


class TelemetryService:
    """Entry point for telemetry producers and readers.

    Samples are stored before settlement runs, so readers see a position
    even when settlement for it fails.
    """

    def __init__(self, store: TelemetryStore, engine: SettlementEngine) -> None:
        self._store = store
        self._engine = engine

    @property
    def store(self) -> TelemetryStore:
        return self._store

    async def update(self, sample: TelemetrySample) -> SettlementOutcome:
        self._store.update(sample)
        _logger.debug("GPS update [%s]: %s, %s @ %skm/h", sample.vehicle_id, sample.lat, sample.long, sample.speed_kmh)
        return await self._engine.process_sample(sample)

    def latest(self, vehicle_id: str) -> TelemetrySample | None:
        return self._store.latest(vehicle_id)

    def all(self) -> list[TelemetrySample]:
        return self._store.all()

    async def report_accident(
        self,
        vehicle_id: str,
        location: str,
        speed: float,
        details: str,
        timestamp: int | None = None,
    ) -> AccidentOutcome:
        return await self._engine.report_accident(vehicle_id, location, speed, details, timestamp=timestamp)

    def accidents(self) -> list[AccidentReport]:
        return self._engine.accident_log.all()
