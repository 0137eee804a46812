"""Geofence and settlement models."""

from __future__ import annotations

from decimal import Decimal
from enum import StrEnum

from pydantic import Field, field_validator, model_validator

from pyv2x._crypto.signing import canonical_address, is_valid_address
from pyv2x.models._base import V2xBaseModel
from pyv2x.models.telemetry import AccidentReport, TelemetrySample


class PoiKind(StrEnum):
    TOLL = "toll"
    FUEL = "fuel"


class GeofencePOI(V2xBaseModel):
    """A fixed point of interest with a trigger radius.

    Toll POIs must name the operator address that receives ``amount``
    (display units); fuel POIs only produce advisories.
    """

    poi_id: str
    lat: float = Field(ge=-90.0, le=90.0)
    long: float = Field(ge=-180.0, le=180.0)
    radius_meters: float = Field(gt=0.0)
    kind: PoiKind
    operator_address: str | None = None
    amount: Decimal = Decimal("0")

    @field_validator("operator_address")
    @classmethod
    def _checksum_operator(cls, value: str | None) -> str | None:
        if value is None:
            return None
        if not is_valid_address(value):
            raise ValueError(f"invalid operator address: {value!r}")
        return canonical_address(value)

    @model_validator(mode="after")
    def _toll_requires_operator(self) -> GeofencePOI:
        if self.kind == PoiKind.TOLL:
            if self.operator_address is None:
                raise ValueError(f"toll POI {self.poi_id} requires operator_address")
            if self.amount <= 0:
                raise ValueError(f"toll POI {self.poi_id} requires a positive amount")
        return self


class SettlementOutcome(V2xBaseModel):
    """What one telemetry sample triggered."""

    vehicle_id: str
    charged: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    nearby_fuel: list[str] = Field(default_factory=list)

    @property
    def refuel_advisory(self) -> bool:
        return bool(self.nearby_fuel)


class ProximityState(V2xBaseModel):
    """Reader view of a vehicle's geofence state for the current session."""

    vehicle_id: str
    last_sample: TelemetrySample | None = None
    nearby_fuel: list[str] = Field(default_factory=list)
    charged: list[str] = Field(default_factory=list)

    @property
    def refuel_advisory(self) -> bool:
        return bool(self.nearby_fuel)


class AccidentOutcome(V2xBaseModel):
    """Result of both independent accident legs.

    ``ledger_tx_hash`` is set when the ledger leg confirmed; ``ledger_error``
    carries the failure message otherwise. ``report`` is ``None`` only when
    the local log leg failed.
    """

    vehicle_id: str
    report: AccidentReport | None = None
    ledger_recorded: bool = False
    ledger_tx_hash: str | None = None
    ledger_error: str | None = None
    log_error: str | None = None
