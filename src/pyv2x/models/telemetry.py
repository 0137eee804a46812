"""Telemetry and accident models."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, field_validator

from pyv2x.models._base import V2xBaseModel, now_ms


class TelemetrySample(V2xBaseModel):
    """Latest position/speed report of a vehicle.

    Parameters
    ----------
    vehicle_id : str
        Reporting vehicle.
    lat : float
        Latitude in degrees.
    long : float
        Longitude in degrees.
    speed_kmh : float
        Speed in km/h (``speed`` is accepted on input).
    timestamp : int
        Epoch milliseconds; defaults to now.
    """

    vehicle_id: str
    lat: float = Field(ge=-90.0, le=90.0)
    long: float = Field(ge=-180.0, le=180.0)
    speed_kmh: float = Field(default=0.0, ge=0.0, validation_alias=AliasChoices("speed_kmh", "speedKmh", "speed"))
    timestamp: int = Field(default_factory=now_ms)

    @field_validator("vehicle_id")
    @classmethod
    def _normalize_vehicle_id(cls, value: str) -> str:
        vehicle_id = value.strip()
        if not vehicle_id:
            raise ValueError("vehicle_id must be non-empty")
        return vehicle_id

    @field_validator("timestamp", mode="before")
    @classmethod
    def _default_timestamp(cls, value: Any) -> Any:
        if value is None or value == 0:
            return now_ms()
        return value


class AccidentReport(V2xBaseModel):
    """Append-only accident record kept in the local operational log."""

    vehicle_id: str
    location: str
    speed: float = Field(default=0.0, ge=0.0, allow_inf_nan=False)
    details: str = ""
    timestamp: int = Field(default_factory=now_ms)
