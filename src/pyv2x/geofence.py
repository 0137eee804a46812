"""Great-circle distance and POI proximity lookups."""

from __future__ import annotations

import math
from collections.abc import Iterable

from pyv2x._constants import EARTH_RADIUS_METERS
from pyv2x.models.geofence import GeofencePOI, PoiKind
from pyv2x.models.telemetry import TelemetrySample


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two WGS84 points, in metres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Clamp against rounding pushing ``a`` slightly outside [0, 1].
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_METERS * math.asin(math.sqrt(a))


def distance_to(sample: TelemetrySample, poi: GeofencePOI) -> float:
    return haversine_meters(sample.lat, sample.long, poi.lat, poi.long)


def within(sample: TelemetrySample, poi: GeofencePOI) -> bool:
    return distance_to(sample, poi) <= poi.radius_meters


class GeofenceIndex:
    """Static POI set split by kind."""

    def __init__(self, pois: Iterable[GeofencePOI]) -> None:
        pois = tuple(pois)
        ids = [poi.poi_id for poi in pois]
        if len(ids) != len(set(ids)):
            raise ValueError("POI ids must be unique")
        self._tolls = tuple(poi for poi in pois if poi.kind == PoiKind.TOLL)
        self._fuel = tuple(poi for poi in pois if poi.kind == PoiKind.FUEL)

    @property
    def tolls(self) -> tuple[GeofencePOI, ...]:
        return self._tolls

    @property
    def fuel_stations(self) -> tuple[GeofencePOI, ...]:
        return self._fuel

    def tolls_within(self, sample: TelemetrySample) -> list[GeofencePOI]:
        return [poi for poi in self._tolls if within(sample, poi)]

    def fuel_within(self, sample: TelemetrySample) -> list[GeofencePOI]:
        return [poi for poi in self._fuel if within(sample, poi)]
