from __future__ import annotations

import pytest

from pyv2x.config import default_pois
from pyv2x.geofence import GeofenceIndex, haversine_meters, within
from pyv2x.models.geofence import GeofencePOI, PoiKind
from pyv2x.models.telemetry import TelemetrySample

OPERATOR = "0x8626f6940E2eb28930eFb4CeF49B2d1F2C9C1199"


def _poi(poi_id: str = "TOLL-1", *, lat: float = 12.9726, long: float = 77.5956, radius: float = 150.0) -> GeofencePOI:
    return GeofencePOI(
        poi_id=poi_id,
        lat=lat,
        long=long,
        radius_meters=radius,
        kind=PoiKind.TOLL,
        operator_address=OPERATOR,
        amount="0.01",
    )


def test_haversine_is_symmetric() -> None:
    a = (12.9716, 77.5946)
    b = (13.0827, 80.2707)

    forward = haversine_meters(*a, *b)
    backward = haversine_meters(*b, *a)
    assert forward == pytest.approx(backward)
    assert forward == pytest.approx(290_000, rel=0.02)


def test_haversine_zero_at_same_point_and_center_is_inside() -> None:
    poi = _poi(radius=0.5)
    assert haversine_meters(poi.lat, poi.long, poi.lat, poi.long) == 0.0
    assert within(TelemetrySample(vehicle_id="V1", lat=poi.lat, long=poi.long), poi)


def test_haversine_antipodal_does_not_fail() -> None:
    assert haversine_meters(0.0, 0.0, 0.0, 180.0) == pytest.approx(3.14159265 * 6_371_000.0, rel=1e-6)


def test_index_splits_tolls_and_fuel() -> None:
    index = GeofenceIndex(default_pois())

    assert [poi.poi_id for poi in index.tolls] == ["TOLL-BLR-01"]
    assert [poi.poi_id for poi in index.fuel_stations] == ["FUEL-BLR-01"]

    at_toll = TelemetrySample(vehicle_id="V1", lat=12.9726, long=77.5956)
    assert [poi.poi_id for poi in index.tolls_within(at_toll)] == ["TOLL-BLR-01"]
    assert index.fuel_within(at_toll) == []

    far_away = TelemetrySample(vehicle_id="V1", lat=0.0, long=0.0)
    assert index.tolls_within(far_away) == []


def test_index_rejects_duplicate_ids() -> None:
    with pytest.raises(ValueError):
        GeofenceIndex([_poi("A"), _poi("A")])


def test_toll_poi_requires_operator_and_amount() -> None:
    with pytest.raises(ValueError):
        GeofencePOI(poi_id="T", lat=0, long=0, radius_meters=10, kind=PoiKind.TOLL, amount="0.01")
    with pytest.raises(ValueError):
        GeofencePOI(poi_id="T", lat=0, long=0, radius_meters=10, kind=PoiKind.TOLL, operator_address=OPERATOR)

    fuel = GeofencePOI.model_validate({"poiId": "F", "lat": 0, "long": 0, "radiusMeters": 10, "kind": "fuel"})
    assert fuel.kind == PoiKind.FUEL
