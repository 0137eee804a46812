"""Internal constants shared across the library."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

#: Address returned by the contract for identities that were never written.
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

#: Prefix of generated vehicle ids (``V2X-`` + 8 upper-case hex characters).
VEHICLE_ID_PREFIX = "V2X-"

#: Mean earth radius used for haversine distances, in metres.
EARTH_RADIUS_METERS = 6_371_000.0

# ------------------------------------------------------------------
# Telemetry simulation
# ------------------------------------------------------------------

DEFAULT_START_LATITUDE = 12.9716
DEFAULT_START_LONGITUDE = 77.5946
DEFAULT_TELEMETRY_INTERVAL = 2.0
DEFAULT_WALK_STEP_DEGREES = 0.001
DEFAULT_MIN_SPEED_KMH = 20
DEFAULT_MAX_SPEED_KMH = 79
DEFAULT_STOP_PROBABILITY = 0.05
DEFAULT_ACCIDENT_PROBABILITY = 0.01

#: Details recorded for simulated crashes.
ACCIDENT_DETAILS = "Impact detected front bumper"

# ------------------------------------------------------------------
# Worker balances (display units)
# ------------------------------------------------------------------

DEFAULT_LOW_BALANCE_THRESHOLD = Decimal("0.1")
DEFAULT_DEPOSIT_AMOUNT = Decimal("1.0")

# ------------------------------------------------------------------
# Environment variables consumed by the worker process
# ------------------------------------------------------------------

WORKER_ENV_VEHICLE_ID = "V2X_VEHICLE_ID"
WORKER_ENV_PRIVATE_KEY = "V2X_VEHICLE_PRIVATE_KEY"

#: Tracking mode for ledger-connected worker processes.
CHAIN_MODE = "chain"
#: Tracking mode for in-process simulated telemetry tasks.
SIMULATED_MODE = "simulated"

#: Default geofence, one toll booth and one fuel station around the
#: default start position.
DEFAULT_POIS: tuple[dict[str, Any], ...] = (
    {
        "poi_id": "TOLL-BLR-01",
        "lat": 12.9726,
        "long": 77.5956,
        "radius_meters": 150.0,
        "kind": "toll",
        "operator_address": "0x8626f6940E2eb28930eFb4CeF49B2d1F2C9C1199",
        "amount": "0.01",
    },
    {
        "poi_id": "FUEL-BLR-01",
        "lat": 12.9706,
        "long": 77.5936,
        "radius_meters": 100.0,
        "kind": "fuel",
    },
)
