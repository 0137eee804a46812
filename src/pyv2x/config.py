"""Runtime configuration for pyv2x."""

from __future__ import annotations

import dataclasses
import json
import os
import sys
from decimal import Decimal
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from pyv2x._constants import (
    DEFAULT_ACCIDENT_PROBABILITY,
    DEFAULT_DEPOSIT_AMOUNT,
    DEFAULT_LOW_BALANCE_THRESHOLD,
    DEFAULT_MAX_SPEED_KMH,
    DEFAULT_MIN_SPEED_KMH,
    DEFAULT_POIS,
    DEFAULT_START_LATITUDE,
    DEFAULT_START_LONGITUDE,
    DEFAULT_STOP_PROBABILITY,
    DEFAULT_TELEMETRY_INTERVAL,
    DEFAULT_WALK_STEP_DEGREES,
)
from pyv2x.exceptions import V2xConfigError
from pyv2x.models.geofence import GeofencePOI

_POI_LIST = TypeAdapter(list[GeofencePOI])


def default_pois() -> tuple[GeofencePOI, ...]:
    return tuple(GeofencePOI.model_validate(item) for item in DEFAULT_POIS)


def load_pois(path: str | Path) -> tuple[GeofencePOI, ...]:
    """Load a JSON list of POIs.

    Raises :class:`V2xConfigError` when the file is missing or invalid.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
        return tuple(_POI_LIST.validate_python(json.loads(raw)))
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        raise V2xConfigError(f"Cannot load POIs from {path}: {exc}") from exc


def _default_worker_command() -> tuple[str, ...]:
    return (sys.executable, "-m", "pyv2x.worker")


@dataclasses.dataclass(frozen=True)
class V2xConfig:
    """Node configuration.

    Parameters
    ----------
    rpc_url : str
        JSON-RPC endpoint of the ledger node.
    private_key : str
        Key of the gateway account that signs registry writes. Never logged.
    contract_address : str
        Address of the deployed V2XAuth contract.
    confirmation_timeout : float
        Seconds to wait for a transaction receipt before raising
        :class:`~pyv2x.exceptions.LedgerTimeoutError`.
    poll_interval : float
        Seconds between receipt polls.
    request_timeout : float
        Total timeout of a single JSON-RPC request.
    telemetry_interval : float
        Tick period of simulated telemetry tasks.
    start_latitude, start_longitude : float
        Start position of simulated vehicles.
    walk_step : float
        Maximum per-tick displacement in degrees (uniform in ``±walk_step/2``).
    min_speed_kmh, max_speed_kmh : int
        Inclusive bounds of simulated speed.
    stop_probability : float
        Probability that a tick reports a stopped vehicle.
    accident_probability : float
        Per-tick probability of a simulated crash in the worker.
    low_balance_threshold, deposit_amount : Decimal
        Worker top-up policy, display units.
    worker_command : tuple of str
        Argument vector of the ledger-connected worker. Must not contain
        secrets; the vehicle key is passed through the environment.
    worker_stop_timeout : float
        Grace period between terminate and kill on shutdown.
    pois : tuple of GeofencePOI
        Static geofence.
    """

    rpc_url: str = "http://127.0.0.1:8545"
    private_key: str = dataclasses.field(default="", repr=False)
    contract_address: str = ""
    confirmation_timeout: float = 120.0
    poll_interval: float = 0.5
    request_timeout: float = 30.0
    telemetry_interval: float = DEFAULT_TELEMETRY_INTERVAL
    start_latitude: float = DEFAULT_START_LATITUDE
    start_longitude: float = DEFAULT_START_LONGITUDE
    walk_step: float = DEFAULT_WALK_STEP_DEGREES
    min_speed_kmh: int = DEFAULT_MIN_SPEED_KMH
    max_speed_kmh: int = DEFAULT_MAX_SPEED_KMH
    stop_probability: float = DEFAULT_STOP_PROBABILITY
    accident_probability: float = DEFAULT_ACCIDENT_PROBABILITY
    low_balance_threshold: Decimal = DEFAULT_LOW_BALANCE_THRESHOLD
    deposit_amount: Decimal = DEFAULT_DEPOSIT_AMOUNT
    worker_command: tuple[str, ...] = dataclasses.field(default_factory=_default_worker_command)
    worker_stop_timeout: float = 5.0
    pois: tuple[GeofencePOI, ...] = dataclasses.field(default_factory=default_pois)

    def validate(self) -> None:
        """Raise :class:`V2xConfigError` when ledger settings are missing or invalid."""
        missing = [
            name
            for name, value in (
                ("ETH_RPC_URL", self.rpc_url),
                ("PRIVATE_KEY", self.private_key),
                ("CONTRACT_ADDRESS", self.contract_address),
            )
            if not value
        ]
        if missing:
            raise V2xConfigError(f"Missing ledger config ({', '.join(missing)})")
        if self.min_speed_kmh > self.max_speed_kmh:
            raise V2xConfigError("min_speed_kmh must not exceed max_speed_kmh")
        if not 0.0 <= self.stop_probability <= 1.0:
            raise V2xConfigError("stop_probability must be within [0, 1]")
        if self.telemetry_interval <= 0:
            raise V2xConfigError("telemetry_interval must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> V2xConfig:
        """Create configuration from environment variables.

        Reads ``ETH_RPC_URL``, ``PRIVATE_KEY`` and ``CONTRACT_ADDRESS`` plus
        optional ``V2X_*`` tuning variables. Explicit keyword arguments
        override environment values.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "ETH_RPC_URL": "rpc_url",
            "PRIVATE_KEY": "private_key",
            "CONTRACT_ADDRESS": "contract_address",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val.strip()

        _ENV_FLOAT_MAP = {
            "V2X_CONFIRMATION_TIMEOUT": "confirmation_timeout",
            "V2X_POLL_INTERVAL": "poll_interval",
            "V2X_REQUEST_TIMEOUT": "request_timeout",
            "V2X_TELEMETRY_INTERVAL": "telemetry_interval",
            "V2X_STOP_PROBABILITY": "stop_probability",
            "V2X_ACCIDENT_PROBABILITY": "accident_probability",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                try:
                    config_kwargs[field_name] = float(val)
                except ValueError as exc:
                    raise V2xConfigError(f"{env_key} must be a number, got {val!r}") from exc

        poi_file = env.get("V2X_POI_FILE")
        if poi_file and "pois" not in overrides:
            config_kwargs["pois"] = load_pois(poi_file)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
