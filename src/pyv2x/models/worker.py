"""Task / worker start results."""

from __future__ import annotations

from enum import StrEnum

from pyv2x.models._base import V2xBaseModel


class StartStatus(StrEnum):
    STARTED = "started"
    ALREADY_RUNNING = "already_running"


class StartResult(V2xBaseModel):
    vehicle_id: str
    status: StartStatus
    mode: str
