"""Base model and helpers shared by pyv2x models.

Every pyv2x model inherits from :class:`V2xBaseModel` which provides:

* ``alias_generator=to_camel`` so models serialize with the camelCase keys
  the dashboards and vehicle clients exchange, while Python code uses
  snake_case fields.
* frozen instances: models are snapshots, stores replace them wholesale.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def now_ms() -> int:
    """Current epoch timestamp in milliseconds."""
    return int(time.time() * 1000)


def parse_ledger_timestamp(value: Any) -> datetime | None:
    """Convert a ledger epoch timestamp (seconds or milliseconds) to UTC.

    The contract stores ``0`` for "never happened" (e.g. ``revokedAt`` of an
    active vehicle); that maps to ``None``.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    ts = int(value)
    if ts <= 0:
        return None
    if ts >= _MS_THRESHOLD:
        ts = ts // 1000
    return datetime.fromtimestamp(ts, tz=UTC)


LedgerTimestamp = Annotated[datetime | None, BeforeValidator(parse_ledger_timestamp)]
"""Annotated type that coerces ledger epoch ints to UTC datetimes (``0`` -> ``None``)."""


class V2xBaseModel(BaseModel):
    """Base for pyv2x models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )
