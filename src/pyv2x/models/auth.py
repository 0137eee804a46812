"""Challenge-response models."""

from __future__ import annotations

from pydantic import Field

from pyv2x.models._base import V2xBaseModel, now_ms


class NonceChallenge(V2xBaseModel):
    """A pending single-use challenge for one vehicle."""

    vehicle_id: str
    value: str
    issued_at: int = Field(default_factory=now_ms)


class AuthenticationResult(V2xBaseModel):
    """Verdict of a challenge-response verification.

    Denials are results, not exceptions; ``reason`` says why.
    """

    vehicle_id: str
    authenticated: bool
    address: str | None = None
    reason: str | None = None
