"""Vehicle identity models."""

from __future__ import annotations

from pydantic import Field, field_validator

from pyv2x.models._base import LedgerTimestamp, V2xBaseModel


class VehicleIdentity(V2xBaseModel):
    """Identity record as stored on the ledger.

    Parameters
    ----------
    vehicle_id : str
        Plain vehicle identifier (never written to the ledger).
    id_hash : str
        ``0x`` hex keccak-256 digest of ``vehicle_id``; the ledger key.
    signing_address : str
        Checksummed address allowed to answer challenges for this vehicle.
    active : bool
        ``False`` once revoked.
    registered_at : datetime or None
        Registration time from the ledger.
    revoked_at : datetime or None
        Revocation time, ``None`` while active.
    """

    vehicle_id: str
    id_hash: str
    signing_address: str
    active: bool
    registered_at: LedgerTimestamp = None
    revoked_at: LedgerTimestamp = None


class RegisteredVehicle(V2xBaseModel):
    """Entry of the in-process registered-vehicle list."""

    vehicle_id: str
    vehicle_address: str


class RegistrationResult(V2xBaseModel):
    """Outcome of a registration request.

    ``tx_hash`` is ``None`` when the ledger already held the identity.
    ``private_key`` is only set when a signing account was generated on the
    caller's behalf.
    """

    vehicle_id: str
    address: str
    tx_hash: str | None = None
    private_key: str | None = Field(default=None, repr=False)

    @field_validator("vehicle_id")
    @classmethod
    def _strip_vehicle_id(cls, value: str) -> str:
        return value.strip()
