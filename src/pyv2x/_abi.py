"""ABI of the V2XAuth identity/settlement contract."""

from __future__ import annotations

from typing import Any


def _fn(
    name: str,
    inputs: list[tuple[str, str]],
    outputs: list[dict[str, Any]] | None = None,
    *,
    mutability: str = "nonpayable",
) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": [{"name": arg, "type": typ} for arg, typ in inputs],
        "outputs": outputs or [],
        "stateMutability": mutability,
    }


V2X_AUTH_ABI: list[dict[str, Any]] = [
    _fn("registerVehicle", [("vehicleIdHash", "bytes32"), ("vehicleAddress", "address")]),
    _fn("revokeVehicle", [("vehicleIdHash", "bytes32")]),
    _fn(
        "isVehicleActive",
        [("vehicleIdHash", "bytes32")],
        [{"name": "", "type": "bool"}],
        mutability="view",
    ),
    _fn(
        "getVehicle",
        [("vehicleIdHash", "bytes32")],
        [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "vehicleAddress", "type": "address"},
                    {"name": "active", "type": "bool"},
                    {"name": "registeredAt", "type": "uint256"},
                    {"name": "revokedAt", "type": "uint256"},
                ],
            }
        ],
        mutability="view",
    ),
    _fn(
        "balances",
        [("account", "address")],
        [{"name": "", "type": "uint256"}],
        mutability="view",
    ),
    _fn("deposit", [], mutability="payable"),
    _fn("payToll", [("operator", "address"), ("amount", "uint256")]),
    _fn(
        "reportAccident",
        [
            ("vehicleIdHash", "bytes32"),
            ("location", "string"),
            ("speed", "uint256"),
            ("details", "string"),
        ],
    ),
]
