from __future__ import annotations

from pyv2x._redact import is_sensitive_key, redact_for_log


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "vehicleId": "V2X-1A2B3C4D",
        "privateKey": "0xabc",
        "V2X_VEHICLE_PRIVATE_KEY": "0xdef",
        "nested": {"signature": "0x1234", "nonce": "n-1"},
        "command": ["python", "-m", "pyv2x.worker"],
    }

    redacted = redact_for_log(payload)
    assert redacted["vehicleId"] == "V2X-1A2B3C4D"
    assert redacted["privateKey"] == "<redacted>"
    assert redacted["V2X_VEHICLE_PRIVATE_KEY"] == "<redacted>"
    assert redacted["nested"]["signature"] == "<redacted>"
    assert redacted["nested"]["nonce"] == "n-1"
    assert redacted["command"] == ["python", "-m", "pyv2x.worker"]


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_redact_for_log_summarises_bytes() -> None:
    assert redact_for_log({"idHash": b"\x00" * 32}) == {"idHash": "<bytes:32b>"}


def test_is_sensitive_key_is_case_insensitive() -> None:
    assert is_sensitive_key("PRIVATE_KEY")
    assert not is_sensitive_key("vehicle_id")
