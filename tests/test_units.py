from __future__ import annotations

import pytest

from synapse_ops.units import (
    EPOCHS_PER_DAY,
    EPOCHS_PER_MONTH,
    MAX_UINT256,
    MIB,
    format_allowance,
    format_bytes,
    format_token,
    format_units,
    parse_units,
    truncate_address,
    whole_tokens_to_units,
)

ONE = 10**18


def test_epoch_constants() -> None:
    assert EPOCHS_PER_DAY == 2880
    assert EPOCHS_PER_MONTH == 86400


def test_format_units_is_exact() -> None:
    assert format_units(5 * ONE) == "5.0"
    assert format_units(ONE // 10) == "0.1"
    assert format_units(1) == "0.000000000000000001"
    assert format_units(0) == "0.0"
    assert format_units(-ONE // 2) == "-0.5"


def test_parse_units_roundtrip_and_rejects_garbage() -> None:
    assert parse_units("5.0") == 5 * ONE
    assert parse_units("0.000000000000000001") == 1
    with pytest.raises(ValueError):
        parse_units("abc")
    with pytest.raises(ValueError):
        parse_units("0.0000000000000000001")


def test_format_token_rounds_to_places() -> None:
    assert format_token(ONE // 2) == "0.5000"
    assert format_token(123456789 * 10**10, places=2) == "1.23"


def test_whole_tokens_to_units() -> None:
    assert whole_tokens_to_units(1.0) == ONE
    assert whole_tokens_to_units(0.1) == ONE // 10


def test_format_allowance() -> None:
    assert format_allowance(MAX_UINT256) == "Unlimited"
    assert format_allowance(None) == "Not set"
    assert format_allowance(2 * ONE) == "2.0 USDFC"


def test_format_bytes() -> None:
    assert format_bytes(0) == "0 Bytes"
    assert format_bytes(512) == "512 Bytes"
    assert format_bytes(50 * MIB) == "50 MB"
    assert format_bytes(1536) == "1.5 KB"


def test_truncate_address() -> None:
    addr = "0x" + "ab" * 20
    out = truncate_address(addr)
    assert out.startswith(addr[:10]) and out.endswith(addr[-8:])
    assert "..." in out
    assert truncate_address("0x1234") == "0x1234"
