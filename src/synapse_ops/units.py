# src/synapse_ops/units.py
"""Token amounts, byte sizes and epoch arithmetic.

Token amounts are always plain integers in base units. USDFC uses 18 decimals.
Conversion to a human string happens only in the format_* helpers below.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

USDFC_DECIMALS = 18
MAX_UINT256 = 2**256 - 1

KIB = 1024
MIB = 1024 * KIB
GIB = 1024 * MIB

# Filecoin epochs are 30 seconds.
EPOCH_SECONDS = 30
EPOCHS_PER_DAY = 24 * 60 * 60 // EPOCH_SECONDS
EPOCHS_PER_MONTH = 30 * EPOCHS_PER_DAY

_BYTE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")


def to_decimal(value: int, decimals: int = USDFC_DECIMALS) -> Decimal:
    return Decimal(int(value)).scaleb(-int(decimals))


def format_units(value: int, decimals: int = USDFC_DECIMALS) -> str:
    """Exact base-unit -> decimal string, e.g. 5 * 10**18 -> "5.0"."""
    v = int(value)
    sign = "-" if v < 0 else ""
    whole, frac = divmod(abs(v), 10**decimals)
    frac_s = str(frac).rjust(decimals, "0").rstrip("0") or "0"
    return f"{sign}{whole}.{frac_s}"


def format_token(value: int, places: int = 4, decimals: int = USDFC_DECIMALS) -> str:
    """Rounded display form, e.g. "0.5000"."""
    q = Decimal(1).scaleb(-int(places))
    return str(to_decimal(value, decimals).quantize(q, rounding=ROUND_HALF_UP))


def parse_units(text: str, decimals: int = USDFC_DECIMALS) -> int:
    """Decimal string -> base units. Rejects values finer than the token precision."""
    try:
        d = Decimal(str(text).strip())
    except InvalidOperation as e:
        raise ValueError(f"invalid token amount: {text!r}") from e
    scaled = d.scaleb(int(decimals))
    if scaled != scaled.to_integral_value():
        raise ValueError(f"token amount {text!r} exceeds {decimals} decimals")
    return int(scaled)


def whole_tokens_to_units(amount: float, decimals: int = USDFC_DECIMALS) -> int:
    """Threshold helper: whole-token float from config -> base units."""
    return int((Decimal(str(amount)).scaleb(int(decimals))).to_integral_value(rounding=ROUND_HALF_UP))


def format_allowance(value: Optional[int]) -> str:
    if value is None:
        return "Not set"
    if int(value) == MAX_UINT256:
        return "Unlimited"
    return f"{format_units(value)} USDFC"


def format_bytes(n: int) -> str:
    n = int(n)
    if n == 0:
        return "0 Bytes"
    value = float(n)
    i = 0
    while abs(value) >= KIB and i < len(_BYTE_UNITS) - 1:
        value /= KIB
        i += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_BYTE_UNITS[i]}"


def truncate_address(addr: str, head: int = 10, tail: int = 8) -> str:
    a = str(addr or "")
    if len(a) <= head + tail:
        return a
    return f"{a[:head]}...{a[-tail:]}"
