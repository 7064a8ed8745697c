"""Decimal helpers for money values read from loosely typed snapshots."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENT = Decimal("0.01")


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """Coerce JSON numbers/strings to Decimal; blanks and junk become ``default``."""
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def vat_on(amount: Decimal, vat_rate_pct: Decimal) -> Decimal:
    """VAT for ``amount`` at a percentage rate (20 means 20%), to the cent."""
    return quantize_money(amount * vat_rate_pct / Decimal("100"))


def jsonable(value: Any) -> Any:
    """Recursively convert Decimals, UUIDs and datetimes for JSON columns."""
    if isinstance(value, dict):
        return {k: jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable(v) for v in value]
    if isinstance(value, Decimal):
        return str(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)
