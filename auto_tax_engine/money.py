"""
Decimal helpers for monetary amounts and rates.

Every amount in the engine is a ``Decimal``. Rounding to cents happens in
one place only, ``apply_rate``, when a taxable amount is multiplied by a
rate. Bases, credits and sums are carried at full precision.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

ZERO = Decimal("0")
CENT = Decimal("0.01")
_RATE_PLACES = Decimal("0.000001")

Number = Union[Decimal, int, str, float]


def to_decimal(value: Number | None) -> Decimal:
    """
    Convert a caller-supplied number to Decimal.

    Floats go through ``str()`` so that ``0.0775`` becomes
    ``Decimal("0.0775")`` rather than its binary expansion.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("Boolean is not a monetary amount")
    try:
        return Decimal(str(value).strip().replace(",", "").lstrip("$"))
    except InvalidOperation as exc:
        raise ValueError(f"Not a decimal amount: {value!r}") from exc


def round_money(amount: Decimal) -> Decimal:
    """Round to the nearest cent, half-up."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def apply_rate(base: Decimal, rate: Decimal) -> Decimal:
    """Tax on ``base`` at ``rate``, rounded half-up to the cent."""
    return round_money(base * rate)


def clamp_zero(amount: Decimal) -> Decimal:
    return amount if amount > ZERO else ZERO


def effective_rate(tax: Decimal, base: Decimal) -> Decimal:
    if base <= ZERO:
        return ZERO
    return (tax / base).quantize(_RATE_PLACES, rounding=ROUND_HALF_UP)


def format_money(amount: Decimal) -> str:
    return f"${amount:,.2f}"


def format_rate(rate: Decimal) -> str:
    """Render a fractional rate as a percentage, e.g. 0.0775 -> '7.75%'."""
    pct = (rate * 100).normalize()
    text = format(pct, "f")
    if "." in text:
        whole, frac = text.split(".")
        if len(frac) < 2:
            text = f"{whole}.{frac.ljust(2, '0')}"
    else:
        text = f"{text}.00"
    return f"{text}%"
