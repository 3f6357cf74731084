"""
Currency unit conversion.

Internally every amount is an integer count of minor units (paise).
Razorpay speaks minor units on the wire, Zoho Payments speaks major units;
reported amounts are whole major units rounded half-up.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

MINOR_UNITS_PER_MAJOR = 100

_ONE = Decimal(1)
_CENT = Decimal("0.01")


def _to_decimal(amount: Decimal | int | float | str) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    if isinstance(amount, bool):
        raise ValueError(f"Invalid amount: {amount!r}")
    try:
        # str() keeps 299.1 as 299.1 rather than its binary expansion
        return Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {amount!r}") from exc


def to_minor_units(amount: Decimal | int | float | str) -> int:
    """Convert a major-unit amount to minor units: round(amount * 100)."""
    value = _to_decimal(amount) * MINOR_UNITS_PER_MAJOR
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    try:
        return int(value.quantize(_ONE, rounding=ROUND_HALF_UP))
    except InvalidOperation as exc:
        # Beyond context precision
        raise ValueError(f"Invalid amount: {amount!r}") from exc


def to_major_units(amount_minor: int) -> int:
    """Convert minor units to whole major units, rounding half-up."""
    value = Decimal(amount_minor) / MINOR_UNITS_PER_MAJOR
    return int(value.quantize(_ONE, rounding=ROUND_HALF_UP))


def to_major_decimal(amount_minor: int) -> Decimal:
    """Exact major-unit amount with two decimal places, for provider payloads."""
    return (Decimal(amount_minor) / MINOR_UNITS_PER_MAJOR).quantize(_CENT)
