"""
Money Utilities - Safe Decimal operations for prices and totals.

Avoids float precision issues by using Decimal throughout.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union

# Default precision for money operations (2 decimal places)
MONEY_PRECISION = Decimal("0.01")

Number = Union[str, int, float, Decimal, None]


def to_decimal(value: Number) -> Decimal:
    """
    Convert any value to Decimal safely.

    Args:
        value: Value to convert (str, int, float, Decimal, or None)

    Returns:
        Decimal representation of the value, or Decimal("0") if None/invalid
    """
    if value is None:
        return Decimal("0")

    # bool is an int subclass; a flag is never a price
    if isinstance(value, bool):
        return Decimal("0")

    try:
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, float):
            result = Decimal(str(value))
        else:
            result = Decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")

    # NaN and Infinity are not prices
    return result if result.is_finite() else Decimal("0")


def round_money(value: Number) -> Decimal:
    """Round a monetary value to cents (ROUND_HALF_UP)."""
    return to_decimal(value).quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP)


def multiply(a: Number, b: Number) -> Decimal:
    """Multiply two values as Decimals (no rounding)."""
    return to_decimal(a) * to_decimal(b)


def to_float(value: Number) -> float:
    """
    Convert Decimal to float for JSON responses.

    Rounds to cents first so the float carries no binary noise.
    """
    return float(round_money(value))
