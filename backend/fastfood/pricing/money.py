# Overview: Decimal helpers shared by every pricing step.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

ZERO = Decimal("0")
HUNDRED = Decimal("100")
DEFAULT_QUANTUM = Decimal("1")


def to_decimal(value, field: str = "amount") -> Decimal:
    """
    Coerce ints, numeric strings and Decimals to Decimal.

    Floats go through str() so 0.1 stays 0.1 rather than its binary expansion.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"{field} must be a number")
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValueError(f"{field} must be a number")


def round_money(amount: Decimal, quantum: Decimal = DEFAULT_QUANTUM) -> Decimal:
    """Round half-up to the smallest currency unit. Only applied to final amounts."""
    return amount.quantize(quantum, rounding=ROUND_HALF_UP)
