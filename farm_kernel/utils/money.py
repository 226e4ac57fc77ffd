"""Decimal helpers for amounts and quantities."""

from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """Coerce ints, strings and Decimals; floats go through ``str`` first."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(value, places: int = 2) -> Decimal:
    """Round half-up to ``places`` decimal places."""
    quantum = Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)
