"""Money and score rounding helpers"""

from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]


def to_money(value: Number) -> Decimal:
    """Coerce a value to a Decimal quantized to cents (half away from zero)"""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def floor_money(value: Number) -> Decimal:
    """Quantize to cents, truncating toward zero"""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_DOWN)


def round_half_away(value: Number) -> int:
    """
    Round to the nearest integer, ties away from zero.

    Python's round() uses banker's rounding (round(2.5) == 2); scores and
    eligible amounts follow the commercial convention instead.
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))
