"""Fixed-precision currency helpers"""

from decimal import Decimal, ROUND_HALF_EVEN
from typing import Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

MoneyLike = Union[Decimal, int, float, str, None]


def to_money(value: MoneyLike) -> Decimal:
    """
    Coerce a number-like value to a Decimal quantized to cents.

    Floats are converted through str() so 0.1 becomes 0.10, not
    0.1000000000000000055511151231257827. None is treated as zero.
    Rounding is banker's rounding (half-even).
    """
    if value is None:
        return ZERO
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_EVEN)


def percentage(part: MoneyLike, whole: MoneyLike) -> Decimal:
    """part / whole * 100 rounded to 2 places; 0/0 and x/0 are 0%"""
    whole_dec = to_money(whole)
    if whole_dec == 0:
        return ZERO
    return (to_money(part) / whole_dec * 100).quantize(CENT, rounding=ROUND_HALF_EVEN)


def money_sum(values) -> Decimal:
    """Sum an iterable of money-like values at cent precision"""
    return sum((to_money(v) for v in values), ZERO)
