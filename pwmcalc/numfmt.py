"""
Number rounding and formatting helpers.

Rounding follows round-half-up (not Python's banker's rounding) so that
register values and labels are stable for values that land exactly on .5.
"""

import math
from decimal import Decimal, ROUND_HALF_UP


def js_round(value: float) -> int:
    """Round half up: 17999.5 -> 18000, -2.5 -> -2."""
    floor = math.floor(value)
    if value - floor >= 0.5:
        return floor + 1
    return floor


def to_fixed(value: float, digits: int) -> str:
    """Fixed-point string rounded half up on the exact binary value."""
    quantum = Decimal(1).scaleb(-digits)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def format_si(value: float) -> str:
    """Compact form for step counts and frequencies: 36000 -> '36.0k'."""
    if value >= 1_000_000:
        return f"{to_fixed(value / 1_000_000, 1)}M"
    if value >= 1_000:
        return f"{to_fixed(value / 1_000, 1)}k"
    return str(int(value))


def js_number(value: float) -> str:
    """Render a number the way it reads in a config: 50 not 50.0, 7.5 stays 7.5."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def c_float(value: float) -> str:
    """C float literal, always with a decimal point: 5 -> '5.0f'."""
    if float(value).is_integer():
        return f"{int(value)}.0f"
    return f"{float(value)!r}f"
