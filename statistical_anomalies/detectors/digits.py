"""
Significant digit extraction.

Digits are read from the exact decimal expansion of the shortest repr of the
number (``Decimal(repr(x))``), so 999.9999999999999 yields 9 and 1000.0
yields 1 with no dependence on scientific-notation rounding.
"""

import math
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple, Union

Number = Union[int, float, Decimal]


def _significant_digits(value: Number) -> Optional[Tuple[Tuple[int, ...], int]]:
    """Return (digits, exponent) of |value| with leading zeros removed, None for 0/non-finite."""
    try:
        if isinstance(value, Decimal):
            dec = abs(value)
        else:
            as_float = float(value)
            if not math.isfinite(as_float):
                return None
            dec = abs(Decimal(repr(as_float)))
    except (TypeError, ValueError, InvalidOperation, OverflowError):
        return None

    if not dec.is_finite() or dec.is_zero():
        return None

    _, digits, exponent = dec.as_tuple()
    return digits, exponent


def first_digit(value: Number) -> Optional[int]:
    """Leading significant digit (1-9), None for zero or non-finite input."""
    parsed = _significant_digits(value)
    if parsed is None:
        return None
    return parsed[0][0]


def second_digit(value: Number) -> Optional[int]:
    """
    Second significant digit (0-9) of a number whose magnitude is at least 10.

    Returns None below 10. For values such as 1e20, whose coefficient has a
    single digit, the missing positions are trailing zeros.
    """
    parsed = _significant_digits(value)
    if parsed is None:
        return None
    digits, exponent = parsed
    # magnitude >= 10 <=> at least two digits before the decimal point
    if len(digits) + exponent < 2:
        return None
    return digits[1] if len(digits) > 1 else 0


def extract_digit(value: Number, position: str) -> Optional[int]:
    """Dispatch to the first or second digit extractor."""
    if position == "first":
        return first_digit(value)
    if position == "second":
        return second_digit(value)
    raise ValueError(f"Unknown digit position: {position!r}")
