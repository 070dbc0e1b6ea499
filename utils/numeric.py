"""Numeric safety helpers shared by the formula engine and budget displays"""

import math
import re
from decimal import Decimal
from typing import Optional

NUMBER_PATTERN = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")


def safe_divide(value: float, divisor: float) -> float:
    """Divide, returning 0 for a zero divisor or NaN operands"""
    if divisor == 0 or math.isnan(value) or math.isnan(divisor):
        return 0.0
    return value / divisor


def safe_percent(value: float, total: float) -> float:
    """``value`` as a percentage of ``total``; 0 when undefined"""
    return safe_divide(value, total) * 100


def to_number(text: Optional[str]) -> Optional[float]:
    """Parse a cell value as a finite number.

    Returns None for empty, non-numeric, or non-finite text.
    """
    if text is None:
        return None
    candidate = text.strip()
    if not candidate or not NUMBER_PATTERN.match(candidate):
        return None
    number = float(candidate)
    if not math.isfinite(number):
        return None
    return number


def parse_float(text, default: Optional[float] = None) -> Optional[float]:
    """Lenient parse for user-entered amounts (numbers or numeric strings)"""
    if isinstance(text, bool):
        return default
    if isinstance(text, (int, float)):
        return float(text) if math.isfinite(text) else default
    number = to_number(text if isinstance(text, str) else None)
    return default if number is None else number


def format_number(value: float) -> str:
    """Render a number for display.

    Integral values print without a decimal point; everything else uses the
    shortest round-trip representation, in fixed notation down to 1e-6.
    """
    if value == 0:
        return "0"
    if float(value).is_integer() and abs(value) < 1e21:
        return str(int(value))
    text = repr(float(value))
    mantissa, sep, exponent = text.partition("e")
    if sep:
        power = int(exponent)
        if -7 < power < 0:
            return format(Decimal(text), "f")
        text = f"{mantissa}e{'+' if power > 0 else '-'}{abs(power)}"
    return text
