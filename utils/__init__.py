"""Utility modules"""

from .numeric import safe_divide, safe_percent, to_number, parse_float, format_number

__all__ = [
    "safe_divide",
    "safe_percent",
    "to_number",
    "parse_float",
    "format_number",
]
