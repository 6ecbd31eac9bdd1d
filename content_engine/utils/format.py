"""Numeric formatting for display strings (English thousands separators)."""

from __future__ import annotations

import math


def format_number(value: object, max_fraction_digits: int | None = None) -> str:
    """Format ``value`` with grouping commas; non-numeric values pass through."""
    if value is None or value == "":
        return ""
    if isinstance(value, bool):
        return str(value)
    try:
        num = float(str(value).replace(",", "").strip())
    except ValueError:
        return str(value)
    if not math.isfinite(num):
        return str(value)

    if max_fraction_digits is None:
        max_fraction_digits = 0 if num.is_integer() else 2
    text = f"{num:,.{max_fraction_digits}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text
