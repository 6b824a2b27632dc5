"""Utility functions for the EMI calculator.

This module provides helpers for parsing user input into Python data types and
for handling dates, most importantly adding calendar months to a date. It uses
Python's ``datetime`` and ``calendar`` modules for the month arithmetic.
"""

from __future__ import annotations

import calendar
import math
from datetime import date


def parse_iso_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` string into a ``date`` object.

    Raises
    ------
    ValueError
        If the string is not a valid ISO-8601 calendar date.
    """
    try:
        return date.fromisoformat(value.strip())
    except (AttributeError, TypeError, ValueError) as exc:
        raise ValueError(f"Invalid date (expected YYYY-MM-DD): {value}") from exc


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _finite(number: float, kind: str, value: str) -> float:
    if not math.isfinite(number):
        raise ValueError(f"Invalid {kind}: {value}")
    return number


def parse_amount(value: str) -> float:
    """Parse a numeric string with optional suffixes.

    Accepts plain numbers ("250000"), thousands separators ("250,000") and
    shorthand with ``k``/``m`` suffixes (e.g., "250k" meaning 250_000).
    Non-finite values such as "nan" or "inf" are rejected.
    """
    cleaned = str(value).strip().lower().replace(",", "")
    factor = 1.0
    if cleaned.endswith("k"):
        factor = 1_000.0
        cleaned = cleaned[:-1]
    elif cleaned.endswith("m"):
        factor = 1_000_000.0
        cleaned = cleaned[:-1]
    try:
        number = float(cleaned) * factor
    except ValueError as exc:
        raise ValueError(f"Invalid amount: {value}") from exc
    return _finite(number, "amount", value)


def parse_percent(value: str) -> float:
    """Parse an annual rate given in percent ("7.5" or "7.5%")."""
    cleaned = str(value).strip()
    if cleaned.endswith("%"):
        cleaned = cleaned[:-1]
    try:
        number = float(cleaned)
    except ValueError as exc:
        raise ValueError(f"Invalid rate: {value}") from exc
    return _finite(number, "rate", value)


def parse_number(value: str) -> float:
    """Parse a plain finite number such as a duration in years ("2.5")."""
    try:
        number = float(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Invalid number: {value}") from exc
    return _finite(number, "number", value)
