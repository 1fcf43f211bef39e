"""Utility functions for the mortgage calculators.

This module provides helpers for parsing user input into Python data types and
for handling dates: parsing ISO dates (a missing day defaults to the first of
the month) and adding months. It uses Python's ``datetime`` and ``calendar``
modules for the month arithmetic.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal, getcontext
import calendar
from typing import Optional

getcontext().prec = 28  # increase decimal precision to avoid rounding errors


def parse_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` (or ``YYYY-MM``) string into a ``date``.

    Raises
    ------
    ValueError
        If the string is not a valid date.
    """
    try:
        parts = value.strip().split("-")
        if len(parts) < 2:
            raise ValueError
        year = int(parts[0])
        month = int(parts[1])
        day = int(parts[2]) if len(parts) > 2 else 1
        return date(year, month, day)
    except Exception as exc:
        raise ValueError(f"Invalid date string: {value}") from exc


def parse_optional_date(value: Optional[str]) -> Optional[date]:
    """Like :func:`parse_date` but blank input yields ``None``."""
    if value is None or not value.strip():
        return None
    return parse_date(value)


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def decimal_from_str(value: str) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    The function strips any commas and handles both integer and float-like
    strings. It raises ``ValueError`` if conversion fails.
    """
    try:
        cleaned = str(value).replace(",", "").strip()
        result = Decimal(cleaned)
    except Exception as exc:
        raise ValueError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value: {value}")
    return result


def money(value: Decimal) -> float:
    """Round a Decimal amount to cents and return it as a float for output."""
    return float(value.quantize(Decimal("0.01")))
