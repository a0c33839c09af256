"""Utility functions for the loan calculator.

This module provides helpers for parsing user input into Python data types and
for handling dates: parsing and formatting ``DD/MM/YYYY`` strings and adding
months or years to a date with the day clamped to the end of the month.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, getcontext
from typing import Optional, Union

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

DISPLAY_DATE_FORMAT = "%d/%m/%Y"
UNKNOWN_DATE = "DD/MM/YYYY"


def parse_start_date(value: Union[date, str, None]) -> Optional[date]:
    """Return the start date as a ``date`` or ``None`` when it is unusable.

    Strings are read as ``DD/MM/YYYY`` (the format the forms produce) and, as
    a fallback, ISO ``YYYY-MM-DD``. Out-of-range days such as ``31/02/2024``
    are rejected rather than rolled over. A failure to parse is not an error:
    the caller gets ``None`` and builds a schedule without dates.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    parts = text.split("/")
    if len(parts) == 3:
        try:
            day, month, year = (int(p) for p in parts)
            return date(year, month, day)
        except ValueError:
            return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def format_date(value: Optional[date]) -> str:
    """Format a date as ``DD/MM/YYYY``; unknown dates render as the placeholder."""
    if value is None:
        return UNKNOWN_DATE
    return value.strftime(DISPLAY_DATE_FORMAT)


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def add_years(dt: date, years: int) -> date:
    """Return ``dt`` moved by whole years; 29 February becomes 28 February."""
    return add_months(dt, 12 * years)


def decimal_from_str(value: Union[str, int, float, Decimal]) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    The function strips any commas and surrounding whitespace and handles both
    integer and float-like strings. It raises ``ValueError`` if conversion
    fails or the value is not finite.
    """
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            cleaned = str(value).replace(",", "").strip()
            result = Decimal(cleaned)
        except (InvalidOperation, ValueError) as exc:
            raise ValueError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value: {value}")
    return result
