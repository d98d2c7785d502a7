"""Date handling for accumulator contracts.

Accrual bookkeeping is done at day granularity, so the package works with
plain ``datetime.date`` values. This module parses the ISO 8601 strings that
arrive from term sheets and market data files and provides the small amount
of date arithmetic the engine needs.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from datetime import date, datetime, timedelta

from jkoda.core.types import DateLike

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[T ]\d{2}:\d{2}(?::\d{2})?)?$")

DAYS_PER_YEAR = 365.0


def parse_date(value: DateLike | datetime) -> date:
    """Parse a date from an ISO 8601 string or pass a date through.

    Supports formats:
    - YYYY-MM-DD
    - YYYY-MM-DDTHH:MM:SS (time part ignored)

    Args:
        value: ISO string, ``date`` or ``datetime``

    Returns:
        The calendar date

    Raises:
        ValueError: If the string cannot be parsed

    Example:
        >>> parse_date("2024-01-15")
        datetime.date(2024, 1, 15)
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Cannot interpret {value!r} as a date")

    match = _ISO_DATE.match(value.strip())
    if match is None:
        raise ValueError(f"Invalid ISO date string: '{value}'")
    year, month, day = (int(part) for part in match.groups())
    return date(year, month, day)


def iterate_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day from start to end inclusive.

    Example:
        >>> list(iterate_days(date(2024, 1, 1), date(2024, 1, 3)))
        [datetime.date(2024, 1, 1), datetime.date(2024, 1, 2), datetime.date(2024, 1, 3)]
    """
    current = start
    one_day = timedelta(days=1)
    while current <= end:
        yield current
        current += one_day


def year_fraction(start: date, end: date) -> float:
    """Actual/365 Fixed year fraction between two dates (negative if end < start).

    Example:
        >>> year_fraction(date(2024, 1, 1), date(2025, 1, 1))
        1.0027397260273974
    """
    return (end - start).days / DAYS_PER_YEAR


def format_date(value: date) -> str:
    """Format a date for diagnostics, e.g. 'Mon 15-Jan-2024'."""
    return value.strftime("%a %d-%b-%Y")
