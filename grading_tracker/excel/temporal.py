from __future__ import annotations

import logging
import numbers
import re
from datetime import date, datetime, timedelta
from typing import Any

import pandas as pd
from dateutil import parser as date_parser
from openpyxl.utils.datetime import from_excel

"""Temporal value parsing for report cells.

Report date cells come in several shapes depending on how the sheet was
authored: native dates (pandas Timestamp / datetime), spreadsheet serial
numbers, regional DD/MM/YYYY strings and ISO-like strings. parse_temporal()
turns any of them into a naive local datetime, or None when the cell is not a
date. It never raises: one bad cell must not abort a whole report.

Regional strings are tried with a strict day-first pattern before the generic
parser, because a generic parser reads 03/04/2024 as March 4th. The generic
parser only accepts strings that carry a full date: "15:30" or "may" are not
completed from the current day.
"""

__all__ = [
    "DAY_FIRST_PATTERN",
    "parse_temporal",
    "parse_day_first",
    "from_serial",
    "floor_to_midnight",
]

logger = logging.getLogger(__name__)

DAY_FIRST_PATTERN = re.compile(
    r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})"
    r"(?:\s+(\d{1,2})(?::(\d{1,2})(?::(\d{1,2}))?)?)?$"
)


def _to_local_naive(value: datetime) -> datetime | None:
    # aware -> same instant on the local clock, so all parsed values compare
    if value.tzinfo is None:
        return value
    try:
        return value.astimezone().replace(tzinfo=None)
    except (OverflowError, OSError, ValueError):
        return None


def from_serial(serial: float) -> datetime | None:
    """Convert a spreadsheet serial day number (1900 date system).

    The fractional part carries the time of day; the result is rounded to the
    nearest second. Non-positive or out-of-range serials give None.
    """
    if serial <= 0:
        return None
    try:
        converted = from_excel(serial)
    except (ValueError, OverflowError, TypeError):
        return None
    if not isinstance(converted, datetime):
        # from_excel returns a bare time for serials below 1
        return None
    rounded = converted + timedelta(microseconds=500_000)
    return rounded.replace(microsecond=0)


def parse_day_first(text: str) -> datetime | None:
    """Parse D[/-]M[/-]YYYY with an optional H[:M[:S]] 24h time.

    Every component is range checked and the datetime constructor rejects
    impossible calendar dates (31/04) instead of rolling them over.
    """
    match = DAY_FIRST_PATTERN.match(text)
    if match is None:
        return None
    day, month, year = int(match.group(1)), int(match.group(2)), int(match.group(3))
    hour = int(match.group(4)) if match.group(4) else 0
    minute = int(match.group(5)) if match.group(5) else 0
    second = int(match.group(6)) if match.group(6) else 0
    if not (1 <= day <= 31 and 1 <= month <= 12):
        return None
    if not (0 <= hour <= 23 and 0 <= minute <= 59 and 0 <= second <= 59):
        return None
    try:
        parsed = datetime(year, month, day, hour, minute, second)
    except ValueError:
        return None
    logger.debug("day-first date recognized text=%r parsed=%s", text, parsed)
    return parsed


# two distinct fill-in defaults: a date part that differs between the two
# parses was never in the text
_FILL_A = datetime(2000, 1, 1)
_FILL_B = datetime(2001, 2, 2)


def _parse_generic(text: str) -> datetime | None:
    """Calendar-string fallback; the text must carry year, month and day."""
    try:
        first = date_parser.parse(text, default=_FILL_A)
        second = date_parser.parse(text, default=_FILL_B)
    except (ValueError, OverflowError):
        return None
    if first.date() != second.date():
        logger.debug("partial date rejected text=%r", text)
        return None
    return _to_local_naive(first)


def parse_temporal(value: Any) -> datetime | None:
    """Convert a raw report cell into a datetime, or None.

    Dispatch:
    - empty / falsy / NaN / NaT -> None
    - datetime (including pandas Timestamp) -> itself, as a plain datetime
    - date -> midnight of that date
    - real number -> spreadsheet serial date
    - string -> strict day-first pattern, then generic calendar parsing
    - anything else -> None
    """
    if value is None or value is pd.NaT or isinstance(value, bool):
        return None
    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            return None
        return _to_local_naive(value.to_pydatetime())
    if isinstance(value, datetime):
        return _to_local_naive(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, numbers.Real):
        if pd.isna(value) or not value:
            return None
        return from_serial(float(value))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        return parse_day_first(text) or _parse_generic(text)
    return None


def floor_to_midnight(value: datetime) -> datetime:
    """Truncate to local midnight of the same calendar day."""
    return value.replace(hour=0, minute=0, second=0, microsecond=0)
