"""
Calendar-day helpers.

Every date comparison in the work order domain happens at calendar-day
granularity: time of day is dropped before differences are taken, so an
installation scheduled "today" is ``today`` no matter what hour it is.

These helpers are total.  Values they cannot interpret become ``None`` so
the derivation engines built on them never raise.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any

_YEAR_MONTH = re.compile(r"^(\d{4})-(\d{2})$")


def as_calendar_day(value: Any) -> date | None:
    """Normalize a date-like value to a ``date``.

    Accepts ``date``, ``datetime`` (time of day dropped) and ISO strings
    (``"2026-01-10"`` or a full ISO timestamp).  Blank strings and anything
    unparseable return None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


def days_between(start: Any, end: Any) -> int | None:
    """Whole calendar days from ``start`` to ``end`` (negative if end is earlier)."""
    first = as_calendar_day(start)
    last = as_calendar_day(end)
    if first is None or last is None:
        return None
    return (last - first).days


def year_month(value: Any) -> str | None:
    """``"YYYY-MM"`` of a date-like value, or None."""
    day = as_calendar_day(value)
    if day is None:
        return None
    return f"{day.year:04d}-{day.month:02d}"


def is_year_month(value: Any) -> bool:
    """True for a well-formed ``"YYYY-MM"`` string with month 01..12."""
    if not isinstance(value, str):
        return False
    match = _YEAR_MONTH.match(value)
    if match is None:
        return False
    return 1 <= int(match.group(2)) <= 12


def is_blank(value: Any) -> bool:
    """True for None and empty or whitespace-only text.

    Non-text values (an imported numeric order number) count as present.
    """
    if value is None:
        return True
    if not isinstance(value, str):
        return False
    return not value.strip()
