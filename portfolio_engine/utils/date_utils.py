# portfolio_engine/utils/date_utils.py
"""
Date utility functions for the Portfolio Engine.

Input records carry either a date or a datetime (naive or aware). These
helpers put them on one footing:

- Timestamps are normalised to naive UTC (aware values are converted,
  naive values are read as UTC, bare dates are read as midnight).
- A calendar day is the UTC date of a timestamp.

Usage:
    from portfolio_engine.utils.date_utils import to_day, iter_days

    for day in iter_days(to_day(first_trade), end_day):
        ...
"""

import calendar
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator


def normalize_timestamp(value: datetime | date) -> datetime:
    """
    Normalise a date or datetime to a naive UTC datetime.

    Args:
        value: A date, a naive datetime (read as UTC) or an aware datetime

    Returns:
        Naive datetime in UTC, comparable with any other normalised value
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    return datetime.combine(value, time.min)


def to_day(value: datetime | date) -> date:
    """Truncate a date or datetime to its UTC calendar day."""
    return normalize_timestamp(value).date()


def today_utc() -> date:
    """Current UTC calendar day."""
    return datetime.now(timezone.utc).date()


def iter_days(start: date, end: date) -> Iterator[date]:
    """
    Yield every calendar day from start to end, inclusive.

    Yields nothing if end precedes start.
    """
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def iso_date(day: date) -> str:
    """Format a day as yyyy-mm-dd."""
    return day.isoformat()


def format_display_date(day: date, locale: str = "en-US") -> str:
    """
    Short display label for a day, e.g. "Jan 5".

    US English (and bare "en") puts the month first; every other locale
    gets day-first ordering ("5 Jan"). Month abbreviations are English.

    Args:
        day: Day to format
        locale: BCP 47 style locale tag ("en-US", "en_GB", "de-DE")

    Returns:
        Display label
    """
    month = calendar.month_abbr[day.month]
    parts = locale.replace("_", "-").split("-")
    language = parts[0].lower()
    region = parts[1].upper() if len(parts) > 1 else ""

    if language == "en" and region in ("", "US"):
        return f"{month} {day.day}"
    return f"{day.day} {month}"
