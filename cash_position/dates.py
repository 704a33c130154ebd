"""
Date normalization helpers.

All balance math compares calendar days: timestamps are truncated to their
date part before any comparison.
"""

from datetime import date, datetime, timedelta
from typing import Any, Iterator, Optional
from zoneinfo import ZoneInfo


def to_date(value: Any) -> Optional[date]:
    """
    Normalize a stored date value to a calendar day.

    Accepts date, datetime, "YYYY-MM-DD", "YYYY-MM-DDTHH:MM:SS[+tz]" and
    "YYYY-MM-DD HH:MM:SS". Returns None for anything else.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    # Keep only the date part of a timestamp
    text = text.split('T')[0].split(' ')[0]
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def today_in(tz_name: str) -> date:
    """Current calendar day in the given IANA time zone"""
    return datetime.now(tz=ZoneInfo(tz_name)).date()


def resolve_today(today: Optional[date] = None) -> date:
    """Use the given day, or today in the configured time zone"""
    if today is not None:
        return to_date(today)
    from .config import get_config
    return today_in(get_config().timezone)


def day_range(start: date, end: date) -> Iterator[date]:
    """Every calendar day from start to end, inclusive"""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def in_range(day: Optional[date], start: date, end: date) -> bool:
    """Inclusive range check; undated values are never in range"""
    return day is not None and start <= day <= end
