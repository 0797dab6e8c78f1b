"""Calendar-date normalization shared by the scheduling core - no I/O dependencies.

Every date the core touches is a UTC calendar day, compared and keyed by its
``YYYY-MM-DD`` form.
"""

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Iterator


def to_day(value: date | datetime | str) -> date:
    """
    Normalize a date-like value to a UTC calendar day.

    Naive datetimes are taken as UTC. Strings may carry a time part
    ("2024-01-05T10:00:00Z"); only the date prefix is read.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip()[:10])


def date_key(day: date | datetime | str) -> str:
    """Key a day by its YYYY-MM-DD string."""
    return to_day(day).isoformat()


def parse_key(key: str) -> date:
    return date.fromisoformat(key)


def utc_today(now: datetime | None = None) -> date:
    """Today's UTC calendar day."""
    now = now or datetime.now(timezone.utc)
    return to_day(now)


def weekday_ordinal(day: date) -> int:
    """Weekday ordinal with 0=Sunday..6=Saturday."""
    return (day.weekday() + 1) % 7


def add_days(day: date, days: int) -> date:
    return day + timedelta(days=days)


def add_months(day: date, months: int) -> date:
    """
    Same day-of-month N months later.

    Clamped to the last day of shorter months (Jan 31 + 1 month = Feb 28/29).
    """
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def days_between(start: date, end: date) -> int:
    """Absolute number of whole calendar days between two days."""
    return abs((end - start).days)


def days_back(today: date, count: int) -> Iterator[date]:
    """Yield today, yesterday, ... for ``count`` days."""
    for offset in range(count):
        yield today - timedelta(days=offset)


def day_or_none(value: date | datetime | str | None) -> date | None:
    """Like to_day, but None for missing or unparsable values."""
    if not value:
        return None
    try:
        return to_day(value)
    except (TypeError, ValueError, AttributeError):
        return None


def weekday_set(values) -> frozenset[int]:
    """Weekday ordinals from stored data. Entries that aren't integers are dropped."""
    if not isinstance(values, (list, tuple, set, frozenset)):
        return frozenset()
    days = set()
    for value in values:
        try:
            days.add(int(value))
        except (TypeError, ValueError):
            continue
    return frozenset(days)
