"""Calendar-day helpers in the care circle's local timezone."""

from __future__ import annotations

from datetime import date, datetime, time, tzinfo


def local_date(value: datetime, tz: tzinfo) -> date:
    return value.astimezone(tz).date()


def local_hour(value: datetime, tz: tzinfo) -> int:
    return value.astimezone(tz).hour


def is_same_day(a: datetime, b: datetime, tz: tzinfo) -> bool:
    """True when both instants fall on the same local calendar day."""
    return local_date(a, tz) == local_date(b, tz)


def at_local_time(day: datetime, hour: int, tz: tzinfo) -> datetime:
    """The instant ``hour:00`` on ``day``'s local calendar date."""
    return datetime.combine(local_date(day, tz), time(hour=hour), tzinfo=tz)


def whole_days_between(earlier: datetime, later: datetime) -> int:
    """Number of complete 24-hour periods from ``earlier`` to ``later``.

    Truncates toward zero, so a negative span of less than a day is 0.
    """
    seconds = (later - earlier).total_seconds()
    return int(seconds / 86400)
