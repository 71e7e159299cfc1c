"""
Calendar abstraction for schedule generation.

The fixture generator never reads the system clock directly; it asks a
Calendar for "today" and for date arithmetic so tests can pin the date.
"""

import re
from datetime import date, datetime, time, timedelta
from typing import Optional, Protocol, Union

from competition_engine.exceptions import ConfigurationError

SATURDAY = 5
SUNDAY = 6

_KICKOFF_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


class Calendar(Protocol):
    def today(self) -> date:
        ...

    def weekday(self, day: date) -> int:
        """0=Monday .. 6=Sunday"""
        ...

    def add_days(self, day: date, days: int) -> date:
        ...


class SystemCalendar:
    """Gregorian calendar backed by the local system clock."""

    def today(self) -> date:
        return date.today()

    def weekday(self, day: date) -> int:
        return day.weekday()

    def add_days(self, day: date, days: int) -> date:
        return day + timedelta(days=days)


class FixedCalendar(SystemCalendar):
    """Calendar pinned to a given "today". Used for deterministic runs."""

    def __init__(self, today: date):
        self._today = today

    def today(self) -> date:
        return self._today


def is_weekend(calendar: Calendar, day: date) -> bool:
    return calendar.weekday(day) in (SATURDAY, SUNDAY)


def next_match_day(calendar: Calendar, day: date, weekends_only: bool) -> date:
    """
    Return the first valid match day on or after *day*.

    Without the weekend restriction every day is valid. With it, a Saturday or
    Sunday is returned unchanged and any weekday moves forward to Saturday.
    """
    if not weekends_only or is_weekend(calendar, day):
        return day
    days_until_saturday = SATURDAY - calendar.weekday(day)
    return calendar.add_days(day, days_until_saturday)


def parse_kickoff_time(value: Union[str, time]) -> time:
    """Parse a 24-hour "HH:MM" string. Raises ConfigurationError if malformed."""
    if isinstance(value, time):
        return value
    if not isinstance(value, str):
        raise ConfigurationError(
            f"kickoff_time must be an 'HH:MM' string, got {type(value).__name__}",
            code="INVALID_KICKOFF_TIME",
        )
    match = _KICKOFF_RE.match(value.strip())
    if not match:
        raise ConfigurationError(
            f"kickoff_time must be in 24-hour 'HH:MM' format, got '{value}'",
            code="INVALID_KICKOFF_TIME",
        )
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ConfigurationError(
            f"kickoff_time '{value}' is not a valid time of day",
            code="INVALID_KICKOFF_TIME",
        )
    return time(hours, minutes)


def as_date(value: Optional[Union[date, datetime]], calendar: Calendar) -> date:
    """Normalize a start date; None means today according to *calendar*."""
    if value is None:
        return calendar.today()
    if isinstance(value, datetime):
        return value.date()
    return value
