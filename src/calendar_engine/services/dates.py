"""
Flexible date parsing and named date ranges.

Accepted input formats, tried in this order:
1. Full timestamp with offset or UTC marker  (2026-02-06T14:00:00+08:00, ...Z)
2. Timestamp without offset, local time      (2026-02-06T14:00:00)
3. Date only, local midnight                 (2026-02-06)
4. Time only, today in local time            (14:00, 14:00:30)

Every instant produced is timezone-aware. Rendering with format_instant()
and parsing the result again yields the same instant.
"""

import calendar as stdlib_calendar
import re
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Optional

from dateutil.parser import isoparse

from calendar_engine.config import get_settings
from calendar_engine.errors import InvalidDateError, InvalidParameterError

_OFFSET_TIMESTAMP = re.compile(
    r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|z|[+-]\d{2}(:?\d{2})?)$"
)
_NAIVE_TIMESTAMP = re.compile(
    r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(:\d{2}(\.\d+)?)?$"
)
_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_ONLY = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")

QUICK_RANGES = (
    "today",
    "tomorrow",
    "this_week",
    "next_week",
    "this_month",
    "next_7_days",
    "next_30_days",
)

# datetime.weekday() numbering: Monday=0 ... Sunday=6
WEEK_STARTS = {
    "monday": 0,
    "saturday": 5,
    "sunday": 6,
}


def local_timezone() -> tzinfo:
    """Timezone used for naive inputs and rendered output."""
    return get_settings().get_tzinfo()


def parse_flexible_date(
    value: str,
    tz: Optional[tzinfo] = None,
    now: Optional[datetime] = None,
) -> datetime:
    """
    Parse a date/time string in one of the four supported formats.

    Args:
        value: Input string
        tz: Zone for inputs without an offset (default: local timezone)
        now: Reference instant for time-only inputs (default: current time)

    Returns:
        Timezone-aware datetime

    Raises:
        InvalidDateError: If no format matches
    """
    if not isinstance(value, str):
        raise InvalidDateError(str(value))

    text = value.strip()
    tz = tz or local_timezone()

    try:
        if _OFFSET_TIMESTAMP.match(text):
            return isoparse(text)

        if _NAIVE_TIMESTAMP.match(text):
            return isoparse(text).replace(tzinfo=tz)

        if len(text) == 10 and _DATE_ONLY.match(text):
            day = datetime.strptime(text, "%Y-%m-%d").date()
            return start_of_day(day, tz)

        match = _TIME_ONLY.match(text)
        if match:
            hour, minute, second = (int(g) if g else 0 for g in match.groups())
            reference = (now or datetime.now(tz)).astimezone(tz)
            return datetime.combine(
                reference.date(), time(hour, minute, second), tzinfo=tz
            )
    except ValueError as e:
        # Right shape, impossible value (month 13, 25:00, ...)
        raise InvalidDateError(value) from e

    raise InvalidDateError(value)


def is_date_only(value) -> bool:
    """Whether value is a date-only string such as 2026-02-06."""
    return isinstance(value, str) and bool(_DATE_ONLY.match(value.strip()))


def format_instant(dt: datetime, tz: Optional[tzinfo] = None) -> str:
    """
    Canonical full-timestamp rendering with an explicit offset.

    Args:
        dt: Aware datetime
        tz: Zone to render in (default: local timezone)
    """
    return dt.astimezone(tz or local_timezone()).isoformat()


def start_of_day(day: date, tz: tzinfo) -> datetime:
    """Local midnight of a calendar day."""
    return datetime.combine(day, time(0, 0), tzinfo=tz)


def resolve_week_start(week_starts_on: str = "system") -> int:
    """
    Map a week-start convention to a datetime.weekday() number.

    "system" uses the interpreter's calendar.firstweekday().

    Raises:
        InvalidParameterError: For unknown conventions
    """
    if week_starts_on == "system":
        return stdlib_calendar.firstweekday()
    try:
        return WEEK_STARTS[week_starts_on]
    except KeyError:
        raise InvalidParameterError(
            f"week_starts_on must be one of: system, monday, sunday, saturday "
            f"(got '{week_starts_on}')"
        )


def week_start(day: date, first_weekday: int) -> date:
    """First day of the week containing `day`."""
    return day - timedelta(days=(day.weekday() - first_weekday) % 7)


def quick_range(
    name: str,
    week_starts_on: str = "system",
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> tuple[datetime, datetime]:
    """
    Resolve a named range to a half-open [start, end) interval.

    Week-bounded ranges honor week_starts_on; a week is always 7 days.

    Args:
        name: One of QUICK_RANGES
        week_starts_on: system, monday, sunday or saturday
        now: Reference instant (default: current time)
        tz: Zone whose midnights bound the range (default: local timezone)

    Raises:
        InvalidParameterError: For unknown range names
    """
    tz = tz or local_timezone()
    today = (now or datetime.now(tz)).astimezone(tz).date()

    if name == "today":
        first, last = today, today + timedelta(days=1)
    elif name == "tomorrow":
        first, last = today + timedelta(days=1), today + timedelta(days=2)
    elif name in ("this_week", "next_week"):
        first = week_start(today, resolve_week_start(week_starts_on))
        if name == "next_week":
            first += timedelta(days=7)
        last = first + timedelta(days=7)
    elif name == "this_month":
        first = today.replace(day=1)
        days_in_month = stdlib_calendar.monthrange(today.year, today.month)[1]
        last = first + timedelta(days=days_in_month)
    elif name == "next_7_days":
        first, last = today, today + timedelta(days=7)
    elif name == "next_30_days":
        first, last = today, today + timedelta(days=30)
    else:
        raise InvalidParameterError(
            f"range must be one of: {', '.join(QUICK_RANGES)} (got '{name}')"
        )

    return start_of_day(first, tz), start_of_day(last, tz)
