"""
Recurrence translation and expansion service.

Recurrence is described declaratively with RecurrenceRuleInput and stored in
the store's native form, an iCalendar RRULE string:
- to_rule() renders an input as an RRULE string
- to_description() parses an RRULE string back for display
- expand_occurrences() lists occurrence starts within a query window
- is_occurrence() and occurrences_on() check a requested occurrence exists

Uses python-dateutil for RRULE parsing and expansion.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from typing import Iterable, Optional

from dateutil.rrule import rrule, rruleset, rrulestr

from calendar_engine.errors import InvalidParameterError

logger = logging.getLogger(__name__)


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


# Day-of-week numbering on input: 1=Sunday ... 7=Saturday
WEEKDAY_CODES = ("SU", "MO", "TU", "WE", "TH", "FR", "SA")

_UNTIL_FORMAT = "%Y%m%dT%H%M%SZ"


@dataclass
class RecurrenceRuleInput:
    """
    Declarative recurrence description.

    end_date and occurrence_count are mutually exclusive; with neither the
    rule never ends.
    """

    frequency: Frequency
    interval: int = 1
    days_of_week: list[int] = field(default_factory=list)
    days_of_month: list[int] = field(default_factory=list)
    end_date: Optional[datetime] = None
    occurrence_count: Optional[int] = None

    def __post_init__(self):
        try:
            self.frequency = Frequency(self.frequency)
        except ValueError:
            raise InvalidParameterError(
                "recurrence.frequency must be one of: daily, weekly, monthly, yearly "
                f"(got '{self.frequency}')"
            )
        if self.interval is None:
            self.interval = 1
        if self.interval < 1:
            raise InvalidParameterError("recurrence.interval must be at least 1")
        if self.end_date is not None and self.occurrence_count is not None:
            raise InvalidParameterError(
                "recurrence.end_date and recurrence.occurrence_count are mutually exclusive"
            )
        if self.occurrence_count is not None and self.occurrence_count < 1:
            raise InvalidParameterError("recurrence.occurrence_count must be at least 1")
        for day in self.days_of_week:
            if not 1 <= day <= 7:
                raise InvalidParameterError(
                    f"recurrence.days_of_week values must be 1 (Sunday) to 7 (Saturday), got {day}"
                )
        for day in self.days_of_month:
            if day == 0 or not -31 <= day <= 31:
                raise InvalidParameterError(
                    f"recurrence.days_of_month values must be 1 to 31 or -31 to -1, got {day}"
                )

    def to_dict(self, format_date=None) -> dict:
        """JSON-shaped description; format_date renders end_date."""
        result: dict = {
            "frequency": self.frequency.value,
            "interval": self.interval,
        }
        if self.days_of_week:
            result["days_of_week"] = list(self.days_of_week)
        if self.days_of_month:
            result["days_of_month"] = list(self.days_of_month)
        if self.end_date is not None:
            result["end_date"] = (
                format_date(self.end_date) if format_date else self.end_date.isoformat()
            )
        if self.occurrence_count is not None:
            result["occurrence_count"] = self.occurrence_count
        return result


def to_rule(rule_input: RecurrenceRuleInput) -> str:
    """
    Render a recurrence description as an RRULE string.

    Day-of-week sets only apply to weekly rules and day-of-month sets only to
    monthly rules; a mismatched set is accepted and left out of the rule.

    Args:
        rule_input: Validated recurrence description

    Returns:
        RRULE string, e.g. 'FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;COUNT=10'
    """
    parts = [f"FREQ={rule_input.frequency.value.upper()}"]

    if rule_input.interval != 1:
        parts.append(f"INTERVAL={rule_input.interval}")

    if rule_input.days_of_week:
        if rule_input.frequency == Frequency.WEEKLY:
            parts.append(
                "BYDAY=" + ",".join(WEEKDAY_CODES[d - 1] for d in rule_input.days_of_week)
            )
        else:
            logger.debug(
                f"Ignoring days_of_week on {rule_input.frequency.value} recurrence"
            )

    if rule_input.days_of_month:
        if rule_input.frequency == Frequency.MONTHLY:
            parts.append(
                "BYMONTHDAY=" + ",".join(str(d) for d in rule_input.days_of_month)
            )
        else:
            logger.debug(
                f"Ignoring days_of_month on {rule_input.frequency.value} recurrence"
            )

    if rule_input.end_date is not None:
        until = rule_input.end_date
        if until.tzinfo is None:
            until = until.replace(tzinfo=timezone.utc)
        parts.append(f"UNTIL={until.astimezone(timezone.utc).strftime(_UNTIL_FORMAT)}")
    elif rule_input.occurrence_count is not None:
        parts.append(f"COUNT={rule_input.occurrence_count}")

    return ";".join(parts)


def to_description(rule_string: str) -> RecurrenceRuleInput:
    """
    Parse an RRULE string back into a recurrence description.

    Args:
        rule_string: RRULE string, with or without the 'RRULE:' prefix

    Returns:
        RecurrenceRuleInput

    Raises:
        InvalidParameterError: If the rule has no FREQ or an unsupported one
    """
    text = rule_string.strip()
    if text.upper().startswith("RRULE:"):
        text = text[len("RRULE:"):]

    components = {}
    for part in text.split(";"):
        if "=" in part:
            key, value = part.split("=", 1)
            components[key.strip().upper()] = value.strip()

    if "FREQ" not in components:
        raise InvalidParameterError(f"RRULE must contain FREQ component: {rule_string}")

    days_of_week = []
    for code in filter(None, components.get("BYDAY", "").split(",")):
        # Positional prefixes like 1MO / -1FR keep only the weekday
        days_of_week.append(WEEKDAY_CODES.index(code[-2:].upper()) + 1)

    days_of_month = [
        int(d) for d in filter(None, components.get("BYMONTHDAY", "").split(","))
    ]

    end_date = None
    if "UNTIL" in components:
        end_date = _parse_until(components["UNTIL"])

    return RecurrenceRuleInput(
        frequency=components["FREQ"].lower(),
        interval=int(components.get("INTERVAL", 1)),
        days_of_week=days_of_week,
        days_of_month=days_of_month,
        end_date=end_date,
        occurrence_count=int(components["COUNT"]) if "COUNT" in components else None,
    )


def _parse_until(value: str) -> datetime:
    """Parse an UNTIL value (UTC timestamp or date) into an aware datetime."""
    if value.endswith("Z"):
        return datetime.strptime(value, _UNTIL_FORMAT).replace(tzinfo=timezone.utc)
    if "T" in value:
        return datetime.strptime(value, "%Y%m%dT%H%M%S").replace(tzinfo=timezone.utc)
    return datetime.strptime(value, "%Y%m%d").replace(tzinfo=timezone.utc)


def truncate_rule(rule_string: str, before: datetime) -> str:
    """
    End a rule just before the given occurrence.

    Used when deleting an occurrence and all future ones.
    """
    description = to_description(rule_string)
    description.occurrence_count = None
    description.end_date = before - timedelta(seconds=1)
    return to_rule(description)


def parse_rrule(rule_string: str, dtstart: datetime) -> Optional[rrule]:
    """
    Parse an RRULE string into a dateutil rrule object.

    Args:
        rule_string: iCalendar RRULE string (e.g., 'FREQ=WEEKLY;BYDAY=MO,WE,FR')
        dtstart: Start datetime for the recurrence

    Returns:
        rrule object or None if parsing fails
    """
    if not rule_string:
        return None

    try:
        return rrulestr(rule_string, dtstart=dtstart)
    except (ValueError, TypeError) as e:
        logger.warning(f"Unparseable recurrence rule {rule_string!r}: {e}")
        return None


def _series(
    rule_string: str,
    dtstart: datetime,
    excluded: Iterable[datetime] = (),
) -> Optional[rruleset]:
    rule = parse_rrule(rule_string, dtstart)
    if rule is None:
        return None

    series = rruleset()
    series.rrule(rule)
    for moment in excluded:
        series.exdate(moment)
    return series


def is_occurrence(
    rule_string: str,
    dtstart: datetime,
    instant: datetime,
    excluded: Iterable[datetime] = (),
) -> bool:
    """Whether instant is the start of a remaining occurrence of the series."""
    series = _series(rule_string, dtstart, excluded)
    if series is None:
        return False
    try:
        return series.after(instant, inc=True) == instant
    except (ValueError, OverflowError):
        return False


def occurrences_on(
    rule_string: str,
    dtstart: datetime,
    day: date,
    tz: tzinfo,
    excluded: Iterable[datetime] = (),
) -> list[datetime]:
    """Occurrence starts falling on a local calendar day."""
    series = _series(rule_string, dtstart, excluded)
    if series is None:
        return []

    day_start = datetime.combine(day, time(), tzinfo=tz)
    day_end = datetime.combine(day + timedelta(days=1), time(), tzinfo=tz)
    try:
        return [
            start for start in series.between(day_start, day_end, inc=True)
            if start < day_end
        ]
    except (ValueError, OverflowError):
        return []


def nearest_occurrence(
    rule_string: str,
    dtstart: datetime,
    instant: datetime,
    excluded: Iterable[datetime] = (),
) -> Optional[datetime]:
    """Remaining occurrence start closest to instant, or None if none is left."""
    series = _series(rule_string, dtstart, excluded)
    if series is None:
        return None
    try:
        candidates = [
            start
            for start in (series.before(instant, inc=True), series.after(instant, inc=True))
            if start is not None
        ]
    except (ValueError, OverflowError):
        return None
    return min(candidates, key=lambda start: abs(start - instant), default=None)


def expand_occurrences(
    rule_string: str,
    dtstart: datetime,
    duration: timedelta,
    window_start: datetime,
    window_end: datetime,
    excluded: Iterable[datetime] = (),
    max_instances: int = 500,
) -> list[datetime]:
    """
    List occurrence starts whose interval overlaps [window_start, window_end).

    Args:
        rule_string: iCalendar RRULE string
        dtstart: First occurrence start
        duration: Occurrence duration (end - start)
        window_start: Start of query window
        window_end: End of query window
        excluded: Occurrence starts removed from the series
        max_instances: Maximum instances to generate (safety limit)

    Returns:
        Occurrence start datetimes in chronological order
    """
    series = _series(rule_string, dtstart, excluded)
    if series is None:
        return []

    try:
        candidates = series.between(window_start - duration, window_end, inc=True)
    except (ValueError, OverflowError):
        return []

    occurrences = [
        start for start in candidates
        if intervals_overlap(start, start + duration, window_start, window_end)
    ]
    return occurrences[:max_instances]


def intervals_overlap(
    start: datetime,
    end: datetime,
    window_start: datetime,
    window_end: datetime,
) -> bool:
    """
    Whether [start, end) overlaps [window_start, window_end).

    Touching boundaries do not overlap. A zero-length item overlaps when it
    lies inside the window.
    """
    if start == end:
        return window_start <= start < window_end
    return start < window_end and end > window_start
