"""
Query post-processing for events and reminders.

Fetched items go through three independent steps:
- filter (EventFilter / ReminderFilter)
- sort (start instant for events, ReminderSort for reminders)
- limit

QueryResult keeps the counts before filtering, after filtering and returned
so callers can tell "nothing in range" from "everything filtered out".
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Generic, Iterable, Optional, Sequence, TypeVar

from calendar_engine.errors import InvalidParameterError
from calendar_engine.integrations.base import Event, Reminder

T = TypeVar("T")


class EventFilter(str, Enum):
    ALL = "all"
    PAST = "past"
    FUTURE = "future"
    ALL_DAY = "all_day"


class ReminderFilter(str, Enum):
    ALL = "all"
    INCOMPLETE = "incomplete"
    COMPLETED = "completed"
    OVERDUE = "overdue"


class ReminderSort(str, Enum):
    DUE_DATE = "due_date"
    CREATION_DATE = "creation_date"
    PRIORITY = "priority"
    TITLE = "title"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class MatchMode(str, Enum):
    ANY = "any"
    ALL = "all"


def parse_choice(enum_cls, value, field_name: str):
    """
    Validate a tag against an enumeration.

    Raises:
        InvalidParameterError: Listing the accepted values
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise InvalidParameterError(f"{field_name} must be one of: {choices} (got '{value}')")


@dataclass
class QueryResult(Generic[T]):
    """Items after filter → sort → limit, plus the counts at each stage."""

    items: list[T]
    total_count: int
    filtered_count: int

    @property
    def returned_count(self) -> int:
        return len(self.items)


# =============================================================================
# Filters
# =============================================================================


def filter_events(
    events: Iterable[Event],
    mode: EventFilter,
    now: datetime,
) -> list[Event]:
    """
    Apply an event filter.

    past: ended before now; future: starts after now; all_day: all-day only.
    """
    if mode == EventFilter.PAST:
        return [e for e in events if e.end_time < now]
    if mode == EventFilter.FUTURE:
        return [e for e in events if e.start_time > now]
    if mode == EventFilter.ALL_DAY:
        return [e for e in events if e.all_day]
    return list(events)


def resolve_reminder_filter(
    mode: Optional[str],
    completed: Optional[bool],
) -> ReminderFilter:
    """
    Combine the filter parameter with the legacy completed flag.

    An explicit filter wins over completed when both are present.
    """
    if mode is not None:
        return parse_choice(ReminderFilter, mode, "filter")
    if completed is True:
        return ReminderFilter.COMPLETED
    if completed is False:
        return ReminderFilter.INCOMPLETE
    return ReminderFilter.ALL


def filter_reminders(
    reminders: Iterable[Reminder],
    mode: ReminderFilter,
    now: datetime,
) -> list[Reminder]:
    """
    Apply a reminder filter.

    overdue: incomplete and due before now.
    """
    if mode == ReminderFilter.INCOMPLETE:
        return [r for r in reminders if not r.completed]
    if mode == ReminderFilter.COMPLETED:
        return [r for r in reminders if r.completed]
    if mode == ReminderFilter.OVERDUE:
        return [
            r for r in reminders
            if not r.completed and r.due_date is not None and r.due_date < now
        ]
    return list(reminders)


# =============================================================================
# Sorting
# =============================================================================


def sort_events(events: Iterable[Event], order: SortOrder = SortOrder.ASC) -> list[Event]:
    """Sort events by start instant (ties broken by end, then title)."""
    return sorted(
        events,
        key=lambda e: (e.start_time, e.end_time, e.title.casefold()),
        reverse=order == SortOrder.DESC,
    )


def _priority_rank(priority: int) -> int:
    # 0 means "no priority" and sorts after every explicit priority
    return 10 if priority == 0 else priority


def sort_reminders(reminders: Iterable[Reminder], sort_by: ReminderSort) -> list[Reminder]:
    """
    Sort reminders.

    due_date and creation_date put missing values last; priority orders
    high (1) first and none (0) last; title is case-insensitive.
    """
    if sort_by == ReminderSort.DUE_DATE:
        return sorted(reminders, key=_none_last("due_date"))
    if sort_by == ReminderSort.CREATION_DATE:
        return sorted(reminders, key=_none_last("creation_date"))
    if sort_by == ReminderSort.PRIORITY:
        return sorted(reminders, key=lambda r: _priority_rank(r.priority))
    return sorted(reminders, key=lambda r: r.title.casefold())


def _none_last(attribute: str):
    """Sort key placing None after every value without comparing to it."""

    def key(item):
        value = getattr(item, attribute)
        return (value is None, value.timestamp() if value is not None else 0.0)

    return key


# =============================================================================
# Limit
# =============================================================================


def apply_limit(items: Sequence[T], limit: Optional[int]) -> list[T]:
    """
    Keep the first `limit` items.

    Raises:
        InvalidParameterError: If limit is below 1
    """
    if limit is None:
        return list(items)
    if limit < 1:
        raise InvalidParameterError(f"limit must be at least 1 (got {limit})")
    return list(items[:limit])


def query_events(
    events: Sequence[Event],
    now: datetime,
    mode: EventFilter = EventFilter.ALL,
    order: SortOrder = SortOrder.ASC,
    limit: Optional[int] = None,
) -> QueryResult[Event]:
    """Filter → sort → limit over fetched events."""
    filtered = filter_events(events, mode, now)
    ordered = sort_events(filtered, order)
    return QueryResult(
        items=apply_limit(ordered, limit),
        total_count=len(events),
        filtered_count=len(filtered),
    )


def query_reminders(
    reminders: Sequence[Reminder],
    now: datetime,
    mode: ReminderFilter = ReminderFilter.ALL,
    sort_by: Optional[ReminderSort] = None,
    limit: Optional[int] = None,
) -> QueryResult[Reminder]:
    """Filter → sort → limit over fetched reminders; no sort keeps store order."""
    filtered = filter_reminders(reminders, mode, now)
    ordered = sort_reminders(filtered, sort_by) if sort_by is not None else filtered
    return QueryResult(
        items=apply_limit(ordered, limit),
        total_count=len(reminders),
        filtered_count=len(filtered),
    )


# =============================================================================
# Keyword search
# =============================================================================


def normalize_keywords(
    keyword: Optional[str] = None,
    keywords: Optional[Sequence[str]] = None,
) -> list[str]:
    """
    Collect search keywords from the single and list parameters.

    Raises:
        InvalidParameterError: If no non-blank keyword was given
    """
    collected = []
    if keyword:
        collected.append(keyword)
    if keywords:
        collected.extend(keywords)
    collected = [k.strip().casefold() for k in collected if k and k.strip()]
    if not collected:
        raise InvalidParameterError("keyword or keywords is required")
    return collected


def matches_keywords(text: str, keywords: Sequence[str], mode: MatchMode) -> bool:
    """Case-insensitive substring match; any = OR, all = AND."""
    haystack = text.casefold()
    if mode == MatchMode.ALL:
        return all(k in haystack for k in keywords)
    return any(k in haystack for k in keywords)


def event_search_text(event: Event) -> str:
    parts = [event.title, event.notes, event.location]
    if event.structured_location is not None:
        parts.append(event.structured_location.title)
    return "\n".join(p for p in parts if p)


def reminder_search_text(reminder: Reminder) -> str:
    return "\n".join(p for p in (reminder.title, reminder.notes) if p)


def search_events(
    events: Iterable[Event],
    keywords: Sequence[str],
    mode: MatchMode = MatchMode.ANY,
) -> list[Event]:
    """Events whose title, notes or location match the keywords."""
    return [e for e in events if matches_keywords(event_search_text(e), keywords, mode)]


def search_reminders(
    reminders: Iterable[Reminder],
    keywords: Sequence[str],
    mode: MatchMode = MatchMode.ANY,
) -> list[Reminder]:
    """Reminders whose title or notes match the keywords."""
    return [
        r for r in reminders
        if matches_keywords(reminder_search_text(r), keywords, mode)
    ]
