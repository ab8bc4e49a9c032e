"""
Interval overlap and duplicate event analysis.

Both analyses run over events already fetched for a range:
- find_conflicts: events overlapping a candidate interval
- find_duplicates: same-titled events on different calendars whose start and
  end are within a tolerance of each other
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from calendar_engine.integrations.base import Event


@dataclass
class EventSummary:
    """Identifying fields of one side of a duplicate pair."""

    id: Optional[str]
    title: str
    calendar: str
    calendar_source: str
    start_time: datetime
    end_time: datetime

    @classmethod
    def from_event(cls, event: Event) -> "EventSummary":
        return cls(
            id=event.id,
            title=event.title,
            calendar=event.calendar.title,
            calendar_source=event.calendar.source,
            start_time=event.start_time,
            end_time=event.end_time,
        )


@dataclass
class DuplicatePair:
    """Two likely-duplicate events and the gap between their starts."""

    first: EventSummary
    second: EventSummary
    time_difference_seconds: int


def find_conflicts(
    events: Iterable[Event],
    start: datetime,
    end: datetime,
    exclude_event_id: Optional[str] = None,
) -> list[Event]:
    """
    Events whose interval strictly overlaps [start, end).

    Overlap is `stored_start < end and stored_end > start`, so back-to-back
    events do not conflict.

    Args:
        events: Candidate events (typically fetched for [start, end))
        start: Candidate start
        end: Candidate end
        exclude_event_id: Event to ignore, e.g. the one being rescheduled
    """
    return [
        event for event in events
        if event.start_time < end
        and event.end_time > start
        and (exclude_event_id is None or event.id != exclude_event_id)
    ]


def find_duplicates(
    events: Sequence[Event],
    tolerance: timedelta = timedelta(minutes=5),
) -> list[DuplicatePair]:
    """
    Pair up events that look like the same meeting on two calendars.

    A pair qualifies when the events are on different calendars, titles match
    case-insensitively, and both starts and ends differ by at most
    `tolerance`. Quadratic in the number of fetched events.

    Args:
        events: Events fetched once for the analysed calendars and range
        tolerance: Maximum start/end difference

    Returns:
        Duplicate pairs in fetch order
    """
    pairs = []
    for i, first in enumerate(events):
        first_title = first.title.strip().casefold()
        for second in events[i + 1:]:
            if first.calendar.id == second.calendar.id:
                continue
            if second.title.strip().casefold() != first_title:
                continue
            start_gap = abs(first.start_time - second.start_time)
            end_gap = abs(first.end_time - second.end_time)
            if start_gap <= tolerance and end_gap <= tolerance:
                pairs.append(
                    DuplicatePair(
                        first=EventSummary.from_event(first),
                        second=EventSummary.from_event(second),
                        time_difference_seconds=int(start_gap.total_seconds()),
                    )
                )
    return pairs
