"""
Calendar resolution by display name.

Two accounts can each hold a calendar with the same title ("Work" in both a
personal and an employer account). Names are matched exactly; a source
(account/provider name) disambiguates.
"""

from typing import Iterable, Optional

from calendar_engine.errors import (
    AmbiguousCalendarError,
    CalendarNotFoundError,
    CalendarNotFoundInSourceError,
)
from calendar_engine.integrations.base import Calendar


def resolve_all(
    calendars: Iterable[Calendar],
    name: str,
    source: Optional[str] = None,
) -> list[Calendar]:
    """
    All calendars titled `name`, restricted to `source` when given.

    Args:
        calendars: Candidate calendars, already restricted to one entity kind
        name: Exact calendar title
        source: Optional source name

    Returns:
        Non-empty list of matching calendars

    Raises:
        CalendarNotFoundInSourceError: No match in the given source
        CalendarNotFoundError: No match at all (no source given)
    """
    matches = [c for c in calendars if c.title == name]
    if source is not None:
        matches = [c for c in matches if c.source == source]

    if not matches:
        if source is not None:
            raise CalendarNotFoundInSourceError(name, source)
        raise CalendarNotFoundError(name)

    return matches


def resolve(
    calendars: Iterable[Calendar],
    name: str,
    source: Optional[str] = None,
) -> Calendar:
    """
    Exactly one calendar titled `name`.

    Raises:
        CalendarNotFoundInSourceError: No match in the given source
        CalendarNotFoundError: No match at all
        AmbiguousCalendarError: Several matches and no source to choose by
    """
    matches = resolve_all(calendars, name, source)
    if len(matches) > 1:
        # Same name twice in one source cannot be disambiguated by source;
        # take the first as the store lists them
        if source is not None:
            return matches[0]
        raise AmbiguousCalendarError(name, {c.source for c in matches})
    return matches[0]
