"""
In-memory calendar store.

Dict-backed implementation of the CalendarStore protocol, useful for tests,
prototyping and ephemeral sessions. Items are copied on the way in and out,
so callers never hold references into the store.
"""

import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Sequence

from calendar_engine.errors import (
    CalendarNotFoundError,
    EventNotFoundError,
    InvalidParameterError,
    ReminderNotFoundError,
    StoreError,
)
from calendar_engine.integrations.base import (
    Calendar,
    CalendarStore,
    DeleteSpan,
    EntityKind,
    Event,
    Reminder,
)
from calendar_engine.services.recurrence import (
    expand_occurrences,
    intervals_overlap,
    is_occurrence,
    truncate_rule,
)

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex.upper()


class InMemoryCalendarStore(CalendarStore):
    """
    CalendarStore kept entirely in process memory.

    Consent is simulated: `grant` decides what request_access() answers per
    entity kind.
    """

    def __init__(
        self,
        grant: Optional[dict[EntityKind, bool]] = None,
        sources: Sequence[str] = ("Local",),
        max_recurrence_instances: int = 500,
    ):
        """
        Initialize the store.

        Args:
            grant: Consent answer per kind (default: grant everything)
            sources: Account/provider names calendars can be created in
            max_recurrence_instances: Expansion cap per recurring event
        """
        self._grant = grant or {EntityKind.EVENT: True, EntityKind.REMINDER: True}
        self._sources = list(sources)
        self._max_instances = max_recurrence_instances
        self._calendars: dict[str, Calendar] = {}
        self._defaults: dict[EntityKind, str] = {}
        self._events: dict[str, Event] = {}
        self._reminders: dict[str, Reminder] = {}
        self.access_requests: list[EntityKind] = []
        self.refresh_count = 0

    # =========================================================================
    # Seeding helpers (synchronous, for setup code)
    # =========================================================================

    def add_calendar(
        self,
        title: str,
        kind: EntityKind = EntityKind.EVENT,
        source: Optional[str] = None,
        read_only: bool = False,
        subscribed: bool = False,
        color: Optional[str] = None,
        default: bool = False,
    ) -> Calendar:
        """Register a calendar directly, bypassing consent."""
        source = source or self._sources[0]
        if source not in self._sources:
            self._sources.append(source)
        calendar = Calendar(
            id=_new_id(),
            title=title,
            kind=kind,
            source=source,
            read_only=read_only,
            subscribed=subscribed,
            color=color,
        )
        self._calendars[calendar.id] = calendar
        if default or kind not in self._defaults:
            self._defaults[kind] = calendar.id
        return copy.deepcopy(calendar)

    def add_event(self, event: Event) -> Event:
        """Store an event directly, bypassing consent and validation."""
        stored = copy.deepcopy(event)
        stored.id = stored.id or _new_id()
        self._events[stored.id] = stored
        return copy.deepcopy(stored)

    def add_reminder(self, reminder: Reminder) -> Reminder:
        """Store a reminder directly, bypassing consent and validation."""
        stored = copy.deepcopy(reminder)
        stored.id = stored.id or _new_id()
        stored.creation_date = stored.creation_date or datetime.now(timezone.utc)
        self._reminders[stored.id] = stored
        return copy.deepcopy(stored)

    # =========================================================================
    # Access
    # =========================================================================

    async def request_access(self, kind: EntityKind) -> bool:
        self.access_requests.append(kind)
        return self._grant.get(kind, False)

    async def refresh_sources(self) -> None:
        self.refresh_count += 1

    async def sources(self) -> list[str]:
        return list(self._sources)

    # =========================================================================
    # Calendars
    # =========================================================================

    async def calendars(self, kind: EntityKind) -> list[Calendar]:
        return [copy.deepcopy(c) for c in self._calendars.values() if c.kind == kind]

    async def calendar_by_id(self, calendar_id: str) -> Optional[Calendar]:
        calendar = self._calendars.get(calendar_id)
        return copy.deepcopy(calendar) if calendar else None

    async def default_calendar(self, kind: EntityKind) -> Optional[Calendar]:
        calendar_id = self._defaults.get(kind)
        return await self.calendar_by_id(calendar_id) if calendar_id else None

    async def save_calendar(self, calendar: Calendar) -> Calendar:
        if calendar.source not in self._sources:
            raise StoreError(f"Unknown source: {calendar.source}")

        stored = copy.deepcopy(calendar)
        if not stored.id:
            stored.id = _new_id()
        else:
            existing = self._calendars.get(stored.id)
            if existing is None:
                raise CalendarNotFoundError(stored.id)
            if not existing.allows_modifications:
                raise StoreError(f"Calendar '{existing.title}' is read-only")

        self._calendars[stored.id] = stored
        self._defaults.setdefault(stored.kind, stored.id)
        return copy.deepcopy(stored)

    async def remove_calendar(self, calendar_id: str) -> None:
        calendar = self._calendars.get(calendar_id)
        if calendar is None:
            raise CalendarNotFoundError(calendar_id)
        if calendar.subscribed:
            raise StoreError(f"Calendar '{calendar.title}' is a subscription and cannot be deleted")

        del self._calendars[calendar_id]
        self._events = {k: v for k, v in self._events.items() if v.calendar.id != calendar_id}
        self._reminders = {
            k: v for k, v in self._reminders.items() if v.calendar.id != calendar_id
        }
        if self._defaults.get(calendar.kind) == calendar_id:
            remaining = [c.id for c in self._calendars.values() if c.kind == calendar.kind]
            if remaining:
                self._defaults[calendar.kind] = remaining[0]
            else:
                del self._defaults[calendar.kind]

    def _writable_calendar(self, calendar: Calendar) -> Calendar:
        current = self._calendars.get(calendar.id)
        if current is None:
            raise CalendarNotFoundError(calendar.title)
        if not current.allows_modifications:
            raise StoreError(f"Calendar '{current.title}' is read-only")
        return current

    # =========================================================================
    # Events
    # =========================================================================

    async def events_in_range(
        self,
        start: datetime,
        end: datetime,
        calendar_ids: Optional[Sequence[str]] = None,
    ) -> list[Event]:
        wanted = set(calendar_ids) if calendar_ids is not None else None
        results = []

        for event in self._events.values():
            if wanted is not None and event.calendar.id not in wanted:
                continue
            # Calendar title/color may have changed since the event was saved
            calendar = self._calendars.get(event.calendar.id, event.calendar)

            if not event.is_recurring:
                if intervals_overlap(event.start_time, event.end_time, start, end):
                    item = copy.deepcopy(event)
                    item.calendar = copy.deepcopy(calendar)
                    results.append(item)
                continue

            for occurrence in expand_occurrences(
                event.recurrence_rule,
                event.start_time,
                event.duration,
                start,
                end,
                excluded=event.excluded_dates,
                max_instances=self._max_instances,
            ):
                item = copy.deepcopy(event)
                item.calendar = copy.deepcopy(calendar)
                item.start_time = occurrence
                item.end_time = occurrence + event.duration
                item.occurrence_date = occurrence
                results.append(item)

        results.sort(key=lambda e: e.start_time)
        return results

    async def event_by_id(self, event_id: str) -> Optional[Event]:
        event = self._events.get(event_id)
        if event is None:
            return None
        item = copy.deepcopy(event)
        item.calendar = copy.deepcopy(self._calendars.get(event.calendar.id, event.calendar))
        return item

    async def save_event(self, event: Event) -> Event:
        if event.calendar.kind != EntityKind.EVENT:
            raise StoreError(f"'{event.calendar.title}' is not an event calendar")
        self._writable_calendar(event.calendar)
        if event.id is not None:
            previous = self._events.get(event.id)
            if previous is None:
                raise EventNotFoundError(event.id)
            if previous.calendar.id != event.calendar.id:
                self._writable_calendar(previous.calendar)

        stored = copy.deepcopy(event)
        stored.id = stored.id or _new_id()
        stored.occurrence_date = None
        self._events[stored.id] = stored
        return copy.deepcopy(stored)

    async def remove_event(
        self,
        event_id: str,
        span: DeleteSpan = DeleteSpan.THIS,
        occurrence_start: Optional[datetime] = None,
    ) -> None:
        event = self._events.get(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        self._writable_calendar(event.calendar)

        if event.is_recurring and occurrence_start is not None:
            if not is_occurrence(
                event.recurrence_rule, event.start_time, occurrence_start, event.excluded_dates
            ):
                raise InvalidParameterError(
                    f"{occurrence_start.isoformat()} is not an occurrence of event {event_id}"
                )
            if span == DeleteSpan.THIS:
                event.excluded_dates.append(occurrence_start)
                return
            if occurrence_start > event.start_time:
                event.recurrence_rule = truncate_rule(event.recurrence_rule, occurrence_start)
                return

        del self._events[event_id]

    # =========================================================================
    # Reminders
    # =========================================================================

    async def reminders(self, calendar_ids: Optional[Sequence[str]] = None) -> list[Reminder]:
        wanted = set(calendar_ids) if calendar_ids is not None else None
        results = []
        for reminder in self._reminders.values():
            if wanted is not None and reminder.calendar.id not in wanted:
                continue
            item = copy.deepcopy(reminder)
            item.calendar = copy.deepcopy(self._calendars.get(reminder.calendar.id, reminder.calendar))
            results.append(item)
        return results

    async def reminder_by_id(self, reminder_id: str) -> Optional[Reminder]:
        reminder = self._reminders.get(reminder_id)
        if reminder is None:
            return None
        item = copy.deepcopy(reminder)
        item.calendar = copy.deepcopy(self._calendars.get(reminder.calendar.id, reminder.calendar))
        return item

    async def save_reminder(self, reminder: Reminder) -> Reminder:
        if reminder.calendar.kind != EntityKind.REMINDER:
            raise StoreError(f"'{reminder.calendar.title}' is not a reminder list")
        self._writable_calendar(reminder.calendar)
        if reminder.id is not None and reminder.id not in self._reminders:
            raise ReminderNotFoundError(reminder.id)

        stored = copy.deepcopy(reminder)
        stored.id = stored.id or _new_id()
        stored.creation_date = stored.creation_date or datetime.now(timezone.utc)
        self._reminders[stored.id] = stored
        return copy.deepcopy(stored)

    async def remove_reminder(self, reminder_id: str) -> None:
        reminder = self._reminders.get(reminder_id)
        if reminder is None:
            raise ReminderNotFoundError(reminder_id)
        self._writable_calendar(reminder.calendar)
        del self._reminders[reminder_id]
