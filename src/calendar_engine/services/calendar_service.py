"""
Calendar service - the engine behind every named operation.

Provides a single interface over the store gateway for calendars, events and
reminders. Each operation follows the same path: access is acquired by the
gateway, calendar names are resolved, date strings are parsed, then the
query/recurrence/batch components do the work.

Entities are returned as dataclasses; rendering them for the wire is the API
layer's job.
"""

import logging
import re
from dataclasses import replace
from datetime import datetime, timedelta, tzinfo
from typing import Callable, Optional, Sequence, Union

from calendar_engine.config import Settings, get_settings
from calendar_engine.errors import (
    CalendarNameRequiredError,
    CalendarNotFoundError,
    EventNotFoundError,
    InvalidParameterError,
    InvalidTimeRangeError,
    ReminderNotFoundError,
)
from calendar_engine.integrations.base import (
    Alarm,
    Calendar,
    CalendarStore,
    DeleteSpan,
    EntityKind,
    Event,
    LocationTrigger,
    Reminder,
    StructuredLocation,
)
from calendar_engine.services.access import StoreGateway
from calendar_engine.services.batch import BatchPreview, BatchResult, run_batch
from calendar_engine.services.calendars import resolve, resolve_all
from calendar_engine.services.conflicts import DuplicatePair, find_conflicts, find_duplicates
from calendar_engine.services.dates import (
    format_instant,
    is_date_only,
    parse_flexible_date,
    quick_range,
    start_of_day,
)
from calendar_engine.services.queries import (
    EventFilter,
    MatchMode,
    QueryResult,
    ReminderSort,
    SortOrder,
    filter_reminders,
    normalize_keywords,
    parse_choice,
    query_events,
    query_reminders,
    resolve_reminder_filter,
    search_events,
    search_reminders,
)
from calendar_engine.services.recurrence import (
    RecurrenceRuleInput,
    is_occurrence,
    nearest_occurrence,
    occurrences_on,
    to_rule,
)

logger = logging.getLogger(__name__)

# Singleton instance
_calendar_service: Optional["CalendarService"] = None

DateInput = Union[str, datetime]

DEFAULT_EVENT_DURATION = timedelta(hours=1)

PRIORITY_NAMES = {"none": 0, "high": 1, "medium": 5, "low": 9}
VALID_PRIORITIES = (0, 1, 5, 9)

_COLOR = re.compile(r"^#?([0-9A-Fa-f]{6})$")


def parse_priority(value: Union[int, str, None]) -> int:
    """
    Normalize a priority given as 0/1/5/9 or none/high/medium/low.

    Raises:
        InvalidParameterError: For any other value
    """
    if value is None:
        return 0
    if isinstance(value, str):
        key = value.strip().lower()
        if key in PRIORITY_NAMES:
            return PRIORITY_NAMES[key]
        if key.isdigit():
            value = int(key)
    if isinstance(value, int) and not isinstance(value, bool) and value in VALID_PRIORITIES:
        return value
    raise InvalidParameterError(
        f"priority must be 0, 1, 5, 9 or none, high, medium, low (got '{value}')"
    )


def normalize_color(value: str) -> str:
    """
    Normalize a hex color to '#RRGGBB'.

    Raises:
        InvalidParameterError: If the value is not a 6-digit hex color
    """
    match = _COLOR.match(value.strip())
    if not match:
        raise InvalidParameterError(f"color must be a hex color like #FF5733 (got '{value}')")
    return f"#{match.group(1).upper()}"


def alarms_from_offsets(offsets: Optional[Sequence[int]]) -> list[Alarm]:
    """Alarms from minutes-before offsets (15 = fifteen minutes before)."""
    alarms = []
    for minutes in offsets or []:
        if minutes < 0:
            raise InvalidParameterError(
                f"alarms_minutes_offsets must be minutes before (>= 0), got {minutes}"
            )
        alarms.append(Alarm.minutes_before(minutes))
    return alarms


class CalendarService:
    """
    Calendar, event and reminder operations over a CalendarStore.

    All store traffic goes through a StoreGateway, which serializes calls
    and acquires consent per entity kind.
    """

    def __init__(
        self,
        store: Union[CalendarStore, StoreGateway],
        settings: Optional[Settings] = None,
        tz: Optional[tzinfo] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the service.

        Args:
            store: Store to operate on (wrapped in a StoreGateway if needed)
            settings: Application settings (default: get_settings())
            tz: Zone for naive inputs and day boundaries (default: from settings)
            clock: Returns the current instant (injectable for tests)
        """
        self._settings = settings or get_settings()
        self._gateway = store if isinstance(store, StoreGateway) else StoreGateway(store)
        self._tz = tz or self._settings.get_tzinfo()
        self._clock = clock or (lambda: datetime.now(self._tz))

    @property
    def gateway(self) -> StoreGateway:
        return self._gateway

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def now(self) -> datetime:
        return self._clock()

    # =========================================================================
    # Helpers
    # =========================================================================

    def parse_date(self, value: DateInput) -> datetime:
        """Parse a flexible date string; datetimes pass through (naive = local)."""
        if isinstance(value, datetime):
            return value if value.tzinfo else value.replace(tzinfo=self._tz)
        return parse_flexible_date(value, tz=self._tz, now=self.now())

    def _optional_date(self, value: Optional[DateInput]) -> Optional[datetime]:
        return self.parse_date(value) if value is not None else None

    def _require_date(self, value: Optional[DateInput], field_name: str) -> datetime:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise InvalidParameterError(f"{field_name} is required")
        return self.parse_date(value)

    def _require_range(self, start: datetime, end: datetime) -> None:
        if start >= end:
            raise InvalidTimeRangeError(format_instant(start, self._tz), format_instant(end, self._tz))

    def _default_window(
        self,
        start_date: Optional[DateInput],
        end_date: Optional[DateInput],
    ) -> tuple[datetime, datetime]:
        now = self.now()
        window = timedelta(days=self._settings.search_window_days)
        start = self._optional_date(start_date) or now - window
        end = self._optional_date(end_date) or now + window
        self._require_range(start, end)
        return start, end

    @staticmethod
    def _require_title(title: Optional[str]) -> str:
        if title is None or not title.strip():
            raise InvalidParameterError("title is required")
        return title

    async def resolve_calendar(
        self,
        name: str,
        source: Optional[str] = None,
        kind: EntityKind = EntityKind.EVENT,
    ) -> Calendar:
        """Resolve a (name, source) pair to exactly one calendar of a kind."""
        return resolve(await self._gateway.calendars(kind), name, source)

    async def resolve_calendars(
        self,
        name: str,
        source: Optional[str] = None,
        kind: EntityKind = EntityKind.EVENT,
    ) -> list[Calendar]:
        """Every calendar of a kind matching (name, source)."""
        return resolve_all(await self._gateway.calendars(kind), name, source)

    async def _calendar_ids(
        self,
        name: Optional[str],
        source: Optional[str],
        kind: EntityKind,
    ) -> Optional[list[str]]:
        """Calendar restriction for a query; None means every calendar."""
        if name is not None:
            return [(await self.resolve_calendar(name, source, kind)).id]
        if source is not None:
            return [c.id for c in await self._gateway.calendars(kind) if c.source == source]
        return None

    async def _target_calendar(
        self,
        name: Optional[str],
        source: Optional[str],
        kind: EntityKind,
    ) -> Calendar:
        """Calendar new items go to; falls back to the default when allowed."""
        if name is not None:
            return await self.resolve_calendar(name, source, kind)
        if self._settings.require_calendar_name:
            raise CalendarNameRequiredError(kind.value)
        calendar = await self._gateway.default_calendar(kind)
        if calendar is None:
            raise CalendarNotFoundError("default")
        return calendar

    # =========================================================================
    # Calendars
    # =========================================================================

    async def list_calendars(self, kind: Optional[EntityKind] = None) -> list[Calendar]:
        """List calendars of one kind, or of both when kind is None."""
        kinds = [kind] if kind is not None else [EntityKind.EVENT, EntityKind.REMINDER]
        calendars = []
        for k in kinds:
            calendars.extend(await self._gateway.calendars(k))
        return calendars

    async def create_calendar(
        self,
        title: str,
        kind: EntityKind = EntityKind.EVENT,
        color: Optional[str] = None,
        source: Optional[str] = None,
    ) -> Calendar:
        """
        Create an event calendar or reminder list.

        The source defaults to the one holding the default calendar of the
        kind, then to the configured default source.
        """
        title = self._require_title(title)
        available = await self._gateway.sources(kind)

        if source is None:
            default = await self._gateway.default_calendar(kind)
            source = default.source if default else self._settings.default_source
        if source not in available:
            raise InvalidParameterError(
                f"Source not found: {source}. Available sources: {', '.join(available)}"
            )

        calendar = await self._gateway.save_calendar(
            Calendar(
                id=None,
                title=title,
                kind=kind,
                source=source,
                color=normalize_color(color) if color else None,
            )
        )
        logger.info(f"Created {kind.value} calendar {calendar.id} ('{title}' in {source})")
        return calendar

    async def update_calendar(
        self,
        calendar_name: str,
        calendar_source: Optional[str] = None,
        kind: EntityKind = EntityKind.EVENT,
        new_name: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Calendar:
        """Rename and/or recolor a calendar."""
        if new_name is None and color is None:
            raise InvalidParameterError("Nothing to update: provide new_name or color")

        calendar = await self.resolve_calendar(calendar_name, calendar_source, kind)
        if new_name is not None:
            calendar.title = self._require_title(new_name)
        if color is not None:
            calendar.color = normalize_color(color)

        saved = await self._gateway.save_calendar(calendar)
        logger.info(f"Updated calendar {saved.id} ('{saved.title}')")
        return saved

    async def delete_calendar(
        self,
        calendar_id: Optional[str] = None,
        calendar_name: Optional[str] = None,
        calendar_source: Optional[str] = None,
        kind: EntityKind = EntityKind.EVENT,
    ) -> Calendar:
        """Delete a calendar (and its items) by id, or by name and source."""
        if calendar_id:
            calendar = await self._gateway.calendar_by_id(calendar_id)
            if calendar is None:
                raise CalendarNotFoundError(calendar_id)
        elif calendar_name:
            calendar = await self.resolve_calendar(calendar_name, calendar_source, kind)
        else:
            raise InvalidParameterError("calendar_id or calendar_name is required")

        await self._gateway.remove_calendar(calendar)
        logger.info(f"Deleted calendar {calendar.id} ('{calendar.title}')")
        return calendar

    # =========================================================================
    # Events
    # =========================================================================

    async def list_events(
        self,
        start_date: DateInput,
        end_date: DateInput,
        calendar_name: Optional[str] = None,
        calendar_source: Optional[str] = None,
        filter: Union[EventFilter, str] = EventFilter.ALL,
        sort_order: Union[SortOrder, str] = SortOrder.ASC,
        limit: Optional[int] = None,
    ) -> QueryResult[Event]:
        """Events overlapping [start_date, end_date), filtered, sorted and limited."""
        mode = parse_choice(EventFilter, filter, "filter")
        order = parse_choice(SortOrder, sort_order, "sort_order")
        start = self._require_date(start_date, "start_date")
        end = self._require_date(end_date, "end_date")
        self._require_range(start, end)

        calendar_ids = await self._calendar_ids(calendar_name, calendar_source, EntityKind.EVENT)
        events = await self._gateway.events_in_range(start, end, calendar_ids)
        return query_events(events, self.now(), mode, order, limit)

    async def list_events_quick(
        self,
        range_name: str,
        week_starts_on: Optional[str] = None,
        calendar_name: Optional[str] = None,
        calendar_source: Optional[str] = None,
        filter: Union[EventFilter, str] = EventFilter.ALL,
        limit: Optional[int] = None,
    ) -> tuple[datetime, datetime, QueryResult[Event]]:
        """Events in a named range such as today or next_week."""
        start, end = quick_range(
            range_name,
            week_starts_on or self._settings.week_starts_on,
            now=self.now(),
            tz=self._tz,
        )
        result = await self.list_events(
            start, end, calendar_name, calendar_source, filter=filter, limit=limit
        )
        return start, end, result

    async def get_event(self, event_id: str) -> Event:
        event = await self._gateway.event_by_id(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    def _all_day_bounds(
        self,
        start: datetime,
        end: Optional[datetime],
    ) -> tuple[datetime, datetime]:
        """
        Normalize an all-day span to local midnights.

        The end is exclusive: 2026-02-06 to 2026-02-07 covers one day, as does
        2026-02-06 alone.
        """
        first = start.astimezone(self._tz).date()
        last = first
        if end is not None and end > start:
            last = max(first, (end - timedelta(microseconds=1)).astimezone(self._tz).date())
        return start_of_day(first, self._tz), start_of_day(last + timedelta(days=1), self._tz)

    async def create_event(
        self,
        title: str,
        start_time: DateInput,
        end_time: Optional[DateInput] = None,
        all_day: bool = False,
        notes: Optional[str] = None,
        location: Optional[str] = None,
        structured_location: Optional[StructuredLocation] = None,
        url: Optional[str] = None,
        calendar_name: Optional[str] = None,
        calendar_source: Optional[str] = None,
        alarm_offsets: Optional[Sequence[int]] = None,
        recurrence: Optional[RecurrenceRuleInput] = None,
    ) -> Event:
        """
        Create an event.

        A timed event without end_time lasts one hour. All-day events are
        stretched to whole local days.

        Raises:
            CalendarNameRequiredError: No calendar_name and one is required
            InvalidTimeRangeError: start is not before end on a timed event
        """
        title = self._require_title(title)
        start = self._require_date(start_time, "start_time")
        end = self._optional_date(end_time)

        if all_day:
            start, end = self._all_day_bounds(start, end)
        else:
            end = end or start + DEFAULT_EVENT_DURATION
            self._require_range(start, end)

        calendar = await self._target_calendar(calendar_name, calendar_source, EntityKind.EVENT)
        event = await self._gateway.save_event(
            Event(
                id=None,
                title=title,
                start_time=start,
                end_time=end,
                calendar=calendar,
                all_day=all_day,
                notes=notes,
                location=location,
                structured_location=structured_location,
                url=url,
                alarms=alarms_from_offsets(alarm_offsets),
                recurrence_rule=to_rule(recurrence) if recurrence else None,
            )
        )
        logger.info(f"Created event {event.id} ('{title}') in '{calendar.title}'")
        return event

    async def update_event(
        self,
        event_id: str,
        title: Optional[str] = None,
        start_time: Optional[DateInput] = None,
        end_time: Optional[DateInput] = None,
        all_day: Optional[bool] = None,
        notes: Optional[str] = None,
        location: Optional[str] = None,
        structured_location: Optional[StructuredLocation] = None,
        url: Optional[str] = None,
        calendar_name: Optional[str] = None,
        calendar_source: Optional[str] = None,
        alarm_offsets: Optional[Sequence[int]] = None,
        recurrence: Optional[RecurrenceRuleInput] = None,
        clear_recurrence: bool = False,
        clear_location: bool = False,
    ) -> Event:
        """
        Update an event in place. None leaves a field unchanged.

        Moving only the start keeps the event's duration. Changes apply to
        the whole series of a recurring event.

        Raises:
            EventNotFoundError: Unknown event_id
            InvalidTimeRangeError: Resulting start is not before end; the
                stored event is left unchanged
        """
        if recurrence is not None and clear_recurrence:
            raise InvalidParameterError("recurrence and clear_recurrence cannot both be set")
        if clear_location and (location is not None or structured_location is not None):
            raise InvalidParameterError("location and clear_location cannot both be set")

        event = await self.get_event(event_id)
        changes: dict = {}

        start = self._optional_date(start_time)
        end = self._optional_date(end_time)
        if start is not None and end is None:
            end = start + event.duration
        new_start = start or event.start_time
        new_end = end or event.end_time

        is_all_day = event.all_day if all_day is None else all_day
        if is_all_day and (all_day or start is not None or end is not None):
            new_start, new_end = self._all_day_bounds(new_start, new_end)
        elif not is_all_day:
            self._require_range(new_start, new_end)
        changes.update(start_time=new_start, end_time=new_end, all_day=is_all_day)

        if title is not None:
            changes["title"] = self._require_title(title)
        if notes is not None:
            changes["notes"] = notes
        if url is not None:
            changes["url"] = url
        if location is not None:
            changes["location"] = location
        if structured_location is not None:
            changes["structured_location"] = structured_location
        if clear_location:
            changes.update(location=None, structured_location=None)
        if alarm_offsets is not None:
            changes["alarms"] = alarms_from_offsets(alarm_offsets)
        if recurrence is not None:
            changes["recurrence_rule"] = to_rule(recurrence)
        if clear_recurrence:
            changes.update(recurrence_rule=None, excluded_dates=[])
        if calendar_name is not None:
            changes["calendar"] = await self.resolve_calendar(
                calendar_name, calendar_source, EntityKind.EVENT
            )

        saved = await self._gateway.save_event(replace(event, **changes))
        logger.info(f"Updated event {saved.id} ('{saved.title}')")
        return saved

    async def delete_event(
        self,
        event_id: str,
        span: Union[DeleteSpan, str] = DeleteSpan.THIS,
        occurrence_date: Optional[DateInput] = None,
    ) -> Event:
        """
        Delete an event.

        For a recurring event, occurrence_date selects the occurrence and
        span decides whether only it ("this") or it and every later one
        ("future") go. Without occurrence_date the whole event is removed.
        A date-only occurrence_date selects that day's occurrence.

        Raises:
            InvalidParameterError: If occurrence_date is not an occurrence
        """
        span = parse_choice(DeleteSpan, span, "span")
        event = await self.get_event(event_id)
        occurrence = self._optional_date(occurrence_date)
        if event.is_recurring and occurrence is not None:
            occurrence = self._match_occurrence(event, occurrence, is_date_only(occurrence_date))

        await self._gateway.remove_event(event_id, span, occurrence)
        logger.info(f"Deleted event {event_id} ('{event.title}', span={span.value})")
        return event

    def _match_occurrence(self, event: Event, requested: datetime, whole_day: bool) -> datetime:
        """Start of the occurrence the caller meant, or an error naming the closest one."""
        if whole_day:
            same_day = occurrences_on(
                event.recurrence_rule,
                event.start_time,
                requested.astimezone(self._tz).date(),
                self._tz,
                event.excluded_dates,
            )
            if same_day:
                return same_day[0]
        elif is_occurrence(
            event.recurrence_rule, event.start_time, requested, event.excluded_dates
        ):
            return requested

        nearest = nearest_occurrence(
            event.recurrence_rule, event.start_time, requested, event.excluded_dates
        )
        hint = (
            f"; the nearest occurrence starts at {format_instant(nearest, self._tz)}"
            if nearest is not None
            else "; the series has no remaining occurrences"
        )
        raise InvalidParameterError(
            f"occurrence_date {format_instant(requested, self._tz)} is not an occurrence "
            f"of '{event.title}'{hint}"
        )

    async def search_events(
        self,
        keyword: Optional[str] = None,
        keywords: Optional[Sequence[str]] = None,
        match_mode: Union[MatchMode, str] = MatchMode.ANY,
        start_date: Optional[DateInput] = None,
        end_date: Optional[DateInput] = None,
        calendar_name: Optional[str] = None,
        calendar_source: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> QueryResult[Event]:
        """Keyword search over title, notes and location in a date window."""
        terms = normalize_keywords(keyword, keywords)
        mode = parse_choice(MatchMode, match_mode, "match_mode")
        start, end = self._default_window(start_date, end_date)

        calendar_ids = await self._calendar_ids(calendar_name, calendar_source, EntityKind.EVENT)
        events = await self._gateway.events_in_range(start, end, calendar_ids)
        matches = search_events(events, terms, mode)
        return query_events(matches, self.now(), limit=limit)

    async def check_conflicts(
        self,
        start_time: DateInput,
        end_time: DateInput,
        calendar_name: Optional[str] = None,
        calendar_source: Optional[str] = None,
        exclude_event_id: Optional[str] = None,
    ) -> list[Event]:
        """Events overlapping [start_time, end_time); touching boundaries don't count."""
        start = self._require_date(start_time, "start_time")
        end = self._require_date(end_time, "end_time")
        self._require_range(start, end)

        calendar_ids = await self._calendar_ids(calendar_name, calendar_source, EntityKind.EVENT)
        events = await self._gateway.events_in_range(start, end, calendar_ids)
        return find_conflicts(events, start, end, exclude_event_id)

    async def _copy_to(self, event_id: str, target: Calendar, delete_original: bool) -> Event:
        event = await self.get_event(event_id)
        copied = await self._gateway.save_event(
            replace(event, id=None, calendar=target, occurrence_date=None)
        )
        if delete_original:
            await self._gateway.remove_event(event_id)
        action = "Moved" if delete_original else "Copied"
        logger.info(f"{action} event {event_id} to '{target.title}' as {copied.id}")
        return copied

    async def copy_event(
        self,
        event_id: str,
        target_calendar_name: str,
        target_calendar_source: Optional[str] = None,
        delete_original: bool = False,
    ) -> Event:
        """Copy an event to another calendar; delete_original makes it a move."""
        target = await self.resolve_calendar(
            target_calendar_name, target_calendar_source, EntityKind.EVENT
        )
        return await self._copy_to(event_id, target, delete_original)

    async def move_events(
        self,
        event_ids: Sequence[str],
        target_calendar_name: str,
        target_calendar_source: Optional[str] = None,
    ) -> BatchResult:
        """Move events one by one (copy, then delete the original)."""
        target = await self.resolve_calendar(
            target_calendar_name, target_calendar_source, EntityKind.EVENT
        )

        async def move(event_id: str) -> str:
            return (await self._copy_to(event_id, target, delete_original=True)).id

        return await run_batch(event_ids, move, identify=lambda event_id: event_id)

    async def delete_events(
        self,
        event_ids: Optional[Sequence[str]] = None,
        calendar_name: Optional[str] = None,
        calendar_source: Optional[str] = None,
        start_date: Optional[DateInput] = None,
        end_date: Optional[DateInput] = None,
        before_date: Optional[DateInput] = None,
        dry_run: Optional[bool] = None,
    ) -> Union[BatchResult, BatchPreview]:
        """
        Delete events by explicit ids or by a calendar/date selection.

        Explicit ids execute unless dry_run is true. A selection only
        previews unless dry_run is explicitly false. Recurring events
        matched by a selection lose the matched occurrences only.
        """
        if event_ids:
            if dry_run:
                found = []
                for event_id in event_ids:
                    event = await self._gateway.event_by_id(event_id)
                    if event is not None:
                        found.append(event)
                return BatchPreview(found)
            return await run_batch(
                list(event_ids), self._delete_event_id, identify=lambda event_id: event_id
            )

        if not any((calendar_name, start_date, end_date, before_date)):
            raise InvalidParameterError(
                "event_ids or a selection (calendar_name, start_date, end_date, "
                "before_date) is required"
            )

        start, end = self._default_window(start_date, end_date)
        before = self._optional_date(before_date)
        if before is not None:
            end = min(end, before)
            if start >= end:
                return BatchPreview([]) if dry_run is not False else BatchResult()

        calendar_ids = await self._calendar_ids(calendar_name, calendar_source, EntityKind.EVENT)
        selected = await self._gateway.events_in_range(start, end, calendar_ids)

        if dry_run is not False:
            logger.info(f"Dry run: {len(selected)} events would be deleted")
            return BatchPreview(selected)

        return await run_batch(selected, self._delete_selected, identify=lambda e: e.id)

    async def _delete_event_id(self, event_id: str) -> str:
        await self.delete_event(event_id)
        return event_id

    async def _delete_selected(self, event: Event) -> str:
        if event.occurrence_date is not None:
            await self.delete_event(event.id, DeleteSpan.THIS, event.occurrence_date)
        else:
            await self.delete_event(event.id)
        return event.id

    async def find_duplicate_events(
        self,
        start_date: DateInput,
        end_date: DateInput,
        calendar_names: Optional[Sequence[str]] = None,
        tolerance_minutes: Optional[int] = None,
    ) -> list[DuplicatePair]:
        """
        Same-titled events on different calendars with start and end within
        the tolerance. Every event calendar is searched when no names are given;
        a name shared by several sources covers all of them.
        """
        start = self._require_date(start_date, "start_date")
        end = self._require_date(end_date, "end_date")
        self._require_range(start, end)

        if tolerance_minutes is None:
            tolerance_minutes = self._settings.duplicate_tolerance_minutes
        if tolerance_minutes < 0:
            raise InvalidParameterError(f"tolerance_minutes must be >= 0 (got {tolerance_minutes})")

        calendar_ids = None
        if calendar_names:
            calendar_ids = []
            for name in calendar_names:
                calendar_ids.extend(c.id for c in await self.resolve_calendars(name))

        events = await self._gateway.events_in_range(start, end, calendar_ids)
        return find_duplicates(events, timedelta(minutes=tolerance_minutes))

    # =========================================================================
    # Reminders
    # =========================================================================

    async def get_reminder(self, reminder_id: str) -> Reminder:
        reminder = await self._gateway.reminder_by_id(reminder_id)
        if reminder is None:
            raise ReminderNotFoundError(reminder_id)
        return reminder

    def _due_date(self, value: DateInput) -> datetime:
        # Reminder due dates carry no seconds
        return self.parse_date(value).replace(second=0, microsecond=0)

    async def list_reminders(
        self,
        filter: Optional[str] = None,
        completed: Optional[bool] = None,
        calendar_name: Optional[str] = None,
        calendar_source: Optional[str] = None,
        sort_by: Optional[Union[ReminderSort, str]] = None,
        limit: Optional[int] = None,
    ) -> QueryResult[Reminder]:
        """Reminders filtered, optionally sorted, and limited."""
        mode = resolve_reminder_filter(filter, completed)
        sort = parse_choice(ReminderSort, sort_by, "sort_by") if sort_by else None

        calendar_ids = await self._calendar_ids(
            calendar_name, calendar_source, EntityKind.REMINDER
        )
        reminders = await self._gateway.reminders(calendar_ids)
        return query_reminders(reminders, self.now(), mode, sort, limit)

    async def create_reminder(
        self,
        title: str,
        notes: Optional[str] = None,
        due_date: Optional[DateInput] = None,
        priority: Union[int, str, None] = None,
        calendar_name: Optional[str] = None,
        calendar_source: Optional[str] = None,
        alarm_offsets: Optional[Sequence[int]] = None,
        recurrence: Optional[RecurrenceRuleInput] = None,
        location_trigger: Optional[LocationTrigger] = None,
    ) -> Reminder:
        """Create a reminder in a reminder list."""
        title = self._require_title(title)
        level = parse_priority(priority)
        due = self._due_date(due_date) if due_date is not None else None
        if recurrence is not None and due is None:
            raise InvalidParameterError("recurrence requires a due_date")

        calendar = await self._target_calendar(
            calendar_name, calendar_source, EntityKind.REMINDER
        )
        reminder = await self._gateway.save_reminder(
            Reminder(
                id=None,
                title=title,
                calendar=calendar,
                notes=notes,
                due_date=due,
                priority=level,
                alarms=alarms_from_offsets(alarm_offsets),
                recurrence_rule=to_rule(recurrence) if recurrence else None,
                location_trigger=location_trigger,
            )
        )
        logger.info(f"Created reminder {reminder.id} ('{title}') in '{calendar.title}'")
        return reminder

    async def update_reminder(
        self,
        reminder_id: str,
        title: Optional[str] = None,
        notes: Optional[str] = None,
        due_date: Optional[DateInput] = None,
        priority: Union[int, str, None] = None,
        calendar_name: Optional[str] = None,
        calendar_source: Optional[str] = None,
        alarm_offsets: Optional[Sequence[int]] = None,
        recurrence: Optional[RecurrenceRuleInput] = None,
        location_trigger: Optional[LocationTrigger] = None,
        clear_due_date: bool = False,
        clear_recurrence: bool = False,
        clear_location_trigger: bool = False,
    ) -> Reminder:
        """
        Update a reminder in place. None leaves a field unchanged; the clear_*
        flags remove a value.
        """
        for value, flag, name in (
            (due_date, clear_due_date, "due_date"),
            (recurrence, clear_recurrence, "recurrence"),
            (location_trigger, clear_location_trigger, "location_trigger"),
        ):
            if value is not None and flag:
                raise InvalidParameterError(f"{name} and clear_{name} cannot both be set")

        reminder = await self.get_reminder(reminder_id)
        changes: dict = {}

        if title is not None:
            changes["title"] = self._require_title(title)
        if notes is not None:
            changes["notes"] = notes
        if due_date is not None:
            changes["due_date"] = self._due_date(due_date)
        if clear_due_date:
            changes["due_date"] = None
        if priority is not None:
            changes["priority"] = parse_priority(priority)
        if alarm_offsets is not None:
            changes["alarms"] = alarms_from_offsets(alarm_offsets)
        if recurrence is not None:
            changes["recurrence_rule"] = to_rule(recurrence)
        if clear_recurrence:
            changes["recurrence_rule"] = None
        if location_trigger is not None:
            changes["location_trigger"] = location_trigger
        if clear_location_trigger:
            changes["location_trigger"] = None
        if calendar_name is not None:
            changes["calendar"] = await self.resolve_calendar(
                calendar_name, calendar_source, EntityKind.REMINDER
            )

        saved = await self._gateway.save_reminder(replace(reminder, **changes))
        logger.info(f"Updated reminder {saved.id} ('{saved.title}')")
        return saved

    async def complete_reminder(self, reminder_id: str, completed: bool = True) -> Reminder:
        """Mark a reminder completed (stamping the completion instant) or not."""
        reminder = await self.get_reminder(reminder_id)
        reminder.completed = completed
        reminder.completion_date = self.now() if completed else None

        saved = await self._gateway.save_reminder(reminder)
        state = "completed" if completed else "incomplete"
        logger.info(f"Marked reminder {reminder_id} {state}")
        return saved

    async def delete_reminder(self, reminder_id: str) -> Reminder:
        reminder = await self.get_reminder(reminder_id)
        await self._gateway.remove_reminder(reminder_id)
        logger.info(f"Deleted reminder {reminder_id} ('{reminder.title}')")
        return reminder

    async def search_reminders(
        self,
        keyword: Optional[str] = None,
        keywords: Optional[Sequence[str]] = None,
        match_mode: Union[MatchMode, str] = MatchMode.ANY,
        filter: Optional[str] = None,
        calendar_name: Optional[str] = None,
        calendar_source: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> QueryResult[Reminder]:
        """Keyword search over reminder titles and notes."""
        terms = normalize_keywords(keyword, keywords)
        mode = parse_choice(MatchMode, match_mode, "match_mode")
        state = resolve_reminder_filter(filter, None)

        calendar_ids = await self._calendar_ids(
            calendar_name, calendar_source, EntityKind.REMINDER
        )
        reminders = await self._gateway.reminders(calendar_ids)
        matches = search_reminders(reminders, terms, mode)
        return query_reminders(matches, self.now(), state, limit=limit)

    async def delete_reminders(
        self,
        reminder_ids: Optional[Sequence[str]] = None,
        calendar_name: Optional[str] = None,
        calendar_source: Optional[str] = None,
        filter: Optional[str] = None,
        before_date: Optional[DateInput] = None,
        dry_run: Optional[bool] = None,
    ) -> Union[BatchResult, BatchPreview]:
        """
        Delete reminders by explicit ids or by list/state/due-date selection.

        Same dry-run rule as delete_events: a selection only previews unless
        dry_run is explicitly false.
        """
        if reminder_ids:
            if dry_run:
                found = []
                for reminder_id in reminder_ids:
                    reminder = await self._gateway.reminder_by_id(reminder_id)
                    if reminder is not None:
                        found.append(reminder)
                return BatchPreview(found)
            return await run_batch(
                list(reminder_ids),
                self._delete_reminder_id,
                identify=lambda reminder_id: reminder_id,
            )

        if not any((calendar_name, filter, before_date)):
            raise InvalidParameterError(
                "reminder_ids or a selection (calendar_name, filter, before_date) is required"
            )

        state = resolve_reminder_filter(filter, None)
        before = self._optional_date(before_date)
        calendar_ids = await self._calendar_ids(
            calendar_name, calendar_source, EntityKind.REMINDER
        )

        selected = filter_reminders(await self._gateway.reminders(calendar_ids), state, self.now())
        if before is not None:
            selected = [r for r in selected if r.due_date is not None and r.due_date < before]

        if dry_run is not False:
            logger.info(f"Dry run: {len(selected)} reminders would be deleted")
            return BatchPreview(selected)

        return await run_batch(
            [r.id for r in selected], self._delete_reminder_id, identify=lambda rid: rid
        )

    async def _delete_reminder_id(self, reminder_id: str) -> str:
        await self.delete_reminder(reminder_id)
        return reminder_id


def create_store(settings: Optional[Settings] = None) -> CalendarStore:
    """
    Build the store selected by STORE_PROVIDER.

    local: SQLAlchemy database at DATABASE_URL (schema created on first use)
    memory: process-local store, empty at startup
    """
    settings = settings or get_settings()

    if settings.uses_local_store:
        from calendar_engine.database import create_db_engine, create_session_factory, init_db
        from calendar_engine.integrations.local import LocalCalendarRepository

        engine = create_db_engine(settings.database_url)
        init_db(engine)
        logger.info("Using local calendar store (database)")
        return LocalCalendarRepository(
            create_session_factory(engine),
            default_source=settings.default_source,
            max_recurrence_instances=settings.max_recurrence_instances,
            tz=settings.get_tzinfo(),
        )

    from calendar_engine.integrations.memory import InMemoryCalendarStore

    logger.info("Using in-memory calendar store")
    return InMemoryCalendarStore(
        sources=(settings.default_source,),
        max_recurrence_instances=settings.max_recurrence_instances,
    )


def get_calendar_service() -> CalendarService:
    """
    Get the singleton calendar service instance.

    Returns:
        CalendarService instance
    """
    global _calendar_service
    if _calendar_service is None:
        settings = get_settings()
        _calendar_service = CalendarService(create_store(settings), settings)
    return _calendar_service


def set_calendar_service(service: CalendarService) -> None:
    """Install a specific instance (tests, embedding applications)."""
    global _calendar_service
    _calendar_service = service


def reset_calendar_service():
    """Reset the singleton (useful for testing)."""
    global _calendar_service
    _calendar_service = None
