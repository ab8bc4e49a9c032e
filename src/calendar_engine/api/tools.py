"""
Named-operation registry and dispatcher.

Every tool is an async handler registered under its wire name together with
the pydantic model its arguments are validated against. execute_tool() is
the single entry point: it validates, runs the handler against the calendar
service and renders the outcome as a ToolResult.

Success text is sorted, pretty-printed JSON (or a short sentence for
deletes); failure text is "Error: <message>" with is_error set.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from calendar_engine.api.models import (
    CheckConflictsArgs,
    CompleteReminderArgs,
    CopyEventArgs,
    CreateCalendarArgs,
    CreateEventArgs,
    CreateEventsBatchArgs,
    CreateReminderArgs,
    CreateRemindersBatchArgs,
    DeleteCalendarArgs,
    DeleteEventArgs,
    DeleteEventsBatchArgs,
    DeleteReminderArgs,
    DeleteRemindersBatchArgs,
    FindDuplicateEventsArgs,
    ListCalendarsArgs,
    ListEventsArgs,
    ListEventsQuickArgs,
    ListRemindersArgs,
    MoveEventsBatchArgs,
    SearchEventsArgs,
    SearchRemindersArgs,
    ToolArguments,
    UpdateCalendarArgs,
    UpdateEventArgs,
    UpdateReminderArgs,
    to_kind,
    validate_arguments,
)
from calendar_engine.api.response_builder import (
    calendar_to_dict,
    duplicate_to_dict,
    event_to_dict,
    format_result,
    preview_to_dict,
    query_to_dict,
    reminder_to_dict,
)
from calendar_engine.errors import CalendarEngineError, UnknownOperationError
from calendar_engine.integrations.base import Event, Reminder
from calendar_engine.services.batch import BatchPreview, run_batch
from calendar_engine.services.calendar_service import CalendarService
from calendar_engine.services.dates import format_instant

logger = logging.getLogger(__name__)

ToolHandler = Callable[[CalendarService, Any], Awaitable[Union[str, dict]]]


@dataclass
class ToolResult:
    """Outcome of one tool invocation as seen by the caller."""

    text: str
    is_error: bool = False


@dataclass(frozen=True)
class Tool:
    name: str
    arguments: type[ToolArguments]
    handler: ToolHandler
    description: str


TOOLS: dict[str, Tool] = {}


def tool(name: str, arguments: type[ToolArguments], description: str):
    """Register an async handler under a tool name."""

    def decorator(func: ToolHandler) -> ToolHandler:
        TOOLS[name] = Tool(name=name, arguments=arguments, handler=func, description=description)
        return func

    return decorator


def list_tools() -> list[Tool]:
    return list(TOOLS.values())


async def execute_tool(
    service: CalendarService,
    name: str,
    arguments: Optional[Mapping[str, Any]] = None,
) -> ToolResult:
    """
    Validate arguments and run a tool.

    Engine errors become error results; nothing is raised to the caller.
    """
    try:
        registered = TOOLS.get(name)
        if registered is None:
            raise UnknownOperationError(name)
        args = validate_arguments(registered.arguments, arguments)
        result = await registered.handler(service, args)
    except CalendarEngineError as e:
        logger.warning(f"Tool {name} failed: {e.message}")
        return ToolResult(text=f"Error: {e.message}", is_error=True)
    except Exception as e:
        logger.error(f"Tool {name} raised unexpectedly: {e}", exc_info=True)
        return ToolResult(text=f"Error: {e}", is_error=True)

    logger.debug(f"Tool {name} succeeded")
    text = result if isinstance(result, str) else format_result(result)
    return ToolResult(text=text)


def _recurrence(service: CalendarService, args):
    return args.recurrence.to_input(service.parse_date) if args.recurrence else None


def _location(args):
    return args.structured_location.to_location() if args.structured_location else None


def _trigger(args):
    return args.location_trigger.to_trigger() if args.location_trigger else None


# =============================================================================
# Calendars
# =============================================================================


@tool("list_calendars", ListCalendarsArgs, "List event calendars and/or reminder lists")
async def list_calendars(service: CalendarService, args: ListCalendarsArgs) -> dict:
    calendars = await service.list_calendars(to_kind(args.type))
    return {
        "calendars": [calendar_to_dict(c) for c in calendars],
        "count": len(calendars),
    }


@tool("create_calendar", CreateCalendarArgs, "Create an event calendar or reminder list")
async def create_calendar(service: CalendarService, args: CreateCalendarArgs) -> dict:
    calendar = await service.create_calendar(
        args.title, to_kind(args.type), color=args.color, source=args.source
    )
    return calendar_to_dict(calendar)


@tool("update_calendar", UpdateCalendarArgs, "Rename or recolor a calendar")
async def update_calendar(service: CalendarService, args: UpdateCalendarArgs) -> dict:
    calendar = await service.update_calendar(
        args.calendar_name,
        args.calendar_source,
        to_kind(args.type),
        new_name=args.new_name,
        color=args.color,
    )
    return calendar_to_dict(calendar)


@tool("delete_calendar", DeleteCalendarArgs, "Delete a calendar and everything in it")
async def delete_calendar(service: CalendarService, args: DeleteCalendarArgs) -> str:
    calendar = await service.delete_calendar(
        calendar_id=args.calendar_id,
        calendar_name=args.calendar_name,
        calendar_source=args.calendar_source,
        kind=to_kind(args.type),
    )
    return f"Calendar deleted: {calendar.title} ({calendar.source})"


# =============================================================================
# Events
# =============================================================================


@tool("list_events", ListEventsArgs, "List events in a date range")
async def list_events(service: CalendarService, args: ListEventsArgs) -> dict:
    result = await service.list_events(
        args.start_date,
        args.end_date,
        args.calendar_name,
        args.calendar_source,
        filter=args.filter,
        sort_order=args.sort_order,
        limit=args.limit,
    )
    return query_to_dict(result, "events", event_to_dict, service.tz)


async def _create_event(service: CalendarService, args: CreateEventArgs) -> Event:
    return await service.create_event(
        args.title,
        args.start_time,
        end_time=args.end_time,
        all_day=args.all_day,
        notes=args.notes,
        location=args.location,
        structured_location=_location(args),
        url=args.url,
        calendar_name=args.calendar_name,
        calendar_source=args.calendar_source,
        alarm_offsets=args.alarms_minutes_offsets,
        recurrence=_recurrence(service, args),
    )


@tool("create_event", CreateEventArgs, "Create an event")
async def create_event(service: CalendarService, args: CreateEventArgs) -> dict:
    return event_to_dict(await _create_event(service, args), service.tz)


@tool("update_event", UpdateEventArgs, "Update fields of an existing event")
async def update_event(service: CalendarService, args: UpdateEventArgs) -> dict:
    event = await service.update_event(
        args.event_id,
        title=args.title,
        start_time=args.start_time,
        end_time=args.end_time,
        all_day=args.all_day,
        notes=args.notes,
        location=args.location,
        structured_location=_location(args),
        url=args.url,
        calendar_name=args.calendar_name,
        calendar_source=args.calendar_source,
        alarm_offsets=args.alarms_minutes_offsets,
        recurrence=_recurrence(service, args),
        clear_recurrence=args.clear_recurrence,
        clear_location=args.clear_location,
    )
    return event_to_dict(event, service.tz)


@tool("delete_event", DeleteEventArgs, "Delete an event or occurrences of a recurring event")
async def delete_event(service: CalendarService, args: DeleteEventArgs) -> str:
    event = await service.delete_event(args.event_id, args.span, args.occurrence_date)
    if event.is_recurring and args.occurrence_date:
        scope = "occurrence" if args.span == "this" else "occurrence and all future occurrences"
        return f"Event deleted ({scope}): {event.title}"
    return f"Event deleted: {event.title}"


@tool("search_events", SearchEventsArgs, "Search events by keyword")
async def search_events(service: CalendarService, args: SearchEventsArgs) -> dict:
    result = await service.search_events(
        keyword=args.keyword,
        keywords=args.keywords,
        match_mode=args.match_mode,
        start_date=args.start_date,
        end_date=args.end_date,
        calendar_name=args.calendar_name,
        calendar_source=args.calendar_source,
        limit=args.limit,
    )
    return query_to_dict(result, "events", event_to_dict, service.tz)


@tool("list_events_quick", ListEventsQuickArgs, "List events in a named range such as today")
async def list_events_quick(service: CalendarService, args: ListEventsQuickArgs) -> dict:
    start, end, result = await service.list_events_quick(
        args.range,
        week_starts_on=args.week_starts_on,
        calendar_name=args.calendar_name,
        calendar_source=args.calendar_source,
        filter=args.filter,
        limit=args.limit,
    )
    response = query_to_dict(result, "events", event_to_dict, service.tz)
    response.update(
        range=args.range,
        start_date=format_instant(start, service.tz),
        end_date=format_instant(end, service.tz),
    )
    return response


@tool("check_conflicts", CheckConflictsArgs, "Find events overlapping a time slot")
async def check_conflicts(service: CalendarService, args: CheckConflictsArgs) -> dict:
    conflicts = await service.check_conflicts(
        args.start_time,
        args.end_time,
        args.calendar_name,
        args.calendar_source,
        args.exclude_event_id,
    )
    return {
        "has_conflicts": bool(conflicts),
        "conflict_count": len(conflicts),
        "conflicts": [event_to_dict(e, service.tz) for e in conflicts],
    }


@tool("copy_event", CopyEventArgs, "Copy (or move) an event to another calendar")
async def copy_event(service: CalendarService, args: CopyEventArgs) -> dict:
    event = await service.copy_event(
        args.event_id,
        args.target_calendar_name,
        args.target_calendar_source,
        delete_original=args.delete_original,
    )
    return {
        "event": event_to_dict(event, service.tz),
        "original_event_id": args.event_id,
        "original_deleted": args.delete_original,
    }


@tool("create_events_batch", CreateEventsBatchArgs, "Create several events at once")
async def create_events_batch(service: CalendarService, args: CreateEventsBatchArgs) -> dict:
    async def create(item: dict) -> str:
        event = await _create_event(service, validate_arguments(CreateEventArgs, item))
        return event.id

    return (await run_batch(args.events, create)).to_dict()


@tool("move_events_batch", MoveEventsBatchArgs, "Move several events to another calendar")
async def move_events_batch(service: CalendarService, args: MoveEventsBatchArgs) -> dict:
    result = await service.move_events(
        args.event_ids, args.target_calendar_name, args.target_calendar_source
    )
    return result.to_dict()


@tool("delete_events_batch", DeleteEventsBatchArgs, "Delete events by id or by selection")
async def delete_events_batch(service: CalendarService, args: DeleteEventsBatchArgs) -> dict:
    result = await service.delete_events(
        event_ids=args.event_ids,
        calendar_name=args.calendar_name,
        calendar_source=args.calendar_source,
        start_date=args.start_date,
        end_date=args.end_date,
        before_date=args.before_date,
        dry_run=args.dry_run,
    )
    if isinstance(result, BatchPreview):
        return preview_to_dict(result, event_to_dict, service.tz)
    return result.to_dict()


@tool("find_duplicate_events", FindDuplicateEventsArgs, "Find likely duplicate events across calendars")
async def find_duplicate_events(service: CalendarService, args: FindDuplicateEventsArgs) -> dict:
    pairs = await service.find_duplicate_events(
        args.start_date,
        args.end_date,
        calendar_names=args.calendar_names,
        tolerance_minutes=args.tolerance_minutes,
    )
    return {
        "duplicate_count": len(pairs),
        "duplicates": [duplicate_to_dict(p, service.tz) for p in pairs],
    }


# =============================================================================
# Reminders
# =============================================================================


@tool("list_reminders", ListRemindersArgs, "List reminders")
async def list_reminders(service: CalendarService, args: ListRemindersArgs) -> dict:
    result = await service.list_reminders(
        filter=args.filter,
        completed=args.completed,
        calendar_name=args.calendar_name,
        calendar_source=args.calendar_source,
        sort_by=args.sort_by,
        limit=args.limit,
    )
    return query_to_dict(result, "reminders", reminder_to_dict, service.tz)


async def _create_reminder(service: CalendarService, args: CreateReminderArgs) -> Reminder:
    return await service.create_reminder(
        args.title,
        notes=args.notes,
        due_date=args.due_date,
        priority=args.priority,
        calendar_name=args.calendar_name,
        calendar_source=args.calendar_source,
        alarm_offsets=args.alarms_minutes_offsets,
        recurrence=_recurrence(service, args),
        location_trigger=_trigger(args),
    )


@tool("create_reminder", CreateReminderArgs, "Create a reminder")
async def create_reminder(service: CalendarService, args: CreateReminderArgs) -> dict:
    return reminder_to_dict(await _create_reminder(service, args), service.tz)


@tool("update_reminder", UpdateReminderArgs, "Update fields of an existing reminder")
async def update_reminder(service: CalendarService, args: UpdateReminderArgs) -> dict:
    reminder = await service.update_reminder(
        args.reminder_id,
        title=args.title,
        notes=args.notes,
        due_date=args.due_date,
        priority=args.priority,
        calendar_name=args.calendar_name,
        calendar_source=args.calendar_source,
        alarm_offsets=args.alarms_minutes_offsets,
        recurrence=_recurrence(service, args),
        location_trigger=_trigger(args),
        clear_due_date=args.clear_due_date,
        clear_recurrence=args.clear_recurrence,
        clear_location_trigger=args.clear_location_trigger,
    )
    return reminder_to_dict(reminder, service.tz)


@tool("complete_reminder", CompleteReminderArgs, "Mark a reminder completed or incomplete")
async def complete_reminder(service: CalendarService, args: CompleteReminderArgs) -> dict:
    reminder = await service.complete_reminder(args.reminder_id, args.completed)
    return reminder_to_dict(reminder, service.tz)


@tool("delete_reminder", DeleteReminderArgs, "Delete a reminder")
async def delete_reminder(service: CalendarService, args: DeleteReminderArgs) -> str:
    reminder = await service.delete_reminder(args.reminder_id)
    return f"Reminder deleted: {reminder.title}"


@tool("search_reminders", SearchRemindersArgs, "Search reminders by keyword")
async def search_reminders(service: CalendarService, args: SearchRemindersArgs) -> dict:
    result = await service.search_reminders(
        keyword=args.keyword,
        keywords=args.keywords,
        match_mode=args.match_mode,
        filter=args.filter,
        calendar_name=args.calendar_name,
        calendar_source=args.calendar_source,
        limit=args.limit,
    )
    return query_to_dict(result, "reminders", reminder_to_dict, service.tz)


@tool("create_reminders_batch", CreateRemindersBatchArgs, "Create several reminders at once")
async def create_reminders_batch(service: CalendarService, args: CreateRemindersBatchArgs) -> dict:
    async def create(item: dict) -> str:
        reminder = await _create_reminder(service, validate_arguments(CreateReminderArgs, item))
        return reminder.id

    return (await run_batch(args.reminders, create)).to_dict()


@tool("delete_reminders_batch", DeleteRemindersBatchArgs, "Delete reminders by id or by selection")
async def delete_reminders_batch(service: CalendarService, args: DeleteRemindersBatchArgs) -> dict:
    result = await service.delete_reminders(
        reminder_ids=args.reminder_ids,
        calendar_name=args.calendar_name,
        calendar_source=args.calendar_source,
        filter=args.filter,
        before_date=args.before_date,
        dry_run=args.dry_run,
    )
    if isinstance(result, BatchPreview):
        return preview_to_dict(result, reminder_to_dict, service.tz)
    return result.to_dict()
