"""
Response builder utilities for transforming engine results to tool output.

Entities become JSON-shaped dicts with instants rendered as full ISO 8601
timestamps in the local zone; the whole result is then serialized as sorted,
pretty-printed JSON.
"""

import json
import logging
from datetime import datetime, tzinfo
from typing import Any, Optional

from calendar_engine.errors import InvalidParameterError
from calendar_engine.integrations.base import (
    Alarm,
    Calendar,
    Event,
    LocationTrigger,
    Reminder,
    StructuredLocation,
)
from calendar_engine.services.batch import BatchPreview
from calendar_engine.services.conflicts import DuplicatePair, EventSummary
from calendar_engine.services.dates import format_instant
from calendar_engine.services.queries import QueryResult
from calendar_engine.services.recurrence import to_description

logger = logging.getLogger(__name__)

PRIORITY_LABELS = {0: "none", 1: "high", 5: "medium", 9: "low"}


def format_result(result: Any) -> str:
    """Serialize a result as sorted, pretty-printed JSON."""
    return json.dumps(result, sort_keys=True, indent=2, ensure_ascii=False)


def _instant(value: Optional[datetime], tz: Optional[tzinfo]) -> Optional[str]:
    return format_instant(value, tz) if value is not None else None


def calendar_to_dict(calendar: Calendar) -> dict:
    return {
        "id": calendar.id,
        "title": calendar.title,
        "type": calendar.kind.value,
        "source": calendar.source,
        "color": calendar.color,
        "read_only": calendar.read_only,
        "subscribed": calendar.subscribed,
        "allows_modifications": calendar.allows_modifications,
    }


def location_to_dict(location: StructuredLocation) -> dict:
    result = {
        "title": location.title,
        "latitude": location.latitude,
        "longitude": location.longitude,
    }
    if location.radius is not None:
        result["radius"] = location.radius
    return result


def trigger_to_dict(trigger: LocationTrigger) -> dict:
    result = location_to_dict(trigger.location)
    result["proximity"] = trigger.proximity.value
    return result


def alarm_to_dict(alarm: Alarm) -> dict:
    if alarm.location_trigger is not None:
        return {"location_trigger": trigger_to_dict(alarm.location_trigger)}
    # Stored offsets are negative for "before"
    return {"minutes_before": -(alarm.relative_offset_minutes or 0)}


def recurrence_to_dict(rule: str, tz: Optional[tzinfo] = None) -> dict:
    """Readable recurrence plus the raw rule; unparseable rules keep only the raw form."""
    try:
        description = to_description(rule).to_dict(lambda d: format_instant(d, tz))
    except (InvalidParameterError, ValueError) as e:
        logger.warning(f"Could not describe recurrence rule '{rule}': {e}")
        description = {}
    description["rule"] = rule
    return description


def event_to_dict(event: Event, tz: Optional[tzinfo] = None) -> dict:
    """
    Convert an event to its wire shape.

    Optional fields are omitted when empty.
    """
    result = {
        "id": event.id,
        "title": event.title,
        "start_time": _instant(event.start_time, tz),
        "end_time": _instant(event.end_time, tz),
        "all_day": event.all_day,
        "calendar": event.calendar.title,
        "calendar_source": event.calendar.source,
        "is_recurring": event.is_recurring,
    }
    if event.notes:
        result["notes"] = event.notes
    if event.location:
        result["location"] = event.location
    if event.structured_location is not None:
        result["structured_location"] = location_to_dict(event.structured_location)
    if event.url:
        result["url"] = event.url
    if event.alarms:
        result["alarms"] = [alarm_to_dict(a) for a in event.alarms]
    if event.recurrence_rule:
        result["recurrence"] = recurrence_to_dict(event.recurrence_rule, tz)
    if event.occurrence_date is not None:
        result["occurrence_date"] = _instant(event.occurrence_date, tz)
    return result


def reminder_to_dict(reminder: Reminder, tz: Optional[tzinfo] = None) -> dict:
    result = {
        "id": reminder.id,
        "title": reminder.title,
        "list": reminder.calendar.title,
        "list_source": reminder.calendar.source,
        "priority": reminder.priority,
        "priority_label": PRIORITY_LABELS.get(reminder.priority, "none"),
        "completed": reminder.completed,
        "due_date": _instant(reminder.due_date, tz),
    }
    if reminder.completion_date is not None:
        result["completion_date"] = _instant(reminder.completion_date, tz)
    if reminder.creation_date is not None:
        result["creation_date"] = _instant(reminder.creation_date, tz)
    if reminder.notes:
        result["notes"] = reminder.notes
    if reminder.alarms:
        result["alarms"] = [alarm_to_dict(a) for a in reminder.alarms]
    if reminder.recurrence_rule:
        result["recurrence"] = recurrence_to_dict(reminder.recurrence_rule, tz)
    if reminder.location_trigger is not None:
        result["location_trigger"] = trigger_to_dict(reminder.location_trigger)
    return result


def summary_to_dict(summary: EventSummary, tz: Optional[tzinfo] = None) -> dict:
    return {
        "id": summary.id,
        "title": summary.title,
        "calendar": summary.calendar,
        "calendar_source": summary.calendar_source,
        "start_time": _instant(summary.start_time, tz),
        "end_time": _instant(summary.end_time, tz),
    }


def duplicate_to_dict(pair: DuplicatePair, tz: Optional[tzinfo] = None) -> dict:
    return {
        "event1": summary_to_dict(pair.first, tz),
        "event2": summary_to_dict(pair.second, tz),
        "time_difference_seconds": pair.time_difference_seconds,
    }


def query_to_dict(result: QueryResult, key: str, convert, tz: Optional[tzinfo] = None) -> dict:
    """
    Query items plus the counts at each stage, so "nothing in range" and
    "everything filtered out" read differently.
    """
    return {
        key: [convert(item, tz) for item in result.items],
        "total_count": result.total_count,
        "filtered_count": result.filtered_count,
        "returned_count": result.returned_count,
    }


def preview_to_dict(preview: BatchPreview, convert, tz: Optional[tzinfo] = None) -> dict:
    return {
        "dry_run": True,
        "count": preview.count,
        "would_delete": [convert(item, tz) for item in preview.items],
    }
