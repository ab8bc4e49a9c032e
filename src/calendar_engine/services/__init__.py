"""
Service layer for the calendar engine.

Provides the building blocks operations are composed from:
- Flexible date parsing and quick ranges
- Calendar resolution with source disambiguation
- Recurrence translation and expansion (RRULE handling)
- Query post-processing (filter, sort, limit, keyword search)
- Conflict and duplicate detection
- Batch execution with per-item isolation
- Access gating and serialized store access

Note: CalendarService lives in calendar_engine.services.calendar_service and
is imported from there to keep store backends free of import cycles.
"""

from calendar_engine.services.dates import (
    format_instant,
    parse_flexible_date,
    quick_range,
    resolve_week_start,
)
from calendar_engine.services.recurrence import (
    RecurrenceRuleInput,
    expand_occurrences,
    intervals_overlap,
    to_description,
    to_rule,
)

__all__ = [
    "RecurrenceRuleInput",
    "expand_occurrences",
    "format_instant",
    "intervals_overlap",
    "parse_flexible_date",
    "quick_range",
    "resolve_week_start",
    "to_description",
    "to_rule",
]
