"""
Store access gate and exclusive-access boundary.

AccessGate remembers the first successful consent per entity kind for the
lifetime of the process; there is no runtime revocation handling.

StoreGateway is the only path to the store. Every store call runs under one
asyncio.Lock, so two tool invocations never interleave store calls. Writes
mark the store stale; the next read refreshes externally sourced calendars
first.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional, Sequence

from calendar_engine.errors import AccessDeniedError
from calendar_engine.integrations.base import (
    Calendar,
    CalendarStore,
    DeleteSpan,
    EntityKind,
    Event,
    Reminder,
)

logger = logging.getLogger(__name__)


class AccessGate:
    """Per-kind consent, requested lazily and memoized."""

    def __init__(self, store: CalendarStore):
        self._store = store
        self._granted: dict[EntityKind, bool] = {}

    def has_access(self, kind: EntityKind) -> bool:
        return self._granted.get(kind, False)

    async def ensure_access(self, kind: EntityKind) -> None:
        """
        Request access once; later calls are no-ops.

        Raises:
            AccessDeniedError: If the store reports denial
        """
        if self._granted.get(kind):
            return

        granted = await self._store.request_access(kind)
        if not granted:
            logger.warning(f"Access to {kind.value} data denied")
            raise AccessDeniedError(kind.value)

        self._granted[kind] = True
        logger.info(f"Access to {kind.value} data granted")


class StoreGateway:
    """
    Serialized, access-checked facade over a CalendarStore.

    Methods mirror the store protocol; each acquires consent for the kind it
    touches before calling the store.
    """

    def __init__(self, store: CalendarStore):
        self._store = store
        self._gate = AccessGate(store)
        self._lock = asyncio.Lock()
        self._stale = False

    @property
    def gate(self) -> AccessGate:
        return self._gate

    @property
    def is_stale(self) -> bool:
        return self._stale

    async def _read(self, kinds: Sequence[EntityKind], method, *args):
        async with self._lock:
            for kind in kinds:
                await self._gate.ensure_access(kind)
            await self._refresh_if_stale()
            return await method(*args)

    async def _refresh_if_stale(self) -> None:
        if self._stale:
            await self._store.refresh_sources()
            self._stale = False

    async def _write(self, kinds: Sequence[EntityKind], method, *args):
        async with self._lock:
            for kind in kinds:
                await self._gate.ensure_access(kind)
            try:
                return await method(*args)
            finally:
                self._stale = True

    # Calendars

    async def sources(self, kind: EntityKind) -> list[str]:
        return await self._read([kind], self._store.sources)

    async def calendars(self, kind: EntityKind) -> list[Calendar]:
        return await self._read([kind], self._store.calendars, kind)

    async def calendar_by_id(self, calendar_id: str) -> Optional[Calendar]:
        """
        Look up a calendar of either kind by id.

        Only the kind of the calendar found needs consent. The lookup runs
        once consent for some kind is held.

        Raises:
            AccessDeniedError: If access to the found calendar's kind, or to
                every kind, is denied
        """
        async with self._lock:
            denied = None
            calendar = None
            for kind in (EntityKind.EVENT, EntityKind.REMINDER):
                try:
                    await self._gate.ensure_access(kind)
                except AccessDeniedError as e:
                    denied = e
                    continue

                if calendar is None:
                    await self._refresh_if_stale()
                    calendar = await self._store.calendar_by_id(calendar_id)
                    if calendar is None:
                        return None
                if calendar.kind == kind:
                    return calendar

            raise denied

    async def default_calendar(self, kind: EntityKind) -> Optional[Calendar]:
        return await self._read([kind], self._store.default_calendar, kind)

    async def save_calendar(self, calendar: Calendar) -> Calendar:
        return await self._write([calendar.kind], self._store.save_calendar, calendar)

    async def remove_calendar(self, calendar: Calendar) -> None:
        await self._write([calendar.kind], self._store.remove_calendar, calendar.id)

    # Events

    async def events_in_range(
        self,
        start: datetime,
        end: datetime,
        calendar_ids: Optional[Sequence[str]] = None,
    ) -> list[Event]:
        events = await self._read(
            [EntityKind.EVENT], self._store.events_in_range, start, end, calendar_ids
        )
        logger.debug(f"Fetched {len(events)} events between {start} and {end}")
        return events

    async def event_by_id(self, event_id: str) -> Optional[Event]:
        return await self._read([EntityKind.EVENT], self._store.event_by_id, event_id)

    async def save_event(self, event: Event) -> Event:
        return await self._write([EntityKind.EVENT], self._store.save_event, event)

    async def remove_event(
        self,
        event_id: str,
        span: DeleteSpan = DeleteSpan.THIS,
        occurrence_start: Optional[datetime] = None,
    ) -> None:
        await self._write(
            [EntityKind.EVENT], self._store.remove_event, event_id, span, occurrence_start
        )

    # Reminders

    async def reminders(self, calendar_ids: Optional[Sequence[str]] = None) -> list[Reminder]:
        reminders = await self._read([EntityKind.REMINDER], self._store.reminders, calendar_ids)
        logger.debug(f"Fetched {len(reminders)} reminders")
        return reminders

    async def reminder_by_id(self, reminder_id: str) -> Optional[Reminder]:
        return await self._read([EntityKind.REMINDER], self._store.reminder_by_id, reminder_id)

    async def save_reminder(self, reminder: Reminder) -> Reminder:
        return await self._write([EntityKind.REMINDER], self._store.save_reminder, reminder)

    async def remove_reminder(self, reminder_id: str) -> None:
        await self._write([EntityKind.REMINDER], self._store.remove_reminder, reminder_id)
