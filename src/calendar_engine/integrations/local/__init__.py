"""Relational calendar store built on SQLAlchemy."""

from calendar_engine.integrations.local.adapter import LocalStoreAdapter
from calendar_engine.integrations.local.repository import LocalCalendarRepository

__all__ = ["LocalCalendarRepository", "LocalStoreAdapter"]
