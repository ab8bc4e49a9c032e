"""
FastAPI dependency injection providers.

Provides the calendar service singleton to the HTTP surface.
"""

import logging
from typing import Optional

from fastapi import HTTPException

from calendar_engine.config import get_settings
from calendar_engine.services.calendar_service import (
    CalendarService,
    get_calendar_service,
    reset_calendar_service,
    set_calendar_service,
)

logger = logging.getLogger(__name__)

# Set once the service is ready to accept tool calls
_service_ready = False


def init_calendar_service(service: Optional[CalendarService] = None) -> CalendarService:
    """
    Initialize the calendar service at application startup.

    Args:
        service: Pre-built service to install (default: built from settings)
    """
    global _service_ready
    settings = get_settings()
    settings.validate_production_config()

    if service is not None:
        set_calendar_service(service)
    service = get_calendar_service()
    _service_ready = True
    logger.info(f"Calendar service initialized (store: {settings.store_provider})")
    return service


def shutdown_calendar_service() -> None:
    """Drop the service singleton at application shutdown."""
    global _service_ready
    _service_ready = False
    reset_calendar_service()


def is_service_ready() -> bool:
    return _service_ready


def get_service() -> CalendarService:
    """
    Dependency injection for the calendar service.

    Raises:
        HTTPException: If the service was not initialized
    """
    if not _service_ready:
        logger.error("Calendar service not initialized")
        raise HTTPException(
            status_code=503,
            detail="Service temporarily unavailable - calendar service not initialized",
        )
    return get_calendar_service()
