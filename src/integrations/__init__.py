"""
External service integrations for Calendar Actions.

Provides the abstraction layer over calendar providers.
"""

from src.integrations.base import (
    CalendarEvent,
    CalendarGateway,
    CreateEventRequest,
    ListEventsQuery,
    UpdateEventRequest,
)

__all__ = [
    "CalendarEvent",
    "CalendarGateway",
    "CreateEventRequest",
    "ListEventsQuery",
    "UpdateEventRequest",
]
