"""
Google Calendar integration for Calendar Actions.

Provides Google Calendar API v3 as the calendar gateway.
"""

from src.integrations.google_calendar.adapter import GoogleCalendarAdapter
from src.integrations.google_calendar.client import GoogleCalendarClient
from src.integrations.google_calendar.exceptions import (
    GoogleCalendarAuthError,
    GoogleCalendarConflictError,
    GoogleCalendarError,
    GoogleCalendarNotFoundError,
    GoogleCalendarQuotaError,
    GoogleCalendarRateLimitError,
    GoogleCalendarValidationError,
    UpstreamRejected,
    UpstreamUnavailable,
)
from src.integrations.google_calendar.gateway import GoogleCalendarGateway

__all__ = [
    "GoogleCalendarAdapter",
    "GoogleCalendarClient",
    "GoogleCalendarError",
    "GoogleCalendarAuthError",
    "GoogleCalendarConflictError",
    "GoogleCalendarNotFoundError",
    "GoogleCalendarQuotaError",
    "GoogleCalendarRateLimitError",
    "GoogleCalendarValidationError",
    "GoogleCalendarGateway",
    "UpstreamRejected",
    "UpstreamUnavailable",
]
