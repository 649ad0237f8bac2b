"""
Service layer for Calendar Actions.

Provides the calling layer that ties the token store, credential manager
and calendar gateway together.
"""

from src.services.calendar_service import CalendarService

__all__ = ["CalendarService"]
