"""
Google Calendar gateway implementation.

Implements the CalendarGateway protocol using Google Calendar API.
"""

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from src.auth.credential_manager import UsableCredential
from src.integrations.base import (
    CalendarEvent,
    CalendarGateway,
    CreateEventRequest,
    ListEventsQuery,
    UpdateEventRequest,
)
from src.integrations.google_calendar.adapter import GoogleCalendarAdapter
from src.integrations.google_calendar.client import GoogleCalendarClient
from src.integrations.google_calendar.exceptions import (
    GoogleCalendarValidationError,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)

# (credentials, socket timeout, deadline=monotonic deadline) -> client
ClientFactory = Callable[..., GoogleCalendarClient]

MIN_SOCKET_TIMEOUT = 0.1


def _format_rfc3339(dt: datetime) -> str:
    """Format datetime to RFC 3339 for Google API."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def _sort_key(event: CalendarEvent) -> datetime:
    return event.start or datetime.max.replace(tzinfo=timezone.utc)


class GoogleCalendarGateway(CalendarGateway):
    """
    CalendarGateway implementation using Google Calendar API.

    A client is built per call from the caller's credential. The Google API
    client is synchronous, so calls run in a thread pool, each bounded by
    the configured timeout.
    """

    def __init__(
        self,
        client_factory: ClientFactory = GoogleCalendarClient,
        executor: Optional[ThreadPoolExecutor] = None,
        timeout_seconds: float = 20.0,
        default_time_zone: Optional[str] = None,
    ):
        """
        Initialize the gateway.

        Args:
            client_factory: Builds an API client from credentials, a socket
                timeout and a deadline
            executor: Thread pool for running sync API calls (creates default if None)
            timeout_seconds: Upper bound for each provider call
            default_time_zone: IANA zone for recurring events created without one
        """
        self._client_factory = client_factory
        self._executor = executor or ThreadPoolExecutor(max_workers=4)
        self._timeout = timeout_seconds
        self._default_time_zone = default_time_zone
        self._adapter = GoogleCalendarAdapter()

    async def _call(self, credential: UsableCredential, method: str, **kwargs):
        """
        Build a client for the credential and run one API method in the pool.

        The client shares this call's deadline, so no request (first attempt
        or retry) starts after the caller has been told the call timed out.
        """
        deadline = time.monotonic() + self._timeout

        def invoke():
            socket_timeout = max(deadline - time.monotonic(), MIN_SOCKET_TIMEOUT)
            client = self._client_factory(
                credential.google_credentials(), socket_timeout, deadline=deadline
            )
            return getattr(client, method)(**kwargs)

        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(self._executor, invoke),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamUnavailable(
                f"Google Calendar {method} timed out after {self._timeout}s",
                original_error=e,
            )

    async def list_events(
        self,
        credential: UsableCredential,
        query: ListEventsQuery,
    ) -> Sequence[CalendarEvent]:
        """
        Get events within a time range from Google Calendar.

        Recurring events are expanded into their occurrences.

        Args:
            credential: Fresh credential
            query: Calendar, window and result limit

        Returns:
            Events ascending by start, at most query.clamped_max_results
        """
        if query.time_max <= query.time_min:
            raise GoogleCalendarValidationError("timeMax must be after timeMin")

        limit = query.clamped_max_results
        google_events = await self._call(
            credential,
            "list_events",
            calendar_id=query.calendar_id,
            time_min=_format_rfc3339(query.time_min),
            time_max=_format_rfc3339(query.time_max),
            max_results=limit,
        )

        events = [
            self._adapter.from_google_event(event, query.calendar_id)
            for event in google_events
        ]
        events.sort(key=_sort_key)

        logger.debug(
            f"Retrieved {len(events)} events from {query.calendar_id} "
            f"between {query.time_min} and {query.time_max}"
        )
        return events[:limit]

    async def create_event(
        self,
        credential: UsableCredential,
        request: CreateEventRequest,
    ) -> CalendarEvent:
        """
        Create a new event in Google Calendar.

        Args:
            credential: Fresh credential
            request: Event data

        Returns:
            Created event with assigned ID
        """
        body = self._adapter.to_google_event(request, self._default_time_zone)

        google_event = await self._call(
            credential,
            "insert_event",
            calendar_id=request.calendar_id,
            body=body,
        )

        created_event = self._adapter.from_google_event(google_event, request.calendar_id)
        logger.info(f"Created event with ID {created_event.id}")
        return created_event

    async def update_event(
        self,
        credential: UsableCredential,
        request: UpdateEventRequest,
    ) -> CalendarEvent:
        """
        Update an existing event in Google Calendar.

        Uses PATCH so omitted fields keep their values. Changes that touch
        times or recurrence read the event first to keep its time zone.

        Args:
            credential: Fresh credential
            request: Event reference and supplied fields

        Returns:
            Updated event
        """
        current = None
        if self._adapter.needs_current_event(request.changes):
            current = await self._call(
                credential,
                "get_event",
                calendar_id=request.calendar_id,
                event_id=request.event_id,
            )
        body = self._adapter.to_update_body(request.changes, self._default_time_zone, current)

        google_event = await self._call(
            credential,
            "patch_event",
            calendar_id=request.calendar_id,
            event_id=request.event_id,
            body=body,
        )

        updated_event = self._adapter.from_google_event(google_event, request.calendar_id)
        logger.info(f"Updated event {request.event_id}: {sorted(body)}")
        return updated_event

    async def delete_event(
        self,
        credential: UsableCredential,
        calendar_id: str,
        event_id: str,
    ) -> bool:
        """
        Delete an event from Google Calendar.

        A missing event surfaces as GoogleCalendarNotFoundError.

        Args:
            credential: Fresh credential
            calendar_id: Google Calendar ID
            event_id: Event to delete

        Returns:
            True once deleted
        """
        await self._call(
            credential,
            "delete_event",
            calendar_id=calendar_id,
            event_id=event_id,
        )
        return True

    async def close(self):
        """Clean up resources."""
        if self._executor:
            self._executor.shutdown(wait=False)
            self._executor = None
