"""
Google Calendar API client wrapper with retry and error handling.

Provides a clean interface over the Google Calendar API v3 events resource.
Reads and patches are retried on provider 429/5xx answers; inserts and
deletes are sent exactly once.
"""

import logging
import time
from typing import Optional

import google_auth_httplib2
import httplib2
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build, Resource
from googleapiclient.errors import HttpError
from tenacity import (
    RetryCallState,
    retry,
    stop_after_attempt,
    stop_any,
    wait_exponential,
    retry_if_exception,
)

from src.integrations.google_calendar.exceptions import (
    GoogleCalendarError,
    GoogleCalendarAuthError,
    GoogleCalendarQuotaError,
    GoogleCalendarNotFoundError,
    GoogleCalendarConflictError,
    GoogleCalendarRateLimitError,
    GoogleCalendarValidationError,
    UpstreamRejected,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)


RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


def _is_retryable_error(exception: BaseException) -> bool:
    """
    Check if an exception should trigger a retry.

    Only answers Google actually sent count. Transport failures and timeouts
    carry no provider status and are never retried, since the request may
    already have been applied.
    """
    if isinstance(exception, GoogleCalendarError):
        return exception.retryable and exception.provider_status is not None
    if isinstance(exception, HttpError):
        return exception.resp.status in RETRYABLE_STATUSES
    return False


def _deadline_passed(retry_state: RetryCallState) -> bool:
    """Stop retrying once the owning client's deadline has passed."""
    client = retry_state.args[0] if retry_state.args else None
    return isinstance(client, GoogleCalendarClient) and client.remaining_seconds() == 0


def _handle_http_error(error: HttpError) -> None:
    """Convert HttpError to appropriate GoogleCalendarError."""
    status = error.resp.status
    message = str(error)

    if status == 400:
        raise GoogleCalendarValidationError(
            f"Request rejected as invalid: {message}",
            original_error=error,
            provider_status=status,
        )
    elif status == 401:
        raise GoogleCalendarAuthError(
            "Authentication failed - credentials may be invalid or expired",
            original_error=error,
            provider_status=status,
        )
    elif status == 403:
        if "quota" in message.lower() or "rate limit" in message.lower():
            raise GoogleCalendarQuotaError(
                "API quota exceeded",
                original_error=error,
                provider_status=status,
            )
        raise GoogleCalendarAuthError(
            "Access denied - check granted scopes and calendar permissions",
            original_error=error,
            provider_status=status,
        )
    elif status in (404, 410):
        raise GoogleCalendarNotFoundError(
            "Event or calendar not found",
            original_error=error,
            provider_status=status,
        )
    elif status in (409, 412):
        raise GoogleCalendarConflictError(
            "Event was modified by another process",
            original_error=error,
            provider_status=status,
        )
    elif status == 429:
        raise GoogleCalendarRateLimitError(
            "Rate limit exceeded - too many requests",
            original_error=error,
            provider_status=status,
        )
    elif 400 <= status < 500:
        raise UpstreamRejected(
            f"Google Calendar API rejected the request ({status}): {message}",
            original_error=error,
            provider_status=status,
        )
    else:
        raise UpstreamUnavailable(
            f"Google Calendar API error ({status}): {message}",
            original_error=error,
            provider_status=status,
        )


_with_retry = retry(
    stop=stop_any(stop_after_attempt(3), _deadline_passed),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
    retry=retry_if_exception(_is_retryable_error),
    reraise=True,
)


class GoogleCalendarClient:
    """
    Wrapper around Google Calendar API v3.

    Provides:
    - Retry with exponential backoff for list and patch
    - Consistent error handling
    - A socket timeout on every request
    - An optional deadline after which no request is started
    """

    def __init__(
        self,
        credentials: Credentials,
        timeout_seconds: float = 20.0,
        deadline: Optional[float] = None,
    ):
        """
        Initialize the client.

        Args:
            credentials: Google OAuth2 credentials
            timeout_seconds: Socket timeout for each HTTP request
            deadline: time.monotonic() value after which calls fail fast
        """
        self._deadline = deadline
        http = google_auth_httplib2.AuthorizedHttp(
            credentials,
            http=httplib2.Http(timeout=timeout_seconds),
        )
        self._service: Resource = build(
            "calendar",
            "v3",
            http=http,
            cache_discovery=False,
        )

    @property
    def service(self) -> Resource:
        """Get the underlying Google API service."""
        return self._service

    def remaining_seconds(self) -> Optional[float]:
        """Time left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        return max(self._deadline - time.monotonic(), 0.0)

    def _execute(self, request) -> Optional[dict]:
        if self.remaining_seconds() == 0:
            raise UpstreamUnavailable("Google Calendar call abandoned: deadline exceeded")
        try:
            return request.execute()
        except HttpError as e:
            _handle_http_error(e)
        except (httplib2.HttpLib2Error, OSError) as e:
            raise UpstreamUnavailable(
                f"Could not reach Google Calendar: {e}",
                original_error=e,
            )

    @_with_retry
    def list_events(
        self,
        calendar_id: str,
        time_min: str,
        time_max: str,
        max_results: int = 25,
    ) -> list[dict]:
        """
        List events from a calendar with recurring events expanded.

        Args:
            calendar_id: Calendar to query
            time_min: Lower bound (RFC 3339)
            time_max: Upper bound (RFC 3339)
            max_results: Maximum events to return

        Returns:
            Events ordered by start time
        """
        response = self._execute(
            self._service.events().list(
                calendarId=calendar_id,
                timeMin=time_min,
                timeMax=time_max,
                singleEvents=True,
                orderBy="startTime",
                maxResults=max_results,
            )
        )
        events = (response or {}).get("items", [])
        logger.debug(f"Listed {len(events)} events from {calendar_id}")
        return events

    @_with_retry
    def get_event(self, calendar_id: str, event_id: str) -> dict:
        """Fetch a single event by ID."""
        return self._execute(
            self._service.events().get(calendarId=calendar_id, eventId=event_id)
        )

    def insert_event(self, calendar_id: str, body: dict) -> dict:
        """
        Create a new event.

        Sent once; a failed insert is never replayed because Google may
        already have created the event.

        Args:
            calendar_id: Calendar to create event in
            body: Event data in Google Calendar format

        Returns:
            Created event with ID
        """
        result = self._execute(
            self._service.events().insert(calendarId=calendar_id, body=body)
        )
        logger.info(f"Created event {result.get('id')} in {calendar_id}")
        return result

    @_with_retry
    def patch_event(self, calendar_id: str, event_id: str, body: dict) -> dict:
        """
        Patch an existing event (partial update).

        Args:
            calendar_id: Calendar containing the event
            event_id: Event to update
            body: Fields to update

        Returns:
            Updated event
        """
        result = self._execute(
            self._service.events().patch(calendarId=calendar_id, eventId=event_id, body=body)
        )
        logger.info(f"Patched event {event_id} in {calendar_id}")
        return result

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        """
        Delete an event.

        A missing event raises GoogleCalendarNotFoundError. Sent once, so a
        retry can never turn a completed delete into a 404.

        Args:
            calendar_id: Calendar containing the event
            event_id: Event to delete
        """
        self._execute(
            self._service.events().delete(calendarId=calendar_id, eventId=event_id)
        )
        logger.info(f"Deleted event {event_id} from {calendar_id}")
