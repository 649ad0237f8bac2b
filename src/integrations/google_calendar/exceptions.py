"""
Custom exceptions for Google Calendar operations.

Provides structured error handling with retryable flags. Every error falls
into one of two families callers can branch on:
- UpstreamUnavailable: transport failures, timeouts, quota, 5xx (retryable)
- UpstreamRejected: the provider refused the request (not retryable)
"""

from typing import Optional


class GoogleCalendarError(Exception):
    """Base exception for Google Calendar operations."""

    error_code: str = "UPSTREAM_ERROR"
    status_code: int = 502
    retryable: bool = False

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        provider_status: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.provider_status = provider_status


class UpstreamUnavailable(GoogleCalendarError):
    """
    Google Calendar could not be reached or is temporarily failing.

    Causes:
    - Connection or socket errors
    - Call exceeded its timeout
    - 5xx responses

    Retryable by the caller.
    """

    error_code = "UPSTREAM_UNAVAILABLE"
    status_code = 503
    retryable = True


class GoogleCalendarQuotaError(UpstreamUnavailable):
    """
    API quota exceeded.

    Google Calendar API has quotas:
    - 1,000,000 queries/day
    - 180 queries/minute per user

    Retryable after backoff.
    """


class GoogleCalendarRateLimitError(UpstreamUnavailable):
    """
    Rate limit hit (429 response).

    Retryable after exponential backoff.
    """


class UpstreamRejected(GoogleCalendarError):
    """
    Google Calendar rejected the request.

    Not retryable without changing the request.
    """

    error_code = "UPSTREAM_REJECTED"
    status_code = 400
    retryable = False


class GoogleCalendarAuthError(UpstreamRejected):
    """
    Authentication or authorization failure.

    Causes:
    - Expired access token that could not be refreshed
    - Revoked grant
    - Insufficient scopes

    The OAuth flow must be repeated.
    """

    error_code = "REAUTH_REQUIRED"
    status_code = 401


class GoogleCalendarNotFoundError(UpstreamRejected):
    """
    Event or calendar not found.

    Causes:
    - Event was deleted
    - Calendar ID is invalid
    - Event ID is invalid
    """

    error_code = "NOT_FOUND"
    status_code = 404


class GoogleCalendarConflictError(UpstreamRejected):
    """
    Event update conflict.

    Causes:
    - Stale etag (event was modified concurrently)
    - Event ID already exists
    """

    error_code = "CONFLICT"
    status_code = 409


class GoogleCalendarValidationError(UpstreamRejected):
    """
    Invalid event data.

    Causes:
    - Invalid datetime format or time range
    - Missing required fields
    - Invalid recurrence rule
    """

    error_code = "INVALID_REQUEST"
    status_code = 400
