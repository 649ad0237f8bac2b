"""Tests for Google Calendar API client."""

import socket
import time
from unittest.mock import MagicMock, patch

import httplib2
import pytest
from googleapiclient.errors import HttpError
from tenacity import wait_none

from src.integrations.google_calendar.client import (
    GoogleCalendarClient,
    _handle_http_error,
    _is_retryable_error,
)
from src.integrations.google_calendar.exceptions import (
    GoogleCalendarAuthError,
    GoogleCalendarConflictError,
    GoogleCalendarNotFoundError,
    GoogleCalendarQuotaError,
    GoogleCalendarRateLimitError,
    GoogleCalendarValidationError,
    UpstreamRejected,
    UpstreamUnavailable,
)


def make_http_error(status: int, message: str = "Error") -> HttpError:
    """Create a mock HttpError for testing."""
    resp = MagicMock()
    resp.status = status
    resp.reason = message
    return HttpError(resp=resp, content=message.encode())


class TestIsRetryableError:
    """Tests for retry decision logic."""

    def test_retryable_google_calendar_error(self):
        """Should return True for retryable answers from Google."""
        error = GoogleCalendarQuotaError("Quota exceeded", provider_status=403)
        assert _is_retryable_error(error) is True

    def test_transport_failure_not_retryable(self):
        """No provider status means the request may have been applied."""
        error = UpstreamUnavailable("Could not reach Google Calendar: timed out")
        assert error.retryable is True
        assert _is_retryable_error(error) is False

    def test_non_retryable_google_calendar_error(self):
        """Should return False for non-retryable GoogleCalendarError."""
        assert _is_retryable_error(GoogleCalendarAuthError("Auth failed")) is False

    def test_retryable_http_status_codes(self):
        """Should return True for 429, 500, 503 HTTP errors."""
        for status in [429, 500, 503]:
            assert _is_retryable_error(make_http_error(status)) is True

    def test_non_retryable_http_status_codes(self):
        """Should return False for other HTTP errors."""
        for status in [400, 401, 403, 404, 409]:
            assert _is_retryable_error(make_http_error(status)) is False

    def test_other_exceptions(self):
        """Should return False for non-HTTP exceptions."""
        assert _is_retryable_error(ValueError("test")) is False


class TestHandleHttpError:
    """Tests for HTTP error to exception mapping."""

    @pytest.mark.parametrize(
        "status,message,expected",
        [
            (400, "Bad Request", GoogleCalendarValidationError),
            (401, "Invalid Credentials", GoogleCalendarAuthError),
            (403, "Insufficient Permission", GoogleCalendarAuthError),
            (403, "quota exceeded", GoogleCalendarQuotaError),
            (403, "Rate Limit Exceeded", GoogleCalendarQuotaError),
            (404, "Not Found", GoogleCalendarNotFoundError),
            (410, "Gone", GoogleCalendarNotFoundError),
            (409, "Conflict", GoogleCalendarConflictError),
            (412, "Precondition Failed", GoogleCalendarConflictError),
            (429, "Too Many Requests", GoogleCalendarRateLimitError),
            (418, "Teapot", UpstreamRejected),
            (500, "Backend Error", UpstreamUnavailable),
            (503, "Unavailable", UpstreamUnavailable),
        ],
    )
    def test_status_mapping(self, status, message, expected):
        with pytest.raises(expected) as exc_info:
            _handle_http_error(make_http_error(status, message))
        assert exc_info.value.provider_status == status

    def test_auth_error_asks_for_reauthorization(self):
        with pytest.raises(GoogleCalendarAuthError) as exc_info:
            _handle_http_error(make_http_error(401))
        assert exc_info.value.error_code == "REAUTH_REQUIRED"
        assert exc_info.value.status_code == 401

    def test_rejections_are_not_retryable(self):
        with pytest.raises(UpstreamRejected) as exc_info:
            _handle_http_error(make_http_error(404))
        assert exc_info.value.retryable is False

    def test_rate_limit_is_unavailable_and_retryable(self):
        with pytest.raises(UpstreamUnavailable) as exc_info:
            _handle_http_error(make_http_error(429))
        assert exc_info.value.retryable is True
        assert exc_info.value.status_code == 503


class TestGoogleCalendarClient:
    """Tests for GoogleCalendarClient operations."""

    @pytest.fixture
    def mock_service(self):
        """Create mock Google Calendar service."""
        with patch("src.integrations.google_calendar.client.build") as mock_build:
            service = MagicMock()
            mock_build.return_value = service
            yield service

    @pytest.fixture
    def client(self, mock_service):
        """Create client with mocked service."""
        return GoogleCalendarClient(MagicMock(), timeout_seconds=5)

    @pytest.fixture
    def no_backoff(self):
        with patch.object(GoogleCalendarClient.list_events.retry, "wait", wait_none()), \
                patch.object(GoogleCalendarClient.get_event.retry, "wait", wait_none()), \
                patch.object(GoogleCalendarClient.patch_event.retry, "wait", wait_none()):
            yield

    def test_list_events_expands_recurrences(self, client, mock_service):
        """Should list single events ordered by start time."""
        mock_service.events().list().execute.return_value = {
            "items": [{"id": "event-1", "summary": "Test"}],
        }

        result = client.list_events(
            calendar_id="primary",
            time_min="2026-01-15T00:00:00+00:00",
            time_max="2026-01-16T00:00:00+00:00",
            max_results=10,
        )

        assert result == [{"id": "event-1", "summary": "Test"}]
        mock_service.events().list.assert_called_with(
            calendarId="primary",
            timeMin="2026-01-15T00:00:00+00:00",
            timeMax="2026-01-16T00:00:00+00:00",
            singleEvents=True,
            orderBy="startTime",
            maxResults=10,
        )

    def test_list_events_empty_response(self, client, mock_service):
        mock_service.events().list().execute.return_value = {}
        assert client.list_events("primary", "a", "b") == []

    def test_insert_event(self, client, mock_service):
        """Should create new event."""
        event_body = {"summary": "New Event", "start": {}, "end": {}}
        mock_service.events().insert().execute.return_value = {"id": "new-event-123", **event_body}

        result = client.insert_event(calendar_id="primary", body=event_body)

        assert result["id"] == "new-event-123"
        mock_service.events().insert.assert_called_with(calendarId="primary", body=event_body)

    def test_patch_event(self, client, mock_service):
        """Should send only the patch body."""
        mock_service.events().patch().execute.return_value = {"id": "evt", "summary": "Renamed"}

        result = client.patch_event("primary", "evt", {"summary": "Renamed"})

        assert result["summary"] == "Renamed"
        mock_service.events().patch.assert_called_with(
            calendarId="primary", eventId="evt", body={"summary": "Renamed"}
        )

    def test_delete_missing_event_not_swallowed(self, client, mock_service):
        """A 404 on delete surfaces as GoogleCalendarNotFoundError."""
        mock_service.events().delete().execute.side_effect = make_http_error(404)

        with pytest.raises(GoogleCalendarNotFoundError):
            client.delete_event("primary", "gone")

    def test_get_event(self, client, mock_service):
        mock_service.events().get().execute.return_value = {"id": "evt"}

        assert client.get_event("primary", "evt") == {"id": "evt"}
        mock_service.events().get.assert_called_with(calendarId="primary", eventId="evt")

    def test_transport_failure_is_unavailable(self, client, mock_service, no_backoff):
        execute = mock_service.events().list().execute
        execute.side_effect = httplib2.ServerNotFoundError("dns")

        with pytest.raises(UpstreamUnavailable):
            client.list_events("primary", "a", "b")

        assert execute.call_count == 1

    def test_retries_transient_errors(self, client, mock_service, no_backoff):
        mock_service.events().list().execute.side_effect = [
            make_http_error(503),
            {"items": [{"id": "evt"}]},
        ]

        assert client.list_events("primary", "a", "b") == [{"id": "evt"}]

    def test_patch_retried_on_rate_limit(self, client, mock_service, no_backoff):
        execute = mock_service.events().patch().execute
        execute.side_effect = [make_http_error(429), {"id": "evt", "summary": "Renamed"}]

        assert client.patch_event("primary", "evt", {"summary": "Renamed"})["id"] == "evt"
        assert execute.call_count == 2

    def test_does_not_retry_rejections(self, client, mock_service):
        execute = mock_service.events().list().execute
        execute.side_effect = make_http_error(400, "Bad Request")

        with pytest.raises(GoogleCalendarValidationError):
            client.list_events("primary", "a", "b")

        assert execute.call_count == 1


class TestSendOnce:
    """Inserts and deletes are never replayed."""

    @pytest.fixture
    def mock_service(self):
        with patch("src.integrations.google_calendar.client.build") as mock_build:
            service = MagicMock()
            mock_build.return_value = service
            yield service

    @pytest.fixture
    def client(self, mock_service):
        return GoogleCalendarClient(MagicMock(), timeout_seconds=5)

    def test_insert_not_resent_after_socket_timeout(self, client, mock_service):
        execute = mock_service.events().insert().execute
        execute.side_effect = [socket.timeout("timed out"), {"id": "evt-2"}]

        with pytest.raises(UpstreamUnavailable):
            client.insert_event("primary", {"summary": "Standup"})

        assert execute.call_count == 1

    def test_insert_not_resent_after_server_error(self, client, mock_service):
        execute = mock_service.events().insert().execute
        execute.side_effect = [make_http_error(503), {"id": "evt-2"}]

        with pytest.raises(UpstreamUnavailable):
            client.insert_event("primary", {"summary": "Standup"})

        assert execute.call_count == 1

    def test_delete_timeout_not_reported_as_missing(self, client, mock_service):
        """A second attempt would see 404 for an event the first one removed."""
        execute = mock_service.events().delete().execute
        execute.side_effect = [socket.timeout("timed out"), make_http_error(404)]

        with pytest.raises(UpstreamUnavailable):
            client.delete_event("primary", "evt")

        assert execute.call_count == 1


class TestDeadline:
    """Calls never start once the client's deadline has passed."""

    @pytest.fixture
    def mock_service(self):
        with patch("src.integrations.google_calendar.client.build") as mock_build:
            service = MagicMock()
            mock_build.return_value = service
            yield service

    def test_expired_deadline_fails_fast(self, mock_service):
        client = GoogleCalendarClient(MagicMock(), deadline=time.monotonic() - 1)

        with pytest.raises(UpstreamUnavailable):
            client.insert_event("primary", {"summary": "Standup"})

        mock_service.events().insert().execute.assert_not_called()

    def test_remaining_seconds(self, mock_service):
        assert GoogleCalendarClient(MagicMock()).remaining_seconds() is None
        expired = GoogleCalendarClient(MagicMock(), deadline=time.monotonic() - 1)
        assert expired.remaining_seconds() == 0

    def test_retries_stop_at_deadline(self, mock_service):
        execute = mock_service.events().list().execute

        def slow_server_error():
            time.sleep(0.25)
            raise make_http_error(503)

        execute.side_effect = slow_server_error
        client = GoogleCalendarClient(MagicMock(), deadline=time.monotonic() + 0.2)

        with patch.object(GoogleCalendarClient.list_events.retry, "wait", wait_none()):
            with pytest.raises(UpstreamUnavailable):
                client.list_events("primary", "a", "b")

        assert execute.call_count == 1
