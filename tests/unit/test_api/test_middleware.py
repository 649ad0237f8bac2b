"""Tests for request tracking middleware."""

import logging

import pytest

from src.logging_config import RequestIdFilter


class RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.request_ids = []
        self.messages = []

    def emit(self, record):
        self.request_ids.append(record.request_id)
        self.messages.append(record.getMessage())


@pytest.fixture
def recorded():
    handler = RecordingHandler()
    handler.addFilter(RequestIdFilter())
    middleware_logger = logging.getLogger("src.api.middleware")
    previous_level = middleware_logger.level
    middleware_logger.addHandler(handler)
    middleware_logger.setLevel(logging.INFO)
    yield handler
    middleware_logger.removeHandler(handler)
    middleware_logger.setLevel(previous_level)


class TestRequestLoggingMiddleware:
    """Test request IDs, timing headers and query redaction."""

    def test_log_records_carry_response_request_id(self, client, recorded):
        response = client.get("/health")

        assert recorded.request_ids
        assert set(recorded.request_ids) == {response.headers["X-Request-ID"]}
        assert "X-Response-Time" in response.headers

    def test_each_request_gets_its_own_id(self, client):
        first = client.get("/health").headers["X-Request-ID"]
        second = client.get("/health").headers["X-Request-ID"]

        assert first != second

    def test_query_string_not_logged(self, client, recorded):
        client.get("/api/calendar/events", params={"key": "secret-key-value"})

        assert recorded.messages
        assert not any("secret-key-value" in message for message in recorded.messages)
