"""
Logging utilities for the API process.

Provides a consistent logging format and configuration. Every record carries
the id of the request being served, or "-" outside a request.
"""

import logging
import sys
from contextvars import ContextVar

# Set per request by RequestLoggingMiddleware
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    """Get current request ID from context."""
    return request_id_ctx.get()


class RequestIdFilter(logging.Filter):
    """Attach the current request ID to each record as `request_id`."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a sensible default format."""
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(
        logging.Formatter("%(asctime)s | %(levelname)s | %(request_id)s | %(name)s | %(message)s")
    )
    logging.basicConfig(level=level.upper(), handlers=[handler])
    # httpx logs full token endpoint URLs at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


__all__ = ["RequestIdFilter", "configure_logging", "get_request_id", "request_id_ctx"]
