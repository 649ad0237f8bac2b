"""
Request tracking middleware.

Assigns each request a short ID, shared with log records through
src.logging_config, and logs method, path, status and timing. Query strings
are never logged because they may carry the API key.
"""

import logging
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from src.logging_config import request_id_ctx

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each request and add X-Request-ID and X-Response-Time headers."""

    async def dispatch(self, request: Request, call_next) -> Response:
        req_id = uuid.uuid4().hex[:8]
        token = request_id_ctx.set(req_id)
        start_time = time.perf_counter()
        try:
            logger.info(f"{request.method} {request.url.path}")
            try:
                response = await call_next(request)
            except Exception as e:
                elapsed = time.perf_counter() - start_time
                logger.error(f"Request failed after {elapsed:.2f}s: {type(e).__name__}")
                raise

            elapsed = time.perf_counter() - start_time
            logger.info(f"{response.status_code} in {elapsed:.2f}s")
            response.headers["X-Request-ID"] = req_id
            response.headers["X-Response-Time"] = f"{elapsed:.3f}s"
            return response
        finally:
            request_id_ctx.reset(token)
