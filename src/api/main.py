"""
FastAPI application for Calendar Actions.

This is the main entry point for the HTTP API, providing:
- Event endpoints (list, create, patch, delete) on the primary account
- Google OAuth endpoints (see auth_routes)
- Health endpoint
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI, Query
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from src.api.auth_routes import router as auth_router
from src.api.dependencies import (
    current_services,
    get_calendar_service,
    init_services,
    require_api_key,
    services_ready,
    shutdown_services,
)
from src.api.middleware import RequestLoggingMiddleware
from src.api.models import (
    CreateEventBody,
    DeleteEventResponse,
    ErrorResponse,
    EventListResponse,
    EventResponse,
    HealthResponse,
    UpdateEventBody,
)
from src.auth.exceptions import CredentialError
from src.config import get_settings
from src.integrations.base import CreateEventRequest, ListEventsQuery, UpdateEventRequest
from src.integrations.google_calendar.exceptions import GoogleCalendarError
from src.logging_config import configure_logging
from src.services.calendar_service import CalendarService

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"

_HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    503: "SERVICE_UNAVAILABLE",
}


# =============================================================================
# Application Lifecycle
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    configure_logging(settings.log_level)

    # Startup
    logger.info("Starting Calendar Actions API")
    owns_services = not services_ready()
    if owns_services:
        await init_services(settings)
    logger.info("Calendar Actions API started")

    yield

    # Shutdown
    logger.info("Shutting down Calendar Actions API")
    if owns_services:
        await shutdown_services()


# =============================================================================
# FastAPI Application
# =============================================================================


app = FastAPI(
    title="Calendar Actions API",
    description="""
# Calendar Actions API

Single-account Google Calendar access for automation clients.

## Authorization

1. Visit **GET /auth** once to grant calendar access.
2. Call the `/api/calendar` routes with the API key as
   `Authorization: Bearer <key>`, Basic credentials, `X-API-Key`, or `?key=`.

Stored credentials are refreshed automatically when they expire.

## Error Handling

Every error body is `{"error", "message", "retryable"}`.

- **400** - Invalid request or rejected by Google
- **401** - Missing API key, no stored credential, or Google revoked access
- **404** - Event not found
- **422** - Validation error
- **500** - Server error
- **503** - Token store or Google unavailable, or OAuth not configured
    """,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(auth_router)


# =============================================================================
# Exception Handlers
# =============================================================================


def _error_response(status_code: int, error: str, message: str, retryable: bool) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, message=message, retryable=retryable).model_dump(),
    )


@app.exception_handler(CredentialError)
async def credential_error_handler(request, exc: CredentialError):
    """Handle token store and OAuth errors."""
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code}: {exc.message}")
    return _error_response(exc.status_code, exc.error_code, exc.message, exc.retryable)


@app.exception_handler(GoogleCalendarError)
async def calendar_error_handler(request, exc: GoogleCalendarError):
    """Handle Google Calendar errors."""
    logger.warning(f"{exc.error_code} from Google Calendar: {exc.message}")
    return _error_response(exc.status_code, exc.error_code, exc.message, exc.retryable)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):
    """Handle request validation errors with consistent format."""
    details = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return _error_response(422, "INVALID_REQUEST", details or "Invalid request", False)


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions with consistent format."""
    return _error_response(
        exc.status_code,
        _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
        str(exc.detail),
        exc.status_code >= 500,
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return _error_response(500, "INTERNAL_ERROR", "An unexpected error occurred", True)


# =============================================================================
# Health & Status Endpoints
# =============================================================================


@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    tags=["System"],
)
async def health_check() -> HealthResponse:
    """
    Check API health status.

    Reports the token store backend and whether OAuth is configured.
    """
    services = current_services()
    if services is None:
        return HealthResponse(status="degraded", version=API_VERSION, oauth_configured=False)

    return HealthResponse(
        status="healthy" if services.oauth_configured else "degraded",
        version=API_VERSION,
        store_backend=services.token_store.backend,
        oauth_configured=services.oauth_configured,
    )


# =============================================================================
# Event Endpoints
# =============================================================================


@app.get(
    "/api/calendar/events",
    response_model=EventListResponse,
    summary="List events",
    description="List events in a time window, recurring events expanded, ascending by start.",
    tags=["Events"],
    dependencies=[Depends(require_api_key)],
    responses={401: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def list_events(
    time_min: datetime = Query(..., alias="timeMin", description="Window start (ISO 8601)"),
    time_max: datetime = Query(..., alias="timeMax", description="Window end (ISO 8601)"),
    calendar_id: str = Query("primary", alias="calendarId"),
    max_results: int = Query(25, alias="maxResults", ge=1, description="Clamped to 2500"),
    calendar: CalendarService = Depends(get_calendar_service),
) -> EventListResponse:
    """List events from the account's Google Calendar."""
    events = await calendar.list_events(
        ListEventsQuery(
            time_min=time_min,
            time_max=time_max,
            calendar_id=calendar_id,
            max_results=max_results,
        )
    )
    return EventListResponse(items=[EventResponse.from_event(event) for event in events])


@app.post(
    "/api/calendar/events",
    response_model=EventResponse,
    summary="Create event",
    tags=["Events"],
    dependencies=[Depends(require_api_key)],
    responses={401: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def create_event(
    body: CreateEventBody,
    calendar: CalendarService = Depends(get_calendar_service),
) -> EventResponse:
    """Create an event, optionally recurring."""
    event = await calendar.create_event(
        CreateEventRequest(
            summary=body.summary,
            start=body.start,
            end=body.end,
            calendar_id=body.calendar_id,
            description=body.description,
            recurrence=list(body.recurrence or []),
            time_zone=body.time_zone,
        )
    )
    return EventResponse.from_event(event)


@app.patch(
    "/api/calendar/events/{event_id}",
    response_model=EventResponse,
    summary="Update event",
    description="Change only the supplied fields; omitted fields keep their values.",
    tags=["Events"],
    dependencies=[Depends(require_api_key)],
    responses={404: {"model": ErrorResponse}},
)
async def update_event(
    event_id: str,
    body: UpdateEventBody,
    calendar_id: str = Query("primary", alias="calendarId"),
    calendar: CalendarService = Depends(get_calendar_service),
) -> EventResponse:
    """Patch an existing event."""
    event = await calendar.update_event(
        UpdateEventRequest(event_id=event_id, changes=body.changes(), calendar_id=calendar_id)
    )
    return EventResponse.from_event(event)


@app.delete(
    "/api/calendar/events/{event_id}",
    response_model=DeleteEventResponse,
    summary="Delete event",
    tags=["Events"],
    dependencies=[Depends(require_api_key)],
    responses={404: {"model": ErrorResponse}},
)
async def delete_event(
    event_id: str,
    calendar_id: str = Query("primary", alias="calendarId"),
    calendar: CalendarService = Depends(get_calendar_service),
) -> DeleteEventResponse:
    """Delete an event. A missing event is reported as 404."""
    await calendar.delete_event(calendar_id, event_id)
    return DeleteEventResponse(ok=True)


# =============================================================================
# Run with Uvicorn
# =============================================================================


def run_server(host: str | None = None, port: int | None = None, reload: bool = False):
    """Run the API server with Uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
    )


if __name__ == "__main__":
    run_server(reload=get_settings().is_development)
