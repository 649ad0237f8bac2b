"""
Pydantic request and response models for the Calendar Actions API.

Field names are camelCase on the wire (calendarId, timeMin, htmlLink) and
snake_case in Python.
"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from src.integrations.base import CalendarEvent


class CamelModel(BaseModel):
    """Base model serializing with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Request Models
# =============================================================================


class CreateEventBody(CamelModel):
    """Body for POST /api/calendar/events."""

    calendar_id: str = Field(default="primary", description="Calendar to create the event in")
    summary: str = Field(..., min_length=1, description="Event title", examples=["Standup"])
    description: Optional[str] = Field(None, description="Event description")
    start: AwareDatetime = Field(
        ...,
        description="Start instant with UTC offset (ISO 8601)",
        examples=["2025-01-06T09:00:00-05:00"],
    )
    end: AwareDatetime = Field(
        ...,
        description="End instant with UTC offset (ISO 8601)",
        examples=["2025-01-06T09:15:00-05:00"],
    )
    recurrence: Optional[list[str]] = Field(
        None,
        description="Recurrence rules sent to Google as-is",
        examples=[["RRULE:FREQ=WEEKLY;BYDAY=MO,TU,WE,TH,FR"]],
    )
    time_zone: Optional[str] = Field(
        None,
        description="IANA timezone used to expand recurrences (e.g. America/New_York)",
    )

    @model_validator(mode="after")
    def validate_end_after_start(self) -> "CreateEventBody":
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self


class UpdateEventBody(CamelModel):
    """
    Body for PATCH /api/calendar/events/{eventId}.

    Only the fields present in the request are changed.
    """

    summary: Optional[str] = Field(None, description="New title")
    description: Optional[str] = Field(None, description="New description; empty string clears it")
    start: Optional[AwareDatetime] = Field(None, description="New start instant")
    end: Optional[AwareDatetime] = Field(None, description="New end instant")
    recurrence: Optional[list[str]] = Field(
        None,
        description="Replacement recurrence rules; an empty list removes recurrence",
    )
    time_zone: Optional[str] = Field(None, description="IANA timezone for start/end")

    @model_validator(mode="after")
    def validate_times(self) -> "UpdateEventBody":
        for name in ("start", "end"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null; omit it to keep the current value")
        if self.start is not None and self.end is not None and self.end <= self.start:
            raise ValueError("end must be after start")
        return self

    def changes(self) -> dict[str, Any]:
        """Fields the caller actually supplied, keyed by snake_case name."""
        return self.model_dump(exclude_unset=True, include=set(type(self).model_fields))


# =============================================================================
# Response Models
# =============================================================================


class EventResponse(CamelModel):
    """Normalized calendar event."""

    id: str = Field(..., description="Google-assigned event ID")
    calendar_id: str = Field(..., description="Calendar the event belongs to")
    summary: Optional[str] = Field(None, description="Event title")
    description: Optional[str] = Field(None, description="Event description")
    start: Optional[datetime] = Field(None, description="Start instant (ISO 8601)")
    end: Optional[datetime] = Field(None, description="End instant (ISO 8601)")
    all_day: bool = Field(default=False, description="True for date-only events")
    location: Optional[str] = Field(None, description="Event location")
    recurrence: list[str] = Field(default_factory=list, description="Recurrence rules")
    status: str = Field(default="confirmed", description="confirmed, tentative or cancelled")
    html_link: Optional[str] = Field(None, description="Link to the event in Google Calendar")
    recurring_event_id: Optional[str] = Field(
        None, description="Parent recurring event for expanded instances"
    )

    @classmethod
    def from_event(cls, event: CalendarEvent) -> "EventResponse":
        return cls(
            id=event.id,
            calendar_id=event.calendar_id,
            summary=event.summary,
            description=event.description,
            start=event.start,
            end=event.end,
            all_day=event.all_day,
            location=event.location,
            recurrence=event.recurrence,
            status=event.status,
            html_link=event.html_link,
            recurring_event_id=event.recurring_event_id,
        )


class EventListResponse(BaseModel):
    """Events in a time window, ascending by start."""

    items: list[EventResponse] = Field(default_factory=list)


class DeleteEventResponse(BaseModel):
    """Acknowledgement of a delete."""

    ok: bool = True


class HealthResponse(CamelModel):
    """Health check response."""

    status: Literal["healthy", "degraded"] = Field(..., description="Overall health")
    version: str = Field(..., description="API version")
    store_backend: Optional[str] = Field(None, description="database or file")
    oauth_configured: bool = Field(..., description="Whether OAuth client identity is set")


class ErrorResponse(BaseModel):
    """Error envelope returned by every failing endpoint."""

    error: str = Field(..., description="Stable error code, e.g. AUTH_REQUIRED")
    message: str = Field(..., description="Human-readable message")
    retryable: bool = Field(default=False, description="Whether retrying may succeed")


class AuthCallbackResponse(CamelModel):
    """Response after successful OAuth callback."""

    success: bool
    account_id: str
    message: str


class AuthStatusResponse(CamelModel):
    """Whether the account has a stored credential."""

    connected: bool
    account_id: str
    expiry: Optional[datetime] = None
    scopes: list[str] = Field(default_factory=list)
    has_refresh_token: bool = False
