"""
Calendar gateway protocol and base types.

Defines the backend-agnostic operation requests and the normalized event
shape returned to callers.
"""

from abc import abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional, Protocol, Sequence

if TYPE_CHECKING:
    from src.auth.credential_manager import UsableCredential

# Google Calendar caps maxResults for events.list at 2500
MAX_RESULTS_CEILING = 2500

UPDATABLE_FIELDS = frozenset(
    {"summary", "description", "start", "end", "recurrence", "time_zone"}
)


@dataclass
class CalendarEvent:
    """
    Normalized event representation.

    Mapped from the provider format by the adapter so callers never depend
    on provider-specific shapes.
    """

    id: str
    calendar_id: str
    summary: Optional[str]
    start: Optional[datetime]
    end: Optional[datetime]
    all_day: bool = False
    description: Optional[str] = None
    location: Optional[str] = None
    recurrence: list[str] = field(default_factory=list)
    status: str = "confirmed"
    html_link: Optional[str] = None
    recurring_event_id: Optional[str] = None


@dataclass
class ListEventsQuery:
    """Time window query; recurring events are expanded into instances."""

    time_min: datetime
    time_max: datetime
    calendar_id: str = "primary"
    max_results: int = 25

    @property
    def clamped_max_results(self) -> int:
        return max(1, min(self.max_results, MAX_RESULTS_CEILING))


@dataclass
class CreateEventRequest:
    """
    Request to create a new event.

    start and end must be timezone-aware. Recurrence rules are passed to the
    provider verbatim. time_zone is an IANA name used to expand recurrences.
    """

    summary: str
    start: datetime
    end: datetime
    calendar_id: str = "primary"
    description: Optional[str] = None
    recurrence: list[str] = field(default_factory=list)
    time_zone: Optional[str] = None


@dataclass
class UpdateEventRequest:
    """
    Partial update of an existing event.

    Only keys present in `changes` are sent. A missing key leaves the
    provider value untouched; an empty string clears it.
    """

    event_id: str
    changes: dict[str, Any]
    calendar_id: str = "primary"

    def __post_init__(self):
        unknown = set(self.changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported update fields: {sorted(unknown)}")


class CalendarGateway(Protocol):
    """
    Protocol for calendar providers.

    Implementations:
    - GoogleCalendarGateway: Uses Google Calendar API v3

    Every operation takes a credential already made fresh by the
    CredentialManager.
    """

    @abstractmethod
    async def list_events(
        self,
        credential: "UsableCredential",
        query: ListEventsQuery,
    ) -> Sequence[CalendarEvent]:
        """
        Get events within a time range, ascending by start.

        Returns:
            At most query.clamped_max_results events
        """
        ...

    @abstractmethod
    async def create_event(
        self,
        credential: "UsableCredential",
        request: CreateEventRequest,
    ) -> CalendarEvent:
        """
        Create a new event.

        Returns:
            Created event with provider-assigned ID
        """
        ...

    @abstractmethod
    async def update_event(
        self,
        credential: "UsableCredential",
        request: UpdateEventRequest,
    ) -> CalendarEvent:
        """
        Patch an existing event.

        Returns:
            Updated event
        """
        ...

    @abstractmethod
    async def delete_event(
        self,
        credential: "UsableCredential",
        calendar_id: str,
        event_id: str,
    ) -> bool:
        """
        Delete an event.

        Returns:
            True once the provider confirmed the delete
        """
        ...
