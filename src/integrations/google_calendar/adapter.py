"""
Mapping between gateway requests and Google Calendar API format.

Handles:
- DateTime formatting (RFC 3339 for Google API, offsets preserved)
- All-day event handling
- Recurrence rules, passed through verbatim
- Partial update bodies that only carry supplied fields
"""

from datetime import datetime, timezone
from typing import Any, Optional

from dateutil.parser import isoparse

from src.integrations.base import CalendarEvent, CreateEventRequest


class GoogleCalendarAdapter:
    """Maps between gateway types and Google Calendar API format."""

    @staticmethod
    def to_google_event(
        event: CreateEventRequest,
        default_time_zone: Optional[str] = None,
    ) -> dict:
        """
        Convert a create request to Google Calendar API format.

        Args:
            event: Create request
            default_time_zone: IANA zone used for recurring events when the
                request does not name one (Google requires one to expand RRULEs)

        Returns:
            Dict suitable for Google Calendar API insert
        """
        time_zone = event.time_zone
        if not time_zone and event.recurrence:
            time_zone = default_time_zone

        google_event: dict = {
            "summary": event.summary,
            "start": _event_time(event.start, time_zone),
            "end": _event_time(event.end, time_zone),
        }

        if event.description is not None:
            google_event["description"] = event.description

        if event.recurrence:
            google_event["recurrence"] = list(event.recurrence)

        return google_event

    @staticmethod
    def needs_current_event(changes: dict[str, Any]) -> bool:
        """
        Check whether building a patch body needs the stored event.

        Moving times, adding recurrence rules or changing the zone all need
        the event's current zone, and the latter two restate whichever of
        start/end the caller left out.
        """
        moves = changes.get("start") is not None or changes.get("end") is not None
        pins_zone = bool(changes.get("recurrence")) or bool(changes.get("time_zone"))
        restates_both = changes.get("start") is not None and changes.get("end") is not None
        if changes.get("time_zone") and restates_both:
            return False
        return moves or pins_zone

    @staticmethod
    def to_update_body(
        changes: dict[str, Any],
        default_time_zone: Optional[str] = None,
        current: Optional[dict] = None,
    ) -> dict:
        """
        Convert supplied update fields to a Google Calendar patch body.

        Keys absent from `changes` are absent from the body, so the provider
        keeps their current values. Start/end carry a timeZone: the caller's,
        else the stored event's, else `default_time_zone`. When recurrence
        rules or a zone are supplied without both times, the missing times
        are restated from `current` so Google can expand the rules.

        Args:
            changes: Supplied fields (summary, description, start, end,
                recurrence, time_zone)
            default_time_zone: IANA zone used when neither the caller nor
                the stored event names one
            current: The stored event as returned by Google, if fetched

        Returns:
            Dict suitable for Google Calendar API patch
        """
        google_updates: dict = {}
        time_zone = (
            changes.get("time_zone") or _current_time_zone(current) or default_time_zone
        )

        if "summary" in changes:
            google_updates["summary"] = changes["summary"]

        if "description" in changes:
            google_updates["description"] = changes["description"]

        if changes.get("start") is not None:
            google_updates["start"] = _event_time(changes["start"], time_zone)

        if changes.get("end") is not None:
            google_updates["end"] = _event_time(changes["end"], time_zone)

        if "recurrence" in changes:
            # An empty list removes the recurrence
            google_updates["recurrence"] = list(changes["recurrence"] or [])

        if current is not None and (changes.get("recurrence") or changes.get("time_zone")):
            for key in ("start", "end"):
                existing = current.get(key) or {}
                if key not in google_updates and "dateTime" in existing:
                    google_updates[key] = {"dateTime": existing["dateTime"]}
                    if time_zone:
                        google_updates[key]["timeZone"] = time_zone

        return google_updates

    @staticmethod
    def from_google_event(google_event: dict, calendar_id: str) -> CalendarEvent:
        """
        Convert Google Calendar event to the normalized shape.

        Args:
            google_event: Event from Google Calendar API
            calendar_id: Calendar ID the event belongs to

        Returns:
            CalendarEvent
        """
        start_data = google_event.get("start", {})
        end_data = google_event.get("end", {})

        if "dateTime" in start_data:
            start = _parse_datetime(start_data["dateTime"])
            end = _parse_datetime(end_data["dateTime"]) if "dateTime" in end_data else None
            all_day = False
        elif "date" in start_data:
            start = _parse_date(start_data["date"])
            end = _parse_date(end_data["date"]) if "date" in end_data else None
            all_day = True
        else:
            # Cancelled instances carry no times
            start = None
            end = None
            all_day = False

        return CalendarEvent(
            id=google_event.get("id", ""),
            calendar_id=calendar_id,
            summary=google_event.get("summary"),
            description=google_event.get("description"),
            start=start,
            end=end,
            all_day=all_day,
            location=google_event.get("location"),
            recurrence=list(google_event.get("recurrence", [])),
            status=google_event.get("status", "confirmed"),
            html_link=google_event.get("htmlLink"),
            recurring_event_id=google_event.get("recurringEventId"),
        )


def _current_time_zone(current: Optional[dict]) -> Optional[str]:
    if not current:
        return None
    return (current.get("start") or {}).get("timeZone")


def _event_time(dt: datetime, time_zone: Optional[str] = None) -> dict:
    value: dict = {"dateTime": _format_datetime(dt)}
    if time_zone:
        value["timeZone"] = time_zone
    return value


def _format_datetime(dt: datetime) -> str:
    """
    Format datetime to RFC 3339 format for Google API.

    The caller's UTC offset is kept; naive values are taken as UTC.

    Args:
        dt: Datetime to format

    Returns:
        RFC 3339 formatted string
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def _parse_datetime(dt_str: str) -> datetime:
    """
    Parse datetime string from Google API.

    Args:
        dt_str: RFC 3339 datetime string

    Returns:
        Parsed timezone-aware datetime
    """
    dt = isoparse(dt_str)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _parse_date(date_str: str) -> datetime:
    """
    Parse date string from Google API (for all-day events).

    Args:
        date_str: Date string in YYYY-MM-DD format

    Returns:
        Datetime at midnight UTC
    """
    return datetime.strptime(date_str, "%Y-%m-%d").replace(tzinfo=timezone.utc)
