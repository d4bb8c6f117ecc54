"""
mcp-gcal — Data Models.

Request parameter types for the five calendar operations and the normalized
projection of a Google Calendar event returned to callers. Events themselves
live in Google Calendar; nothing here is persisted.

Wire names are camelCase (``calendarId``, ``timeZone``, ``htmlLink``) to match
the Google event schema; attributes are snake_case. Required fields are
optional at the type level on purpose: the operation handlers report missing
values as validation errors naming the field.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Serialize with camelCase keys, omitting unset values."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Event projection
# ---------------------------------------------------------------------------


class Attendee(_CamelModel):
    email: str
    response_status: str | None = None
    display_name: str | None = None


class EventDateTime(_CamelModel):
    """Either a precise timestamp (date_time) or a whole-day date."""

    date_time: str | None = None
    date: str | None = None
    time_zone: str | None = None


class EventResponse(_CamelModel):
    """Normalized view of a Google Calendar event.

    JSON example:
    {
        "id": "abc123",
        "summary": "Dentist appointment",
        "start": {"dateTime": "2025-02-14T16:00:00+01:00", "timeZone": "Europe/Madrid"},
        "end": {"dateTime": "2025-02-14T17:00:00+01:00", "timeZone": "Europe/Madrid"},
        "status": "confirmed",
        "htmlLink": "https://www.google.com/calendar/event?eid=..."
    }
    """

    id: str
    summary: str | None = None
    description: str | None = None
    location: str | None = None
    start: EventDateTime | None = None
    end: EventDateTime | None = None
    status: str | None = None
    html_link: str | None = None
    created: str | None = None
    updated: str | None = None
    attendees: list[Attendee] | None = None


class DeleteResponse(_CamelModel):
    success: bool
    message: str


# ---------------------------------------------------------------------------
# Operation parameters
# ---------------------------------------------------------------------------


class CreateEventParams(_CamelModel):
    summary: str | None = None
    description: str | None = None
    location: str | None = None
    start: str | None = None        # ISO 8601, e.g. 2025-11-30T10:00:00+01:00
    end: str | None = None
    calendar_id: str | None = None
    time_zone: str | None = None
    attendees: list[str] | None = None  # attendee emails


class GetEventParams(_CamelModel):
    event_id: str | None = None
    calendar_id: str | None = None


class ListEventsParams(_CamelModel):
    time_min: str | None = None
    time_max: str | None = None
    max_results: int | None = None
    calendar_id: str | None = None
    q: str | None = None            # free-text filter


class UpdateEventParams(_CamelModel):
    """Partial update: fields left as None keep their current value."""

    event_id: str | None = None
    calendar_id: str | None = None
    summary: str | None = None
    description: str | None = None
    location: str | None = None
    start: str | None = None
    end: str | None = None
    time_zone: str | None = None
    attendees: list[str] | None = None


class DeleteEventParams(_CamelModel):
    event_id: str | None = None
    calendar_id: str | None = None
