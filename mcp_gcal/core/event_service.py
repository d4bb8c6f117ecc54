"""
mcp-gcal — Calendar event operations.

The five operations shared by the MCP tool server and the REST API. Each one
validates its parameters, obtains the authenticated client from the injected
resolver, makes a single Google Calendar call (delete and update read first)
and projects the result into EventResponse.

Nothing is retried. Every failure leaving this module is a CalendarError.
"""

from __future__ import annotations

import logging
from typing import Any

from mcp_gcal.core.errors import (
    ErrorKind,
    normalize_error,
    not_found_error,
    validate_iso_date,
    validate_required,
)
from mcp_gcal.data.models import (
    CreateEventParams,
    DeleteEventParams,
    DeleteResponse,
    EventResponse,
    GetEventParams,
    ListEventsParams,
    UpdateEventParams,
)
from mcp_gcal.integrations.google_auth import CalendarClientResolver

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Europe/Madrid"
DEFAULT_MAX_RESULTS = 50


# ---------------------------------------------------------------------------
# Projection helpers
# ---------------------------------------------------------------------------


def _project_time(value: dict | None) -> dict | None:
    if not value:
        return None
    return {
        "dateTime": value.get("dateTime") or None,
        "date": value.get("date") or None,
        "timeZone": value.get("timeZone") or None,
    }


def _to_event_response(item: dict) -> EventResponse:
    """Full projection used by create, get and update."""
    attendees = item.get("attendees")
    return EventResponse.model_validate(
        {
            "id": item.get("id", ""),
            "summary": item.get("summary") or None,
            "description": item.get("description") or None,
            "location": item.get("location") or None,
            "start": _project_time(item.get("start")),
            "end": _project_time(item.get("end")),
            "status": item.get("status") or None,
            "htmlLink": item.get("htmlLink") or None,
            "created": item.get("created") or None,
            "updated": item.get("updated") or None,
            "attendees": [
                {
                    "email": a.get("email", ""),
                    "responseStatus": a.get("responseStatus") or None,
                    "displayName": a.get("displayName") or None,
                }
                for a in attendees
            ]
            if attendees is not None
            else None,
        }
    )


def _to_list_item(item: dict) -> EventResponse:
    """Terse projection for list results."""
    return EventResponse.model_validate(
        {
            "id": item.get("id", ""),
            "summary": item.get("summary") or None,
            "start": _project_time(item.get("start")),
            "end": _project_time(item.get("end")),
            "status": item.get("status") or None,
            "htmlLink": item.get("htmlLink") or None,
        }
    )


def _send_updates(attendees: list[str] | None) -> str:
    return "all" if attendees else "none"


def _build_event_body(params: CreateEventParams, time_zone: str) -> dict[str, Any]:
    """Construct a Google Calendar API event body from create parameters."""
    body: dict[str, Any] = {
        "summary": params.summary,
        "start": {"dateTime": params.start, "timeZone": time_zone},
        "end": {"dateTime": params.end, "timeZone": time_zone},
    }
    if params.description is not None:
        body["description"] = params.description
    if params.location is not None:
        body["location"] = params.location
    if params.attendees is not None:
        body["attendees"] = [{"email": email} for email in params.attendees]
    return body


def _merge_event_body(current: dict[str, Any], params: UpdateEventParams) -> dict[str, Any]:
    """Overlay only the caller-supplied fields on the current event."""
    time_zone = (
        params.time_zone
        or (current.get("start") or {}).get("timeZone")
        or DEFAULT_TIMEZONE
    )
    merged = dict(current)
    if params.summary is not None:
        merged["summary"] = params.summary
    if params.description is not None:
        merged["description"] = params.description
    if params.location is not None:
        merged["location"] = params.location
    if params.start:
        merged["start"] = {"dateTime": params.start, "timeZone": time_zone}
    if params.end:
        merged["end"] = {"dateTime": params.end, "timeZone": time_zone}
    if params.attendees is not None:
        merged["attendees"] = [{"email": email} for email in params.attendees]
    return merged


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class EventService:
    """Google Calendar event operations over an injected credential resolver."""

    def __init__(self, resolver: CalendarClientResolver) -> None:
        self._resolver = resolver

    async def create_event(self, params: CreateEventParams) -> EventResponse:
        logger.info("Tool request: create_event summary=%r start=%s", params.summary, params.start)

        validate_required(params.summary, "summary")
        validate_required(params.start, "start")
        validate_required(params.end, "end")
        validate_iso_date(params.start, "start")
        validate_iso_date(params.end, "end")

        time_zone = params.time_zone or DEFAULT_TIMEZONE
        body = _build_event_body(params, time_zone)

        try:
            handle = await self._resolver.resolve()
            calendar_id = self._resolver.resolve_calendar_id(params.calendar_id)
            created = await handle.execute(
                handle.service.events().insert(
                    calendarId=calendar_id,
                    body=body,
                    sendUpdates=_send_updates(params.attendees),
                )
            )
        except Exception as exc:
            error = normalize_error(exc)
            logger.error("Failed to create event: %s", error.message)
            if error is exc:
                raise
            raise error from exc

        result = _to_event_response(created)
        logger.info("Tool response: create_event eventId=%s link=%s", result.id, result.html_link or "")
        return result

    async def get_event(self, params: GetEventParams) -> EventResponse:
        logger.info("Tool request: get_event eventId=%s", params.event_id)

        validate_required(params.event_id, "eventId")

        try:
            handle = await self._resolver.resolve()
            calendar_id = self._resolver.resolve_calendar_id(params.calendar_id)
            event = await handle.execute(
                handle.service.events().get(calendarId=calendar_id, eventId=params.event_id)
            )
        except Exception as exc:
            error = normalize_error(exc)
            logger.error("Failed to get event %s: %s", params.event_id, error.message)
            if error is exc:
                raise
            raise error from exc

        result = _to_event_response(event)
        logger.info("Tool response: get_event eventId=%s", result.id)
        return result

    async def list_events(self, params: ListEventsParams) -> list[EventResponse]:
        logger.info(
            "Tool request: list_events timeMin=%s timeMax=%s q=%r",
            params.time_min,
            params.time_max,
            params.q,
        )

        validate_required(params.time_min, "timeMin")
        validate_required(params.time_max, "timeMax")
        validate_iso_date(params.time_min, "timeMin")
        validate_iso_date(params.time_max, "timeMax")

        max_results = params.max_results or DEFAULT_MAX_RESULTS

        try:
            handle = await self._resolver.resolve()
            calendar_id = self._resolver.resolve_calendar_id(params.calendar_id)
            response = await handle.execute(
                handle.service.events().list(
                    calendarId=calendar_id,
                    timeMin=params.time_min,
                    timeMax=params.time_max,
                    maxResults=max_results,
                    singleEvents=True,
                    orderBy="startTime",
                    q=params.q,
                )
            )
        except Exception as exc:
            error = normalize_error(exc)
            logger.error(
                "Failed to list events between %s and %s: %s",
                params.time_min,
                params.time_max,
                error.message,
            )
            if error is exc:
                raise
            raise error from exc

        events = [_to_list_item(item) for item in response.get("items", [])]
        logger.info("Tool response: list_events count=%d", len(events))
        return events

    async def update_event(self, params: UpdateEventParams) -> EventResponse:
        logger.info("Tool request: update_event eventId=%s", params.event_id)

        validate_required(params.event_id, "eventId")
        if params.start:
            validate_iso_date(params.start, "start")
        if params.end:
            validate_iso_date(params.end, "end")

        try:
            handle = await self._resolver.resolve()
            calendar_id = self._resolver.resolve_calendar_id(params.calendar_id)
            events = handle.service.events()
            current = await handle.execute(
                events.get(calendarId=calendar_id, eventId=params.event_id)
            )
            updated = await handle.execute(
                events.update(
                    calendarId=calendar_id,
                    eventId=params.event_id,
                    body=_merge_event_body(current, params),
                    sendUpdates=_send_updates(params.attendees),
                )
            )
        except Exception as exc:
            error = normalize_error(exc)
            logger.error("Failed to update event %s: %s", params.event_id, error.message)
            if error is exc:
                raise
            raise error from exc

        result = _to_event_response(updated)
        logger.info("Tool response: update_event eventId=%s", result.id)
        return result

    async def delete_event(self, params: DeleteEventParams) -> DeleteResponse:
        logger.info("Tool request: delete_event eventId=%s", params.event_id)

        validate_required(params.event_id, "eventId")

        try:
            handle = await self._resolver.resolve()
            calendar_id = self._resolver.resolve_calendar_id(params.calendar_id)
            events = handle.service.events()

            try:
                await handle.execute(events.get(calendarId=calendar_id, eventId=params.event_id))
            except Exception as exc:
                if normalize_error(exc).kind is ErrorKind.NOT_FOUND:
                    raise not_found_error(
                        f"Event '{params.event_id}' does not exist in calendar '{calendar_id}'",
                        {"eventId": params.event_id, "calendarId": calendar_id},
                    ) from exc
                raise

            await handle.execute(
                events.delete(calendarId=calendar_id, eventId=params.event_id, sendUpdates="all")
            )
        except Exception as exc:
            error = normalize_error(exc)
            logger.error("Failed to delete event %s: %s", params.event_id, error.message)
            if error is exc:
                raise
            raise error from exc

        logger.info("Tool response: delete_event eventId=%s success=True", params.event_id)
        return DeleteResponse(success=True, message=f"Event '{params.event_id}' deleted")
