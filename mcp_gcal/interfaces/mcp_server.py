"""
mcp-gcal — MCP tool server.

Exposes the five calendar operations as MCP tools over stdio. Successful calls
return the event JSON as text content; failures come back as error-flagged
results (isError) whose text is the CalendarError payload, so the calling
model can tell them apart and read the error kind.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server
from pydantic import BaseModel, ValidationError

from mcp_gcal.config import configure_logging, load_settings, settings
from mcp_gcal.core.errors import CalendarError, normalize_error, validation_error
from mcp_gcal.core.event_service import EventService
from mcp_gcal.data.models import (
    CreateEventParams,
    DeleteEventParams,
    GetEventParams,
    ListEventsParams,
    UpdateEventParams,
)
from mcp_gcal.integrations.google_auth import CalendarClientResolver

logger = logging.getLogger(__name__)

SERVER_NAME = "mcp-gcal"
SERVER_VERSION = "0.1.0"

_CALENDAR_ID = {
    "type": "string",
    "description": "Calendar ID (default: GOOGLE_CALENDAR_ID or primary)",
}
_ATTENDEES = {
    "type": "array",
    "items": {"type": "string"},
    "description": "Attendee email addresses",
}


class ToolCallError(Exception):
    """A failed tool call.

    The low-level server reports a raised exception as an isError result
    whose text is str(exc), so str() is the JSON error payload.
    """

    def __init__(self, error: CalendarError) -> None:
        self.error = error
        super().__init__(json.dumps(error.to_dict(), indent=2, ensure_ascii=False, default=str))


@dataclass(frozen=True)
class ToolSpec:
    tool: types.Tool
    params_model: type[BaseModel]
    handler: str  # EventService method name


TOOL_SPECS: tuple[ToolSpec, ...] = (
    ToolSpec(
        tool=types.Tool(
            name="create_event",
            title="Create Event",
            description="Create a new event in Google Calendar.",
            inputSchema={
                "type": "object",
                "properties": {
                    "summary": {"type": "string", "description": "Event title (required)"},
                    "description": {"type": "string", "description": "Event description"},
                    "location": {"type": "string", "description": "Event location"},
                    "start": {
                        "type": "string",
                        "description": "Start in ISO 8601 (e.g. 2025-11-30T10:00:00+01:00)",
                    },
                    "end": {"type": "string", "description": "End in ISO 8601"},
                    "calendarId": _CALENDAR_ID,
                    "timeZone": {
                        "type": "string",
                        "description": "IANA time zone (default: Europe/Madrid)",
                    },
                    "attendees": _ATTENDEES,
                },
                "required": ["summary", "start", "end"],
            },
            annotations=types.ToolAnnotations(title="Create Event", readOnlyHint=False),
        ),
        params_model=CreateEventParams,
        handler="create_event",
    ),
    ToolSpec(
        tool=types.Tool(
            name="get_event",
            title="Get Event",
            description="Get a single event by its ID.",
            inputSchema={
                "type": "object",
                "properties": {
                    "eventId": {"type": "string", "description": "Event ID (required)"},
                    "calendarId": _CALENDAR_ID,
                },
                "required": ["eventId"],
            },
            annotations=types.ToolAnnotations(title="Get Event", readOnlyHint=True),
        ),
        params_model=GetEventParams,
        handler="get_event",
    ),
    ToolSpec(
        tool=types.Tool(
            name="list_events",
            title="List Events",
            description=(
                "List events between two instants, recurring events expanded "
                "and ordered by start time."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "timeMin": {"type": "string", "description": "Lower bound in ISO 8601 (required)"},
                    "timeMax": {"type": "string", "description": "Upper bound in ISO 8601 (required)"},
                    "maxResults": {
                        "type": "integer",
                        "description": "Maximum number of events (default: 50)",
                        "minimum": 1,
                    },
                    "calendarId": _CALENDAR_ID,
                    "q": {"type": "string", "description": "Free-text filter"},
                },
                "required": ["timeMin", "timeMax"],
            },
            annotations=types.ToolAnnotations(title="List Events", readOnlyHint=True),
        ),
        params_model=ListEventsParams,
        handler="list_events",
    ),
    ToolSpec(
        tool=types.Tool(
            name="update_event",
            title="Update Event",
            description="Update an existing event. Only the fields provided are changed.",
            inputSchema={
                "type": "object",
                "properties": {
                    "eventId": {"type": "string", "description": "Event ID (required)"},
                    "calendarId": _CALENDAR_ID,
                    "summary": {"type": "string", "description": "New title"},
                    "description": {"type": "string", "description": "New description"},
                    "location": {"type": "string", "description": "New location"},
                    "start": {"type": "string", "description": "New start in ISO 8601"},
                    "end": {"type": "string", "description": "New end in ISO 8601"},
                    "timeZone": {
                        "type": "string",
                        "description": "Time zone for the new start/end (default: the event's)",
                    },
                    "attendees": {
                        **_ATTENDEES,
                        "description": "Replacement list of attendee emails",
                    },
                },
                "required": ["eventId"],
            },
            annotations=types.ToolAnnotations(title="Update Event", readOnlyHint=False),
        ),
        params_model=UpdateEventParams,
        handler="update_event",
    ),
    ToolSpec(
        tool=types.Tool(
            name="delete_event",
            title="Delete Event",
            description="Delete an event and notify its attendees.",
            inputSchema={
                "type": "object",
                "properties": {
                    "eventId": {"type": "string", "description": "Event ID (required)"},
                    "calendarId": _CALENDAR_ID,
                },
                "required": ["eventId"],
            },
            annotations=types.ToolAnnotations(
                title="Delete Event", readOnlyHint=False, destructiveHint=True
            ),
        ),
        params_model=DeleteEventParams,
        handler="delete_event",
    ),
)

_SPECS_BY_NAME = {spec.tool.name: spec for spec in TOOL_SPECS}


def _format_result(result: Any) -> str:
    if isinstance(result, list):
        payload: Any = [item.to_wire() for item in result]
    else:
        payload = result.to_wire()
    return json.dumps(payload, indent=2, ensure_ascii=False)


async def dispatch_tool(
    service: EventService, name: str, arguments: dict[str, Any] | None
) -> list[types.TextContent]:
    """Run one tool call against the event service.

    Raises:
        ToolCallError: on any failure, carrying the normalized error.
    """
    spec = _SPECS_BY_NAME.get(name)
    if spec is None:
        raise ToolCallError(validation_error(f"Unknown tool: {name}", {"tool": name}))

    try:
        params = spec.params_model.model_validate(arguments or {})
    except ValidationError as exc:
        raise ToolCallError(
            validation_error(
                f"Invalid arguments for tool '{name}'",
                {
                    "errors": exc.errors(
                        include_url=False, include_context=False, include_input=False
                    )
                },
            )
        ) from exc

    try:
        result = await getattr(service, spec.handler)(params)
    except Exception as exc:
        error = normalize_error(exc)
        logger.warning("Tool %s failed: [%s] %s", name, error.kind.value, error.message)
        raise ToolCallError(error) from exc

    return [types.TextContent(type="text", text=_format_result(result))]


def build_server(service: EventService) -> Server:
    """Create the MCP server with the calendar tools bound to service."""
    server = Server(SERVER_NAME, version=SERVER_VERSION)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [spec.tool for spec in TOOL_SPECS]

    # Arguments are validated by the operation handlers so that missing
    # fields come back as validation_error payloads.
    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[types.TextContent]:
        return await dispatch_tool(service, name, arguments)

    return server


async def serve(service: EventService) -> None:
    server = build_server(service)
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def main() -> None:
    """Entry point: start the MCP server on stdio."""
    configure_logging()
    logger.info("Starting %s MCP server...", SERVER_NAME)
    service = EventService(CalendarClientResolver(settings, settings_loader=load_settings))
    asyncio.run(serve(service))


if __name__ == "__main__":
    main()
