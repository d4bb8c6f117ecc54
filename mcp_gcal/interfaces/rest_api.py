"""
mcp-gcal — REST API.

Same five operations as the MCP server, over HTTP. Run with:
    uvicorn mcp_gcal.interfaces.rest_api:app
or the ``mcp-gcal-api`` console script, which honours HOST and PORT.

Error bodies are CalendarError payloads. Status codes: 401 for auth errors,
404 for not-found (on routes addressing a single event), 400 otherwise.
Unmatched method and path pairs get a generic 404 not-found body.
Unexpected exceptions become a generic 500 with no internal detail.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mcp_gcal.config import configure_logging, load_settings, settings
from mcp_gcal.core.errors import CalendarError, ErrorKind, validation_error
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

SERVICE_NAME = "mcp-gcal-api"

router = APIRouter(prefix="/api/events", tags=["events"])


def get_event_service(request: Request) -> EventService:
    return request.app.state.event_service


def _error_response(error: CalendarError, *, single_event: bool = True) -> JSONResponse:
    """Map an error kind to an HTTP status and echo the payload.

    Collection routes (create, list) have no addressed event, so not-found
    there falls into the generic 400 bucket.
    """
    if error.kind is ErrorKind.AUTH:
        status_code = status.HTTP_401_UNAUTHORIZED
    elif error.kind is ErrorKind.NOT_FOUND and single_event:
        status_code = status.HTTP_404_NOT_FOUND
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    return JSONResponse(status_code=status_code, content=error.to_dict())


# ---------------------------------------------------------------------------
# Event routes
# ---------------------------------------------------------------------------


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_event(
    params: CreateEventParams,
    service: EventService = Depends(get_event_service),
):
    try:
        result = await service.create_event(params)
    except CalendarError as exc:
        return _error_response(exc, single_event=False)
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=result.to_wire())


@router.get("/{event_id}")
async def get_event(
    event_id: str,
    calendar_id: str | None = Query(default=None, alias="calendarId"),
    service: EventService = Depends(get_event_service),
):
    try:
        result = await service.get_event(GetEventParams(event_id=event_id, calendar_id=calendar_id))
    except CalendarError as exc:
        return _error_response(exc)
    return JSONResponse(content=result.to_wire())


@router.get("")
async def list_events(
    time_min: str | None = Query(default=None, alias="timeMin"),
    time_max: str | None = Query(default=None, alias="timeMax"),
    max_results: int | None = Query(default=None, alias="maxResults"),
    calendar_id: str | None = Query(default=None, alias="calendarId"),
    q: str | None = Query(default=None),
    service: EventService = Depends(get_event_service),
):
    params = ListEventsParams(
        time_min=time_min,
        time_max=time_max,
        max_results=max_results,
        calendar_id=calendar_id,
        q=q,
    )
    try:
        result = await service.list_events(params)
    except CalendarError as exc:
        return _error_response(exc, single_event=False)
    return JSONResponse(content=[event.to_wire() for event in result])


@router.put("/{event_id}")
async def update_event(
    event_id: str,
    params: UpdateEventParams | None = None,
    service: EventService = Depends(get_event_service),
):
    params = (params or UpdateEventParams()).model_copy(update={"event_id": event_id})
    try:
        result = await service.update_event(params)
    except CalendarError as exc:
        return _error_response(exc)
    return JSONResponse(content=result.to_wire())


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(
    event_id: str,
    calendar_id: str | None = Query(default=None, alias="calendarId"),
    service: EventService = Depends(get_event_service),
):
    try:
        await service.delete_event(DeleteEventParams(event_id=event_id, calendar_id=calendar_id))
    except CalendarError as exc:
        return _error_response(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = validation_error(
        "Invalid request",
        {"errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]},
    )
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error.to_dict())


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # A known path with the wrong method is reported as an unmatched route
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": "not_found", "message": "Route not found"},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": "http_error", "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal_server_error", "message": "Internal server error"},
    )


def create_app(service: EventService | None = None) -> FastAPI:
    """Build the REST app around an event service (one is created from settings if omitted)."""
    app = FastAPI(title=SERVICE_NAME, version="0.1.0")
    app.state.event_service = service or EventService(
        CalendarClientResolver(settings, settings_loader=load_settings)
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)
    app.add_exception_handler(Exception, _handle_unexpected)

    @app.get("/health", tags=["health"])
    def health_check():
        return {"status": "ok", "service": SERVICE_NAME}

    app.include_router(router)
    return app


app = create_app()


def main() -> None:
    """Entry point: serve the REST API with uvicorn."""
    import uvicorn

    configure_logging()
    logger.info("HTTP server starting on %s:%d", settings.HOST, settings.PORT)
    logger.info("Health check available at /health")
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
