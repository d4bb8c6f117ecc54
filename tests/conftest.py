"""Shared test fixtures and configuration.

Blanks out credential env vars so the settings singleton never picks up a
developer's .env, and provides an in-memory stand-in for the Google Calendar
events resource so operations can be exercised end to end without network.
"""

import os

# Patch env vars BEFORE any mcp_gcal imports (load_dotenv never overrides)
for _key in (
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "GOOGLE_REFRESH_TOKEN",
    "GOOGLE_SERVICE_ACCOUNT_KEY",
    "GOOGLE_SERVICE_ACCOUNT_KEY_FILE",
    "GOOGLE_CALENDAR_ID",
):
    os.environ[_key] = ""
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import copy
import json
from datetime import datetime

import httplib2
import pytest
from googleapiclient.errors import HttpError


def http_error(status: int, message: str = "Error") -> HttpError:
    """Build a googleapiclient HttpError the way the client library raises it."""
    resp = httplib2.Response({"status": str(status)})
    content = json.dumps({"error": {"code": status, "message": message}}).encode()
    return HttpError(resp, content, uri="https://www.googleapis.com/calendar/v3/calendars/primary/events")


class FakeRequest:
    """Mimics googleapiclient.http.HttpRequest: work happens on execute()."""

    def __init__(self, fn):
        self._fn = fn

    def execute(self, http=None):
        return self._fn()


def _start_key(event: dict) -> datetime:
    start = event.get("start", {})
    value = start.get("dateTime") or start.get("date")
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class FakeEventsResource:
    """In-memory Calendar v3 events() resource; records every call."""

    def __init__(self):
        self.store: dict[tuple[str, str], dict] = {}
        self.calls: list[tuple[str, dict]] = []
        self._counter = 0

    def add(self, calendar_id: str, event: dict) -> dict:
        self.store[(calendar_id, event["id"])] = copy.deepcopy(event)
        return event

    def _lookup(self, calendar_id: str, event_id: str) -> dict:
        try:
            return self.store[(calendar_id, event_id)]
        except KeyError:
            raise http_error(404, "Not Found") from None

    def insert(self, calendarId, body, **kwargs):
        self.calls.append(("insert", {"calendarId": calendarId, "body": body, **kwargs}))

        def run():
            self._counter += 1
            event_id = f"evt{self._counter}"
            event = {
                **copy.deepcopy(body),
                "id": event_id,
                "status": "confirmed",
                "htmlLink": f"https://www.google.com/calendar/event?eid={event_id}",
                "created": "2025-01-01T00:00:00.000Z",
                "updated": "2025-01-01T00:00:00.000Z",
            }
            self.store[(calendarId, event_id)] = event
            return copy.deepcopy(event)

        return FakeRequest(run)

    def get(self, calendarId, eventId, **kwargs):
        self.calls.append(("get", {"calendarId": calendarId, "eventId": eventId, **kwargs}))
        return FakeRequest(lambda: copy.deepcopy(self._lookup(calendarId, eventId)))

    def list(self, calendarId, timeMin, timeMax, maxResults=250, q=None, **kwargs):
        self.calls.append(
            ("list", {"calendarId": calendarId, "timeMin": timeMin, "timeMax": timeMax,
                      "maxResults": maxResults, "q": q, **kwargs})
        )

        def run():
            lower = datetime.fromisoformat(timeMin.replace("Z", "+00:00"))
            upper = datetime.fromisoformat(timeMax.replace("Z", "+00:00"))
            if lower > upper:
                raise http_error(400, "The specified time range is empty.")
            items = [
                copy.deepcopy(e)
                for (cal, _), e in self.store.items()
                if cal == calendarId and (not q or q.lower() in e.get("summary", "").lower())
            ]
            items.sort(key=_start_key)
            return {"items": items[:maxResults]}

        return FakeRequest(run)

    def update(self, calendarId, eventId, body, **kwargs):
        self.calls.append(("update", {"calendarId": calendarId, "eventId": eventId, "body": body, **kwargs}))

        def run():
            self._lookup(calendarId, eventId)
            event = {**copy.deepcopy(body), "id": eventId, "updated": "2025-01-02T00:00:00.000Z"}
            self.store[(calendarId, eventId)] = event
            return copy.deepcopy(event)

        return FakeRequest(run)

    def delete(self, calendarId, eventId, **kwargs):
        self.calls.append(("delete", {"calendarId": calendarId, "eventId": eventId, **kwargs}))

        def run():
            self._lookup(calendarId, eventId)
            del self.store[(calendarId, eventId)]
            return ""

        return FakeRequest(run)

    def last_call(self, method: str) -> dict:
        return [kwargs for name, kwargs in self.calls if name == method][-1]


class FakeCalendarService:
    def __init__(self):
        self.events_resource = FakeEventsResource()

    def events(self):
        return self.events_resource


@pytest.fixture
def oauth_settings():
    from mcp_gcal.config import Settings

    return Settings(
        GOOGLE_CLIENT_ID="client-id",
        GOOGLE_CLIENT_SECRET="client-secret",
        GOOGLE_REFRESH_TOKEN="refresh-token",
    )


@pytest.fixture
def fake_calendar():
    return FakeCalendarService()


@pytest.fixture
def authenticator(fake_calendar):
    """Stand-in for the real handshake; counts how often it runs."""

    def _authenticate(config):
        _authenticate.calls.append(config)
        return fake_calendar, None

    _authenticate.calls = []
    return _authenticate


@pytest.fixture
def resolver(oauth_settings, authenticator):
    from mcp_gcal.integrations.google_auth import CalendarClientResolver

    return CalendarClientResolver(oauth_settings, authenticator=authenticator)


@pytest.fixture
def event_service(resolver):
    from mcp_gcal.core.event_service import EventService

    return EventService(resolver)
