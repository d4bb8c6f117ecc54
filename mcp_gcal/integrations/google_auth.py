"""
mcp-gcal — Google Calendar Authentication.

Picks one of two credential modes from configuration and produces a cached,
authenticated Calendar v3 client:

- service account: a JSON key given as a file path or a literal value.
  Always wins when configured, even if OAuth2 values are also present.
- OAuth2: client id + client secret + refresh token. The refresh token is
  exchanged once up front so a revoked or expired token is reported at
  startup of the first request instead of mid-operation.

Every failure raised from here is an ``auth_error`` CalendarError.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable

import google_auth_httplib2
import httplib2
from google.auth.exceptions import GoogleAuthError, RefreshError
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from mcp_gcal.config import Settings
from mcp_gcal.core.errors import CalendarError, auth_error

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]
TOKEN_URI = "https://oauth2.googleapis.com/token"
PRIMARY_CALENDAR = "primary"


class AuthMode(Enum):
    OAUTH2 = "oauth2"
    SERVICE_ACCOUNT = "service_account"


# ---------------------------------------------------------------------------
# Credential configuration (one of two variants)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OAuth2Credentials:
    client_id: str
    client_secret: str
    refresh_token: str = field(repr=False)
    redirect_uri: str

    mode = AuthMode.OAUTH2


@dataclass(frozen=True)
class ServiceAccountCredentials:
    info: dict[str, Any] = field(repr=False)
    source: str  # "file:<path>" or "env"

    mode = AuthMode.SERVICE_ACCOUNT


CredentialsConfig = OAuth2Credentials | ServiceAccountCredentials


def _parse_key(raw: str, details: dict[str, Any]) -> dict[str, Any]:
    try:
        info = json.loads(raw)
    except ValueError as exc:
        raise auth_error(
            "Service account key is not valid JSON",
            {**details, "originalError": str(exc)},
        ) from exc
    if not isinstance(info, dict):
        raise auth_error("Service account key must be a JSON object", details)
    return info


def _service_account_config(settings: Settings) -> ServiceAccountCredentials:
    key_file = settings.GOOGLE_SERVICE_ACCOUNT_KEY_FILE
    if key_file:
        if settings.GOOGLE_SERVICE_ACCOUNT_KEY:
            logger.warning(
                "Both GOOGLE_SERVICE_ACCOUNT_KEY_FILE and GOOGLE_SERVICE_ACCOUNT_KEY "
                "are set; using the key file %s",
                key_file,
            )
        path = Path(key_file)
        if not path.is_file():
            raise auth_error(
                f"Service account key file not found: {key_file}",
                {"keyFilePath": key_file},
            )
        info = _parse_key(path.read_text(encoding="utf-8"), {"keyFilePath": key_file})
        logger.info("Using service account key from file %s", key_file)
        return ServiceAccountCredentials(info=info, source=f"file:{key_file}")

    info = _parse_key(settings.GOOGLE_SERVICE_ACCOUNT_KEY, {"source": "GOOGLE_SERVICE_ACCOUNT_KEY"})
    logger.info("Using service account key from environment")
    return ServiceAccountCredentials(info=info, source="env")


def _oauth2_config(settings: Settings) -> OAuth2Credentials:
    required = {
        "GOOGLE_CLIENT_ID": settings.GOOGLE_CLIENT_ID,
        "GOOGLE_CLIENT_SECRET": settings.GOOGLE_CLIENT_SECRET,
        "GOOGLE_REFRESH_TOKEN": settings.GOOGLE_REFRESH_TOKEN,
    }
    missing = [name for name, value in required.items() if not value]
    if missing:
        raise auth_error(
            f"Missing required environment variables: {', '.join(missing)}",
            {"missingVars": missing},
        )
    return OAuth2Credentials(
        client_id=settings.GOOGLE_CLIENT_ID,
        client_secret=settings.GOOGLE_CLIENT_SECRET,
        refresh_token=settings.GOOGLE_REFRESH_TOKEN,
        redirect_uri=settings.GOOGLE_REDIRECT_URI,
    )


def select_auth_mode(settings: Settings) -> AuthMode:
    """Service account if any key source is configured, else OAuth2."""
    if settings.GOOGLE_SERVICE_ACCOUNT_KEY_FILE or settings.GOOGLE_SERVICE_ACCOUNT_KEY:
        return AuthMode.SERVICE_ACCOUNT
    return AuthMode.OAUTH2


def select_credentials(settings: Settings) -> CredentialsConfig:
    """Build the active credential variant from configuration.

    Raises:
        CalendarError: (auth_error) if the selected mode is incomplete or
        its key cannot be read.
    """
    if select_auth_mode(settings) is AuthMode.SERVICE_ACCOUNT:
        return _service_account_config(settings)
    return _oauth2_config(settings)


# ---------------------------------------------------------------------------
# Authenticated client
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CalendarHandle:
    """An authenticated Calendar v3 client plus the resolved default calendar."""

    service: Any
    credentials: Any
    mode: AuthMode
    default_calendar_id: str = PRIMARY_CALENDAR

    def _authorized_http(self) -> google_auth_httplib2.AuthorizedHttp | None:
        # httplib2.Http is not thread-safe; give every call its own transport.
        if self.credentials is None:
            return None
        return google_auth_httplib2.AuthorizedHttp(self.credentials, http=httplib2.Http())

    async def execute(self, request: Any) -> Any:
        """Run a prepared googleapiclient request off the event loop."""
        return await asyncio.to_thread(request.execute, http=self._authorized_http())


def _oauth2_credentials(config: OAuth2Credentials) -> Credentials:
    creds = Credentials(
        token=None,
        refresh_token=config.refresh_token,
        client_id=config.client_id,
        client_secret=config.client_secret,
        token_uri=TOKEN_URI,
        scopes=SCOPES,
    )
    try:
        creds.refresh(Request())
    except RefreshError as exc:
        if "invalid_grant" in str(exc):
            raise auth_error(
                "The refresh token is invalid or has expired. Generate a new one.",
                {"reason": "invalid_grant", "originalError": str(exc)},
            ) from exc
        raise auth_error(
            "Could not obtain an access token from Google",
            {"originalError": str(exc)},
        ) from exc
    except GoogleAuthError as exc:
        raise auth_error(
            "Could not reach the Google token endpoint",
            {"originalError": str(exc)},
        ) from exc

    if not creds.token:
        raise auth_error("Could not obtain an access token from Google")
    logger.info("Access token obtained (OAuth2)")
    return creds


def _service_account_credentials(config: ServiceAccountCredentials) -> service_account.Credentials:
    try:
        return service_account.Credentials.from_service_account_info(config.info, scopes=SCOPES)
    except (ValueError, KeyError) as exc:
        raise auth_error(
            "Service account key is malformed",
            {"source": config.source, "originalError": str(exc)},
        ) from exc


def authenticate(config: CredentialsConfig) -> tuple[Any, Any]:
    """Perform the authentication handshake for a credential variant.

    Returns (service, credentials). Blocking: performs network I/O in
    OAuth2 mode.
    """
    if isinstance(config, ServiceAccountCredentials):
        creds = _service_account_credentials(config)
    else:
        creds = _oauth2_credentials(config)

    service = build("calendar", "v3", credentials=creds, cache_discovery=False)
    logger.info("Google Calendar service built (%s)", config.mode.value)
    return service, creds


class CalendarClientResolver:
    """Lazily authenticates once and caches the handle for the process.

    Construct one per process and pass it to EventService. The first
    resolve() runs the handshake under a lock so concurrent first callers
    share a single handshake; later calls read the cache without locking.
    A failed handshake is not cached, but callers that were already waiting
    on it get the same CalendarError instead of starting their own.

    reset() drops the cache (credential rotation, tests); handles already
    handed out keep working. With a settings_loader, reset() also reloads
    the settings, so rotated credentials in the environment are picked up
    by the next handshake.
    """

    def __init__(
        self,
        settings: Settings,
        authenticator: Callable[[CredentialsConfig], tuple[Any, Any]] = authenticate,
        settings_loader: Callable[[], Settings] | None = None,
    ) -> None:
        self._settings = settings
        self._authenticator = authenticator
        self._settings_loader = settings_loader
        self._lock = threading.Lock()
        self._handle: CalendarHandle | None = None
        # Finished handshakes, and the error of the latest one if it failed
        self._attempts = 0
        self._last_error: CalendarError | None = None

    @property
    def default_calendar_id(self) -> str | None:
        handle = self._handle
        return handle.default_calendar_id if handle is not None else None

    async def resolve(self) -> CalendarHandle:
        handle = self._handle
        if handle is not None:
            return handle
        return await asyncio.to_thread(self._resolve_blocking, self._attempts)

    def _resolve_blocking(self, seen_attempts: int) -> CalendarHandle:
        with self._lock:
            if self._handle is not None:
                return self._handle
            if self._attempts != seen_attempts and self._last_error is not None:
                raise self._last_error

            try:
                handle = self._handshake()
            except CalendarError as exc:
                self._attempts += 1
                self._last_error = exc
                raise
            self._attempts += 1
            self._last_error = None
            self._handle = handle
            return handle

    def _handshake(self) -> CalendarHandle:
        mode = select_auth_mode(self._settings)
        logger.info("Authentication mode: %s", mode.value)
        config = select_credentials(self._settings)
        try:
            service, creds = self._authenticator(config)
        except CalendarError:
            raise
        except Exception as exc:
            raise auth_error(
                "Failed to initialize the Google Calendar client",
                {"originalError": str(exc)},
            ) from exc
        return CalendarHandle(
            service=service,
            credentials=creds,
            mode=config.mode,
            default_calendar_id=self._settings.GOOGLE_CALENDAR_ID or PRIMARY_CALENDAR,
        )

    def reset(self) -> None:
        with self._lock:
            self._handle = None
            self._last_error = None
            if self._settings_loader is not None:
                self._settings = self._settings_loader()
        logger.info("Google Calendar client reset")

    def resolve_calendar_id(self, requested: str | None = None) -> str:
        """Request value if non-empty, else cached default, else "primary"."""
        return requested or self.default_calendar_id or PRIMARY_CALENDAR
