"""
mcp-gcal — Refresh token helper.

One-off console flow for OAuth2 mode. Starts a temporary local server on the
host and port of GOOGLE_REDIRECT_URI, opens the consent page, captures the
redirect and prints the refresh token to store as GOOGLE_REFRESH_TOKEN.

    mcp-gcal-token            # local callback server
    mcp-gcal-token --manual   # paste the redirected URL (or code) instead

The local server answers on the root path (http://localhost:3000/ by
default); a "Web application" OAuth client must list that URI among its
authorized redirect URIs. If the port cannot be bound the helper falls back
to the manual flow.
"""

from __future__ import annotations

import logging
import sys
from typing import Any
from urllib.parse import parse_qs, urlparse

import requests
from google_auth_oauthlib.flow import Flow, InstalledAppFlow

from mcp_gcal.config import Settings, configure_logging, settings
from mcp_gcal.integrations.google_auth import SCOPES, TOKEN_URI

logger = logging.getLogger(__name__)

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"

_NO_REFRESH_TOKEN = (
    "Google did not return a refresh token. Revoke the app's access "
    "in your Google account and try again."
)


class RefreshTokenError(Exception):
    """Raised when the consent flow cannot produce a refresh token."""


def _client_config(settings: Settings) -> dict[str, Any]:
    missing = [
        name
        for name, value in (
            ("GOOGLE_CLIENT_ID", settings.GOOGLE_CLIENT_ID),
            ("GOOGLE_CLIENT_SECRET", settings.GOOGLE_CLIENT_SECRET),
        )
        if not value
    ]
    if missing:
        raise RefreshTokenError(f"Missing environment variables: {', '.join(missing)}")

    return {
        "web": {
            "client_id": settings.GOOGLE_CLIENT_ID,
            "client_secret": settings.GOOGLE_CLIENT_SECRET,
            "auth_uri": AUTH_URI,
            "token_uri": TOKEN_URI,
            "redirect_uris": [settings.GOOGLE_REDIRECT_URI],
        }
    }


def redirect_host_port(redirect_uri: str) -> tuple[str, int]:
    """Host and port the local callback server listens on."""
    parsed = urlparse(redirect_uri)
    return parsed.hostname or "localhost", parsed.port or 80


# ---------------------------------------------------------------------------
# Local callback flow
# ---------------------------------------------------------------------------


def build_local_flow(settings: Settings) -> InstalledAppFlow:
    return InstalledAppFlow.from_client_config(_client_config(settings), scopes=SCOPES)


def run_local_callback(settings: Settings, open_browser: bool = True) -> str:
    """Run the consent flow through a temporary local server.

    Returns the refresh token.

    Raises:
        OSError: if the callback port cannot be bound.
        RefreshTokenError: if consent is denied or no refresh token comes back.
    """
    flow = build_local_flow(settings)
    host, port = redirect_host_port(settings.GOOGLE_REDIRECT_URI)
    try:
        creds = flow.run_local_server(
            host=host,
            port=port,
            open_browser=open_browser,
            authorization_prompt_message="Open this URL in your browser and authorize the app:\n\n   {url}\n",
            success_message="Authorization complete. You can close this window.",
            access_type="offline",
            prompt="consent",
        )
    except requests.RequestException as exc:
        raise RefreshTokenError(f"Token exchange failed: {exc}") from exc
    except OSError:
        raise
    except Exception as exc:
        raise RefreshTokenError(f"Authorization failed: {exc}") from exc

    if not creds.refresh_token:
        raise RefreshTokenError(_NO_REFRESH_TOKEN)
    return creds.refresh_token


# ---------------------------------------------------------------------------
# Manual (paste-back) flow
# ---------------------------------------------------------------------------


def build_flow(settings: Settings) -> Flow:
    """Create an OAuth2 web-server flow for the configured client."""
    return Flow.from_client_config(
        _client_config(settings), scopes=SCOPES, redirect_uri=settings.GOOGLE_REDIRECT_URI
    )


def get_authorization_url(flow: Flow) -> str:
    """Consent URL requesting offline access, forcing the consent screen.

    Forcing consent makes Google issue a refresh token even if the user
    already authorized this client.
    """
    auth_url, _ = flow.authorization_url(access_type="offline", prompt="consent")
    return auth_url


def extract_code(value: str) -> str:
    """Accept a bare authorization code or the full redirected URL."""
    value = value.strip()
    if "://" not in value:
        if not value:
            raise RefreshTokenError("No authorization code provided")
        return value

    query = parse_qs(urlparse(value).query)
    if "error" in query:
        raise RefreshTokenError(f"Authorization failed: {query['error'][0]}")
    codes = query.get("code")
    if not codes or not codes[0]:
        raise RefreshTokenError("No 'code' parameter in the redirected URL")
    return codes[0]


def exchange_code(flow: Flow, code: str) -> str:
    """Exchange an authorization code and return the refresh token."""
    try:
        flow.fetch_token(code=code)
    except Exception as exc:
        raise RefreshTokenError(f"Token exchange failed: {exc}") from exc
    refresh_token = flow.credentials.refresh_token
    if not refresh_token:
        raise RefreshTokenError(_NO_REFRESH_TOKEN)
    return refresh_token


def run_manual(settings: Settings) -> str:
    flow = build_flow(settings)
    print("1. Open this URL in your browser and authorize the app:\n")
    print(f"   {get_authorization_url(flow)}\n")
    print(f"2. You will be redirected to {settings.GOOGLE_REDIRECT_URI}")
    print("   Paste the full redirected URL (or just the code) below.\n")
    return exchange_code(flow, extract_code(input("Code or URL: ")))


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    args = sys.argv[1:] if argv is None else argv

    try:
        _client_config(settings)
    except RefreshTokenError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        print("Set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET in .env", file=sys.stderr)
        return 1

    try:
        if "--manual" in args:
            refresh_token = run_manual(settings)
        else:
            try:
                refresh_token = run_local_callback(settings)
            except OSError as exc:
                logger.warning(
                    "Cannot listen on %s (%s); falling back to manual flow",
                    settings.GOOGLE_REDIRECT_URI,
                    exc,
                )
                refresh_token = run_manual(settings)
    except RefreshTokenError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    logger.info("Refresh token obtained")
    print("\nAdd this to your .env:\n")
    print(f"GOOGLE_REFRESH_TOKEN={refresh_token}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
