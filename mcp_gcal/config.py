"""
mcp-gcal — Centralized configuration.

Loads all settings from .env and the process environment.
Credential sufficiency is not checked here: the credential resolver decides
between OAuth2 and service-account mode on first use, so a process can start
(and serve /health) before credentials are in place.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (one level up from mcp_gcal/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

DEFAULT_REDIRECT_URI = "http://localhost:3000/oauth2callback"


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Google OAuth2 (user credentials + long-lived refresh token)
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_REFRESH_TOKEN: str = ""
    GOOGLE_REDIRECT_URI: str = DEFAULT_REDIRECT_URI

    # Google service account, takes precedence over OAuth2 when set
    GOOGLE_SERVICE_ACCOUNT_KEY: str = ""        # literal JSON key
    GOOGLE_SERVICE_ACCOUNT_KEY_FILE: str = ""   # path to JSON key file

    # Calendar used when a request doesn't name one; empty → "primary"
    GOOGLE_CALENDAR_ID: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"

    # REST API
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def parse_log_level(cls, v: str | None) -> str:
        level = (v or "INFO").strip().upper()
        if level == "WARN":
            level = "WARNING"
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown LOG_LEVEL: {v!r}")
        return level

    @field_validator("PORT", mode="before")
    @classmethod
    def parse_port(cls, v: str | int) -> int:
        if isinstance(v, str) and not v.strip():
            return 3000
        return int(v)


def load_settings() -> Settings:
    """Load settings from the process environment."""
    return Settings(
        GOOGLE_CLIENT_ID=os.getenv("GOOGLE_CLIENT_ID", ""),
        GOOGLE_CLIENT_SECRET=os.getenv("GOOGLE_CLIENT_SECRET", ""),
        GOOGLE_REFRESH_TOKEN=os.getenv("GOOGLE_REFRESH_TOKEN", ""),
        GOOGLE_REDIRECT_URI=os.getenv("GOOGLE_REDIRECT_URI", "") or DEFAULT_REDIRECT_URI,
        GOOGLE_SERVICE_ACCOUNT_KEY=os.getenv("GOOGLE_SERVICE_ACCOUNT_KEY", ""),
        GOOGLE_SERVICE_ACCOUNT_KEY_FILE=os.getenv("GOOGLE_SERVICE_ACCOUNT_KEY_FILE", ""),
        GOOGLE_CALENDAR_ID=os.getenv("GOOGLE_CALENDAR_ID", ""),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        HOST=os.getenv("HOST", "0.0.0.0"),
        PORT=os.getenv("PORT", "3000"),
    )


def configure_logging(level: str | None = None) -> None:
    """Send logs to stderr; stdout belongs to the MCP stdio transport."""
    logging.basicConfig(
        level=level or settings.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


# Singleton, imported by the entry points as:
#   from mcp_gcal.config import settings
settings = load_settings()
