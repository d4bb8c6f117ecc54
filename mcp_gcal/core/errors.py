"""
mcp-gcal — Error taxonomy.

Every failure that leaves an operation handler is a CalendarError with one of
five kinds. Google API failures are collapsed into that set by
normalize_error(); validation failures are raised locally before any network
call.
"""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from typing import Any

from googleapiclient.errors import HttpError

GENERIC_PROVIDER_MESSAGE = "Google Calendar API error"


class ErrorKind(Enum):
    AUTH = "auth_error"
    VALIDATION = "validation_error"
    PROVIDER = "provider_error"
    NOT_FOUND = "not_found_error"
    UNKNOWN = "unknown_error"


class CalendarError(Exception):
    """Raised when any calendar operation fails."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.kind.value, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload

    def __repr__(self) -> str:
        return f"CalendarError({self.kind.value!r}, {self.message!r})"


def auth_error(message: str, details: dict[str, Any] | None = None) -> CalendarError:
    return CalendarError(ErrorKind.AUTH, message, details)


def validation_error(message: str, details: dict[str, Any] | None = None) -> CalendarError:
    return CalendarError(ErrorKind.VALIDATION, message, details)


def provider_error(message: str, details: dict[str, Any] | None = None) -> CalendarError:
    return CalendarError(ErrorKind.PROVIDER, message, details)


def not_found_error(message: str, details: dict[str, Any] | None = None) -> CalendarError:
    return CalendarError(ErrorKind.NOT_FOUND, message, details)


def unknown_error(message: str, details: dict[str, Any] | None = None) -> CalendarError:
    return CalendarError(ErrorKind.UNKNOWN, message, details)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def _decode_body(raw: Any) -> Any:
    """Best-effort JSON decode of an error body; falls back to text."""
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except ValueError:
            return raw or None
    return raw


def _extract_response(exc: object) -> tuple[int | None, Any] | None:
    """Return (status, body) when the failure carries an HTTP response.

    Recognised shapes:
    - googleapiclient HttpError: status from ``resp.status``, body from
      ``content``.
    - anything with a non-None ``response`` attribute (requests / httpx
      style). Status is its integer ``status_code`` or ``status`` if it has
      one, else None; body from ``json()`` or ``text`` when available.

    Anything else has no structured response.
    """
    if isinstance(exc, HttpError):
        status = getattr(exc.resp, "status", None)
        if isinstance(status, int):
            return status, _decode_body(exc.content)
        return None

    response = getattr(exc, "response", None)
    if response is None:
        return None

    status = getattr(response, "status_code", None)
    if not isinstance(status, int):
        status = getattr(response, "status", None)
    if not isinstance(status, int):
        status = None

    body: Any = None
    json_method = getattr(response, "json", None)
    if callable(json_method):
        try:
            body = json_method()
        except ValueError:
            body = None
    if body is None:
        body = _decode_body(getattr(response, "text", None))
    return status, body


def _provider_message(body: Any) -> str:
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message:
                return message
    return GENERIC_PROVIDER_MESSAGE


def normalize_error(exc: object) -> CalendarError:
    """Collapse any failure into a CalendarError.

    Idempotent: a CalendarError is returned unchanged.
    """
    if isinstance(exc, CalendarError):
        return exc

    extracted = _extract_response(exc)
    if extracted is not None:
        status, body = extracted
        details = {"status": status, "data": body}
        if status in (401, 403):
            return auth_error(
                "Authentication with Google Calendar failed. Check your credentials.",
                details,
            )
        if status == 404:
            return not_found_error(
                "The requested resource does not exist in Google Calendar.",
                details,
            )
        return provider_error(_provider_message(body), details)

    message = getattr(exc, "message", None)
    if not isinstance(message, str) and isinstance(exc, BaseException):
        message = str(exc)
    if isinstance(message, str) and message:
        return provider_error(message)

    return unknown_error(
        "An unknown error occurred",
        {"originalError": str(exc) or repr(exc)},
    )


# ---------------------------------------------------------------------------
# Local validators
# ---------------------------------------------------------------------------


def validate_required(value: Any, field: str) -> None:
    """Raise a validation error when a required field is missing or empty."""
    if value is None or value == "":
        raise validation_error(f"Field '{field}' is required", {"field": field})


def validate_iso_date(value: str, field: str) -> None:
    """Raise a validation error unless value is an ISO 8601 date or timestamp."""
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, TypeError, ValueError):
        raise validation_error(
            f"Field '{field}' must be a valid ISO 8601 date",
            {"field": field, "value": value},
        ) from None
