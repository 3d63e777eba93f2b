"""Shared API error codes and envelope helpers."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from identity.auth.errors import IdentityError


class ApiErrorCode(StrEnum):
    """Codes produced by the HTTP layer itself; domain codes live on IdentityError."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_MISSING_TOKEN = "AUTH_MISSING_TOKEN"
    REQUEST_TOO_LARGE = "REQUEST_TOO_LARGE"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


def to_error_payload(detail: Any, status_code: int) -> dict[str, str]:
    """Normalize HTTP exception detail into stable error payload."""
    if isinstance(detail, dict):
        error_code = str(detail.get("error_code") or f"HTTP_{status_code}")
        message = str(detail.get("message") or detail.get("detail") or "HTTP error")
        return {"error_code": error_code, "message": message}
    return {
        "error_code": f"HTTP_{status_code}",
        "message": str(detail or "HTTP error"),
    }


def identity_error_payload(exc: IdentityError) -> dict[str, str]:
    """Envelope for a domain error raised below the HTTP layer."""
    return {"error_code": exc.error_code, "message": exc.message}


def validation_message(errors: list[dict[str, Any]]) -> str:
    """Flatten pydantic error entries into ``field: reason`` pairs."""
    parts = []
    for error in errors:
        location = ".".join(
            str(part) for part in error.get("loc", ()) if part not in ("body", "header")
        )
        reason = str(error.get("msg") or "invalid value")
        parts.append(f"{location}: {reason}" if location else reason)
    return "; ".join(parts) or "Request validation failed"
