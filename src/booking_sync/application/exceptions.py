from __future__ import annotations

import asyncio
from typing import Any

import httpx
import socketio.exceptions

from booking_sync.domain.value_objects.enums import ErrorKind


class AppError(Exception):
    """Base application error. Every error shown to a user is one of these."""

    kind: ErrorKind = ErrorKind.GENERIC

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class RateLimitedError(AppError):
    kind = ErrorKind.RATE_LIMITED

    def __init__(self, detail: str = "", retry_after: Any = None) -> None:
        super().__init__(detail)
        try:
            self.retry_after: float | None = float(retry_after) if retry_after is not None else None
        except (TypeError, ValueError):
            self.retry_after = None


class ValidationError(AppError):
    kind = ErrorKind.VALIDATION_ERROR

    def __init__(self, detail: str = "", errors: list[str] | None = None) -> None:
        super().__init__(detail)
        self.errors = errors or []


class NetworkError(AppError):
    kind = ErrorKind.NETWORK_ERROR


class UnauthorizedError(AppError):
    kind = ErrorKind.UNAUTHORIZED


class GenericError(AppError):
    kind = ErrorKind.GENERIC


def field_messages(raw_errors: Any) -> list[str]:
    """Flatten server validation errors (``[{"msg": ...}]`` or strings)."""
    if not isinstance(raw_errors, list):
        return []
    messages: list[str] = []
    for item in raw_errors:
        if isinstance(item, dict):
            msg = item.get("msg") or item.get("message")
            if msg:
                messages.append(str(msg))
        elif item:
            messages.append(str(item))
    return messages


def error_from_ack(ack: Any, default: str) -> AppError:
    """Error for a negative socket acknowledgment (``{success: false, code}``)."""
    ack = ack if isinstance(ack, dict) else {}
    code = ack.get("code")
    detail = ack.get("message") or code or default
    if code == ErrorKind.RATE_LIMITED:
        return RateLimitedError(detail, retry_after=ack.get("retryAfter"))
    if code == ErrorKind.VALIDATION_ERROR:
        return ValidationError(detail, errors=field_messages(ack.get("errors")))
    if code == ErrorKind.UNAUTHORIZED:
        return UnauthorizedError(detail)
    return GenericError(detail)


def to_app_error(exc: BaseException, default: str = "An error occurred") -> AppError:
    """Map any exception to exactly one error kind."""
    if isinstance(exc, AppError):
        return exc
    if isinstance(exc, (httpx.TransportError, socketio.exceptions.ConnectionError)):
        return NetworkError(str(exc) or "Network error")
    if isinstance(exc, (asyncio.TimeoutError, socketio.exceptions.TimeoutError)):
        return NetworkError("Request timed out")
    if isinstance(exc, ConnectionError):
        return NetworkError(str(exc) or "Network error")
    return GenericError(str(exc) or default)
