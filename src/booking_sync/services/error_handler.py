"""User-facing error handling, one place for every caller.

Any exception is first reduced to one ErrorKind, then turned into a
title/message pair. Callers may override what happens per kind; otherwise
the caller-supplied ``alert(title, message)`` is used.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from booking_sync.application.exceptions import (
    AppError,
    RateLimitedError,
    ValidationError,
    to_app_error,
)
from booking_sync.domain.value_objects.enums import ErrorKind

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[AppError, str], Any]
Alert = Callable[[str, str], Any]

DEFAULT_RETRY_AFTER = 30


@dataclass(frozen=True, slots=True)
class HandledError:
    kind: ErrorKind
    title: str
    message: str
    error: AppError


def _describe(error: AppError, default_message: str) -> tuple[str, str]:
    if isinstance(error, RateLimitedError):
        retry_after = error.retry_after or DEFAULT_RETRY_AFTER
        return "Please Wait", f"Too many requests. Try again in {retry_after:g} seconds."
    if isinstance(error, ValidationError):
        return "Validation Error", "\n".join(error.errors) or error.detail or default_message
    if error.kind is ErrorKind.NETWORK_ERROR:
        return "Connection Error", "Network error. Please check your connection and try again."
    if error.kind is ErrorKind.UNAUTHORIZED:
        return "Session Expired", "Session expired. Please log in again."
    return "Error", error.detail or default_message


def handle_api_error(
    error: BaseException,
    default_message: str = "An error occurred",
    *,
    on_rate_limited: ErrorCallback | None = None,
    on_validation_error: ErrorCallback | None = None,
    on_error: ErrorCallback | None = None,
    alert: Alert | None = None,
    silent: bool = False,
) -> HandledError:
    app_error = to_app_error(error, default_message)
    title, message = _describe(app_error, default_message)
    logger.info("%s: %s (%s)", app_error.kind, message, app_error.detail)

    if app_error.kind is ErrorKind.RATE_LIMITED:
        callback = on_rate_limited
    elif app_error.kind is ErrorKind.VALIDATION_ERROR:
        callback = on_validation_error
    else:
        callback = on_error

    if callback is not None:
        callback(app_error, message)
    elif not silent and alert is not None:
        alert(title, message)

    return HandledError(kind=app_error.kind, title=title, message=message, error=app_error)


def create_error_handler(**defaults: Any) -> Callable[..., HandledError]:
    """``handle_api_error`` with options pre-bound; call-site options win."""

    def handler(error: BaseException, default_message: str = "An error occurred", **overrides: Any) -> HandledError:
        return handle_api_error(error, default_message, **{**defaults, **overrides})

    return handler
