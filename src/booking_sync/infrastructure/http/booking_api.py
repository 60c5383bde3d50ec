"""REST client for booking lifecycle and chat endpoints.

Used for initial loads and as the fallback while the socket is down.
Responses use the ``{success, data, message}`` envelope; every failure is
raised as one of the AppError kinds.
"""
from __future__ import annotations

import logging
import mimetypes
from typing import Any

import httpx
import pydantic

from booking_sync.application.dto.events import message_from_wire
from booking_sync.application.exceptions import (
    AppError,
    GenericError,
    NetworkError,
    RateLimitedError,
    UnauthorizedError,
    ValidationError,
    error_from_ack,
    field_messages,
)
from booking_sync.config import settings
from booking_sync.domain.entities.message import Message
from booking_sync.domain.value_objects.enums import MessageType

logger = logging.getLogger(__name__)

BOOKINGS = "/api/bookings"


def _booking(booking_id: str, suffix: str = "") -> str:
    return f"{BOOKINGS}/{booking_id}{suffix}"


def _json_or_none(response: httpx.Response) -> Any:
    if "application/json" not in response.headers.get("content-type", ""):
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _error_for(response: httpx.Response, body: Any) -> AppError:
    status = response.status_code
    body = body if isinstance(body, dict) else {}
    message = body.get("message") or body.get("error") or f"Request failed with status {status}"

    if status == 429:
        retry_after = response.headers.get("retry-after") or body.get("retryAfter")
        return RateLimitedError(message, retry_after=retry_after)
    if status == 401:
        return UnauthorizedError(message)
    errors = field_messages(body.get("errors"))
    if status in (400, 422) and errors:
        return ValidationError(message, errors=errors)
    if body.get("code"):
        return error_from_ack(body, message)
    return GenericError(message)


def _parse_message(data: dict[str, Any]) -> Message | None:
    try:
        return message_from_wire(data)
    except pydantic.ValidationError:
        logger.warning("Skipping malformed message %r", data.get("id") or data.get("_id"), exc_info=True)
        return None


def _message_or_none(data: Any) -> Message | None:
    if isinstance(data, dict) and isinstance(data.get("message"), dict):
        data = data["message"]
    if not isinstance(data, dict) or not data:
        return None
    return _parse_message(data)


class BookingApiClient:
    """Implements application.ports.rest.BookingApi over httpx."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=httpx.Timeout(settings.HTTP_TIMEOUT if timeout is None else timeout),
            headers={"Accept": "application/json"},
            transport=transport,
        )
        if token:
            self.set_token(token)

    def set_token(self, token: str) -> None:
        self._client.headers["Authorization"] = f"Bearer {token}"

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> BookingApiClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise NetworkError("Request timed out") from exc
        except httpx.TransportError as exc:
            raise NetworkError(str(exc) or "Network error") from exc

        body = _json_or_none(response)
        if response.is_error:
            logger.warning("%s %s -> %d", method, path, response.status_code)
            raise _error_for(response, body)
        if isinstance(body, dict):
            if body.get("success") is False:
                raise error_from_ack(body, "Request failed")
            if "data" in body:
                return body["data"]
        return body

    # -- retrieval -------------------------------------------------------

    async def list_bookings(self, **params: Any) -> list[dict[str, Any]]:
        return await self._request("GET", BOOKINGS, params=params or None) or []

    async def get_booking(self, booking_id: str) -> dict[str, Any]:
        return await self._request("GET", _booking(booking_id)) or {}

    async def get_booking_history(self, booking_id: str) -> list[dict[str, Any]]:
        return await self._request("GET", _booking(booking_id, "/history")) or []

    async def get_booking_answers(self, booking_id: str) -> list[dict[str, Any]]:
        return await self._request("GET", _booking(booking_id, "/answers")) or []

    # -- messaging -------------------------------------------------------

    async def fetch_messages(self, booking_id: str) -> list[Message]:
        data = await self._request("GET", _booking(booking_id, "/messages"))
        if isinstance(data, dict):
            data = data.get("messages")
        messages = (_parse_message(item) for item in data or [] if isinstance(item, dict))
        return [message for message in messages if message is not None]

    async def post_message(
        self, booking_id: str, content: str, message_type: MessageType = MessageType.TEXT,
    ) -> Message | None:
        data = await self._request(
            "POST",
            _booking(booking_id, "/messages"),
            json={"content": content, "messageType": str(message_type)},
        )
        return _message_or_none(data)

    async def upload_image(
        self, booking_id: str, filename: str, data: bytes, content_type: str | None = None,
    ) -> Message | None:
        content_type = content_type or mimetypes.guess_type(filename)[0] or "image/jpeg"
        body = await self._request(
            "POST",
            _booking(booking_id, "/messages/image"),
            files={"image": (filename, data, content_type)},
        )
        return _message_or_none(body)

    async def mark_messages_read(self, booking_id: str) -> None:
        await self._request("PATCH", _booking(booking_id, "/messages/read"))

    # -- lifecycle transitions -------------------------------------------

    async def accept_assignment(self, booking_id: str) -> dict[str, Any]:
        return await self._request("PATCH", _booking(booking_id, "/accept-assignment")) or {}

    async def reject_assignment(self, booking_id: str, reason: str) -> dict[str, Any]:
        return await self._request(
            "PATCH", _booking(booking_id, "/reject-assignment"), json={"reason": reason},
        ) or {}

    async def send_quote(self, booking_id: str, amount: float, duration_minutes: int) -> dict[str, Any]:
        return await self._request(
            "PATCH",
            _booking(booking_id, "/quote"),
            json={"amount": amount, "durationMinutes": duration_minutes},
        ) or {}

    async def confirm_scope(self, booking_id: str) -> dict[str, Any]:
        return await self._request("POST", _booking(booking_id, "/confirm-scope")) or {}

    async def mark_on_the_way(self, booking_id: str) -> dict[str, Any]:
        return await self._request("PATCH", _booking(booking_id, "/on-the-way")) or {}

    async def request_job_start(self, booking_id: str) -> dict[str, Any]:
        return await self._request("PATCH", _booking(booking_id, "/start")) or {}

    async def request_job_complete(self, booking_id: str) -> dict[str, Any]:
        return await self._request("PATCH", _booking(booking_id, "/complete")) or {}

    async def cancel_booking(self, booking_id: str, reason: str, cancelled_by: str = "pro") -> dict[str, Any]:
        return await self._request(
            "POST",
            _booking(booking_id, "/cancel"),
            json={"reason": reason, "cancelled_by": cancelled_by},
        ) or {}
