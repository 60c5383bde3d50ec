from __future__ import annotations

from typing import Any, Protocol

from booking_sync.domain.entities.message import Message
from booking_sync.domain.value_objects.enums import MessageType


class BookingApi(Protocol):
    """REST side used for initial loads and while the socket is down."""

    async def get_booking(self, booking_id: str) -> dict[str, Any]: ...

    async def fetch_messages(self, booking_id: str) -> list[Message]: ...

    async def post_message(
        self, booking_id: str, content: str, message_type: MessageType = MessageType.TEXT,
    ) -> Message | None: ...

    async def upload_image(
        self, booking_id: str, filename: str, data: bytes, content_type: str | None = None,
    ) -> Message | None: ...

    async def mark_messages_read(self, booking_id: str) -> None: ...

    def set_token(self, token: str) -> None: ...

    async def aclose(self) -> None: ...
