"""The consuming scope for one active booking.

A session wires the shared connection to one MessageStore and one
BookingStatusReducer. Switching bookings unregisters the old handlers
before anything else happens, then registers handlers bound to the new
booking id, so no event for the old booking reaches the new state.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, cast

import pydantic

from booking_sync.application.dispatcher import EventHandler
from booking_sync.application.dto.events import (
    InboundEvent,
    MessageReadEvent,
    NewMessageEvent,
    TypingEvent,
    message_from_wire,
)
from booking_sync.application.exceptions import AppError, GenericError, error_from_ack
from booking_sync.application.ports.rest import BookingApi
from booking_sync.config import settings
from booking_sync.domain.entities.booking import BookingSnapshot
from booking_sync.domain.entities.message import Message
from booking_sync.domain.value_objects.enums import EventKind, MessageType, OutboundEvent
from booking_sync.infrastructure.realtime.connection import ConnectionManager
from booking_sync.services.booking_reducer import TRANSITIONS, BookingStatusReducer
from booking_sync.services.message_store import MessageStore
from booking_sync.services.room_subscription import RoomSubscription

logger = logging.getLogger(__name__)


def _acked_message(raw: Any) -> Message | None:
    """Message echoed in a send ack; None means the room broadcast delivers it."""
    if not isinstance(raw, dict):
        return None
    try:
        return message_from_wire(raw)
    except pydantic.ValidationError:
        # Accepted by the server, so this is not a send failure.
        logger.warning("Unreadable message in send ack, waiting for broadcast", exc_info=True)
        return None


class BookingSession:
    def __init__(
        self,
        connection: ConnectionManager,
        rooms: RoomSubscription,
        api: BookingApi,
        *,
        on_change: Callable[[], None] | None = None,
        send_timeout: float | None = None,
        mark_read_timeout: float | None = None,
    ) -> None:
        self._connection = connection
        self._rooms = rooms
        self._api = api
        self._on_change = on_change
        self._send_timeout = settings.SEND_ACK_TIMEOUT if send_timeout is None else send_timeout
        self._mark_read_timeout = (
            settings.MARK_READ_ACK_TIMEOUT if mark_read_timeout is None else mark_read_timeout
        )

        self._booking_id: str | None = None
        self._store = MessageStore()
        self._reducer: BookingStatusReducer | None = None
        self._counterpart_typing = False
        self._handlers: list[tuple[EventKind, EventHandler]] = []
        self._background: set[asyncio.Task[None]] = set()

    @property
    def booking_id(self) -> str | None:
        return self._booking_id

    @property
    def messages(self) -> tuple[Message, ...]:
        return self._store.messages

    @property
    def snapshot(self) -> BookingSnapshot | None:
        if self._booking_id is None or self._reducer is None:
            return None
        return self._reducer.snapshot

    @property
    def is_counterpart_typing(self) -> bool:
        return self._counterpart_typing

    @property
    def connected(self) -> bool:
        return self._connection.connected

    # -- scope -----------------------------------------------------------

    async def activate(self, booking_id: str) -> None:
        booking_id = str(booking_id)
        if booking_id == self._booking_id:
            return
        await self.deactivate()

        self._booking_id = booking_id
        self._reducer = BookingStatusReducer(booking_id)
        self._register_handlers(booking_id)
        await self._rooms.join_booking(booking_id, on_status=self._on_join_status)

    async def deactivate(self) -> None:
        if self._booking_id is None:
            return
        old = self._booking_id
        self._unregister_handlers()
        self._booking_id = None
        self._reducer = None
        self._store.reset()
        self._counterpart_typing = False
        await self._rooms.leave_booking(old)

    @asynccontextmanager
    async def watching(self, booking_id: str) -> AsyncIterator[BookingSession]:
        await self.activate(booking_id)
        try:
            yield self
        finally:
            await self.deactivate()

    # -- initial load ----------------------------------------------------

    async def load_history(self) -> None:
        booking_id = self._require_active()
        history = await self._api.fetch_messages(booking_id)
        if booking_id != self._booking_id:
            return
        live = self._store.messages
        self._store.load(history)
        # Keep anything that arrived over the socket while we were fetching.
        for message in live:
            self._store.append(message)
        self._changed()

    async def load_booking(self) -> None:
        booking_id = self._require_active()
        details = await self._api.get_booking(booking_id)
        if booking_id != self._booking_id or self._reducer is None:
            return
        self._reducer.seed(details)
        self._changed()

    # -- outbound --------------------------------------------------------

    async def send_message(self, content: str, message_type: MessageType = MessageType.TEXT) -> Message | None:
        """Send and wait for the server to confirm.

        Raises an AppError on failure; the draft stays with the caller.
        Falls back to REST while the socket is down.
        """
        booking_id = self._require_active()
        if self._connection.connected:
            ack = await self._connection.call(
                OutboundEvent.SEND_MESSAGE,
                {"bookingId": booking_id, "content": content, "messageType": str(message_type)},
                timeout=self._send_timeout,
            )
            if not (isinstance(ack, dict) and ack.get("success")):
                raise error_from_ack(ack, "Failed to send message")
            message = _acked_message(ack.get("message"))
        else:
            message = await self._api.post_message(booking_id, content, message_type)

        if message is not None and booking_id == self._booking_id and self._store.append(message):
            self._changed()
        return message

    def send_message_nowait(
        self, content: str, message_type: MessageType = MessageType.TEXT,
    ) -> asyncio.Task[None]:
        return self._fire_and_forget(self.send_message(content, message_type), "send message")

    async def send_image(self, filename: str, data: bytes, content_type: str | None = None) -> Message | None:
        booking_id = self._require_active()
        message = await self._api.upload_image(booking_id, filename, data, content_type)
        if message is not None and booking_id == self._booking_id and self._store.append(message):
            self._changed()
        return message

    async def set_typing(self, is_typing: bool) -> None:
        """Fire-and-forget typing indicator; dropped while disconnected."""
        booking_id = self._require_active()
        if not self._connection.connected:
            return
        try:
            await self._connection.emit(
                OutboundEvent.TYPING, {"bookingId": booking_id, "isTyping": is_typing},
            )
        except AppError as exc:
            logger.debug("Typing indicator not sent: %s", exc.detail)

    async def mark_read(self, message_id: str) -> None:
        booking_id = self._require_active()
        if self._connection.connected:
            ack = await self._connection.call(
                OutboundEvent.MARK_READ,
                {"bookingId": booking_id, "messageId": message_id},
                timeout=self._mark_read_timeout,
            )
            if not (isinstance(ack, dict) and ack.get("success")):
                raise error_from_ack(ack, "Failed to mark as read")
        else:
            await self._api.mark_messages_read(booking_id)

        if booking_id == self._booking_id and self._store.mark_read(message_id):
            self._changed()

    def mark_read_nowait(self, message_id: str) -> asyncio.Task[None]:
        return self._fire_and_forget(self.mark_read(message_id), "mark message read")

    async def drain(self) -> None:
        """Wait for outstanding fire-and-forget operations."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    # -- internals -------------------------------------------------------

    def _require_active(self) -> str:
        if self._booking_id is None:
            raise GenericError("No active booking")
        return self._booking_id

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def _fire_and_forget(self, op: Awaitable[Any], what: str) -> asyncio.Task[None]:
        async def runner() -> None:
            try:
                await op
            except AppError as exc:
                logger.warning("Failed to %s: %s", what, exc.detail)
            except Exception:
                logger.exception("Failed to %s", what)

        task = asyncio.create_task(runner(), name=f"booking-sync-{what.replace(' ', '-')}")
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _on_join_status(self, booking_id: str, status: str) -> None:
        if booking_id != self._booking_id or self._reducer is None:
            return
        self._reducer.seed({"status": status})
        self._changed()

    def _register_handlers(self, booking_id: str) -> None:
        dispatcher = self._connection.dispatcher

        def on_new_message(event: InboundEvent) -> None:
            message = cast(NewMessageEvent, event)
            if message.booking_id is not None and message.booking_id != booking_id:
                return
            if self._store.append(message.to_message()):
                self._changed()

        def on_message_read(event: InboundEvent) -> None:
            read = cast(MessageReadEvent, event)
            if read.booking_id is not None and read.booking_id != booking_id:
                return
            if self._store.mark_read(read.message_id):
                self._changed()

        def on_typing(event: InboundEvent) -> None:
            typing_event = cast(TypingEvent, event)
            if typing_event.booking_id != booking_id:
                return
            self._counterpart_typing = typing_event.is_typing
            self._changed()

        def on_booking_event(event: InboundEvent) -> None:
            if self._reducer is not None and self._reducer.apply(event):
                self._changed()

        self._handlers = [
            (EventKind.NEW_MESSAGE, on_new_message),
            (EventKind.MESSAGE_READ, on_message_read),
            (EventKind.USER_TYPING, on_typing),
        ]
        self._handlers.extend((kind, on_booking_event) for kind in TRANSITIONS)
        for kind, handler in self._handlers:
            dispatcher.on(kind, handler)

    def _unregister_handlers(self) -> None:
        dispatcher = self._connection.dispatcher
        for kind, handler in self._handlers:
            dispatcher.off(kind, handler)
        self._handlers = []
