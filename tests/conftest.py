"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import pytest

from booking_sync.application.dispatcher import EventDispatcher
from booking_sync.application.dto.events import InboundEvent, parse_event
from booking_sync.application.exceptions import AppError, NetworkError
from booking_sync.domain.entities.message import Message
from booking_sync.domain.value_objects.enums import MessageType
from booking_sync.infrastructure.realtime.connection import ConnectionManager
from booking_sync.services.booking_session import BookingSession
from booking_sync.services.room_subscription import RoomSubscription

TOKEN = "session-token"


def make_message(
    *,
    message_id: str | None = None,
    booking_id: str | None = "b1",
    sender_id: str = "u1",
    content: str = "hello",
    is_read: bool = False,
) -> Message:
    return Message(
        id=message_id if message_id is not None else str(uuid.uuid4()),
        sender_id=sender_id,
        content=content,
        type=MessageType.TEXT,
        created_at=datetime.now(timezone.utc),
        is_read=is_read,
        booking_id=booking_id,
    )


def make_event(name: str, **data: Any) -> InboundEvent:
    event = parse_event(name, data)
    assert event is not None
    return event


Ack = Any  # a value, an exception to raise, or a callable(data) returning either


@dataclass
class FakeTransport:
    """In-memory Transport: records traffic, returns scripted acks."""

    acks: dict[str, Ack] = field(default_factory=dict)
    connect_failures: list[AppError] = field(default_factory=list)
    emitted: list[tuple[str, Any]] = field(default_factory=list)
    calls: list[tuple[str, Any]] = field(default_factory=list)
    tokens: list[str] = field(default_factory=list)
    _connected: bool = False
    _on_disconnect: Any = None
    _on_event: Any = None

    @property
    def connected(self) -> bool:
        return self._connected

    def bind(self, on_disconnect, on_event) -> None:
        self._on_disconnect = on_disconnect
        self._on_event = on_event

    async def connect(self, url: str, token: str) -> None:
        self.tokens.append(token)
        if self.connect_failures:
            raise self.connect_failures.pop(0)
        self._connected = True

    async def disconnect(self) -> None:
        was_connected = self._connected
        self._connected = False
        if was_connected and self._on_disconnect is not None:
            await self._on_disconnect("io client disconnect")

    async def emit(self, event: str, data: Any) -> None:
        if not self._connected:
            raise NetworkError("Socket not connected")
        self.emitted.append((event, data))

    async def call(self, event: str, data: Any, timeout: float) -> Any:
        if not self._connected:
            raise NetworkError("Socket not connected")
        self.calls.append((event, data))
        ack = self.acks.get(event, {"success": True})
        if callable(ack):
            ack = ack(data)
        if isinstance(ack, Exception):
            raise ack
        return ack

    # -- test controls ---------------------------------------------------

    async def drop(self, reason: str = "transport close") -> None:
        self._connected = False
        await self._on_disconnect(reason)

    def deliver(self, event: str, data: Any) -> None:
        self._on_event(event, data)

    def joins(self) -> list[Any]:
        return [data for event, data in self.calls if event == "join-booking"]

    def leaves(self) -> list[Any]:
        return [data for event, data in self.emitted if event == "leave-booking"]


@dataclass
class FakeBookingApi:
    bookings: dict[str, dict[str, Any]] = field(default_factory=dict)
    history: dict[str, list[Message]] = field(default_factory=dict)
    posted: list[tuple[str, str, str]] = field(default_factory=list)
    uploads: list[tuple[str, str, bytes]] = field(default_factory=list)
    read_marks: list[str] = field(default_factory=list)
    fail_with: AppError | None = None
    token: str | None = None
    closed: bool = False

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def get_booking(self, booking_id: str) -> dict[str, Any]:
        self._maybe_fail()
        return dict(self.bookings.get(booking_id, {}))

    async def fetch_messages(self, booking_id: str) -> list[Message]:
        self._maybe_fail()
        return list(self.history.get(booking_id, []))

    async def post_message(self, booking_id: str, content: str, message_type: MessageType = MessageType.TEXT) -> Message:
        self._maybe_fail()
        self.posted.append((booking_id, content, str(message_type)))
        return make_message(booking_id=booking_id, content=content, sender_id="me")

    async def upload_image(self, booking_id: str, filename: str, data: bytes, content_type: str | None = None) -> Message:
        self._maybe_fail()
        self.uploads.append((booking_id, filename, data))
        return Message(
            id=str(uuid.uuid4()),
            sender_id="me",
            content=f"https://cdn.example/{filename}",
            type=MessageType.IMAGE,
            created_at=datetime.now(timezone.utc),
            booking_id=booking_id,
        )

    async def mark_messages_read(self, booking_id: str) -> None:
        self._maybe_fail()
        self.read_marks.append(booking_id)

    def set_token(self, token: str) -> None:
        self.token = token

    async def aclose(self) -> None:
        self.closed = True


async def settle(connection: ConnectionManager) -> None:
    """Let a pending reconnect run to completion."""
    task = connection._reconnect_task
    if task is not None:
        await task
    await asyncio.sleep(0)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def dispatcher() -> EventDispatcher:
    return EventDispatcher()


@pytest.fixture
def connection(transport, dispatcher) -> ConnectionManager:
    return ConnectionManager(
        transport,
        dispatcher,
        url="http://test",
        reconnect_delay_min=0,
        reconnect_delay_max=0,
        reconnect_jitter=0,
        reconnect_max_attempts=3,
    )


@pytest.fixture
def rooms(connection) -> RoomSubscription:
    return RoomSubscription(connection, join_timeout=1)


@pytest.fixture
def api() -> FakeBookingApi:
    return FakeBookingApi()


@pytest.fixture
def session(connection, rooms, api) -> BookingSession:
    return BookingSession(connection, rooms, api, send_timeout=1, mark_read_timeout=1)
