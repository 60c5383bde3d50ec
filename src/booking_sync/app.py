"""Explicit wiring: one connection per running client, shared by reference."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable

from booking_sync.application.dispatcher import EventDispatcher
from booking_sync.application.ports.rest import BookingApi
from booking_sync.application.ports.transport import Transport
from booking_sync.config import settings
from booking_sync.infrastructure.http.booking_api import BookingApiClient
from booking_sync.infrastructure.realtime.connection import ConnectionManager
from booking_sync.infrastructure.realtime.socketio_transport import SocketIOTransport
from booking_sync.services.booking_session import BookingSession
from booking_sync.services.room_subscription import RoomSubscription

logger = logging.getLogger(__name__)


@dataclass
class RealtimeClient:
    dispatcher: EventDispatcher
    connection: ConnectionManager
    rooms: RoomSubscription
    api: BookingApi

    def new_session(self, on_change: Callable[[], None] | None = None) -> BookingSession:
        return BookingSession(self.connection, self.rooms, self.api, on_change=on_change)

    async def start(self, token: str) -> None:
        self.api.set_token(token)
        await self.connection.start(token)

    async def set_token(self, token: str) -> None:
        self.api.set_token(token)
        await self.connection.set_token(token)

    async def close(self) -> None:
        self.rooms.close()
        await self.connection.stop()
        await self.api.aclose()


def create_client(
    transport: Transport | None = None,
    api: BookingApi | None = None,
    *,
    url: str | None = None,
) -> RealtimeClient:
    url = url or settings.API_BASE_URL
    dispatcher = EventDispatcher()
    connection = ConnectionManager(transport or SocketIOTransport(), dispatcher, url=url)
    rooms = RoomSubscription(connection)
    return RealtimeClient(
        dispatcher=dispatcher,
        connection=connection,
        rooms=rooms,
        api=api or BookingApiClient(url),
    )


@asynccontextmanager
async def running_client(token: str, **kwargs) -> AsyncIterator[RealtimeClient]:
    """Startup / shutdown lifecycle around a connected client."""
    client = create_client(**kwargs)
    try:
        await client.start(token)
        logger.info("Realtime client started")
        yield client
    finally:
        await client.close()
        logger.info("Realtime client closed")
