"""Socket.IO implementation of the Transport port."""
from __future__ import annotations

import logging
from typing import Any

import socketio
import socketio.exceptions

from booking_sync.application.exceptions import NetworkError, UnauthorizedError
from booking_sync.application.ports.transport import OnDisconnect, OnRawEvent
from booking_sync.config import settings

logger = logging.getLogger(__name__)

# Fragments of handshake rejections that mean "bad credential", not "no network".
_AUTH_MARKERS = ("unauthorized", "authentication", "jwt", "token")


class SocketIOTransport:
    """Wraps ``socketio.AsyncClient`` with its built-in reconnection off.

    Reconnection is owned by ConnectionManager so there is one retry policy.
    """

    def __init__(
        self,
        client: socketio.AsyncClient | None = None,
        *,
        socketio_path: str | None = None,
        transports: list[str] | None = None,
    ) -> None:
        self._sio = client or socketio.AsyncClient(
            reconnection=False,
            logger=False,
            engineio_logger=False,
        )
        self._path = socketio_path or settings.SOCKETIO_PATH
        self._transports = transports or settings.SOCKET_TRANSPORTS
        self._on_disconnect: OnDisconnect | None = None
        self._on_event: OnRawEvent | None = None

        self._sio.on("disconnect", self._handle_disconnect)
        self._sio.on("connect_error", self._handle_connect_error)
        self._sio.on("*", self._handle_event)

    @property
    def connected(self) -> bool:
        return self._sio.connected

    def bind(self, on_disconnect: OnDisconnect, on_event: OnRawEvent) -> None:
        self._on_disconnect = on_disconnect
        self._on_event = on_event

    async def connect(self, url: str, token: str) -> None:
        try:
            await self._sio.connect(
                url,
                auth={"token": token},
                transports=self._transports,
                socketio_path=self._path,
            )
        except socketio.exceptions.ConnectionError as exc:
            message = str(exc) or "Connection failed"
            if any(marker in message.lower() for marker in _AUTH_MARKERS):
                raise UnauthorizedError(message) from exc
            raise NetworkError(message) from exc
        logger.debug("Socket.IO connected, sid=%s", self._sio.sid)

    async def disconnect(self) -> None:
        await self._sio.disconnect()

    async def emit(self, event: str, data: Any) -> None:
        try:
            await self._sio.emit(event, data)
        except socketio.exceptions.SocketIOError as exc:
            raise NetworkError(str(exc) or "Socket not connected") from exc

    async def call(self, event: str, data: Any, timeout: float) -> Any:
        try:
            return await self._sio.call(event, data, timeout=timeout)
        except socketio.exceptions.TimeoutError as exc:
            raise NetworkError(f"No acknowledgment for {event} within {timeout:g}s") from exc
        except socketio.exceptions.SocketIOError as exc:
            raise NetworkError(str(exc) or "Socket not connected") from exc

    async def _handle_disconnect(self, reason: Any = None) -> None:
        if self._on_disconnect is not None:
            await self._on_disconnect(str(reason) if reason is not None else None)

    def _handle_connect_error(self, data: Any = None) -> None:
        logger.warning("Socket.IO connect error: %s", data)

    def _handle_event(self, event: str, *args: Any) -> None:
        if self._on_event is not None:
            self._on_event(event, args[0] if args else None)
