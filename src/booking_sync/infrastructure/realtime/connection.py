"""Process-wide real-time connection: handshake, reconnect, connectivity."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import pydantic
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    stop_never,
    wait_exponential,
    wait_random,
)

from booking_sync.application.dispatcher import EventDispatcher
from booking_sync.application.dto.events import parse_event
from booking_sync.application.exceptions import AppError, NetworkError
from booking_sync.application.ports.transport import Transport
from booking_sync.config import settings
from booking_sync.domain.value_objects.enums import ConnectionStatus
from booking_sync.infrastructure.auth.session_token import ensure_not_expired

logger = logging.getLogger(__name__)

ConnectivityListener = Callable[[bool], Awaitable[None]]


class ConnectionManager:
    """Owns the single connection for a running client.

    disconnected -> connecting -> connected; a transport drop goes back to
    connecting and retries with exponential backoff plus jitter. Room joins
    are not replayed here; RoomSubscription listens for connectivity.
    """

    def __init__(
        self,
        transport: Transport,
        dispatcher: EventDispatcher,
        *,
        url: str | None = None,
        reconnect_delay_min: float | None = None,
        reconnect_delay_max: float | None = None,
        reconnect_jitter: float | None = None,
        reconnect_max_attempts: int | None = None,
    ) -> None:
        self._transport = transport
        self._dispatcher = dispatcher
        self._url = url or settings.API_BASE_URL
        self._delay_min = settings.RECONNECT_DELAY_MIN if reconnect_delay_min is None else reconnect_delay_min
        self._delay_max = settings.RECONNECT_DELAY_MAX if reconnect_delay_max is None else reconnect_delay_max
        self._jitter = settings.RECONNECT_JITTER if reconnect_jitter is None else reconnect_jitter
        self._max_attempts = (
            settings.RECONNECT_MAX_ATTEMPTS if reconnect_max_attempts is None else reconnect_max_attempts
        )

        self._status = ConnectionStatus.DISCONNECTED
        self._token: str | None = None
        self._stopped = True
        self._connection_error: str | None = None
        self._listeners: list[ConnectivityListener] = []
        self._reconnect_task: asyncio.Task[None] | None = None

        transport.bind(self._on_transport_disconnect, self._on_transport_event)

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def connected(self) -> bool:
        return self._status is ConnectionStatus.CONNECTED

    @property
    def connection_error(self) -> str | None:
        return self._connection_error

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    def add_connectivity_listener(self, listener: ConnectivityListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_connectivity_listener(self, listener: ConnectivityListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # -- lifecycle -------------------------------------------------------

    async def start(self, token: str) -> None:
        """Connect with ``token``. Raises UnauthorizedError or NetworkError."""
        ensure_not_expired(token)
        self._token = token
        self._stopped = False
        await self._connect_with_retry()

    async def stop(self) -> None:
        self._stopped = True
        await self._cancel_reconnect()
        if self._transport.connected:
            await self._transport.disconnect()
        await self._set_status(ConnectionStatus.DISCONNECTED)
        logger.info("Connection stopped")

    async def set_token(self, token: str) -> None:
        """Swap the session credential, reconnecting if a connection exists."""
        if token == self._token:
            return
        if self._stopped:
            self._token = token
            return
        logger.info("Session token changed, reconnecting with new token")
        # Close the old connection before opening the new one so no event
        # is delivered under the old credential.
        await self.stop()
        await self.start(token)

    # -- outbound --------------------------------------------------------

    async def emit(self, event: str, data: Any) -> None:
        if not self.connected:
            raise NetworkError("Socket not connected")
        await self._transport.emit(event, data)

    async def call(self, event: str, data: Any, timeout: float) -> Any:
        """Emit and wait for the server acknowledgment."""
        if not self.connected:
            raise NetworkError("Socket not connected")
        return await self._transport.call(event, data, timeout)

    # -- internals -------------------------------------------------------

    def _stop_policy(self):
        if self._max_attempts <= 0:
            return stop_never
        return stop_after_attempt(self._max_attempts)

    def _wait_policy(self):
        # delay_min * 2**n capped at delay_max, plus up to `jitter` seconds
        return wait_exponential(
            multiplier=self._delay_min, min=self._delay_min, max=self._delay_max,
        ) + wait_random(0, self._jitter)

    async def _connect_with_retry(self) -> None:
        await self._set_status(ConnectionStatus.CONNECTING)
        retrying = AsyncRetrying(
            reraise=True,
            stop=self._stop_policy(),
            wait=self._wait_policy(),
            retry=retry_if_exception_type(NetworkError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )
        try:
            async for attempt in retrying:
                with attempt:
                    await self._transport.connect(self._url, self._token or "")
        except AppError as exc:
            self._connection_error = exc.detail
            await self._set_status(ConnectionStatus.DISCONNECTED)
            raise

        if self._stopped:
            # stop() ran while we were connecting.
            await self._transport.disconnect()
            return
        self._connection_error = None
        logger.info("Connected to %s", self._url)
        await self._set_status(ConnectionStatus.CONNECTED)

    async def _reconnect(self) -> None:
        try:
            await self._connect_with_retry()
        except AppError as exc:
            logger.error("Giving up reconnecting: %s", exc.detail)
        finally:
            self._reconnect_task = None

    async def _cancel_reconnect(self) -> None:
        task = self._reconnect_task
        self._reconnect_task = None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _on_transport_disconnect(self, reason: str | None) -> None:
        if self._stopped or self._status is not ConnectionStatus.CONNECTED:
            return
        logger.warning("Connection lost (%s), reconnecting", reason)
        await self._set_status(ConnectionStatus.CONNECTING)
        self._reconnect_task = asyncio.create_task(
            self._reconnect(), name="booking-sync-reconnect",
        )

    def _on_transport_event(self, event_name: str, data: Any) -> None:
        try:
            event = parse_event(event_name, data)
        except pydantic.ValidationError:
            logger.warning("Dropping malformed %s payload", event_name, exc_info=True)
            return
        if event is None:
            logger.debug("Ignoring unknown event: %s", event_name)
            return
        self._dispatcher.emit(event)

    async def _set_status(self, status: ConnectionStatus) -> None:
        was_connected = self.connected
        self._status = status
        if self.connected == was_connected:
            return
        for listener in list(self._listeners):
            try:
                await listener(self.connected)
            except Exception:
                logger.exception("Connectivity listener %r failed", listener)
