"""Booking room membership, replayed on every reconnect."""
from __future__ import annotations

import logging
from typing import Any, Callable

from booking_sync.application.dto.events import InboundEvent
from booking_sync.application.exceptions import AppError
from booking_sync.application.policies.lifecycle import TERMINAL_STATUSES
from booking_sync.config import settings
from booking_sync.domain.value_objects.enums import EventKind, OutboundEvent
from booking_sync.infrastructure.realtime.connection import ConnectionManager

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str, str], None]

BOOKING_INACTIVE = "BOOKING_INACTIVE"


class RoomSubscription:
    """Tracks which booking rooms should be joined and joins them.

    ``active`` is what consumers want; ``joined`` is what the server has
    acknowledged on the current connection. Both are insertion-ordered and
    hold each booking id at most once.
    """

    def __init__(self, connection: ConnectionManager, *, join_timeout: float | None = None) -> None:
        self._connection = connection
        self._join_timeout = settings.JOIN_ACK_TIMEOUT if join_timeout is None else join_timeout
        self._active: dict[str, None] = {}
        self._joined: dict[str, None] = {}
        self._on_status: dict[str, StatusCallback] = {}

        connection.add_connectivity_listener(self._on_connectivity)
        connection.dispatcher.on(EventKind.BOOKING_STATUS_CHANGED, self._on_status_changed)

    @property
    def active(self) -> tuple[str, ...]:
        return tuple(self._active)

    @property
    def joined(self) -> tuple[str, ...]:
        return tuple(self._joined)

    def is_active(self, booking_id: str) -> bool:
        return booking_id in self._active

    async def join_booking(self, booking_id: str, on_status: StatusCallback | None = None) -> None:
        """Mark ``booking_id`` active and join its room if connected.

        Joining an already-active booking is a no-op.
        """
        if booking_id in self._active:
            return
        self._active[booking_id] = None
        if on_status is not None:
            self._on_status[booking_id] = on_status
        if self._connection.connected:
            await self._issue_join(booking_id)

    async def leave_booking(self, booking_id: str) -> None:
        """Forget ``booking_id`` and leave its room. No-op if not active."""
        if booking_id not in self._active:
            return
        del self._active[booking_id]
        self._on_status.pop(booking_id, None)
        self._joined.pop(booking_id, None)
        if not self._connection.connected:
            return
        try:
            await self._connection.emit(OutboundEvent.LEAVE_BOOKING, booking_id)
        except AppError as exc:
            logger.warning("Could not leave booking room %s: %s", booking_id, exc.detail)

    def close(self) -> None:
        self._connection.remove_connectivity_listener(self._on_connectivity)
        self._connection.dispatcher.off(EventKind.BOOKING_STATUS_CHANGED, self._on_status_changed)

    async def _issue_join(self, booking_id: str) -> None:
        try:
            response = await self._connection.call(
                OutboundEvent.JOIN_BOOKING, booking_id, timeout=self._join_timeout,
            )
        except AppError as exc:
            logger.error("Failed to join booking room %s: %s", booking_id, exc.detail)
            return

        # The booking may have been left while we waited for the ack.
        if booking_id not in self._active:
            logger.debug("Join ack for %s arrived after leave, ignoring", booking_id)
            return

        response = response if isinstance(response, dict) else {}
        status = response.get("status")
        callback = self._on_status.get(booking_id)

        if response.get("success"):
            self._joined[booking_id] = None
            logger.info("Joined booking room %s (status=%s)", booking_id, status)
        elif response.get("code") == BOOKING_INACTIVE:
            del self._active[booking_id]
            self._on_status.pop(booking_id, None)
            logger.info("Booking %s is in terminal state %s, room not needed", booking_id, status or "unknown")
        else:
            logger.error("Failed to join booking room %s: %s", booking_id, response.get("code"))
            return

        if callback is not None and status:
            callback(booking_id, status)

    async def _on_connectivity(self, connected: bool) -> None:
        self._joined.clear()
        if not connected:
            return
        for booking_id in list(self._active):
            # A previous join in this loop may have dropped a terminal booking.
            if booking_id in self._active:
                logger.info("Rejoining booking room %s after reconnect", booking_id)
                await self._issue_join(booking_id)

    def _on_status_changed(self, event: InboundEvent) -> None:
        booking_id = event.target_booking_id
        status = getattr(event, "status", None)
        if booking_id in self._active and status in TERMINAL_STATUSES:
            logger.info("Removing terminal booking %s (%s) from active rooms", booking_id, status)
            del self._active[booking_id]
            self._joined.pop(booking_id, None)
            self._on_status.pop(booking_id, None)
