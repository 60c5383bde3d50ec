"""Entrypoint: python -m booking_sync

Follows one booking (BOOKING_ID) with SESSION_TOKEN and logs every change.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from booking_sync.app import RealtimeClient, running_client
from booking_sync.application.exceptions import AppError
from booking_sync.config import settings
from booking_sync.services.booking_session import BookingSession
from booking_sync.services.error_handler import handle_api_error

logger = logging.getLogger(__name__)


def _log_state(session: BookingSession) -> None:
    snapshot = session.snapshot
    logger.info(
        "booking=%s status=%s messages=%d typing=%s",
        session.booking_id,
        snapshot.status if snapshot else None,
        len(session.messages),
        session.is_counterpart_typing,
    )


async def watch(client: RealtimeClient, booking_id: str, stop: asyncio.Event) -> BookingSession:
    session = client.new_session(on_change=lambda: _log_state(session))
    async with session.watching(booking_id):
        try:
            await session.load_booking()
            await session.load_history()
        except AppError as exc:
            handled = handle_api_error(exc, "Failed to load booking", silent=True)
            logger.warning("%s", handled.message)
        await stop.wait()
    return session


async def _run() -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    async with running_client(settings.SESSION_TOKEN) as client:
        await watch(client, settings.BOOKING_ID, stop)


def main() -> None:
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if not settings.BOOKING_ID:
        raise SystemExit("BOOKING_ID is required")
    try:
        asyncio.run(_run())
    except AppError as exc:
        raise SystemExit(handle_api_error(exc, silent=True).message) from exc


if __name__ == "__main__":
    main()
