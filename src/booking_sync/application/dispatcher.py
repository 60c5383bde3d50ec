"""In-memory fan-out of typed inbound events to registered handlers."""
from __future__ import annotations

import logging
from typing import Callable

from booking_sync.application.dto.events import InboundEvent
from booking_sync.domain.value_objects.enums import EventKind

logger = logging.getLogger(__name__)

EventHandler = Callable[[InboundEvent], None]


def _same_handler(registered: EventHandler, handler: EventHandler) -> bool:
    """Identity match; a bound method matches by its function and instance."""
    if registered is handler:
        return True
    func = getattr(handler, "__func__", None)
    owner = getattr(handler, "__self__", None)
    if func is None or owner is None:
        return False
    return getattr(registered, "__func__", None) is func and getattr(registered, "__self__", None) is owner


class EventDispatcher:
    """Handlers per event kind, called in registration order.

    Removal matches the exact handler that was registered (a bound method
    matches only for the same instance), so independent subscribers to the
    same kind never remove each other.
    """

    def __init__(self) -> None:
        self._handlers: dict[EventKind, list[EventHandler]] = {}

    def on(self, kind: EventKind, handler: EventHandler) -> None:
        handlers = self._handlers.setdefault(kind, [])
        if any(_same_handler(h, handler) for h in handlers):
            return
        handlers.append(handler)

    def off(self, kind: EventKind, handler: EventHandler | None = None) -> None:
        handlers = self._handlers.get(kind)
        if not handlers:
            return
        if handler is None:
            del self._handlers[kind]
            return
        for i, h in enumerate(handlers):
            if _same_handler(h, handler):
                del handlers[i]
                break
        if not handlers:
            del self._handlers[kind]

    def emit(self, event: InboundEvent) -> None:
        # Copy so handlers may (un)register while being dispatched.
        for handler in list(self._handlers.get(event.kind, ())):
            try:
                handler(event)
            except Exception:
                logger.exception("Handler %r failed for %s", handler, event.kind)

    def handler_count(self, kind: EventKind) -> int:
        return len(self._handlers.get(kind, ()))

    def clear(self) -> None:
        self._handlers.clear()
