from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol

OnDisconnect = Callable[[str | None], Awaitable[None]]
OnRawEvent = Callable[[str, Any], None]


class Transport(Protocol):
    """Raw bidirectional channel to the real-time backend.

    The transport never reconnects on its own. Implementations raise
    NetworkError (or UnauthorizedError when the server refuses the
    credential) from connect, and NetworkError from emit/call when the
    channel is down or an acknowledgment does not arrive in time.
    """

    @property
    def connected(self) -> bool: ...

    def bind(self, on_disconnect: OnDisconnect, on_event: OnRawEvent) -> None: ...

    async def connect(self, url: str, token: str) -> None: ...

    async def disconnect(self) -> None: ...

    async def emit(self, event: str, data: Any) -> None: ...

    async def call(self, event: str, data: Any, timeout: float) -> Any: ...
