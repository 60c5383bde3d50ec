from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Iterator

from booking_sync.domain.entities.message import Message

logger = logging.getLogger(__name__)


class MessageStore:
    """Chat log of one booking, in arrival order.

    A message whose id is already present is dropped (first write wins);
    messages without an id are always appended.
    """

    def __init__(self) -> None:
        self._messages: list[Message] = []
        self._index: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def append(self, message: Message) -> bool:
        if message.id is not None:
            if message.id in self._index:
                logger.debug("Duplicate message %s dropped", message.id)
                return False
            self._index[message.id] = len(self._messages)
        self._messages.append(message)
        return True

    def mark_read(self, message_id: str | None) -> bool:
        if message_id is None:
            return False
        pos = self._index.get(message_id)
        if pos is None:
            return False
        current = self._messages[pos]
        if not current.is_read:
            self._messages[pos] = dataclasses.replace(current, is_read=True)
        return True

    def reset(self) -> None:
        self._messages.clear()
        self._index.clear()

    def load(self, messages: Iterable[Message]) -> None:
        """Replace the log with a freshly fetched history."""
        self.reset()
        for message in messages:
            self.append(message)

    def unread_count(self, exclude_sender: str | None = None) -> int:
        return sum(
            1 for m in self._messages
            if not m.is_read and (exclude_sender is None or m.sender_id != exclude_sender)
        )
