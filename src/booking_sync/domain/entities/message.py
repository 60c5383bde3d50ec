from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from booking_sync.domain.value_objects.enums import MessageType


@dataclass(frozen=True, slots=True)
class Message:
    id: str | None
    sender_id: str | None
    content: str | None
    type: MessageType
    created_at: datetime | None
    is_read: bool = False
    booking_id: str | None = None
