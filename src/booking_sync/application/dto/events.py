"""Typed inbound socket events.

Each wire event name maps to exactly one payload model. Payload keys are
accepted in camelCase (socket) or snake_case (REST/DB) spelling, and the raw
payload is kept so reducers can merge it as received.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from booking_sync.domain.entities.message import Message
from booking_sync.domain.value_objects.enums import EVENT_ALIASES, EventKind, MessageType


def _either(camel: str, snake: str) -> AliasChoices:
    return AliasChoices(camel, snake)


class InboundEvent(BaseModel):
    kind: ClassVar[EventKind]

    booking_id: str | None = Field(default=None, validation_alias=_either("bookingId", "booking_id"))

    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)

    _raw: dict[str, Any] = PrivateAttr(default_factory=dict)

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> InboundEvent:
        event = cls.model_validate(data)
        event._raw = dict(data)
        return event

    @property
    def target_booking_id(self) -> str | None:
        """Booking this event is about, used by identity guards."""
        return self.booking_id

    def payload(self) -> dict[str, Any]:
        return dict(self._raw)


class NewMessageEvent(InboundEvent):
    kind = EventKind.NEW_MESSAGE

    id: str | None = Field(default=None, validation_alias=_either("id", "_id"))
    sender_id: str | None = Field(default=None, validation_alias=_either("senderId", "sender_id"))
    content: str | None = Field(default=None, validation_alias=AliasChoices("content", "message"))
    message_type: MessageType = Field(
        default=MessageType.TEXT,
        validation_alias=AliasChoices("messageType", "message_type", "type"),
    )
    created_at: datetime | None = Field(default=None, validation_alias=_either("createdAt", "created_at"))
    is_read: bool = Field(default=False, validation_alias=_either("isRead", "is_read"))

    @field_validator("message_type", mode="before")
    @classmethod
    def _image_or_text(cls, value: Any) -> MessageType:
        # Anything that is not an image (system notes, files) renders as text.
        if str(value).lower() == MessageType.IMAGE:
            return MessageType.IMAGE
        return MessageType.TEXT

    def to_message(self) -> Message:
        return Message(
            id=self.id,
            sender_id=self.sender_id,
            content=self.content,
            type=self.message_type,
            created_at=self.created_at,
            is_read=self.is_read,
            booking_id=self.booking_id,
        )


class BookingStatusChangedEvent(InboundEvent):
    kind = EventKind.BOOKING_STATUS_CHANGED

    status: str | None = None


class TypingEvent(InboundEvent):
    kind = EventKind.USER_TYPING

    is_typing: bool = Field(default=False, validation_alias=_either("isTyping", "is_typing"))


class MessageReadEvent(InboundEvent):
    kind = EventKind.MESSAGE_READ

    message_id: str | None = Field(default=None, validation_alias=_either("messageId", "message_id"))


class PaymentConfirmedEvent(InboundEvent):
    kind = EventKind.PAYMENT_CONFIRMED


class JobStartApprovedEvent(InboundEvent):
    kind = EventKind.JOB_START_APPROVED


class JobCompleteApprovedEvent(InboundEvent):
    kind = EventKind.JOB_COMPLETE_APPROVED


class AssignmentTimeoutWarningEvent(InboundEvent):
    kind = EventKind.ASSIGNMENT_TIMEOUT_WARNING

    seconds_remaining: int | None = Field(
        default=None, validation_alias=_either("secondsRemaining", "seconds_remaining"),
    )


class QuoteTimeoutWarningEvent(AssignmentTimeoutWarningEvent):
    kind = EventKind.QUOTE_TIMEOUT_WARNING


class QuoteAcceptedEvent(InboundEvent):
    kind = EventKind.QUOTE_ACCEPTED

    paid_at: str | None = Field(default=None, validation_alias=_either("paidAt", "paid_at"))


class QuoteDeclinedEvent(InboundEvent):
    kind = EventKind.QUOTE_DECLINED


class JobConflictWarningEvent(InboundEvent):
    kind = EventKind.JOB_CONFLICT_WARNING

    current_booking_id: str | None = Field(
        default=None, validation_alias=_either("currentBookingId", "current_booking_id"),
    )

    @property
    def target_booking_id(self) -> str | None:
        return self.current_booking_id


EVENT_MODELS: dict[EventKind, type[InboundEvent]] = {
    model.kind: model
    for model in (
        NewMessageEvent,
        BookingStatusChangedEvent,
        TypingEvent,
        MessageReadEvent,
        PaymentConfirmedEvent,
        JobStartApprovedEvent,
        JobCompleteApprovedEvent,
        AssignmentTimeoutWarningEvent,
        QuoteTimeoutWarningEvent,
        QuoteAcceptedEvent,
        QuoteDeclinedEvent,
        JobConflictWarningEvent,
    )
}


def resolve_kind(event_name: str) -> EventKind | None:
    if event_name in EVENT_ALIASES:
        return EVENT_ALIASES[event_name]
    try:
        return EventKind(event_name)
    except ValueError:
        return None


def parse_event(event_name: str, data: Any) -> InboundEvent | None:
    """Build the typed event for a wire event, or None if the name is unknown.

    Raises pydantic.ValidationError when the payload does not fit the model.
    """
    kind = resolve_kind(event_name)
    if kind is None:
        return None
    if not isinstance(data, dict):
        data = {}
    return EVENT_MODELS[kind].from_wire(data)


def message_from_wire(data: dict[str, Any]) -> Message:
    """Message from a socket ack or REST body (same key spellings as events)."""
    return NewMessageEvent.model_validate(data).to_message()
