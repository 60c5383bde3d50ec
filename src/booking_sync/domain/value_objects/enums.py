from __future__ import annotations

from enum import StrEnum


class MessageType(StrEnum):
    TEXT = "text"
    IMAGE = "image"


class ConnectionStatus(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class EventKind(StrEnum):
    """Inbound socket events; the value is the wire event name."""

    NEW_MESSAGE = "new-message"
    BOOKING_STATUS_CHANGED = "booking-status-changed"
    USER_TYPING = "user-typing"
    MESSAGE_READ = "message-read"
    PAYMENT_CONFIRMED = "payment-confirmed"
    JOB_START_APPROVED = "job-start-approved"
    JOB_COMPLETE_APPROVED = "job-complete-approved"
    ASSIGNMENT_TIMEOUT_WARNING = "assignment-timeout-warning"
    QUOTE_TIMEOUT_WARNING = "quote-timeout-warning"
    QUOTE_ACCEPTED = "quote-accepted"
    QUOTE_DECLINED = "quote-declined"
    JOB_CONFLICT_WARNING = "job-conflict-warning"


# Both typing events carry the same payload and mean the same thing.
EVENT_ALIASES: dict[str, EventKind] = {
    "customer-typing": EventKind.USER_TYPING,
}


class OutboundEvent(StrEnum):
    JOIN_BOOKING = "join-booking"
    LEAVE_BOOKING = "leave-booking"
    SEND_MESSAGE = "send-message"
    TYPING = "typing"
    MARK_READ = "mark-read"


class BookingStatus(StrEnum):
    WAITING_APPROVAL = "waiting_approval"
    WAITING_QUOTE = "waiting_quote"
    WAITING_ACCEPTANCE = "waiting_acceptance"
    PAID = "paid"
    ON_THE_WAY = "on_the_way"
    JOB_START_REQUESTED = "job_start_requested"
    JOB_STARTED = "job_started"
    JOB_COMPLETE_REQUESTED = "job_complete_requested"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    FAILED = "failed"
    EXPIRED = "expired"
    QUOTE_EXPIRED = "quote_expired"
    QUOTE_REJECTED = "quote_rejected"


class ErrorKind(StrEnum):
    RATE_LIMITED = "RATE_LIMITED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    GENERIC = "GENERIC"
