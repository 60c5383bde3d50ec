from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from booking_sync.domain.value_objects.enums import BookingStatus

# Bookings in these states will never need a room again.
TERMINAL_STATUSES: frozenset[str] = frozenset({
    BookingStatus.REJECTED,
    BookingStatus.CANCELLED,
    BookingStatus.FAILED,
    BookingStatus.EXPIRED,
    BookingStatus.QUOTE_EXPIRED,
    BookingStatus.QUOTE_REJECTED,
})

# Waiting on a time-bounded answer from one party.
LIMBO_STATUSES: frozenset[str] = frozenset({
    BookingStatus.WAITING_APPROVAL,
    BookingStatus.WAITING_QUOTE,
    BookingStatus.WAITING_ACCEPTANCE,
})

_REQUIRED_ACTIONS: dict[str, str] = {
    BookingStatus.WAITING_APPROVAL: "ACCEPT_OR_REJECT_ASSIGNMENT",
    BookingStatus.WAITING_QUOTE: "SEND_QUOTE",
    BookingStatus.WAITING_ACCEPTANCE: "WAIT_FOR_CUSTOMER",
    BookingStatus.PAID: "GO_TO_LOCATION",
    BookingStatus.ON_THE_WAY: "REQUEST_START",
    BookingStatus.JOB_START_REQUESTED: "WAIT_FOR_START_CONFIRMATION",
    BookingStatus.JOB_STARTED: "REQUEST_COMPLETE",
    BookingStatus.JOB_COMPLETE_REQUESTED: "WAIT_FOR_COMPLETION_CONFIRMATION",
    BookingStatus.COMPLETED: "COMPLETED",
}


def required_action(status: str | None) -> str | None:
    """Next thing the provider has to do for a booking in ``status``."""
    if status is None:
        return None
    return _REQUIRED_ACTIONS.get(status)


def _timeout_at(fields: Mapping[str, Any]) -> datetime | None:
    raw = fields.get("limbo_timeout_at") or fields.get("limboTimeoutAt")
    if not raw:
        return None
    if isinstance(raw, datetime):
        value = raw
    else:
        try:
            value = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
        except ValueError:
            # unreadable deadline counts as none
            return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def remaining_seconds(fields: Mapping[str, Any], now: datetime | None = None) -> float:
    """Seconds left before the limbo deadline; 0 when expired or unknown."""
    deadline = _timeout_at(fields)
    if deadline is None:
        return 0.0
    now = now or datetime.now(timezone.utc)
    return max(0.0, (deadline - now).total_seconds())


def has_timed_out(fields: Mapping[str, Any], now: datetime | None = None) -> bool:
    deadline = _timeout_at(fields)
    if deadline is None:
        return False
    now = now or datetime.now(timezone.utc)
    return now > deadline


def format_time_remaining(seconds: float) -> str:
    if seconds <= 0:
        return "Expired"
    total = int(seconds)
    minutes, secs = divmod(total, 60)
    if minutes >= 60:
        hours, mins = divmod(minutes, 60)
        return f"{hours}h {mins}m"
    return f"{minutes}:{secs:02d}"
