"""Booking snapshot updates from inbound events.

Every event kind that touches the snapshot has one pure transition
``(snapshot, event) -> snapshot`` in TRANSITIONS. Transitions shallow-merge,
so applying the same event twice gives the same snapshot. Status order is
not enforced: events for one room arrive in emission order.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable

from booking_sync.application.dto.events import InboundEvent
from booking_sync.domain.entities.booking import BookingSnapshot
from booking_sync.domain.value_objects.enums import BookingStatus, EventKind

logger = logging.getLogger(__name__)

Transition = Callable[[BookingSnapshot, InboundEvent], BookingSnapshot]


def _merge_payload(snapshot: BookingSnapshot, event: InboundEvent) -> BookingSnapshot:
    return snapshot.merge(event.payload())


def _status_then_payload(status: str) -> Transition:
    # The payload goes on top, so a server-sent status still wins.
    def transition(snapshot: BookingSnapshot, event: InboundEvent) -> BookingSnapshot:
        return snapshot.merge({"status": status, **event.payload()})

    return transition


def _timeout_warning(snapshot: BookingSnapshot, event: InboundEvent) -> BookingSnapshot:
    return snapshot.merge({
        "timeoutWarning": True,
        "secondsRemaining": getattr(event, "seconds_remaining", None),
    })


def _quote_accepted(snapshot: BookingSnapshot, event: InboundEvent) -> BookingSnapshot:
    updates: dict[str, Any] = {"status": BookingStatus.PAID.value}
    paid_at = getattr(event, "paid_at", None)
    if paid_at:
        updates["paidAt"] = paid_at
    return snapshot.merge(updates)


def _quote_declined(snapshot: BookingSnapshot, event: InboundEvent) -> BookingSnapshot:
    return snapshot.merge({"status": BookingStatus.QUOTE_REJECTED.value, "quoteDeclined": True})


def _job_conflict(snapshot: BookingSnapshot, event: InboundEvent) -> BookingSnapshot:
    return snapshot.merge({"hasConflict": True, "conflictData": event.payload()})


TRANSITIONS: dict[EventKind, Transition] = {
    EventKind.BOOKING_STATUS_CHANGED: _merge_payload,
    EventKind.PAYMENT_CONFIRMED: _status_then_payload(BookingStatus.PAID.value),
    EventKind.JOB_START_APPROVED: _status_then_payload(BookingStatus.JOB_STARTED.value),
    EventKind.JOB_COMPLETE_APPROVED: _status_then_payload(BookingStatus.COMPLETED.value),
    EventKind.ASSIGNMENT_TIMEOUT_WARNING: _timeout_warning,
    EventKind.QUOTE_TIMEOUT_WARNING: _timeout_warning,
    EventKind.QUOTE_ACCEPTED: _quote_accepted,
    EventKind.QUOTE_DECLINED: _quote_declined,
    EventKind.JOB_CONFLICT_WARNING: _job_conflict,
}


class BookingStatusReducer:
    """Holds the snapshot of the active booking and applies events to it."""

    def __init__(self, active_booking_id: str) -> None:
        self._active_booking_id = active_booking_id
        self._snapshot = BookingSnapshot(active_booking_id)

    @property
    def active_booking_id(self) -> str:
        return self._active_booking_id

    @property
    def snapshot(self) -> BookingSnapshot:
        return self._snapshot

    def set_active_booking(self, booking_id: str) -> None:
        self._active_booking_id = booking_id
        self._snapshot = BookingSnapshot(booking_id)

    def seed(self, fields: Mapping[str, Any]) -> None:
        """Merge fields loaded over REST (the initial booking details)."""
        self._snapshot = self._snapshot.merge(fields)

    def apply(self, event: InboundEvent) -> bool:
        """Apply ``event``; returns False when it was discarded."""
        if event.target_booking_id != self._active_booking_id:
            return False
        transition = TRANSITIONS.get(event.kind)
        if transition is None:
            return False
        self._snapshot = transition(self._snapshot, event)
        logger.debug(
            "Booking %s: %s -> status=%s",
            self._active_booking_id, event.kind, self._snapshot.status,
        )
        return True
