"""Map a notification payload (push, toast or list item) to a screen."""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable

from booking_sync.domain.entities.notification import NotificationTarget

MESSAGE_TYPES = frozenset({"new_message", "message"})
REVIEW_TYPES = frozenset({"review", "new_review", "review_response", "new_business_review"})
WITHDRAWAL_TYPES = frozenset({
    "withdrawal", "withdrawal_completed", "withdrawal_failed", "withdrawal_approved",
})
REFERRAL_TYPES = frozenset({"referral_reward", "referral_expired"})
TIER_TYPES = frozenset({"tier_upgraded", "tier_downgraded"})
EARNINGS_TYPES = frozenset({"points_expiring", "signup_incentive_expired"})

_FIXED_SCREENS: tuple[tuple[frozenset[str], str], ...] = (
    (REVIEW_TYPES, "Reviews"),
    (WITHDRAWAL_TYPES, "Withdrawals"),
    (REFERRAL_TYPES, "Referrals"),
    (TIER_TYPES, "Tier"),
    (EARNINGS_TYPES, "Earnings"),
)

Navigate = Callable[[str, Mapping[str, Any] | None], Any]


def route_notification(payload: Mapping[str, Any] | None) -> NotificationTarget:
    payload = payload or {}
    # camelCase from push/socket, snake_case from the API
    booking_id = payload.get("bookingId") or payload.get("booking_id")
    kind = payload.get("type")

    if kind in MESSAGE_TYPES:
        if booking_id:
            return NotificationTarget("Chat", {"bookingId": booking_id})
        return NotificationTarget("Chats")

    for types, screen in _FIXED_SCREENS:
        if kind in types:
            return NotificationTarget(screen)

    # Every other booking lifecycle notification: requests, quotes,
    # payments, job start/complete, cancellations, reminders.
    if booking_id:
        return NotificationTarget("BookingDetails", {"bookingId": booking_id})

    return NotificationTarget("Notifications")


def navigate_to_notification(navigate: Navigate | None, payload: Mapping[str, Any] | None) -> bool:
    """Route ``payload`` and hand the result to ``navigate(screen, params)``."""
    if navigate is None:
        return False
    target = route_notification(payload)
    navigate(target.screen, target.params)
    return True
