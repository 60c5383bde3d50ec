from __future__ import annotations

import jwt

from booking_sync.application.exceptions import UnauthorizedError


def ensure_not_expired(token: str, leeway: float = 0.0) -> None:
    """Reject a missing or already-expired session token before any handshake.

    The signature is not checked here; the server does that on connect.
    Opaque (non-JWT) tokens pass through untouched.
    """
    if not token:
        raise UnauthorizedError("Missing session token")
    try:
        jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": True},
            leeway=leeway,
        )
    except jwt.ExpiredSignatureError as exc:
        raise UnauthorizedError("Session expired") from exc
    except jwt.InvalidTokenError:
        return
