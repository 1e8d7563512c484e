"""Security utilities for JWT session tokens and guest manage tokens."""

import secrets
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt

from booking_api.core.config import settings


# =============================================================================
# Session Token (JWT in cookie)
# =============================================================================

def create_session_token(user_id: UUID, team_id: UUID) -> str:
    """
    Create signed session JWT.

    Always signs with current secret (JWT_SECRET). The role is not embedded:
    it is re-read from team membership on every request so demotions apply
    immediately.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "team_id": str(team_id),
        "iat": now,
        "exp": now + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_session_token(token: str) -> dict:
    """
    Decode and verify session JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore


# =============================================================================
# Guest Manage Token
# =============================================================================

def generate_manage_token() -> str:
    """Generate an unguessable guest self-service token (32 bytes, URL-safe base64)."""
    return secrets.token_urlsafe(32)
