"""
JWT access token management.

Tokens are issued by the portal's login flow and carry the user's role, so the
API can authorize requests without another database lookup.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from pdportal.config import get_settings
from pdportal.db.models import UserRole


def create_access_token(user_id: int, role: str, email: str = "") -> str:
    """
    Create a signed access token.

    Args:
        user_id: The user's database ID.
        role: One of admin, manager, staff.
        email: Optional email claim for display.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "role": UserRole(role).value,
        "email": email,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_access_token_expire_minutes),
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str, expected_type: str = "access") -> dict[str, Any]:
    """
    Verify and decode a JWT token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, of the wrong
            type, or carries an unknown role.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type") != expected_type:
        msg = f"Expected token type '{expected_type}', got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)

    try:
        UserRole(payload.get("role", ""))
    except ValueError:
        msg = "Token carries an unknown role"
        raise jwt.InvalidTokenError(msg) from None

    return payload
