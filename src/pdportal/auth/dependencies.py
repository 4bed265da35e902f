"""FastAPI authentication dependencies."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from pdportal.auth.jwt import verify_token
from pdportal.db.models import UserRole

_bearer = HTTPBearer()


@dataclass(frozen=True)
class Principal:
    """Verified caller identity. Credentials are never re-checked past this point."""

    user_id: int
    role: UserRole


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
) -> Principal:
    """
    Extract and verify the bearer JWT.

    Raises 401 on a missing, invalid or expired token.
    """
    try:
        payload = verify_token(credentials.credentials, expected_type="access")
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    try:
        user_id = int(payload["sub"])
    except (KeyError, ValueError) as e:
        raise HTTPException(status_code=401, detail="Invalid token subject") from e

    return Principal(user_id=user_id, role=UserRole(payload["role"]))


def require_roles(*roles: UserRole) -> Callable[..., Awaitable[Principal]]:
    """Dependency factory: allow only the given roles, 403 otherwise."""
    allowed = frozenset(roles)

    async def _check(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return principal

    return _check
