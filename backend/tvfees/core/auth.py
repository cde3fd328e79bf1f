"""Identity helpers.

Sessions and logins belong to the external identity provider. This module only
decodes the bearer token it issues and hands the caller's id and role to the
services as an explicit ``Principal``.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request

from tvfees.core.config import settings
from tvfees.models.user import UserRole


@dataclass(frozen=True)
class Principal:
    """The authenticated caller acting on a request."""

    user_id: UUID
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.COLLECTOR)


def issue_token(user_id: UUID, role: UserRole, ttl_minutes: int = 60) -> str:
    """Sign a token the way the identity provider does (used by tests and scripts)."""
    payload = {
        "sub": str(user_id),
        "role": role.value,
        "exp": datetime.now(UTC) + timedelta(minutes=ttl_minutes),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Principal:
    claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    return Principal(user_id=UUID(claims["sub"]), role=UserRole(claims["role"]))


def get_current_principal(request: Request) -> Principal:
    """Extract the principal from the ``Authorization: Bearer`` header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Authorization header is required")

    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header format")

    token = auth_header[7:]
    if not token:
        raise HTTPException(status_code=401, detail="Token is required")

    try:
        return decode_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired") from None
    except (jwt.InvalidTokenError, KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token") from None


def require_roles(*roles: UserRole) -> Callable[[Principal], Principal]:
    """Dependency factory that only admits principals holding one of ``roles``."""

    def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in roles:
            raise HTTPException(status_code=403, detail="Insufficient role for this operation")
        return principal

    return dependency
