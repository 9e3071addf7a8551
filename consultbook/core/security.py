"""Caller identity from bearer JWT."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from consultbook.core.config import get_settings
from consultbook.core.enums import RoleEnum
from consultbook.shared.exceptions import ForbiddenException, UnauthorizedException

settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=False)

TOKEN_ROLES = frozenset({RoleEnum.USER, RoleEnum.EXPERT, RoleEnum.ADMIN})


@dataclass(frozen=True)
class Actor:
    """Authenticated caller."""

    id: UUID
    role: RoleEnum

    @property
    def is_admin(self) -> bool:
        return self.role == RoleEnum.ADMIN


SYSTEM_ACTOR = Actor(id=UUID(int=0), role=RoleEnum.SYSTEM)


def create_access_token(subject: str, role: RoleEnum | str, **claims: Any) -> str:
    """Create signed access token (used by tooling and tests)."""
    payload: dict[str, Any] = {
        "sub": subject,
        "type": "access",
        "role": str(role),
        "exp": datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes),
    }
    payload.update(claims)
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
    """Decode and validate JWT token."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise UnauthorizedException("Invalid token") from exc


def actor_from_token(token: str) -> Actor:
    """Build an Actor from access token claims."""
    payload = decode_token(token)
    if payload.get("type") != "access":
        raise UnauthorizedException("Invalid token type")

    try:
        actor_id = UUID(str(payload.get("sub")))
        role = RoleEnum(str(payload.get("role")))
    except ValueError as exc:
        raise UnauthorizedException("Invalid token claims") from exc

    if role not in TOKEN_ROLES:
        raise UnauthorizedException("Role is not accepted from tokens")
    return Actor(id=actor_id, role=role)


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Actor:
    """Resolve caller identity from bearer token."""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedException("Authentication required")
    return actor_from_token(credentials.credentials)


def require_roles(*roles: RoleEnum):
    """Dependency factory for role-based access."""

    async def _checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            raise ForbiddenException("Operation not permitted for your role")
        return actor

    return _checker
