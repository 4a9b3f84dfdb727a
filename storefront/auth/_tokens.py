"""
Bearer tokens (PyJWT, HS256) and principal resolution.

Customer tokens are signed with `jwt_secret` and carry `id`; admin tokens are
signed with `admin_jwt_secret` and carry `id` + `role`. Issuing tokens for
real logins happens elsewhere; `issue_token` exists for tooling and tests.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront.auth._principal import Admin, Customer, Guest, Principal
from storefront.config import Settings
from storefront.db import UserTable
from storefront.errors import AuthError

log = logging.getLogger(__name__)

ALGORITHM = "HS256"
ADMIN_ROLES = frozenset({"admin", "super_admin", "manager"})


def issue_token(
    settings: Settings,
    subject_id: int,
    *,
    role: str | None = None,
    ttl: timedelta | None = None,
) -> str:
    """Admin token when `role` is given, customer token otherwise."""
    expires = datetime.now(timezone.utc) + (ttl or timedelta(hours=settings.token_ttl_hours))
    claims: dict[str, Any] = {"id": subject_id, "exp": expires}
    if role is not None:
        claims["role"] = role
        return jwt.encode(claims, settings.admin_jwt_secret, algorithm=ALGORITHM)
    return jwt.encode(claims, settings.jwt_secret, algorithm=ALGORITHM)


def _decode(token: str, secret: str) -> dict[str, Any]:
    return jwt.decode(token, secret, algorithms=[ALGORITHM])


def bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization[len("Bearer "):].strip() or None


async def resolve_principal(
    settings: Settings,
    session: AsyncSession,
    authorization: str | None,
    session_id: str | None,
) -> Result[Principal, AuthError]:
    """
    Map request credentials to a Principal.

    No bearer token → Guest (optionally carrying the cart session id).
    """
    token = bearer_token(authorization)
    if token is None:
        return Ok(Guest(session_id))

    try:
        claims = _decode(token, settings.admin_jwt_secret)
        if claims.get("role") in ADMIN_ROLES:
            return Ok(Admin(int(claims["id"]), str(claims["role"])))
    except jwt.ExpiredSignatureError:
        return Error(AuthError("Token expired. Please login again.", "TOKEN_EXPIRED"))
    except jwt.InvalidTokenError:
        pass

    try:
        claims = _decode(token, settings.jwt_secret)
    except jwt.ExpiredSignatureError:
        return Error(AuthError("Token expired. Please login again.", "TOKEN_EXPIRED"))
    except jwt.InvalidTokenError:
        return Error(AuthError("Invalid token. Please login again.", "INVALID_TOKEN"))

    user_id = claims.get("id")
    if not isinstance(user_id, int):
        return Error(AuthError("Invalid token. Please login again.", "INVALID_TOKEN"))

    exists = await session.scalar(select(UserTable.id).where(UserTable.id == user_id))
    if exists is None:
        log.info("token for unknown user %s", user_id)
        return Error(AuthError("User not found. Please login again.", "USER_NOT_FOUND"))

    return Ok(Customer(user_id, session_id))


__all__ = ("ALGORITHM", "issue_token", "bearer_token", "resolve_principal")
