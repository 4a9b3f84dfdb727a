"""
Password-reset tokens.

Tokens live in their own table: only a SHA-256 digest is stored, each token
has an explicit expiry, and consuming it is a single conditional UPDATE so a
token can be used at most once even under concurrent requests.
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront._types import now
from storefront.db import PasswordResetTokenTable, UserTable
from storefront.errors import ValidationError
from storefront.mail import Mailer, Message

RESET_TOKEN_TTL = timedelta(hours=1)
MIN_PASSWORD_LENGTH = 8
_PBKDF2_ROUNDS = 390_000


def _digest(raw: str) -> str:
    return hashlib.sha256(raw.encode()).hexdigest()


async def issue_reset_token(
    session: AsyncSession,
    user_id: int,
    ttl: timedelta = RESET_TOKEN_TTL,
) -> str:
    """Store a new token for the user and return the raw value (emailed, never stored)."""
    raw = secrets.token_urlsafe(32)
    session.add(
        PasswordResetTokenTable(
            user_id=user_id,
            token_hash=_digest(raw),
            expires_at=now() + ttl,
        )
    )
    await session.flush()
    return raw


async def consume_reset_token(
    session: AsyncSession, raw: str
) -> Result[int, ValidationError]:
    """Mark the token used and return its user id."""
    digest = _digest(raw)
    stamp = now()
    cursor: Any = await session.execute(
        update(PasswordResetTokenTable)
        .where(
            PasswordResetTokenTable.token_hash == digest,
            PasswordResetTokenTable.used_at.is_(None),
            PasswordResetTokenTable.expires_at > stamp,
        )
        .values(used_at=stamp)
    )
    if cursor.rowcount != 1:
        return Error(ValidationError("Invalid or expired reset token", "INVALID_RESET_TOKEN"))

    user_id = await session.scalar(
        select(PasswordResetTokenTable.user_id).where(
            PasswordResetTokenTable.token_hash == digest
        )
    )
    return Ok(int(user_id))


def hash_password(password: str, *, salt: str | None = None) -> str:
    """`pbkdf2_sha256$rounds$salt$hex`."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), _PBKDF2_ROUNDS)
    return f"pbkdf2_sha256${_PBKDF2_ROUNDS}${salt}${digest.hex()}"


def check_password(password: str, stored: str | None) -> bool:
    if not stored or stored.count("$") != 3:
        return False
    _, rounds, salt, expected = stored.split("$")
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(rounds))
    return secrets.compare_digest(digest.hex(), expected)


async def reset_password(
    session: AsyncSession, raw: str, new_password: str
) -> Result[int, ValidationError]:
    """Consume the token and store the new password hash for its user."""
    if len(new_password or "") < MIN_PASSWORD_LENGTH:
        return Error(
            ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters", "WEAK_PASSWORD"
            )
        )
    match await consume_reset_token(session, raw):
        case Error(e):
            return Error(e)
        case Ok(user_id):
            pass
    user = await session.get(UserTable, user_id)
    if user is None:
        return Error(ValidationError("Invalid or expired reset token", "INVALID_RESET_TOKEN"))
    user.password_hash = hash_password(new_password)
    await session.flush()
    return Ok(user_id)


async def request_password_reset(
    session: AsyncSession, mailer: Mailer, email: str, *, frontend_url: str
) -> None:
    """Email a reset link. Unknown addresses get no mail and no error."""
    user = await session.scalar(
        select(UserTable).where(UserTable.email == email.strip().lower())
    )
    if user is None:
        return
    raw = await issue_reset_token(session, user.id)
    await mailer.send(
        Message(
            to=user.email,
            subject="Reset your password",
            body=f"Reset your password: {frontend_url}/reset-password?token={raw}",
            tag="password_reset",
        )
    )


__all__ = (
    "RESET_TOKEN_TTL",
    "MIN_PASSWORD_LENGTH",
    "issue_reset_token",
    "consume_reset_token",
    "hash_password",
    "check_password",
    "reset_password",
    "request_password_reset",
)
