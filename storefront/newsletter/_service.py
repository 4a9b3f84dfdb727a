"""
Newsletter subscriptions with double opt-in.

    subscribe ─► (mail with token) ─► verify ─► ... ─► unsubscribe ─► subscribe again
"""

from __future__ import annotations

import csv
import io
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import ColumnElement, select, true
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront._paging import Page, clamp, paginate
from storefront._types import now
from storefront.db import NewsletterSubscriberTable
from storefront.errors import ShopError, ValidationError
from storefront.mail import Mailer, Message

log = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
CSV_HEADER = ("Email", "Verified", "Subscribed At", "Unsubscribed At")

_S = NewsletterSubscriberTable

# "active" is accepted as an alias of "verified".
STATUS_FILTERS: dict[str, ColumnElement[bool]] = {
    "verified": (_S.is_verified.is_(True)) & (_S.unsubscribed_at.is_(None)),
    "active": (_S.is_verified.is_(True)) & (_S.unsubscribed_at.is_(None)),
    "pending": (_S.is_verified.is_(False)) & (_S.unsubscribed_at.is_(None)),
    "unsubscribed": _S.unsubscribed_at.is_not(None),
    "all": true(),
}


@dataclass(frozen=True, slots=True)
class Subscriber:
    id: int
    email: str
    is_verified: bool
    subscribed_at: datetime
    verified_at: datetime | None
    unsubscribed_at: datetime | None

    @classmethod
    def from_row(cls, row: NewsletterSubscriberTable) -> Subscriber:
        return cls(
            row.id,
            row.email,
            row.is_verified,
            row.subscribed_at,
            row.verified_at,
            row.unsubscribed_at,
        )


def _verification_message(frontend_url: str, email: str, token: str) -> Message:
    return Message(
        to=email,
        subject="Confirm your newsletter subscription",
        body=f"Confirm your subscription: {frontend_url}/newsletter/verify?token={token}",
        tag="newsletter_verification",
    )


async def subscribe(
    session: AsyncSession,
    mailer: Mailer,
    email: str,
    *,
    frontend_url: str,
    ip_address: str | None = None,
) -> Result[str, ShopError]:
    """Start (or restart) a subscription. Returns the message for the user."""
    if not email or not email.strip():
        return Error(ValidationError("Email is required", "EMAIL_REQUIRED"))
    email = email.strip().lower()
    if not EMAIL_RE.match(email):
        return Error(ValidationError("Invalid email format", "INVALID_EMAIL"))

    row = await session.scalar(select(_S).where(_S.email == email))
    if row is not None and row.unsubscribed_at is None:
        if row.is_verified:
            return Ok("You are already subscribed to our newsletter")
        return Ok("A verification email has already been sent. Please check your inbox.")

    token = secrets.token_hex(32)
    if row is None:
        session.add(_S(email=email, verification_token=token, ip_address=ip_address))
    else:
        row.is_verified = False
        row.verification_token = token
        row.unsubscribed_at = None
        row.verified_at = None
        row.subscribed_at = now()
        row.ip_address = ip_address
    await session.flush()

    await mailer.send(_verification_message(frontend_url, email, token))
    return Ok("Please check your email to confirm your subscription")


async def verify_subscription(session: AsyncSession, token: str) -> Result[str, ShopError]:
    if not token:
        return Error(ValidationError("Verification token is required", "TOKEN_REQUIRED"))
    row = await session.scalar(select(_S).where(_S.verification_token == token))
    if row is None:
        return Error(ValidationError("Invalid verification token", "INVALID_TOKEN"))
    if row.is_verified:
        return Ok("Email already verified. You are subscribed to our newsletter!")
    row.is_verified = True
    row.verified_at = now()
    await session.flush()
    return Ok("Email verified successfully! You are now subscribed to our newsletter.")


async def unsubscribe(session: AsyncSession, email: str) -> Result[str, ShopError]:
    if not email or not email.strip():
        return Error(ValidationError("Email is required", "EMAIL_REQUIRED"))
    row = await session.scalar(
        select(_S).where(_S.email == email.strip().lower(), _S.unsubscribed_at.is_(None))
    )
    if row is None:
        return Ok("Email is not subscribed or already unsubscribed")
    row.unsubscribed_at = now()
    await session.flush()
    log.info("newsletter: %s unsubscribed", row.email)
    return Ok("Successfully unsubscribed from newsletter")


def _filter(status: str) -> ColumnElement[bool]:
    return STATUS_FILTERS.get(status, STATUS_FILTERS["all"])


async def list_subscribers(
    session: AsyncSession,
    *,
    status: str = "verified",
    page: int | None = None,
    limit: int | None = None,
) -> Page[Subscriber]:
    page, limit = clamp(page, limit, 50)
    stmt = select(_S).where(_filter(status)).order_by(_S.subscribed_at.desc(), _S.id.desc())
    return await paginate(session, stmt, page, limit, Subscriber.from_row)


def _cell(value: datetime | None) -> str:
    return value.isoformat(sep=" ", timespec="seconds") if value is not None else ""


async def export_subscribers_csv(session: AsyncSession, *, status: str = "verified") -> str:
    rows = await session.scalars(
        select(_S).where(_filter(status)).order_by(_S.subscribed_at.desc(), _S.id.desc())
    )
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for row in rows:
        writer.writerow(
            (
                row.email,
                "Yes" if row.is_verified else "No",
                _cell(row.subscribed_at),
                _cell(row.unsubscribed_at),
            )
        )
    return buffer.getvalue()


__all__ = (
    "EMAIL_RE",
    "CSV_HEADER",
    "STATUS_FILTERS",
    "Subscriber",
    "subscribe",
    "verify_subscription",
    "unsubscribe",
    "list_subscribers",
    "export_subscribers_csv",
)
