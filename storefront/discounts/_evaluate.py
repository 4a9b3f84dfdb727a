"""
Discount evaluator.

Checks run in a fixed order: existence/active, expiry, minimum purchase,
usage limit. Evaluation never writes; the usage counter is claimed by the
order transaction through `claim_discount_use`.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront._types import Cents, now, round_cents, to_cents
from storefront.db import DiscountTable
from storefront.discounts._types import AppliedDiscount, DiscountQuote, normalize_code
from storefront.errors import Errors, ShopError, ValidationError


def discount_amount(row: DiscountTable, subtotal: Cents) -> Cents:
    """Amount off `subtotal`, rounded half-up to the cent and capped at it."""
    if row.type == "percentage":
        # value_hundredths is basis points: 1000 == 10%
        amount = round_cents(Decimal(subtotal) * row.value_hundredths / 10_000)
    else:
        amount = row.value_hundredths
    return max(0, min(amount, subtotal))


def check_discount(
    row: DiscountTable | None, subtotal: Cents, at: datetime
) -> Result[Cents, ShopError]:
    if row is None or not row.active:
        return Error(Errors.discount_not_found())
    if row.expires_at is not None and row.expires_at < at:
        return Error(Errors.discount_expired())
    if row.min_purchase_cents is not None and subtotal < row.min_purchase_cents:
        return Error(Errors.minimum_not_met(row.min_purchase_cents))
    if row.usage_limit is not None and row.used_count >= row.usage_limit:
        return Error(Errors.usage_limit_reached())
    return Ok(discount_amount(row, subtotal))


async def evaluate_discount(
    session: AsyncSession,
    code: str,
    subtotal: Cents,
    at: datetime | None = None,
) -> Result[AppliedDiscount, ShopError]:
    normalized = normalize_code(code)
    row = await session.scalar(select(DiscountTable).where(DiscountTable.code == normalized))
    match check_discount(row, subtotal, at or now()):
        case Ok(amount) if row is not None:
            return Ok(AppliedDiscount(row.id, row.code, row.type, amount))
        case Error(e):
            return Error(e)
        case _:
            return Error(Errors.discount_not_found())


async def validate_discount(
    session: AsyncSession, code: str, order_total: Decimal
) -> Result[DiscountQuote, ShopError]:
    """Preview a code against an amount the shopper sees; nothing is reserved."""
    if not code or not code.strip():
        return Error(ValidationError("Discount code is required"))
    if order_total < 0:
        return Error(ValidationError("Order total must be a non-negative number"))

    subtotal = to_cents(order_total)
    match await evaluate_discount(session, code, subtotal):
        case Ok(applied):
            return Ok(DiscountQuote(applied.code, applied.amount, subtotal - applied.amount))
        case Error(e):
            return Error(e)


async def claim_discount_use(
    session: AsyncSession, discount_id: int
) -> Result[None, ShopError]:
    """
    Take one use of a code inside the caller's transaction.

    The limit check and the increment are one UPDATE, so two checkouts
    racing for the last use cannot both win.
    """
    result = await session.execute(
        update(DiscountTable)
        .where(
            DiscountTable.id == discount_id,
            DiscountTable.active.is_(True),
            or_(
                DiscountTable.usage_limit.is_(None),
                DiscountTable.used_count < DiscountTable.usage_limit,
            ),
        )
        .values(used_count=DiscountTable.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return Error(Errors.usage_limit_reached())
    return Ok(None)


__all__ = (
    "discount_amount",
    "check_discount",
    "evaluate_discount",
    "validate_discount",
    "claim_discount_use",
)
