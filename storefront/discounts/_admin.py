"""
Discount administration.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront._paging import Page, clamp, paginate
from storefront._types import has_cent_precision, to_cents
from storefront.audit import record_admin_action
from storefront.auth import Admin
from storefront.db import DiscountTable
from storefront.discounts._types import DISCOUNT_TYPES, Discount, normalize_code
from storefront.errors import ConflictError, NotFoundError, ShopError, ValidationError

SORT_COLUMNS = {
    "code": DiscountTable.code,
    "type": DiscountTable.type,
    "value": DiscountTable.value_hundredths,
    "created_at": DiscountTable.created_at,
    "expires_at": DiscountTable.expires_at,
}


@dataclass(frozen=True, slots=True)
class DiscountDraft:
    code: str
    type: str
    value: Decimal
    description: str | None = None
    min_purchase: Decimal | None = None
    usage_limit: int | None = None
    expires_at: datetime | None = None
    active: bool = True


@dataclass(frozen=True, slots=True)
class DiscountPatch:
    code: str | None = None
    type: str | None = None
    value: Decimal | None = None
    description: str | None = None
    min_purchase: Decimal | None = None
    usage_limit: int | None = None
    expires_at: datetime | None = None
    active: bool | None = None


def _check_value(kind: str, value: Decimal) -> Result[int, ValidationError]:
    if kind not in DISCOUNT_TYPES:
        return Error(
            ValidationError("Discount type must be 'percentage' or 'fixed'", "INVALID_TYPE")
        )
    if value <= 0:
        return Error(ValidationError("Discount value must be greater than 0", "INVALID_VALUE"))
    if kind == "percentage" and value > 100:
        return Error(ValidationError("Percentage discount cannot exceed 100", "INVALID_VALUE"))
    if not has_cent_precision(value):
        return Error(
            ValidationError("Discount value must have at most 2 decimal places", "INVALID_VALUE")
        )
    return Ok(to_cents(value))


def _check_limits(
    min_purchase: Decimal | None, usage_limit: int | None
) -> Result[int | None, ValidationError]:
    if usage_limit is not None and usage_limit < 1:
        return Error(ValidationError("Usage limit must be at least 1", "INVALID_USAGE_LIMIT"))
    if min_purchase is None:
        return Ok(None)
    if min_purchase < 0 or not has_cent_precision(min_purchase):
        return Error(
            ValidationError("Minimum purchase must be a non-negative amount", "INVALID_MINIMUM")
        )
    return Ok(to_cents(min_purchase))


async def _code_taken(session: AsyncSession, code: str, exclude_id: int | None = None) -> bool:
    stmt = select(DiscountTable.id).where(DiscountTable.code == code)
    if exclude_id is not None:
        stmt = stmt.where(DiscountTable.id != exclude_id)
    return await session.scalar(stmt) is not None


async def create_discount(
    session: AsyncSession, admin: Admin, draft: DiscountDraft
) -> Result[Discount, ShopError]:
    code = normalize_code(draft.code)
    if not code:
        return Error(ValidationError("Discount code is required"))

    match _check_value(draft.type, draft.value):
        case Error(e):
            return Error(e)
        case Ok(value_hundredths):
            pass
    match _check_limits(draft.min_purchase, draft.usage_limit):
        case Error(e):
            return Error(e)
        case Ok(min_purchase_cents):
            pass

    if await _code_taken(session, code):
        return Error(ConflictError("Discount code already exists", "DUPLICATE_CODE"))

    row = DiscountTable(
        code=code,
        type=draft.type,
        value_hundredths=value_hundredths,
        description=draft.description,
        min_purchase_cents=min_purchase_cents,
        usage_limit=draft.usage_limit,
        used_count=0,
        expires_at=draft.expires_at,
        active=draft.active,
    )
    session.add(row)
    await session.flush()
    record_admin_action(session, admin, "create_discount", "discount", row.id, {"code": code})
    return Ok(Discount.from_row(row))


async def list_discounts(
    session: AsyncSession,
    *,
    active: bool | None = None,
    sort: str = "created_at",
    order: str = "desc",
    page: int | None = None,
    limit: int | None = None,
) -> Page[Discount]:
    page, limit = clamp(page, limit, 20)
    column = SORT_COLUMNS.get(sort, DiscountTable.created_at)
    ordering = column.asc() if order.lower() == "asc" else column.desc()
    stmt = select(DiscountTable).order_by(ordering, DiscountTable.id.desc())
    if active is not None:
        stmt = stmt.where(DiscountTable.active.is_(active))
    return await paginate(session, stmt, page, limit, Discount.from_row)


async def update_discount(
    session: AsyncSession, admin: Admin, discount_id: int, patch: DiscountPatch
) -> Result[Discount, ShopError]:
    row = await session.get(DiscountTable, discount_id)
    if row is None:
        return Error(NotFoundError("Discount not found", "DISCOUNT_NOT_FOUND"))

    changes: dict[str, object] = {}
    if patch.code is not None:
        code = normalize_code(patch.code)
        if not code:
            return Error(ValidationError("Discount code is required"))
        if await _code_taken(session, code, exclude_id=discount_id):
            return Error(ConflictError("Discount code already exists", "DUPLICATE_CODE"))
        row.code = changes["code"] = code

    if patch.type is not None or patch.value is not None:
        kind = patch.type if patch.type is not None else row.type
        value = patch.value if patch.value is not None else Decimal(row.value_hundredths) / 100
        match _check_value(kind, value):
            case Error(e):
                return Error(e)
            case Ok(value_hundredths):
                row.type = changes["type"] = kind
                row.value_hundredths = value_hundredths
                changes["value"] = str(value)

    if patch.min_purchase is not None or patch.usage_limit is not None:
        match _check_limits(patch.min_purchase, patch.usage_limit):
            case Error(e):
                return Error(e)
            case Ok(min_purchase_cents):
                if patch.min_purchase is not None:
                    row.min_purchase_cents = min_purchase_cents
                    changes["min_purchase"] = str(patch.min_purchase)
                if patch.usage_limit is not None:
                    row.usage_limit = changes["usage_limit"] = patch.usage_limit

    if patch.description is not None:
        row.description = changes["description"] = patch.description
    if patch.expires_at is not None:
        row.expires_at = patch.expires_at
        changes["expires_at"] = patch.expires_at.isoformat()
    if patch.active is not None:
        row.active = changes["active"] = patch.active

    await session.flush()
    record_admin_action(session, admin, "update_discount", "discount", discount_id, changes)
    return Ok(Discount.from_row(row))


async def deactivate_discount(
    session: AsyncSession, admin: Admin, discount_id: int
) -> Result[None, NotFoundError]:
    row = await session.get(DiscountTable, discount_id)
    if row is None:
        return Error(NotFoundError("Discount not found", "DISCOUNT_NOT_FOUND"))
    row.active = False
    record_admin_action(session, admin, "delete_discount", "discount", discount_id, {"code": row.code})
    return Ok(None)


__all__ = (
    "DiscountDraft",
    "DiscountPatch",
    "create_discount",
    "list_discounts",
    "update_discount",
    "deactivate_discount",
)
