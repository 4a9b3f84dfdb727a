"""
Returns — customer requests and admin decisions.

A return moves requested -> approved | rejected, and approved or requested
-> refunded. Rejected and refunded are terminal; an order can have at most
one open (non-terminal) return at a time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront._paging import Page, clamp, paginate
from storefront._types import Cents, from_cents, has_cent_precision, to_cents
from storefront.audit import record_admin_action
from storefront.auth import Admin, Customer
from storefront.db import OrderTable, ReturnTable
from storefront.errors import ConflictError, Errors, NotFoundError, ShopError, ValidationError
from storefront.orders import day_end, day_start

RETURN_STATUSES = ("requested", "approved", "rejected", "refunded")
OPEN_STATUSES = ("requested", "approved")

SORT_COLUMNS = {
    "created_at": ReturnTable.created_at,
    "updated_at": ReturnTable.updated_at,
    "status": ReturnTable.status,
    "refund_amount": ReturnTable.refund_amount_cents,
}


@dataclass(frozen=True, slots=True)
class ReturnRequest:
    id: int
    order_id: int
    user_id: int
    reason: str
    items: list[Any]
    status: str
    refund_amount: Cents | None
    admin_notes: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: ReturnTable) -> ReturnRequest:
        return cls(
            row.id,
            row.order_id,
            row.user_id,
            row.reason,
            list(row.items or []),
            row.status,
            row.refund_amount_cents,
            row.admin_notes,
            row.created_at,
            row.updated_at,
        )


def _not_found() -> NotFoundError:
    return NotFoundError("Return request not found", "RETURN_NOT_FOUND")


async def create_return(
    session: AsyncSession,
    customer: Customer,
    order_id: int,
    reason: str,
    items: list[Any] | None = None,
) -> Result[ReturnRequest, ShopError]:
    if not reason or not reason.strip():
        return Error(ValidationError("Return reason is required", "REASON_REQUIRED"))

    order = await session.get(OrderTable, order_id)
    if order is None or order.user_id != customer.user_id:
        return Error(Errors.order_not_found())
    if order.status != "delivered":
        return Error(
            ValidationError("Only delivered orders can be returned", "ORDER_NOT_DELIVERED")
        )

    open_return = await session.scalar(
        select(ReturnTable.id).where(
            ReturnTable.order_id == order_id, ReturnTable.status.in_(OPEN_STATUSES)
        )
    )
    if open_return is not None:
        return Error(
            ConflictError("A return request already exists for this order", "RETURN_EXISTS")
        )

    row = ReturnTable(
        order_id=order_id,
        user_id=customer.user_id,
        reason=reason.strip(),
        items=list(items or []),
        status="requested",
    )
    session.add(row)
    await session.flush()
    return Ok(ReturnRequest.from_row(row))


async def list_user_returns(
    session: AsyncSession,
    customer: Customer,
    *,
    status: str | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> Page[ReturnRequest]:
    page, limit = clamp(page, limit, 10)
    stmt = (
        select(ReturnTable)
        .where(ReturnTable.user_id == customer.user_id)
        .order_by(ReturnTable.created_at.desc(), ReturnTable.id.desc())
    )
    if status:
        stmt = stmt.where(ReturnTable.status == status)
    return await paginate(session, stmt, page, limit, ReturnRequest.from_row)


async def list_returns(
    session: AsyncSession,
    *,
    status: str | None = None,
    user_id: int | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    sort: str = "created_at",
    order: str = "desc",
    page: int | None = None,
    limit: int | None = None,
) -> Page[ReturnRequest]:
    page, limit = clamp(page, limit, 20)
    column = SORT_COLUMNS.get(sort, ReturnTable.created_at)
    stmt = select(ReturnTable).order_by(
        column.asc() if order.lower() == "asc" else column.desc(), ReturnTable.id.desc()
    )
    if status:
        stmt = stmt.where(ReturnTable.status == status)
    if user_id is not None:
        stmt = stmt.where(ReturnTable.user_id == user_id)
    if date_from is not None:
        stmt = stmt.where(ReturnTable.created_at >= day_start(date_from))
    if date_to is not None:
        stmt = stmt.where(ReturnTable.created_at <= day_end(date_to))
    return await paginate(session, stmt, page, limit, ReturnRequest.from_row)


async def _refunded_elsewhere(session: AsyncSession, row: ReturnTable) -> Cents:
    """Sum refunded by the order's other returns."""
    total = await session.scalar(
        select(func.coalesce(func.sum(ReturnTable.refund_amount_cents), 0)).where(
            ReturnTable.order_id == row.order_id,
            ReturnTable.status == "refunded",
            ReturnTable.id != row.id,
        )
    )
    return total or 0


async def update_return_status(
    session: AsyncSession,
    admin: Admin,
    return_id: int,
    status: str,
    *,
    refund_amount: Decimal | None = None,
    admin_notes: str | None = None,
) -> Result[ReturnRequest, ShopError]:
    if status not in RETURN_STATUSES:
        return Error(
            ValidationError(
                f"Invalid status. Must be one of: {', '.join(RETURN_STATUSES)}", "INVALID_STATUS"
            )
        )

    row = await session.get(ReturnTable, return_id)
    if row is None:
        return Error(_not_found())
    if row.status not in OPEN_STATUSES and row.status != status:
        return Error(
            ValidationError(f"Return request is already {row.status}", "RETURN_CLOSED")
        )

    if status == "refunded":
        order = await session.get(OrderTable, row.order_id)
        if refund_amount is None or refund_amount <= 0 or not has_cent_precision(refund_amount):
            return Error(
                ValidationError("A positive refund amount is required", "INVALID_REFUND_AMOUNT")
            )
        cents = to_cents(refund_amount)
        if order is None or cents > order.total_cents:
            return Error(
                ValidationError(
                    "Refund amount cannot exceed the order total", "INVALID_REFUND_AMOUNT"
                )
            )
        remaining = order.total_cents - await _refunded_elsewhere(session, row)
        if cents > remaining:
            return Error(
                ValidationError(
                    f"Only R{from_cents(max(remaining, 0))} of this order is left to refund",
                    "INVALID_REFUND_AMOUNT",
                )
            )
        row.refund_amount_cents = cents

    previous = row.status
    row.status = status
    if admin_notes is not None:
        row.admin_notes = admin_notes

    await session.flush()
    record_admin_action(
        session,
        admin,
        "update_return_status",
        "return",
        return_id,
        {"from": previous, "to": status, "refund_amount": row.refund_amount_cents},
    )
    return Ok(ReturnRequest.from_row(row))


__all__ = (
    "RETURN_STATUSES",
    "OPEN_STATUSES",
    "ReturnRequest",
    "create_return",
    "list_user_returns",
    "list_returns",
    "update_return_status",
)
