"""
Order reads for customers and admins.
"""

from __future__ import annotations

from datetime import date, datetime, time

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront._paging import Page, clamp, paginate
from storefront.auth import Customer
from storefront.db import OrderTable
from storefront.errors import Errors, ForbiddenError, ShopError
from storefront.orders._create import order_items
from storefront.orders._types import Order


async def list_user_orders(
    session: AsyncSession,
    customer: Customer,
    *,
    status: str | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> Page[Order]:
    page, limit = clamp(page, limit, 10)
    stmt = (
        select(OrderTable)
        .where(OrderTable.user_id == customer.user_id)
        .order_by(OrderTable.placed_at.desc(), OrderTable.id.desc())
    )
    if status:
        stmt = stmt.where(OrderTable.status == status)
    return await paginate(session, stmt, page, limit, Order.from_row)


async def get_user_order(
    session: AsyncSession, customer: Customer, order_id: int
) -> Result[Order, ShopError]:
    row = await session.get(OrderTable, order_id)
    if row is None:
        return Error(Errors.order_not_found())
    if row.user_id != customer.user_id:
        return Error(ForbiddenError("Access denied", "NOT_ORDER_OWNER"))
    return Ok(Order.from_row(row, await order_items(session, order_id)))


async def get_order(session: AsyncSession, order_id: int) -> Result[Order, ShopError]:
    row = await session.get(OrderTable, order_id)
    if row is None:
        return Error(Errors.order_not_found())
    return Ok(Order.from_row(row, await order_items(session, order_id)))


def day_start(day: date) -> datetime:
    return datetime.combine(day, time.min)


def day_end(day: date) -> datetime:
    return datetime.combine(day, time.max)


async def list_orders(
    session: AsyncSession,
    *,
    status: str | None = None,
    payment_status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    search: str | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> Page[Order]:
    """Admin listing; `search` matches order number or customer email."""
    page, limit = clamp(page, limit, 20)
    stmt = select(OrderTable).order_by(OrderTable.placed_at.desc(), OrderTable.id.desc())
    if status:
        stmt = stmt.where(OrderTable.status == status)
    if payment_status:
        stmt = stmt.where(OrderTable.payment_status == payment_status)
    if date_from is not None:
        stmt = stmt.where(OrderTable.placed_at >= day_start(date_from))
    if date_to is not None:
        stmt = stmt.where(OrderTable.placed_at <= day_end(date_to))
    if search:
        pattern = f"%{search.strip().lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(OrderTable.order_number).like(pattern),
                func.lower(OrderTable.customer_email).like(pattern),
            )
        )
    return await paginate(session, stmt, page, limit, Order.from_row)


__all__ = (
    "list_user_orders",
    "get_user_order",
    "get_order",
    "list_orders",
    "day_start",
    "day_end",
)
