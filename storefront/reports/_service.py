"""
Reports — sales figures and the admin dashboard.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront._types import Cents, round_cents
from storefront.db import OrderTable, ProductTable, UserTable, VariantTable
from storefront.errors import ValidationError
from storefront.orders import day_end, day_start


@dataclass(frozen=True, slots=True)
class DailySales:
    day: str
    orders: int
    revenue: Cents


@dataclass(frozen=True, slots=True)
class SalesReport:
    date_from: date
    date_to: date
    order_count: int
    revenue: Cents
    average_order_value: Cents
    unique_customers: int
    daily: list[DailySales]


@dataclass(frozen=True, slots=True)
class DashboardStats:
    total_orders: int
    pending_orders: int
    paid_revenue: Cents
    customers: int
    active_products: int
    low_stock_variants: int


async def sales_report(
    session: AsyncSession, date_from: date, date_to: date
) -> Result[SalesReport, ValidationError]:
    """Orders placed in [date_from, date_to], cancelled ones excluded."""
    if date_from > date_to:
        return Error(ValidationError("date_from must not be after date_to", "INVALID_RANGE"))

    window = (
        OrderTable.placed_at >= day_start(date_from),
        OrderTable.placed_at <= day_end(date_to),
        OrderTable.status != "cancelled",
    )
    count, revenue, customers = (
        await session.execute(
            select(
                func.count(OrderTable.id),
                func.coalesce(func.sum(OrderTable.total_cents), 0),
                func.count(func.distinct(OrderTable.user_id)),
            ).where(*window)
        )
    ).one()

    day = func.date(OrderTable.placed_at)
    rows = await session.execute(
        select(day, func.count(OrderTable.id), func.coalesce(func.sum(OrderTable.total_cents), 0))
        .where(*window)
        .group_by(day)
        .order_by(day)
    )
    daily = [DailySales(str(d), int(n), int(total)) for d, n, total in rows]

    count, revenue = int(count or 0), int(revenue or 0)
    return Ok(
        SalesReport(
            date_from=date_from,
            date_to=date_to,
            order_count=count,
            revenue=revenue,
            average_order_value=_average(revenue, count),
            unique_customers=int(customers or 0),
            daily=daily,
        )
    )


def _average(total: Cents, count: int) -> Cents:
    return round_cents(Decimal(total) / count) if count else 0


async def dashboard_stats(session: AsyncSession, low_stock_threshold: int) -> DashboardStats:
    total_orders, pending_orders, paid_revenue = (
        await session.execute(
            select(
                func.count(OrderTable.id),
                func.count(OrderTable.id).filter(OrderTable.status == "pending"),
                func.coalesce(
                    func.sum(OrderTable.total_cents).filter(OrderTable.payment_status == "paid"), 0
                ),
            )
        )
    ).one()
    customers = await session.scalar(select(func.count(UserTable.id)))
    active_products = await session.scalar(
        select(func.count(ProductTable.id)).where(ProductTable.active.is_(True))
    )
    low_stock = await session.scalar(
        select(func.count(VariantTable.id)).where(
            VariantTable.active.is_(True), VariantTable.stock <= low_stock_threshold
        )
    )
    return DashboardStats(
        total_orders=int(total_orders or 0),
        pending_orders=int(pending_orders or 0),
        paid_revenue=int(paid_revenue or 0),
        customers=int(customers or 0),
        active_products=int(active_products or 0),
        low_stock_variants=int(low_stock or 0),
    )


__all__ = ("DailySales", "SalesReport", "DashboardStats", "sales_report", "dashboard_stats")
