"""
Admin order status changes.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront._types import now
from storefront.audit import record_admin_action
from storefront.auth import Admin
from storefront.db import OrderTable
from storefront.errors import Errors, ShopError, ValidationError
from storefront.orders._create import order_items
from storefront.orders._types import ORDER_STATUSES, STATUS_TIMESTAMPS, Order

log = logging.getLogger(__name__)


async def update_order_status(
    session: AsyncSession, admin: Admin, order_id: int, status: str
) -> Result[Order, ShopError]:
    """Move an order to `status`, stamping shipped/delivered/cancelled once."""
    if status not in ORDER_STATUSES:
        return Error(
            ValidationError(
                f"Invalid status. Must be one of: {', '.join(ORDER_STATUSES)}", "INVALID_STATUS"
            )
        )

    order = await session.get(OrderTable, order_id)
    if order is None:
        return Error(Errors.order_not_found())

    previous = order.status
    order.status = status
    stamp = STATUS_TIMESTAMPS.get(status)
    if stamp is not None and getattr(order, stamp) is None:
        setattr(order, stamp, now())

    await session.flush()
    record_admin_action(
        session,
        admin,
        "update_order_status",
        "order",
        order_id,
        {"from": previous, "to": status, "order_number": order.order_number},
    )
    log.info("order %s: %s -> %s by admin %s", order.order_number, previous, status, admin.admin_id)
    return Ok(Order.from_row(order, await order_items(session, order_id)))


__all__ = ("update_order_status",)
