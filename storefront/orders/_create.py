"""
Order creation — one transaction from cart to pending order.

    address check ─► quote (price, discount, totals) ─► order number
        ─► order row ─► item snapshots ─► discount use ─► empty cart

Stock is not touched here; it is consumed when the payment completes.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront._types import now, to_cents
from storefront.auth import Customer, Principal
from storefront.cart import CartOwner, find_cart, line_requests
from storefront.checkout import quote_checkout
from storefront.config import Settings
from storefront.db import (
    AddressTable,
    CartItemTable,
    OrderItemTable,
    OrderTable,
    SessionFactory,
    UserTable,
    atomic,
)
from storefront.discounts import claim_discount_use
from storefront.errors import Errors, ShopError
from storefront.orders._numbering import allocate_order_number
from storefront.orders._types import Order, OrderItem, PlaceOrder

log = logging.getLogger(__name__)


async def place_order(
    session: AsyncSession,
    settings: Settings,
    customer: Customer,
    request: PlaceOrder,
) -> Result[Order, ShopError]:
    """Build the order inside the caller's transaction. Error means roll back."""
    address = await session.get(AddressTable, request.shipping_address_id)
    if address is None or address.user_id != customer.user_id:
        return Error(Errors.address_not_found())

    owner = CartOwner(user_id=customer.user_id)
    lines = await line_requests(session, owner)
    if not lines:
        return Error(Errors.cart_empty())

    match await quote_checkout(
        session,
        lines,
        vat_rate=settings.vat_rate,
        discount_code=request.discount_code,
        shipping=to_cents(request.shipping_cost),
    ):
        case Error(e):
            return Error(e)
        case Ok(quote):
            pass

    user = await session.get(UserTable, customer.user_id)
    if user is None:
        return Error(Errors.unauthenticated())

    placed_at = now()
    totals = quote.totals
    order = OrderTable(
        order_number=await allocate_order_number(session, placed_at),
        user_id=customer.user_id,
        status="pending",
        payment_status="pending",
        subtotal_cents=totals.subtotal,
        discount_cents=totals.discount,
        discount_code=quote.discount.code if quote.discount is not None else None,
        tax_cents=totals.tax,
        shipping_cents=totals.shipping,
        total_cents=totals.total,
        shipping_line1=address.line1,
        shipping_line2=address.line2,
        shipping_city=address.city,
        shipping_province=address.province,
        shipping_postal_code=address.postal_code,
        shipping_country=address.country,
        customer_email=user.email,
        customer_name=user.name,
        customer_notes=request.customer_notes,
        placed_at=placed_at,
    )
    session.add(order)
    await session.flush()

    items = [
        OrderItemTable(
            order_id=order.id,
            variant_id=line.variant_id,
            product_id=line.product_id,
            product_name=line.product_name,
            variant_details=dict(line.details),
            quantity=line.quantity,
            unit_price_cents=line.unit_price,
            subtotal_cents=line.line_subtotal,
        )
        for line in quote.priced.lines
    ]
    session.add_all(items)

    if quote.discount is not None:
        match await claim_discount_use(session, quote.discount.discount_id):
            case Error(e):
                return Error(e)
            case Ok(_):
                pass

    cart = await find_cart(session, owner)
    if cart is not None:
        await session.execute(delete(CartItemTable).where(CartItemTable.cart_id == cart.id))

    await session.flush()
    log.info(
        "order %s placed by user %s total=%s", order.order_number, customer.user_id, totals.total
    )
    return Ok(Order.from_row(order, tuple(OrderItem.from_row(i) for i in items)))


async def create_order(
    session_factory: SessionFactory,
    settings: Settings,
    principal: Principal,
    request: PlaceOrder,
) -> Result[Order, ShopError]:
    """
    Create a pending order from the customer's cart, atomically.

    Fails with Unauthenticated, AddressNotFound, CartEmpty, any pricing or
    discount failure, or TransactionFailed when storage itself fails. No
    partial order is ever committed.
    """
    match principal:
        case Customer():
            customer = principal
        case _:
            return Error(Errors.unauthenticated())

    try:
        return await atomic(
            session_factory, lambda session: place_order(session, settings, customer, request)
        )
    except SQLAlchemyError:
        log.exception("order transaction failed for user %s", customer.user_id)
        return Error(Errors.transaction_failed())


async def order_items(session: AsyncSession, order_id: int) -> tuple[OrderItem, ...]:
    rows = await session.scalars(
        select(OrderItemTable).where(OrderItemTable.order_id == order_id).order_by(OrderItemTable.id)
    )
    return tuple(OrderItem.from_row(row) for row in rows)


__all__ = ("place_order", "create_order", "order_items")
