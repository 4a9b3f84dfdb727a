"""
Order types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from storefront._types import Cents
from storefront.db import OrderItemTable, OrderTable

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")

# Timestamp stamped the first time an order reaches the status.
STATUS_TIMESTAMPS = {
    "shipped": "shipped_at",
    "delivered": "delivered_at",
    "cancelled": "cancelled_at",
}


@dataclass(frozen=True, slots=True)
class PlaceOrder:
    shipping_address_id: int
    customer_notes: str | None = None
    discount_code: str | None = None
    shipping_cost: Decimal = Decimal("0")


@dataclass(frozen=True, slots=True)
class ShippingAddress:
    line1: str
    line2: str | None
    city: str
    province: str
    postal_code: str
    country: str


@dataclass(frozen=True, slots=True)
class OrderItem:
    id: int
    variant_id: int | None
    product_id: int | None
    product_name: str
    details: dict[str, Any]
    quantity: int
    unit_price: Cents
    subtotal: Cents

    @classmethod
    def from_row(cls, row: OrderItemTable) -> OrderItem:
        return cls(
            row.id,
            row.variant_id,
            row.product_id,
            row.product_name,
            dict(row.variant_details or {}),
            row.quantity,
            row.unit_price_cents,
            row.subtotal_cents,
        )


@dataclass(frozen=True, slots=True)
class Order:
    id: int
    order_number: str
    user_id: int
    status: str
    payment_status: str
    subtotal: Cents
    discount: Cents
    discount_code: str | None
    tax: Cents
    shipping: Cents
    total: Cents
    address: ShippingAddress
    customer_email: str
    customer_name: str
    customer_notes: str | None
    placed_at: datetime
    paid_at: datetime | None
    shipped_at: datetime | None
    delivered_at: datetime | None
    cancelled_at: datetime | None
    items: tuple[OrderItem, ...] = ()

    @classmethod
    def from_row(cls, row: OrderTable, items: tuple[OrderItem, ...] = ()) -> Order:
        return cls(
            id=row.id,
            order_number=row.order_number,
            user_id=row.user_id,
            status=row.status,
            payment_status=row.payment_status,
            subtotal=row.subtotal_cents,
            discount=row.discount_cents,
            discount_code=row.discount_code,
            tax=row.tax_cents,
            shipping=row.shipping_cents,
            total=row.total_cents,
            address=ShippingAddress(
                row.shipping_line1,
                row.shipping_line2,
                row.shipping_city,
                row.shipping_province,
                row.shipping_postal_code,
                row.shipping_country,
            ),
            customer_email=row.customer_email,
            customer_name=row.customer_name,
            customer_notes=row.customer_notes,
            placed_at=row.placed_at,
            paid_at=row.paid_at,
            shipped_at=row.shipped_at,
            delivered_at=row.delivered_at,
            cancelled_at=row.cancelled_at,
            items=items,
        )


__all__ = (
    "ORDER_STATUSES",
    "PAYMENT_STATUSES",
    "STATUS_TIMESTAMPS",
    "PlaceOrder",
    "ShippingAddress",
    "OrderItem",
    "Order",
)
