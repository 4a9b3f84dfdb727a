"""
Orders — creation, numbering, queries and admin status updates.

    match await orders.create_order(session_factory, settings, principal, PlaceOrder(shipping_address_id=3)):
        case Ok(order):
            order.order_number  # ORD-20250301-0007
        case Error(e):
            ...  # nothing was written
"""

from storefront.orders._types import (
    ORDER_STATUSES,
    PAYMENT_STATUSES,
    STATUS_TIMESTAMPS,
    PlaceOrder,
    ShippingAddress,
    OrderItem,
    Order,
)
from storefront.orders._numbering import PREFIX, format_order_number, allocate_order_number
from storefront.orders._create import place_order, create_order, order_items
from storefront.orders._queries import (
    list_user_orders,
    get_user_order,
    get_order,
    list_orders,
    day_start,
    day_end,
)
from storefront.orders._admin import update_order_status

__all__ = (
    # Types
    "ORDER_STATUSES",
    "PAYMENT_STATUSES",
    "STATUS_TIMESTAMPS",
    "PlaceOrder",
    "ShippingAddress",
    "OrderItem",
    "Order",
    # Numbering
    "PREFIX",
    "format_order_number",
    "allocate_order_number",
    # Creation
    "place_order",
    "create_order",
    "order_items",
    # Queries
    "list_user_orders",
    "get_user_order",
    "get_order",
    "list_orders",
    "day_start",
    "day_end",
    # Admin
    "update_order_status",
)
