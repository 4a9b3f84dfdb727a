"""
Cart — guest and customer carts.

    match CartOwner.of(principal):
        case Ok(owner):
            await db.atomic(session_factory, lambda s: cart.add_item(s, owner, 7, 1))

Prices shown in the cart are always the live stored prices.
"""

from storefront.cart._types import CartOwner, CartLine, CartView, CartValidation
from storefront.cart._service import (
    find_cart,
    get_or_create_cart,
    cart_snapshot,
    line_requests,
    add_item,
    update_item,
    remove_item,
    clear_cart,
    validate_cart,
    merge_guest_cart,
)

__all__ = (
    "CartOwner",
    "CartLine",
    "CartView",
    "CartValidation",
    "find_cart",
    "get_or_create_cart",
    "cart_snapshot",
    "line_requests",
    "add_item",
    "update_item",
    "remove_item",
    "clear_cart",
    "validate_cart",
    "merge_guest_cart",
)
