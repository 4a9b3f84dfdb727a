"""
Cart types.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from kungfu import Result, Ok, Error

from storefront._types import Cents
from storefront.auth import Admin, Customer, Guest, Principal
from storefront.errors import ForbiddenError


@dataclass(frozen=True, slots=True)
class CartOwner:
    """Exactly one of user_id / session_id identifies a cart."""

    user_id: int | None = None
    session_id: str | None = None

    @classmethod
    def of(cls, principal: Principal) -> Result[CartOwner, ForbiddenError]:
        """Customers own carts by user id; guests by session id (minted if absent)."""
        match principal:
            case Customer(user_id=user_id):
                return Ok(cls(user_id=user_id))
            case Guest(session_id=session_id):
                return Ok(cls(session_id=session_id or str(uuid.uuid4())))
            case Admin():
                return Error(ForbiddenError("Admins do not have a cart", "NO_CART"))


@dataclass(frozen=True, slots=True)
class CartLine:
    item_id: int
    variant_id: int
    product_id: int
    product_name: str
    details: dict[str, Any]
    quantity: int
    unit_price: Cents
    line_total: Cents
    stock: int
    available: bool


@dataclass(frozen=True, slots=True)
class CartView:
    cart_id: int | None
    session_id: str | None
    lines: tuple[CartLine, ...] = ()

    @property
    def subtotal(self) -> Cents:
        return sum(line.line_total for line in self.lines)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)


@dataclass(frozen=True, slots=True)
class CartValidation:
    cart: CartView
    errors: list[str] = field(default_factory=list[str])
    warnings: list[str] = field(default_factory=list[str])

    @property
    def valid(self) -> bool:
        return not self.errors


__all__ = ("CartOwner", "CartLine", "CartView", "CartValidation")
