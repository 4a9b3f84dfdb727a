"""
Checkout quote graph.

    CheckoutInputNode
         │
         ▼
    PricedCartNode ──► DiscountNode ──► TotalsNode ──► QuoteNode

Every node shares the caller's AsyncSession, and each depends on the one
before it, so database access inside the graph stays sequential.
Nodes raise ShopError; `QuoteNode.execute` turns it back into a Result.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront import graph as G
from storefront._types import Cents, now
from storefront.catalog import LineRequest, PricedCart, price_lines
from storefront.checkout._totals import OrderTotals, compute_totals
from storefront.discounts import AppliedDiscount, evaluate_discount
from storefront.errors import Errors, ShopError


@dataclass(frozen=True)
class CheckoutInput:
    session: AsyncSession
    lines: tuple[LineRequest, ...]
    vat_rate: Decimal
    discount_code: str | None = None
    shipping: Cents = 0
    at: datetime | None = None


@dataclass(frozen=True)
class CheckoutQuote:
    priced: PricedCart
    discount: AppliedDiscount | None
    totals: OrderTotals


@G.node
class CheckoutInputNode:
    """Entry point: wraps the CheckoutInput."""

    def __init__(self, data: CheckoutInput) -> None:
        self.data = data

    @classmethod
    def __compose__(cls, data: CheckoutInput) -> "CheckoutInputNode":
        return cls(data)


@G.node
class PricedCartNode:
    def __init__(self, priced: PricedCart) -> None:
        self.priced = priced

    @classmethod
    async def __compose__(cls, checkout: CheckoutInputNode) -> "PricedCartNode":
        if not checkout.data.lines:
            raise Errors.cart_empty()
        match await price_lines(checkout.data.session, checkout.data.lines):
            case Ok(priced):
                return cls(priced)
            case Error(e):
                raise e


@G.node
class DiscountNode:
    def __init__(self, applied: AppliedDiscount | None) -> None:
        self.applied = applied

    @classmethod
    async def __compose__(
        cls, checkout: CheckoutInputNode, cart: PricedCartNode
    ) -> "DiscountNode":
        code = checkout.data.discount_code
        if not code or not code.strip():
            return cls(None)
        match await evaluate_discount(
            checkout.data.session, code, cart.priced.subtotal, checkout.data.at or now()
        ):
            case Ok(applied):
                return cls(applied)
            case Error(e):
                raise e


@G.node
class TotalsNode:
    def __init__(self, totals: OrderTotals) -> None:
        self.totals = totals

    @classmethod
    def __compose__(
        cls, checkout: CheckoutInputNode, cart: PricedCartNode, discount: DiscountNode
    ) -> "TotalsNode":
        amount = discount.applied.amount if discount.applied is not None else 0
        match compute_totals(
            cart.priced.subtotal, amount, checkout.data.shipping, checkout.data.vat_rate
        ):
            case Ok(totals):
                return cls(totals)
            case Error(e):
                raise e


@G.node
class QuoteNode:
    def __init__(self, data: CheckoutQuote) -> None:
        self.data = data

    @classmethod
    def __compose__(
        cls, cart: PricedCartNode, discount: DiscountNode, totals: TotalsNode
    ) -> "QuoteNode":
        return cls(CheckoutQuote(cart.priced, discount.applied, totals.totals))

    @classmethod
    async def execute(cls, data: CheckoutInput) -> Result[CheckoutQuote, ShopError]:
        try:
            node = await G.compose(cls, data)
        except ShopError as e:
            return Error(e)
        return Ok(node.data)


async def quote_checkout(
    session: AsyncSession,
    lines: tuple[LineRequest, ...],
    *,
    vat_rate: Decimal,
    discount_code: str | None = None,
    shipping: Cents = 0,
) -> Result[CheckoutQuote, ShopError]:
    """Price lines, apply a code and compute totals from stored data only."""
    return await QuoteNode.execute(
        CheckoutInput(session, lines, vat_rate, discount_code, shipping)
    )


__all__ = (
    "CheckoutInput",
    "CheckoutQuote",
    "CheckoutInputNode",
    "PricedCartNode",
    "DiscountNode",
    "TotalsNode",
    "QuoteNode",
    "quote_checkout",
)
