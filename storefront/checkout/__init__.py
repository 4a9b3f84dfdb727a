"""
Checkout — pricing, discount and totals composed as one graph.

    match await checkout.quote_checkout(session, lines, vat_rate=Decimal("0.15"), discount_code="SAVE10"):
        case Ok(quote):
            quote.totals.total
        case Error(e):
            ...
"""

from storefront.checkout._totals import OrderTotals, compute_totals
from storefront.checkout._nodes import (
    CheckoutInput,
    CheckoutQuote,
    CheckoutInputNode,
    PricedCartNode,
    DiscountNode,
    TotalsNode,
    QuoteNode,
    quote_checkout,
)

__all__ = (
    "OrderTotals",
    "compute_totals",
    "CheckoutInput",
    "CheckoutQuote",
    "CheckoutInputNode",
    "PricedCartNode",
    "DiscountNode",
    "TotalsNode",
    "QuoteNode",
    "quote_checkout",
)
