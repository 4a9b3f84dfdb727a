"""
Pricing engine — the only place line prices come from.

Every path that turns a cart into money (cart view, cart validation,
checkout quote, order creation) calls `price_lines`, which re-reads price,
stock and availability from the database on every call.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront.catalog._types import (
    LineRequest,
    PricedCart,
    PricedLine,
    effective_price,
    variant_details,
)
from storefront.db import ProductTable, VariantTable
from storefront.errors import Errors, ShopError


def valid_quantity(quantity: object) -> int | None:
    """Positive int or None. Booleans are not quantities."""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        return None
    return quantity if quantity >= 1 else None


async def price_lines(
    session: AsyncSession,
    requests: Sequence[LineRequest],
) -> Result[PricedCart, ShopError]:
    """
    Validate and price requested lines against stored variants.

    Fails on the first bad line: InvalidQuantity, NotFound (missing variant,
    inactive variant or inactive product), InsufficientStock.
    """
    ids = sorted({r.variant_id for r in requests})
    rows = await session.execute(
        select(VariantTable, ProductTable)
        .join(ProductTable, ProductTable.id == VariantTable.product_id)
        .where(VariantTable.id.in_(ids))
    )
    found = {variant.id: (variant, product) for variant, product in rows}

    lines: list[PricedLine] = []
    for request in requests:
        quantity = valid_quantity(request.quantity)
        if quantity is None:
            return Error(Errors.invalid_quantity())

        match found.get(request.variant_id):
            case (variant, product) if variant.active and product.active:
                pass
            case _:
                return Error(Errors.variant_not_found(request.variant_id))

        if quantity > variant.stock:
            return Error(Errors.insufficient_stock(product.name, variant.stock))

        unit_price = effective_price(variant)
        lines.append(
            PricedLine(
                variant_id=variant.id,
                product_id=product.id,
                product_name=product.name,
                sku=variant.sku,
                details=variant_details(variant),
                quantity=quantity,
                unit_price=unit_price,
                line_subtotal=unit_price * quantity,
                stock=variant.stock,
            )
        )

    return Ok(PricedCart(tuple(lines), sum(line.line_subtotal for line in lines)))


__all__ = ("price_lines", "valid_quantity")
