"""
Public catalog reads.
"""

from __future__ import annotations

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront._paging import Page, clamp, paginate
from storefront.catalog._types import Product, Variant
from storefront.db import ProductTable, VariantTable
from storefront.errors import NotFoundError


async def list_products(
    session: AsyncSession,
    *,
    search: str | None = None,
    category: str | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> Page[Product]:
    """Active products, newest first."""
    page, limit = clamp(page, limit, 20)
    stmt = (
        select(ProductTable)
        .where(ProductTable.active.is_(True))
        .order_by(ProductTable.created_at.desc(), ProductTable.id.desc())
    )
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(ProductTable.name.ilike(pattern), ProductTable.description.ilike(pattern))
        )
    if category:
        stmt = stmt.where(ProductTable.category == category)
    return await paginate(session, stmt, page, limit, Product.from_row)


async def get_product(
    session: AsyncSession, product_id: int, *, include_inactive: bool = False
) -> Result[Product, NotFoundError]:
    """Product with its variants (active ones only for shoppers)."""
    product = await session.get(ProductTable, product_id)
    if product is None or (not product.active and not include_inactive):
        return Error(NotFoundError("Product not found", "PRODUCT_NOT_FOUND"))

    stmt = select(VariantTable).where(VariantTable.product_id == product_id).order_by(VariantTable.id)
    if not include_inactive:
        stmt = stmt.where(VariantTable.active.is_(True))
    variants = tuple(Variant.from_row(v) for v in await session.scalars(stmt))
    return Ok(Product.from_row(product, variants))


__all__ = ("list_products", "get_product")
