"""
Catalog administration: products, variants, stock.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront._types import Cents, has_cent_precision, to_cents
from storefront.audit import record_admin_action
from storefront.auth import Admin
from storefront.catalog._queries import get_product
from storefront.catalog._types import Product, Variant
from storefront.db import ProductTable, VariantTable
from storefront.errors import ConflictError, NotFoundError, ShopError, ValidationError


@dataclass(frozen=True, slots=True)
class ProductDraft:
    name: str
    description: str | None = None
    category: str | None = None
    slug: str | None = None
    active: bool = True


@dataclass(frozen=True, slots=True)
class ProductPatch:
    name: str | None = None
    description: str | None = None
    category: str | None = None
    active: bool | None = None


@dataclass(frozen=True, slots=True)
class VariantDraft:
    sku: str
    price: Decimal
    stock: int = 0
    sale_price: Decimal | None = None
    texture: str | None = None
    length: str | None = None
    color: str | None = None


@dataclass(frozen=True, slots=True)
class VariantPatch:
    price: Decimal | None = None
    sale_price: Decimal | None = None
    clear_sale_price: bool = False
    stock: int | None = None
    active: bool | None = None
    texture: str | None = None
    length: str | None = None
    color: str | None = None


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def validate_price(value: Decimal, label: str = "Price") -> Result[Cents, ValidationError]:
    if value < 0:
        return Error(ValidationError(f"{label} must be a non-negative number", "INVALID_PRICE"))
    if not has_cent_precision(value):
        return Error(
            ValidationError(f"{label} must have at most 2 decimal places", "INVALID_PRICE")
        )
    return Ok(to_cents(value))


def _validate_stock(stock: int) -> Result[int, ValidationError]:
    if isinstance(stock, bool) or not isinstance(stock, int) or stock < 0:
        return Error(ValidationError("Stock must be a non-negative integer", "INVALID_STOCK"))
    return Ok(stock)


# ═══════════════════════════════════════════════════════════════════════════════
# Products
# ═══════════════════════════════════════════════════════════════════════════════


async def create_product(
    session: AsyncSession, admin: Admin, draft: ProductDraft
) -> Result[Product, ShopError]:
    name = draft.name.strip()
    if not name:
        return Error(ValidationError("Product name is required"))

    slug = slugify(draft.slug or name)
    taken = await session.scalar(select(ProductTable.id).where(ProductTable.slug == slug))
    if taken is not None:
        return Error(ConflictError("A product with this slug already exists", "SLUG_TAKEN"))

    product = ProductTable(
        name=name,
        slug=slug,
        description=draft.description,
        category=draft.category,
        active=draft.active,
    )
    session.add(product)
    await session.flush()
    record_admin_action(session, admin, "create_product", "product", product.id, {"name": name})
    return Ok(Product.from_row(product))


async def update_product(
    session: AsyncSession, admin: Admin, product_id: int, patch: ProductPatch
) -> Result[Product, ShopError]:
    product = await session.get(ProductTable, product_id)
    if product is None:
        return Error(NotFoundError("Product not found", "PRODUCT_NOT_FOUND"))

    changes: dict[str, object] = {}
    if patch.name is not None:
        if not patch.name.strip():
            return Error(ValidationError("Product name is required"))
        product.name = changes["name"] = patch.name.strip()
    if patch.description is not None:
        product.description = changes["description"] = patch.description
    if patch.category is not None:
        product.category = changes["category"] = patch.category
    if patch.active is not None:
        product.active = changes["active"] = patch.active

    await session.flush()
    record_admin_action(session, admin, "update_product", "product", product_id, changes)
    return await get_product(session, product_id, include_inactive=True)


async def deactivate_product(
    session: AsyncSession, admin: Admin, product_id: int
) -> Result[None, NotFoundError]:
    """Soft delete: existing orders keep their snapshots."""
    product = await session.get(ProductTable, product_id)
    if product is None:
        return Error(NotFoundError("Product not found", "PRODUCT_NOT_FOUND"))
    product.active = False
    record_admin_action(session, admin, "delete_product", "product", product_id)
    return Ok(None)


# ═══════════════════════════════════════════════════════════════════════════════
# Variants
# ═══════════════════════════════════════════════════════════════════════════════


async def create_variant(
    session: AsyncSession, admin: Admin, product_id: int, draft: VariantDraft
) -> Result[Variant, ShopError]:
    if await session.get(ProductTable, product_id) is None:
        return Error(NotFoundError("Product not found", "PRODUCT_NOT_FOUND"))

    match validate_price(draft.price):
        case Error(e):
            return Error(e)
        case Ok(price):
            pass
    sale_price: Cents | None = None
    if draft.sale_price is not None:
        match validate_price(draft.sale_price, "Sale price"):
            case Error(e):
                return Error(e)
            case Ok(cents):
                sale_price = cents
    match _validate_stock(draft.stock):
        case Error(e):
            return Error(e)
        case Ok(stock):
            pass

    sku = draft.sku.strip()
    taken = await session.scalar(select(VariantTable.id).where(VariantTable.sku == sku))
    if taken is not None:
        return Error(ConflictError("SKU already exists", "SKU_TAKEN"))

    variant = VariantTable(
        product_id=product_id,
        sku=sku,
        texture=draft.texture,
        length=draft.length,
        color=draft.color,
        price_cents=price,
        sale_price_cents=sale_price,
        stock=stock,
        active=True,
    )
    session.add(variant)
    await session.flush()
    record_admin_action(session, admin, "create_variant", "variant", variant.id, {"sku": sku})
    return Ok(Variant.from_row(variant))


async def update_variant(
    session: AsyncSession, admin: Admin, variant_id: int, patch: VariantPatch
) -> Result[Variant, ShopError]:
    variant = await session.get(VariantTable, variant_id)
    if variant is None:
        return Error(NotFoundError("Variant not found", "VARIANT_NOT_FOUND"))

    changes: dict[str, object] = {}
    if patch.price is not None:
        match validate_price(patch.price):
            case Error(e):
                return Error(e)
            case Ok(cents):
                variant.price_cents = changes["price_cents"] = cents
    if patch.clear_sale_price:
        variant.sale_price_cents = changes["sale_price_cents"] = None
    elif patch.sale_price is not None:
        match validate_price(patch.sale_price, "Sale price"):
            case Error(e):
                return Error(e)
            case Ok(cents):
                variant.sale_price_cents = changes["sale_price_cents"] = cents
    if patch.stock is not None:
        match _validate_stock(patch.stock):
            case Error(e):
                return Error(e)
            case Ok(stock):
                variant.stock = changes["stock"] = stock
    for attr in ("active", "texture", "length", "color"):
        value = getattr(patch, attr)
        if value is not None:
            setattr(variant, attr, value)
            changes[attr] = value

    await session.flush()
    record_admin_action(session, admin, "update_variant", "variant", variant_id, changes)
    return Ok(Variant.from_row(variant))


async def deactivate_variant(
    session: AsyncSession, admin: Admin, variant_id: int
) -> Result[None, NotFoundError]:
    variant = await session.get(VariantTable, variant_id)
    if variant is None:
        return Error(NotFoundError("Variant not found", "VARIANT_NOT_FOUND"))
    variant.active = False
    record_admin_action(session, admin, "delete_variant", "variant", variant_id)
    return Ok(None)


async def low_stock(session: AsyncSession, threshold: int) -> list[tuple[Product, Variant]]:
    """Active variants at or below `threshold`, lowest stock first."""
    rows = await session.execute(
        select(VariantTable, ProductTable)
        .join(ProductTable, ProductTable.id == VariantTable.product_id)
        .where(VariantTable.active.is_(True), VariantTable.stock <= threshold)
        .order_by(VariantTable.stock.asc(), VariantTable.id.asc())
    )
    return [(Product.from_row(p), Variant.from_row(v)) for v, p in rows]


__all__ = (
    "ProductDraft",
    "ProductPatch",
    "VariantDraft",
    "VariantPatch",
    "slugify",
    "validate_price",
    "create_product",
    "update_product",
    "deactivate_product",
    "create_variant",
    "update_variant",
    "deactivate_variant",
    "low_stock",
)
