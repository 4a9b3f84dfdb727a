"""
Catalog domain types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from storefront._types import Cents
from storefront.db import ProductTable, VariantTable


# ═══════════════════════════════════════════════════════════════════════════════
# Pricing
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class LineRequest:
    """What a caller asks for. Any price the client sent is never carried here."""

    variant_id: int
    quantity: object


@dataclass(frozen=True, slots=True)
class PricedLine:
    variant_id: int
    product_id: int
    product_name: str
    sku: str
    details: dict[str, Any]
    quantity: int
    unit_price: Cents
    line_subtotal: Cents
    stock: int


@dataclass(frozen=True, slots=True)
class PricedCart:
    lines: tuple[PricedLine, ...]
    subtotal: Cents

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)


# ═══════════════════════════════════════════════════════════════════════════════
# Views
# ═══════════════════════════════════════════════════════════════════════════════


def effective_price(variant: VariantTable) -> Cents:
    """The price a customer pays today: sale price when set, list price otherwise."""
    if variant.sale_price_cents is not None:
        return variant.sale_price_cents
    return variant.price_cents


def variant_details(variant: VariantTable) -> dict[str, Any]:
    return {
        "sku": variant.sku,
        "texture": variant.texture,
        "length": variant.length,
        "color": variant.color,
    }


@dataclass(frozen=True, slots=True)
class Variant:
    id: int
    product_id: int
    sku: str
    texture: str | None
    length: str | None
    color: str | None
    price: Cents
    sale_price: Cents | None
    stock: int
    active: bool

    @classmethod
    def from_row(cls, row: VariantTable) -> Variant:
        return cls(
            row.id,
            row.product_id,
            row.sku,
            row.texture,
            row.length,
            row.color,
            row.price_cents,
            row.sale_price_cents,
            row.stock,
            row.active,
        )


@dataclass(frozen=True, slots=True)
class Product:
    id: int
    name: str
    slug: str
    description: str | None
    category: str | None
    active: bool
    variants: tuple[Variant, ...] = field(default=())

    @classmethod
    def from_row(cls, row: ProductTable, variants: tuple[Variant, ...] = ()) -> Product:
        return cls(
            row.id, row.name, row.slug, row.description, row.category, row.active, variants
        )


__all__ = (
    "LineRequest",
    "PricedLine",
    "PricedCart",
    "effective_price",
    "variant_details",
    "Variant",
    "Product",
)
