"""
Catalog — products, variants and the pricing engine.

    from storefront import catalog

    match await catalog.price_lines(session, [catalog.LineRequest(variant_id=7, quantity=2)]):
        case Ok(priced):
            priced.subtotal  # cents, from stored prices only
"""

from storefront.catalog._types import (
    LineRequest,
    PricedLine,
    PricedCart,
    Product,
    Variant,
    effective_price,
    variant_details,
)
from storefront.catalog._pricing import price_lines, valid_quantity
from storefront.catalog._queries import list_products, get_product
from storefront.catalog._admin import (
    ProductDraft,
    ProductPatch,
    VariantDraft,
    VariantPatch,
    slugify,
    validate_price,
    create_product,
    update_product,
    deactivate_product,
    create_variant,
    update_variant,
    deactivate_variant,
    low_stock,
)

__all__ = (
    # Types
    "LineRequest",
    "PricedLine",
    "PricedCart",
    "Product",
    "Variant",
    "effective_price",
    "variant_details",
    # Pricing
    "price_lines",
    "valid_quantity",
    # Reads
    "list_products",
    "get_product",
    # Admin
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
