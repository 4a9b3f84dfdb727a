"""
Discounts — code evaluation and administration.

    match await discounts.evaluate_discount(session, "save10", subtotal=59998):
        case Ok(applied):
            applied.amount  # 6000
        case Error(e):
            e.code  # DISCOUNT_EXPIRED, MINIMUM_NOT_MET, ...

Codes are case-insensitive; they are stored upper-cased.
"""

from storefront.discounts._types import (
    DiscountType,
    DISCOUNT_TYPES,
    normalize_code,
    Discount,
    AppliedDiscount,
    DiscountQuote,
)
from storefront.discounts._evaluate import (
    discount_amount,
    check_discount,
    evaluate_discount,
    validate_discount,
    claim_discount_use,
)
from storefront.discounts._admin import (
    DiscountDraft,
    DiscountPatch,
    create_discount,
    list_discounts,
    update_discount,
    deactivate_discount,
)

__all__ = (
    # Types
    "DiscountType",
    "DISCOUNT_TYPES",
    "normalize_code",
    "Discount",
    "AppliedDiscount",
    "DiscountQuote",
    # Evaluation
    "discount_amount",
    "check_discount",
    "evaluate_discount",
    "validate_discount",
    "claim_discount_use",
    # Admin
    "DiscountDraft",
    "DiscountPatch",
    "create_discount",
    "list_discounts",
    "update_discount",
    "deactivate_discount",
)
