"""
Discount domain types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Literal

from storefront._types import Cents
from storefront.db import DiscountTable

type DiscountType = Literal["percentage", "fixed"]

DISCOUNT_TYPES: frozenset[str] = frozenset({"percentage", "fixed"})


def normalize_code(code: str) -> str:
    return code.strip().upper()


@dataclass(frozen=True, slots=True)
class Discount:
    id: int
    code: str
    type: str
    # Percent for percentage discounts, rand for fixed ones.
    value: Decimal
    description: str | None
    min_purchase: Cents | None
    usage_limit: int | None
    used_count: int
    expires_at: datetime | None
    active: bool
    created_at: datetime

    @classmethod
    def from_row(cls, row: DiscountTable) -> Discount:
        return cls(
            id=row.id,
            code=row.code,
            type=row.type,
            value=(Decimal(row.value_hundredths) / 100).quantize(Decimal("0.01")),
            description=row.description,
            min_purchase=row.min_purchase_cents,
            usage_limit=row.usage_limit,
            used_count=row.used_count,
            expires_at=row.expires_at,
            active=row.active,
            created_at=row.created_at,
        )


@dataclass(frozen=True, slots=True)
class AppliedDiscount:
    """A code that passed every check, with the amount it takes off."""

    discount_id: int
    code: str
    type: str
    amount: Cents


@dataclass(frozen=True, slots=True)
class DiscountQuote:
    code: str
    discount_amount: Cents
    final_total: Cents


__all__ = (
    "DiscountType",
    "DISCOUNT_TYPES",
    "normalize_code",
    "Discount",
    "AppliedDiscount",
    "DiscountQuote",
)
