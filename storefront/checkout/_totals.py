"""
Order total calculator.

    taxable = subtotal - discount
    tax     = round_half_up(taxable * vat_rate)
    total   = taxable + tax + shipping

Inputs are already whole cents, so the only rounding step is the tax.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from kungfu import Result, Ok, Error

from storefront._types import Cents, round_cents
from storefront.errors import Errors, ValidationError


@dataclass(frozen=True, slots=True)
class OrderTotals:
    subtotal: Cents
    discount: Cents
    tax: Cents
    shipping: Cents
    total: Cents

    @property
    def taxable(self) -> Cents:
        return self.subtotal - self.discount


def compute_totals(
    subtotal: Cents,
    discount: Cents,
    shipping: Cents,
    vat_rate: Decimal,
) -> Result[OrderTotals, ValidationError]:
    if shipping < 0:
        return Error(Errors.invalid_shipping())
    if subtotal < 0 or discount < 0:
        return Error(ValidationError("Amounts must be non-negative", "INVALID_AMOUNT"))

    discount = min(discount, subtotal)
    taxable = subtotal - discount
    tax = round_cents(Decimal(taxable) * vat_rate)
    return Ok(OrderTotals(subtotal, discount, tax, shipping, taxable + tax + shipping))


__all__ = ("OrderTotals", "compute_totals")
