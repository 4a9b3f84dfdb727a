"""
Core types for storefront.

Re-exports from kungfu + money helpers.

Money is carried as integer cents everywhere it is stored or summed.
Fractional cents only appear transiently (percentage discounts, VAT) and are
rounded half-up to whole cents at the point they become an amount.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

# Re-export from kungfu
from kungfu import Result, Ok, Error, LazyCoroResult


# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════

type Cents = int

CENT = Decimal("0.01")
_WHOLE = Decimal(1)


def round_cents(value: Decimal) -> Cents:
    """Round a (possibly fractional) cent amount half-up to whole cents."""
    return int(value.quantize(_WHOLE, rounding=ROUND_HALF_UP))


def to_cents(amount: Decimal | int | float | str) -> Cents:
    """
    Convert a rand amount to cents.

        to_cents("299.99")  # 29999
        to_cents(Decimal("0.005"))  # 1
    """
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    return round_cents(value * 100)


def from_cents(cents: Cents) -> Decimal:
    """Cents → rand amount with exactly two decimals."""
    return (Decimal(cents) / 100).quantize(CENT)


def format_amount(cents: Cents) -> str:
    """Gateway wire format: always two decimals, no thousands separator."""
    return f"{from_cents(cents):.2f}"


def parse_amount(raw: object) -> Decimal | None:
    """Parse an untrusted amount; None when it is not a finite number."""
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite():
        return None
    return value


def has_cent_precision(value: Decimal) -> bool:
    """True when the amount has at most two decimal places."""
    exponent = value.normalize().as_tuple().exponent
    return isinstance(exponent, int) and exponent >= -2


# ═══════════════════════════════════════════════════════════════════════════════
# Time
# ═══════════════════════════════════════════════════════════════════════════════


def now() -> datetime:
    """Wall-clock timestamp used for every stored datetime."""
    return datetime.now()


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Result types
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    # Money
    "Cents",
    "CENT",
    "round_cents",
    "to_cents",
    "from_cents",
    "format_amount",
    "parse_amount",
    "has_cent_precision",
    # Time
    "now",
)
