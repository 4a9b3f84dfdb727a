"""
Errors — one taxonomy for every operation.

Operations return `Result[T, ShopError]`. Inside graph nodes the same values
are raised and converted back into `Error(...)` at the graph boundary, so a
`ShopError` is both a value and an exception.

    match await price_lines(session, lines):
        case Ok(priced):
            ...
        case Error(e):
            print(e.status, e.code, e.message)
"""

from __future__ import annotations

from typing import ClassVar

from storefront._types import Cents, from_cents


# ═══════════════════════════════════════════════════════════════════════════════
# Taxonomy
# ═══════════════════════════════════════════════════════════════════════════════


class ShopError(Exception):
    """Base error. `status` is the HTTP status the error maps to."""

    status: ClassVar[int] = 500
    default_code: ClassVar[str] = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code!r}, {self.message!r})"


class ValidationError(ShopError):
    status = 400
    default_code = "VALIDATION_ERROR"


class NotFoundError(ShopError):
    status = 404
    default_code = "NOT_FOUND"


class ConflictError(ShopError):
    status = 409
    default_code = "CONFLICT"


class AuthError(ShopError):
    status = 401
    default_code = "UNAUTHENTICATED"


class ForbiddenError(ShopError):
    status = 403
    default_code = "FORBIDDEN"


class StockError(ShopError):
    status = 400
    default_code = "INSUFFICIENT_STOCK"


class GatewayError(ShopError):
    status = 400
    default_code = "GATEWAY_ERROR"


class InternalError(ShopError):
    status = 500
    default_code = "INTERNAL_ERROR"


# ═══════════════════════════════════════════════════════════════════════════════
# Named failures
# ═══════════════════════════════════════════════════════════════════════════════


class Errors:
    """Factories for the failures the pipeline names explicitly."""

    # Pricing
    @staticmethod
    def variant_not_found(variant_id: int) -> NotFoundError:
        return NotFoundError(
            f"Product variant {variant_id} not found or inactive", "VARIANT_NOT_FOUND"
        )

    @staticmethod
    def insufficient_stock(name: str, available: int) -> StockError:
        return StockError(
            f"Insufficient stock for {name}. Available: {available}",
            "INSUFFICIENT_STOCK",
        )

    @staticmethod
    def invalid_quantity() -> ValidationError:
        return ValidationError("Invalid quantity", "INVALID_QUANTITY")

    # Discounts
    @staticmethod
    def discount_not_found() -> NotFoundError:
        return NotFoundError("Invalid discount code", "DISCOUNT_NOT_FOUND")

    @staticmethod
    def discount_expired() -> ValidationError:
        return ValidationError("Discount code has expired", "DISCOUNT_EXPIRED")

    @staticmethod
    def minimum_not_met(minimum: Cents) -> ValidationError:
        return ValidationError(
            f"Minimum purchase of R{from_cents(minimum)} required", "MINIMUM_NOT_MET"
        )

    @staticmethod
    def usage_limit_reached() -> ValidationError:
        return ValidationError(
            "Discount code usage limit reached", "USAGE_LIMIT_REACHED"
        )

    # Totals
    @staticmethod
    def invalid_shipping() -> ValidationError:
        return ValidationError("Invalid shipping cost", "INVALID_SHIPPING")

    # Orders
    @staticmethod
    def unauthenticated() -> AuthError:
        return AuthError("Authentication required", "UNAUTHENTICATED")

    @staticmethod
    def address_not_found() -> NotFoundError:
        return NotFoundError("Shipping address not found", "ADDRESS_NOT_FOUND")

    @staticmethod
    def cart_empty() -> ValidationError:
        return ValidationError("Cart is empty", "CART_EMPTY")

    @staticmethod
    def transaction_failed() -> InternalError:
        return InternalError(
            "Failed to create order. Please try again.", "TRANSACTION_FAILED"
        )

    @staticmethod
    def order_not_found() -> NotFoundError:
        return NotFoundError("Order not found", "ORDER_NOT_FOUND")

    # Payments
    @staticmethod
    def payment_already_completed() -> ConflictError:
        return ConflictError(
            "Payment already completed for this order", "PAYMENT_ALREADY_COMPLETED"
        )

    @staticmethod
    def payment_exists() -> ConflictError:
        return ConflictError("Payment already exists for this order", "PAYMENT_EXISTS")

    @staticmethod
    def gateway_not_configured() -> InternalError:
        return InternalError(
            "Payment gateway is not configured", "GATEWAY_NOT_CONFIGURED"
        )

    @staticmethod
    def invalid_signature() -> GatewayError:
        return GatewayError("Invalid signature", "INVALID_SIGNATURE")

    @staticmethod
    def untrusted_source(address: str | None) -> GatewayError:
        return GatewayError(f"Invalid source IP: {address}", "UNTRUSTED_SOURCE")

    @staticmethod
    def amount_mismatch(expected: Cents, received: object) -> GatewayError:
        return GatewayError(
            f"Amount mismatch: expected {from_cents(expected)}, received {received}",
            "AMOUNT_MISMATCH",
        )

    @staticmethod
    def server_validation_failed(detail: str) -> GatewayError:
        return GatewayError(
            f"Server verification failed: {detail}", "SERVER_VALIDATION_FAILED"
        )

    @staticmethod
    def internal() -> InternalError:
        return InternalError("Something went wrong. Please try again.")


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "ShopError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "AuthError",
    "ForbiddenError",
    "StockError",
    "GatewayError",
    "InternalError",
    "Errors",
)
