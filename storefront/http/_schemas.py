"""
Wire models.

Request models carry `to_domain()`, response models `from_domain(...)`.
Money leaves the service as rand floats with two decimals; it arrives as
Decimal so cent precision can be checked.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from storefront import catalog, discounts, orders, payments, reviews
from storefront._paging import Page
from storefront._types import Cents, from_cents
from storefront.audit import AdminLogEntry
from storefront.cart import CartLine, CartValidation, CartView
from storefront.newsletter import Subscriber
from storefront.reports import DashboardStats, SalesReport
from storefront.returns import ReturnRequest

T = TypeVar("T")


def money(cents: Cents) -> float:
    return float(from_cents(cents))


def maybe_money(cents: Cents | None) -> float | None:
    return None if cents is None else money(cents)


# ═══════════════════════════════════════════════════════════════════════════════
# Envelope
# ═══════════════════════════════════════════════════════════════════════════════


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: T | None = None
    message: str | None = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class PageOut(BaseModel):
    items: list[Any]
    pagination: Pagination

    @classmethod
    def from_domain(cls, page: Page[Any], render: Any) -> PageOut:
        return cls(
            items=[render(item) for item in page.items],
            pagination=Pagination(
                page=page.page, limit=page.limit, total=page.total, total_pages=page.total_pages
            ),
        )


class ListQuery(BaseModel):
    page: int | None = Field(default=None, ge=1)
    limit: int | None = Field(default=None, ge=1)


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


class AddItemIn(BaseModel):
    variant_id: int
    quantity: int


class UpdateItemIn(BaseModel):
    quantity: int


class MergeCartIn(BaseModel):
    session_id: str


class CartLineOut(BaseModel):
    id: int
    variant_id: int
    product_id: int
    product_name: str
    variant_details: dict[str, Any]
    quantity: int
    price: float
    item_total: float
    stock: int
    available: bool

    @classmethod
    def from_domain(cls, line: CartLine) -> CartLineOut:
        return cls(
            id=line.item_id,
            variant_id=line.variant_id,
            product_id=line.product_id,
            product_name=line.product_name,
            variant_details=line.details,
            quantity=line.quantity,
            price=money(line.unit_price),
            item_total=money(line.line_total),
            stock=line.stock,
            available=line.available,
        )


class CartOut(BaseModel):
    cart_id: int | None
    session_id: str | None
    items: list[CartLineOut]
    subtotal: float
    item_count: int

    @classmethod
    def from_domain(cls, view: CartView) -> CartOut:
        return cls(
            cart_id=view.cart_id,
            session_id=view.session_id,
            items=[CartLineOut.from_domain(line) for line in view.lines],
            subtotal=money(view.subtotal),
            item_count=view.item_count,
        )


class CartValidationOut(BaseModel):
    valid: bool
    errors: list[str]
    warnings: list[str]
    cart: CartOut

    @classmethod
    def from_domain(cls, result: CartValidation) -> CartValidationOut:
        return cls(
            valid=result.valid,
            errors=list(result.errors),
            warnings=list(result.warnings),
            cart=CartOut.from_domain(result.cart),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════


class ProductQuery(ListQuery):
    search: str | None = None
    category: str | None = None


class VariantOut(BaseModel):
    id: int
    product_id: int
    sku: str
    texture: str | None
    length: str | None
    color: str | None
    price: float
    sale_price: float | None
    stock: int
    active: bool

    @classmethod
    def from_domain(cls, v: catalog.Variant) -> VariantOut:
        return cls(
            id=v.id,
            product_id=v.product_id,
            sku=v.sku,
            texture=v.texture,
            length=v.length,
            color=v.color,
            price=money(v.price),
            sale_price=maybe_money(v.sale_price),
            stock=v.stock,
            active=v.active,
        )


class ProductOut(BaseModel):
    id: int
    name: str
    slug: str
    description: str | None
    category: str | None
    active: bool
    variants: list[VariantOut]

    @classmethod
    def from_domain(cls, p: catalog.Product) -> ProductOut:
        return cls(
            id=p.id,
            name=p.name,
            slug=p.slug,
            description=p.description,
            category=p.category,
            active=p.active,
            variants=[VariantOut.from_domain(v) for v in p.variants],
        )


class LowStockOut(BaseModel):
    product_id: int
    product_name: str
    variant: VariantOut

    @classmethod
    def from_domain(cls, pair: tuple[catalog.Product, catalog.Variant]) -> LowStockOut:
        product, variant = pair
        return cls(
            product_id=product.id,
            product_name=product.name,
            variant=VariantOut.from_domain(variant),
        )


class ProductIn(BaseModel):
    name: str
    description: str | None = None
    category: str | None = None
    slug: str | None = None
    active: bool = True

    def to_domain(self) -> catalog.ProductDraft:
        return catalog.ProductDraft(
            self.name, self.description, self.category, self.slug, self.active
        )


class ProductPatchIn(BaseModel):
    name: str | None = None
    description: str | None = None
    category: str | None = None
    active: bool | None = None

    def to_domain(self) -> catalog.ProductPatch:
        return catalog.ProductPatch(self.name, self.description, self.category, self.active)


class VariantIn(BaseModel):
    sku: str
    price: Decimal
    stock: int = 0
    sale_price: Decimal | None = None
    texture: str | None = None
    length: str | None = None
    color: str | None = None

    def to_domain(self) -> catalog.VariantDraft:
        return catalog.VariantDraft(
            sku=self.sku,
            price=self.price,
            stock=self.stock,
            sale_price=self.sale_price,
            texture=self.texture,
            length=self.length,
            color=self.color,
        )


class VariantPatchIn(BaseModel):
    price: Decimal | None = None
    sale_price: Decimal | None = None
    clear_sale_price: bool = False
    stock: int | None = None
    active: bool | None = None
    texture: str | None = None
    length: str | None = None
    color: str | None = None

    def to_domain(self) -> catalog.VariantPatch:
        return catalog.VariantPatch(**self.model_dump())


# ═══════════════════════════════════════════════════════════════════════════════
# Discounts
# ═══════════════════════════════════════════════════════════════════════════════


class DiscountValidateIn(BaseModel):
    code: str
    order_total: Decimal


class DiscountQuoteOut(BaseModel):
    code: str
    discount_amount: float
    final_total: float

    @classmethod
    def from_domain(cls, quote: discounts.DiscountQuote) -> DiscountQuoteOut:
        return cls(
            code=quote.code,
            discount_amount=money(quote.discount_amount),
            final_total=money(quote.final_total),
        )


class DiscountOut(BaseModel):
    id: int
    code: str
    type: str
    value: float
    description: str | None
    min_purchase: float | None
    usage_limit: int | None
    used_count: int
    expires_at: datetime | None
    active: bool
    created_at: datetime

    @classmethod
    def from_domain(cls, d: discounts.Discount) -> DiscountOut:
        return cls(
            id=d.id,
            code=d.code,
            type=d.type,
            value=float(d.value),
            description=d.description,
            min_purchase=maybe_money(d.min_purchase),
            usage_limit=d.usage_limit,
            used_count=d.used_count,
            expires_at=d.expires_at,
            active=d.active,
            created_at=d.created_at,
        )


class DiscountIn(BaseModel):
    code: str
    type: str
    value: Decimal
    description: str | None = None
    min_purchase: Decimal | None = None
    usage_limit: int | None = None
    expires_at: datetime | None = None
    active: bool = True

    def to_domain(self) -> discounts.DiscountDraft:
        return discounts.DiscountDraft(**self.model_dump())


class DiscountPatchIn(BaseModel):
    code: str | None = None
    type: str | None = None
    value: Decimal | None = None
    description: str | None = None
    min_purchase: Decimal | None = None
    usage_limit: int | None = None
    expires_at: datetime | None = None
    active: bool | None = None

    def to_domain(self) -> discounts.DiscountPatch:
        return discounts.DiscountPatch(**self.model_dump())


class DiscountQuery(ListQuery):
    active: bool | None = None
    sort: str = "created_at"
    order: str = "desc"


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


class PlaceOrderIn(BaseModel):
    shipping_address_id: int
    customer_notes: str | None = None
    discount_code: str | None = None
    shipping_cost: Decimal = Decimal("0")

    def to_domain(self) -> orders.PlaceOrder:
        return orders.PlaceOrder(
            self.shipping_address_id, self.customer_notes, self.discount_code, self.shipping_cost
        )


class OrderItemOut(BaseModel):
    id: int
    variant_id: int | None
    product_id: int | None
    product_name: str
    variant_details: dict[str, Any]
    quantity: int
    unit_price: float
    subtotal: float

    @classmethod
    def from_domain(cls, item: orders.OrderItem) -> OrderItemOut:
        return cls(
            id=item.id,
            variant_id=item.variant_id,
            product_id=item.product_id,
            product_name=item.product_name,
            variant_details=item.details,
            quantity=item.quantity,
            unit_price=money(item.unit_price),
            subtotal=money(item.subtotal),
        )


class OrderOut(BaseModel):
    id: int
    order_number: str
    user_id: int
    status: str
    payment_status: str
    subtotal: float
    discount_amount: float
    discount_code: str | None
    tax: float
    shipping_cost: float
    total: float
    shipping_address: dict[str, Any]
    customer_email: str
    customer_name: str
    customer_notes: str | None
    placed_at: datetime
    paid_at: datetime | None
    shipped_at: datetime | None
    delivered_at: datetime | None
    cancelled_at: datetime | None

    @classmethod
    def from_domain(cls, o: orders.Order) -> OrderOut:
        a = o.address
        return cls(
            id=o.id,
            order_number=o.order_number,
            user_id=o.user_id,
            status=o.status,
            payment_status=o.payment_status,
            subtotal=money(o.subtotal),
            discount_amount=money(o.discount),
            discount_code=o.discount_code,
            tax=money(o.tax),
            shipping_cost=money(o.shipping),
            total=money(o.total),
            shipping_address={
                "line1": a.line1,
                "line2": a.line2,
                "city": a.city,
                "province": a.province,
                "postal_code": a.postal_code,
                "country": a.country,
            },
            customer_email=o.customer_email,
            customer_name=o.customer_name,
            customer_notes=o.customer_notes,
            placed_at=o.placed_at,
            paid_at=o.paid_at,
            shipped_at=o.shipped_at,
            delivered_at=o.delivered_at,
            cancelled_at=o.cancelled_at,
        )


class OrderWithItemsOut(BaseModel):
    order: OrderOut
    items: list[OrderItemOut]

    @classmethod
    def from_domain(cls, o: orders.Order) -> OrderWithItemsOut:
        return cls(
            order=OrderOut.from_domain(o),
            items=[OrderItemOut.from_domain(i) for i in o.items],
        )


class OrderQuery(ListQuery):
    status: str | None = None


class AdminOrderQuery(ListQuery):
    status: str | None = None
    payment_status: str | None = None
    date_from: date | None = None
    date_to: date | None = None
    search: str | None = None


class OrderStatusIn(BaseModel):
    status: str


# ═══════════════════════════════════════════════════════════════════════════════
# Payments
# ═══════════════════════════════════════════════════════════════════════════════


class CreatePaymentIn(BaseModel):
    order_id: int


class PaymentCheckoutOut(BaseModel):
    payment_id: int
    reference: str
    payfast_url: str
    payment_data: dict[str, str]

    @classmethod
    def from_domain(cls, checkout: payments.PaymentCheckout) -> PaymentCheckoutOut:
        return cls(
            payment_id=checkout.payment_id,
            reference=checkout.reference,
            payfast_url=checkout.payfast_url,
            payment_data=checkout.payment_data,
        )


class VerifySignatureIn(BaseModel):
    payment_data: dict[str, Any]
    signature: str


class PaymentOut(BaseModel):
    id: int
    order_id: int
    order_number: str | None
    reference: str
    amount: float
    status: str
    payment_method: str
    transaction_id: str | None
    created_at: datetime
    completed_at: datetime | None
    refunded_at: datetime | None

    @classmethod
    def from_domain(cls, p: payments.Payment) -> PaymentOut:
        return cls(
            id=p.id,
            order_id=p.order_id,
            order_number=p.order_number,
            reference=p.reference,
            amount=money(p.amount),
            status=p.status,
            payment_method=p.payment_method,
            transaction_id=p.transaction_id,
            created_at=p.created_at,
            completed_at=p.completed_at,
            refunded_at=p.refunded_at,
        )


class RefundIn(BaseModel):
    amount: Decimal | None = None
    reason: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Returns
# ═══════════════════════════════════════════════════════════════════════════════


class ReturnIn(BaseModel):
    order_id: int
    reason: str
    items: list[Any] = Field(default_factory=list)


class ReturnOut(BaseModel):
    id: int
    order_id: int
    user_id: int
    reason: str
    items: list[Any]
    status: str
    refund_amount: float | None
    admin_notes: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, r: ReturnRequest) -> ReturnOut:
        return cls(
            id=r.id,
            order_id=r.order_id,
            user_id=r.user_id,
            reason=r.reason,
            items=r.items,
            status=r.status,
            refund_amount=maybe_money(r.refund_amount),
            admin_notes=r.admin_notes,
            created_at=r.created_at,
            updated_at=r.updated_at,
        )


class ReturnQuery(ListQuery):
    status: str | None = None


class AdminReturnQuery(ListQuery):
    status: str | None = None
    user_id: int | None = None
    date_from: date | None = None
    date_to: date | None = None
    sort: str = "created_at"
    order: str = "desc"


class ReturnStatusIn(BaseModel):
    status: str
    refund_amount: Decimal | None = None
    admin_notes: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Reviews
# ═══════════════════════════════════════════════════════════════════════════════


class ReviewIn(BaseModel):
    rating: int
    title: str
    body: str


class ReviewPatchIn(BaseModel):
    rating: int | None = None
    title: str | None = None
    body: str | None = None


class ReviewOut(BaseModel):
    id: int
    product_id: int
    user_id: int
    rating: int
    title: str
    body: str
    verified_purchase: bool
    is_approved: bool
    helpful_count: int
    created_at: datetime

    @classmethod
    def from_domain(cls, r: reviews.Review) -> ReviewOut:
        return cls(
            id=r.id,
            product_id=r.product_id,
            user_id=r.user_id,
            rating=r.rating,
            title=r.title,
            body=r.body,
            verified_purchase=r.verified_purchase,
            is_approved=r.is_approved,
            helpful_count=r.helpful_count,
            created_at=r.created_at,
        )


class ProductReviewsOut(BaseModel):
    reviews: PageOut
    average_rating: float | None
    review_count: int

    @classmethod
    def from_domain(cls, result: reviews.ProductReviews) -> ProductReviewsOut:
        return cls(
            reviews=PageOut.from_domain(result.page, ReviewOut.from_domain),
            average_rating=result.average_rating,
            review_count=result.review_count,
        )


class AdminReviewQuery(ListQuery):
    approved: bool | None = None
    product_id: int | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Newsletter & account
# ═══════════════════════════════════════════════════════════════════════════════


class EmailIn(BaseModel):
    email: str


class TokenIn(BaseModel):
    token: str


class PasswordResetIn(BaseModel):
    token: str
    password: str


class SubscriberOut(BaseModel):
    id: int
    email: str
    is_verified: bool
    subscribed_at: datetime
    verified_at: datetime | None
    unsubscribed_at: datetime | None

    @classmethod
    def from_domain(cls, s: Subscriber) -> SubscriberOut:
        return cls(
            id=s.id,
            email=s.email,
            is_verified=s.is_verified,
            subscribed_at=s.subscribed_at,
            verified_at=s.verified_at,
            unsubscribed_at=s.unsubscribed_at,
        )


class SubscriberQuery(ListQuery):
    status: str = "verified"


# ═══════════════════════════════════════════════════════════════════════════════
# Reports & audit
# ═══════════════════════════════════════════════════════════════════════════════


class SalesQuery(BaseModel):
    date_from: date
    date_to: date


class SalesReportOut(BaseModel):
    date_from: date
    date_to: date
    order_count: int
    revenue: float
    average_order_value: float
    unique_customers: int
    daily: list[dict[str, Any]]

    @classmethod
    def from_domain(cls, r: SalesReport) -> SalesReportOut:
        return cls(
            date_from=r.date_from,
            date_to=r.date_to,
            order_count=r.order_count,
            revenue=money(r.revenue),
            average_order_value=money(r.average_order_value),
            unique_customers=r.unique_customers,
            daily=[
                {"date": d.day, "orders": d.orders, "revenue": money(d.revenue)} for d in r.daily
            ],
        )


class DashboardOut(BaseModel):
    total_orders: int
    pending_orders: int
    paid_revenue: float
    customers: int
    active_products: int
    low_stock_variants: int

    @classmethod
    def from_domain(cls, s: DashboardStats) -> DashboardOut:
        return cls(
            total_orders=s.total_orders,
            pending_orders=s.pending_orders,
            paid_revenue=money(s.paid_revenue),
            customers=s.customers,
            active_products=s.active_products,
            low_stock_variants=s.low_stock_variants,
        )


class AdminLogOut(BaseModel):
    id: int
    admin_id: int
    action: str
    entity_type: str
    entity_id: str | None
    details: dict[str, Any]
    created_at: datetime

    @classmethod
    def from_domain(cls, e: AdminLogEntry) -> AdminLogOut:
        return cls(
            id=e.id,
            admin_id=e.admin_id,
            action=e.action,
            entity_type=e.entity_type,
            entity_id=e.entity_id,
            details=e.details,
            created_at=e.created_at,
        )


class AdminLogQuery(ListQuery):
    action: str | None = None
    admin_id: int | None = None
