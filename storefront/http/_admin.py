"""
Admin endpoints. Every route requires an admin bearer token; refunds
require a super admin.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from storefront import catalog, discounts, newsletter, orders, reports, returns, reviews
from storefront.audit import list_admin_logs
from storefront.http._deps import CurrentAdmin, State, SuperAdmin, get_admin, settle
from storefront.http._schemas import (
    AdminLogOut,
    AdminLogQuery,
    AdminOrderQuery,
    AdminReturnQuery,
    AdminReviewQuery,
    DashboardOut,
    DiscountIn,
    DiscountOut,
    DiscountPatchIn,
    DiscountQuery,
    Envelope,
    LowStockOut,
    OrderOut,
    OrderStatusIn,
    OrderWithItemsOut,
    PageOut,
    PaymentOut,
    ProductIn,
    ProductOut,
    ProductPatchIn,
    RefundIn,
    ReturnOut,
    ReturnStatusIn,
    ReviewOut,
    SalesQuery,
    SalesReportOut,
    SubscriberOut,
    SubscriberQuery,
    VariantIn,
    VariantOut,
    VariantPatchIn,
)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(get_admin)])


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


@router.get("/orders")
async def list_orders(state: State, params: Annotated[AdminOrderQuery, Query()]) -> Envelope:
    page = await state.read(
        lambda s: orders.list_orders(
            s,
            status=params.status,
            payment_status=params.payment_status,
            date_from=params.date_from,
            date_to=params.date_to,
            search=params.search,
            page=params.page,
            limit=params.limit,
        )
    )
    return Envelope(data=PageOut.from_domain(page, OrderOut.from_domain))


@router.get("/orders/{order_id}")
async def get_order(state: State, order_id: int) -> Envelope:
    order = await state.atomic(lambda s: orders.get_order(s, order_id))
    return Envelope(data=OrderWithItemsOut.from_domain(order))


@router.put("/orders/{order_id}/status")
async def update_order_status(
    state: State, admin: CurrentAdmin, order_id: int, body: OrderStatusIn
) -> Envelope:
    order = await state.atomic(
        lambda s: orders.update_order_status(s, admin, order_id, body.status)
    )
    return Envelope(data=OrderOut.from_domain(order), message="Order status updated")


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════


@router.post("/products", status_code=201)
async def create_product(state: State, admin: CurrentAdmin, body: ProductIn) -> Envelope:
    product = await state.atomic(lambda s: catalog.create_product(s, admin, body.to_domain()))
    return Envelope(data=ProductOut.from_domain(product), message="Product created")


@router.put("/products/{product_id}")
async def update_product(
    state: State, admin: CurrentAdmin, product_id: int, body: ProductPatchIn
) -> Envelope:
    product = await state.atomic(
        lambda s: catalog.update_product(s, admin, product_id, body.to_domain())
    )
    return Envelope(data=ProductOut.from_domain(product), message="Product updated")


@router.delete("/products/{product_id}")
async def delete_product(state: State, admin: CurrentAdmin, product_id: int) -> Envelope:
    await state.atomic(lambda s: catalog.deactivate_product(s, admin, product_id))
    return Envelope(message="Product deleted")


@router.post("/products/{product_id}/variants", status_code=201)
async def create_variant(
    state: State, admin: CurrentAdmin, product_id: int, body: VariantIn
) -> Envelope:
    variant = await state.atomic(
        lambda s: catalog.create_variant(s, admin, product_id, body.to_domain())
    )
    return Envelope(data=VariantOut.from_domain(variant), message="Variant created")


@router.put("/variants/{variant_id}")
async def update_variant(
    state: State, admin: CurrentAdmin, variant_id: int, body: VariantPatchIn
) -> Envelope:
    variant = await state.atomic(
        lambda s: catalog.update_variant(s, admin, variant_id, body.to_domain())
    )
    return Envelope(data=VariantOut.from_domain(variant), message="Variant updated")


@router.delete("/variants/{variant_id}")
async def delete_variant(state: State, admin: CurrentAdmin, variant_id: int) -> Envelope:
    await state.atomic(lambda s: catalog.deactivate_variant(s, admin, variant_id))
    return Envelope(message="Variant deleted")


@router.get("/inventory/low-stock")
async def low_stock(state: State, threshold: int | None = None) -> Envelope:
    limit = state.settings.low_stock_threshold if threshold is None else threshold
    rows = await state.read(lambda s: catalog.low_stock(s, limit))
    return Envelope(data=[LowStockOut.from_domain(row) for row in rows])


# ═══════════════════════════════════════════════════════════════════════════════
# Discounts
# ═══════════════════════════════════════════════════════════════════════════════


@router.get("/discounts")
async def list_discounts(state: State, params: Annotated[DiscountQuery, Query()]) -> Envelope:
    page = await state.read(
        lambda s: discounts.list_discounts(
            s,
            active=params.active,
            sort=params.sort,
            order=params.order,
            page=params.page,
            limit=params.limit,
        )
    )
    return Envelope(data=PageOut.from_domain(page, DiscountOut.from_domain))


@router.post("/discounts", status_code=201)
async def create_discount(state: State, admin: CurrentAdmin, body: DiscountIn) -> Envelope:
    discount = await state.atomic(
        lambda s: discounts.create_discount(s, admin, body.to_domain())
    )
    return Envelope(data=DiscountOut.from_domain(discount), message="Discount created")


@router.put("/discounts/{discount_id}")
async def update_discount(
    state: State, admin: CurrentAdmin, discount_id: int, body: DiscountPatchIn
) -> Envelope:
    discount = await state.atomic(
        lambda s: discounts.update_discount(s, admin, discount_id, body.to_domain())
    )
    return Envelope(data=DiscountOut.from_domain(discount), message="Discount updated")


@router.delete("/discounts/{discount_id}")
async def delete_discount(state: State, admin: CurrentAdmin, discount_id: int) -> Envelope:
    await state.atomic(lambda s: discounts.deactivate_discount(s, admin, discount_id))
    return Envelope(message="Discount deleted")


# ═══════════════════════════════════════════════════════════════════════════════
# Returns & reviews
# ═══════════════════════════════════════════════════════════════════════════════


@router.get("/returns")
async def list_returns(state: State, params: Annotated[AdminReturnQuery, Query()]) -> Envelope:
    page = await state.read(
        lambda s: returns.list_returns(
            s,
            status=params.status,
            user_id=params.user_id,
            date_from=params.date_from,
            date_to=params.date_to,
            sort=params.sort,
            order=params.order,
            page=params.page,
            limit=params.limit,
        )
    )
    return Envelope(data=PageOut.from_domain(page, ReturnOut.from_domain))


@router.put("/returns/{return_id}")
async def update_return(
    state: State, admin: CurrentAdmin, return_id: int, body: ReturnStatusIn
) -> Envelope:
    request = await state.atomic(
        lambda s: returns.update_return_status(
            s,
            admin,
            return_id,
            body.status,
            refund_amount=body.refund_amount,
            admin_notes=body.admin_notes,
        )
    )
    return Envelope(data=ReturnOut.from_domain(request), message="Return request updated")


@router.get("/reviews")
async def list_reviews(state: State, params: Annotated[AdminReviewQuery, Query()]) -> Envelope:
    page = await state.read(
        lambda s: reviews.list_reviews(
            s,
            approved=params.approved,
            product_id=params.product_id,
            page=params.page,
            limit=params.limit,
        )
    )
    return Envelope(data=PageOut.from_domain(page, ReviewOut.from_domain))


@router.put("/reviews/{review_id}/approve")
async def approve_review(state: State, admin: CurrentAdmin, review_id: int) -> Envelope:
    review = await state.atomic(lambda s: reviews.approve_review(s, admin, review_id))
    return Envelope(data=ReviewOut.from_domain(review), message="Review approved")


@router.delete("/reviews/{review_id}")
async def reject_review(state: State, admin: CurrentAdmin, review_id: int) -> Envelope:
    await state.atomic(lambda s: reviews.reject_review(s, admin, review_id))
    return Envelope(message="Review rejected")


# ═══════════════════════════════════════════════════════════════════════════════
# Newsletter
# ═══════════════════════════════════════════════════════════════════════════════


@router.get("/newsletter")
async def list_subscribers(
    state: State, params: Annotated[SubscriberQuery, Query()]
) -> Envelope:
    page = await state.read(
        lambda s: newsletter.list_subscribers(
            s, status=params.status, page=params.page, limit=params.limit
        )
    )
    return Envelope(data=PageOut.from_domain(page, SubscriberOut.from_domain))


@router.get("/newsletter/export")
async def export_subscribers(state: State, status: str = "verified") -> Response:
    body = await state.read(lambda s: newsletter.export_subscribers_csv(s, status=status))
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="newsletter-subscribers.csv"'},
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Payments
# ═══════════════════════════════════════════════════════════════════════════════


@router.post("/payments/{payment_id}/refund")
async def refund_payment(
    state: State, admin: SuperAdmin, payment_id: int, body: RefundIn
) -> Envelope:
    payment = settle(
        await state.payments.refund_payment(admin, payment_id, body.amount, body.reason)
    )
    return Envelope(data=PaymentOut.from_domain(payment), message="Refund processed")


# ═══════════════════════════════════════════════════════════════════════════════
# Reports
# ═══════════════════════════════════════════════════════════════════════════════


@router.get("/reports/sales")
async def sales_report(state: State, params: Annotated[SalesQuery, Query()]) -> Envelope:
    report = await state.atomic(
        lambda s: reports.sales_report(s, params.date_from, params.date_to)
    )
    return Envelope(data=SalesReportOut.from_domain(report))


@router.get("/dashboard")
async def dashboard(state: State) -> Envelope:
    stats = await state.read(
        lambda s: reports.dashboard_stats(s, state.settings.low_stock_threshold)
    )
    return Envelope(data=DashboardOut.from_domain(stats))


@router.get("/logs")
async def admin_logs(state: State, params: Annotated[AdminLogQuery, Query()]) -> Envelope:
    page = await state.read(
        lambda s: list_admin_logs(
            s,
            action=params.action,
            admin_id=params.admin_id,
            page=params.page,
            limit=params.limit,
        )
    )
    return Envelope(data=PageOut.from_domain(page, AdminLogOut.from_domain))
