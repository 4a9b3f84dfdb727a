"""
Public catalog, product reviews and discount preview.
"""

from typing import Annotated

from fastapi import APIRouter, Query

from storefront import catalog, discounts, reviews
from storefront.http._deps import CurrentCustomer, State
from storefront.http._schemas import (
    DiscountQuoteOut,
    DiscountValidateIn,
    Envelope,
    ListQuery,
    PageOut,
    ProductOut,
    ProductQuery,
    ProductReviewsOut,
    ReviewIn,
    ReviewOut,
    ReviewPatchIn,
)

products = APIRouter(prefix="/products", tags=["products"])
review_router = APIRouter(prefix="/reviews", tags=["reviews"])
discount_router = APIRouter(prefix="/discounts", tags=["discounts"])


# ═══════════════════════════════════════════════════════════════════════════════
# Products
# ═══════════════════════════════════════════════════════════════════════════════


@products.get("")
async def list_products(state: State, params: Annotated[ProductQuery, Query()]) -> Envelope:
    page = await state.read(
        lambda s: catalog.list_products(
            s,
            search=params.search,
            category=params.category,
            page=params.page,
            limit=params.limit,
        )
    )
    return Envelope(data=PageOut.from_domain(page, ProductOut.from_domain))


@products.get("/{product_id}")
async def get_product(state: State, product_id: int) -> Envelope:
    product = await state.atomic(lambda s: catalog.get_product(s, product_id))
    return Envelope(data=ProductOut.from_domain(product))


@products.get("/{product_id}/reviews")
async def product_reviews(
    state: State, product_id: int, params: Annotated[ListQuery, Query()]
) -> Envelope:
    result = await state.read(
        lambda s: reviews.product_reviews(s, product_id, page=params.page, limit=params.limit)
    )
    return Envelope(data=ProductReviewsOut.from_domain(result))


@products.post("/{product_id}/reviews", status_code=201)
async def submit_review(
    state: State, customer: CurrentCustomer, product_id: int, body: ReviewIn
) -> Envelope:
    review = await state.atomic(
        lambda s: reviews.submit_review(
            s, customer, product_id, rating=body.rating, title=body.title, body=body.body
        )
    )
    return Envelope(
        data=ReviewOut.from_domain(review),
        message="Review submitted and awaiting approval",
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Reviews
# ═══════════════════════════════════════════════════════════════════════════════


@review_router.put("/{review_id}")
async def update_review(
    state: State, customer: CurrentCustomer, review_id: int, body: ReviewPatchIn
) -> Envelope:
    review = await state.atomic(
        lambda s: reviews.update_review(
            s, customer, review_id, rating=body.rating, title=body.title, body=body.body
        )
    )
    return Envelope(data=ReviewOut.from_domain(review), message="Review updated")


@review_router.delete("/{review_id}")
async def delete_review(state: State, customer: CurrentCustomer, review_id: int) -> Envelope:
    await state.atomic(lambda s: reviews.delete_review(s, customer, review_id))
    return Envelope(message="Review deleted")


@review_router.post("/{review_id}/helpful")
async def mark_helpful(state: State, review_id: int) -> Envelope:
    count = await state.atomic(lambda s: reviews.mark_helpful(s, review_id))
    return Envelope(data={"helpful_count": count})


# ═══════════════════════════════════════════════════════════════════════════════
# Discounts
# ═══════════════════════════════════════════════════════════════════════════════


@discount_router.post("/validate")
async def validate_discount(state: State, body: DiscountValidateIn) -> Envelope:
    quote = await state.atomic(
        lambda s: discounts.validate_discount(s, body.code, body.order_total)
    )
    return Envelope(data=DiscountQuoteOut.from_domain(quote))
