"""
Product reviews.

New and edited reviews start unapproved; only approved reviews are public.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront._paging import Page, clamp, paginate
from storefront.audit import record_admin_action
from storefront.auth import Admin, Customer
from storefront.db import OrderItemTable, OrderTable, ProductTable, ReviewTable
from storefront.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ShopError,
    ValidationError,
)

MAX_TITLE = 200


@dataclass(frozen=True, slots=True)
class Review:
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
    def from_row(cls, row: ReviewTable) -> Review:
        return cls(
            row.id,
            row.product_id,
            row.user_id,
            row.rating,
            row.title,
            row.body,
            row.verified_purchase,
            row.is_approved,
            row.helpful_count,
            row.created_at,
        )


@dataclass(frozen=True, slots=True)
class ProductReviews:
    page: Page[Review]
    average_rating: float | None
    review_count: int


def _not_found() -> NotFoundError:
    return NotFoundError("Review not found", "REVIEW_NOT_FOUND")


def _check_content(
    rating: object, title: str | None, body: str | None
) -> Result[None, ValidationError]:
    if rating is not None and (
        isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5
    ):
        return Error(ValidationError("Rating must be between 1 and 5", "INVALID_RATING"))
    if title is not None and (not title.strip() or len(title) > MAX_TITLE):
        return Error(
            ValidationError(f"Title is required (max {MAX_TITLE} characters)", "INVALID_TITLE")
        )
    if body is not None and not body.strip():
        return Error(ValidationError("Review text is required", "INVALID_BODY"))
    return Ok(None)


async def has_purchased(session: AsyncSession, user_id: int, product_id: int) -> bool:
    """True when the user has a paid order containing the product."""
    found = await session.scalar(
        select(OrderItemTable.id)
        .join(OrderTable, OrderTable.id == OrderItemTable.order_id)
        .where(
            OrderTable.user_id == user_id,
            OrderTable.payment_status == "paid",
            OrderItemTable.product_id == product_id,
        )
        .limit(1)
    )
    return found is not None


async def submit_review(
    session: AsyncSession,
    customer: Customer,
    product_id: int,
    *,
    rating: int,
    title: str,
    body: str,
) -> Result[Review, ShopError]:
    match _check_content(rating, title, body):
        case Error(e):
            return Error(e)
        case Ok(_):
            pass

    if await session.get(ProductTable, product_id) is None:
        return Error(NotFoundError("Product not found", "PRODUCT_NOT_FOUND"))

    existing = await session.scalar(
        select(ReviewTable.id).where(
            ReviewTable.product_id == product_id, ReviewTable.user_id == customer.user_id
        )
    )
    if existing is not None:
        return Error(ConflictError("You have already reviewed this product", "ALREADY_REVIEWED"))

    row = ReviewTable(
        product_id=product_id,
        user_id=customer.user_id,
        rating=rating,
        title=title.strip(),
        body=body.strip(),
        verified_purchase=await has_purchased(session, customer.user_id, product_id),
        is_approved=False,
        helpful_count=0,
    )
    session.add(row)
    await session.flush()
    return Ok(Review.from_row(row))


async def _own_review(
    session: AsyncSession, customer: Customer, review_id: int
) -> Result[ReviewTable, ShopError]:
    row = await session.get(ReviewTable, review_id)
    if row is None:
        return Error(_not_found())
    if row.user_id != customer.user_id:
        return Error(ForbiddenError("You can only modify your own reviews", "NOT_REVIEW_OWNER"))
    return Ok(row)


async def update_review(
    session: AsyncSession,
    customer: Customer,
    review_id: int,
    *,
    rating: int | None = None,
    title: str | None = None,
    body: str | None = None,
) -> Result[Review, ShopError]:
    """Edit an own review; it goes back to moderation."""
    match _check_content(rating, title, body):
        case Error(e):
            return Error(e)
        case Ok(_):
            pass
    match await _own_review(session, customer, review_id):
        case Error(e):
            return Error(e)
        case Ok(row):
            pass

    if rating is not None:
        row.rating = rating
    if title is not None:
        row.title = title.strip()
    if body is not None:
        row.body = body.strip()
    row.is_approved = False
    await session.flush()
    return Ok(Review.from_row(row))


async def delete_review(
    session: AsyncSession, customer: Customer, review_id: int
) -> Result[None, ShopError]:
    match await _own_review(session, customer, review_id):
        case Error(e):
            return Error(e)
        case Ok(row):
            await session.delete(row)
            return Ok(None)


async def mark_helpful(session: AsyncSession, review_id: int) -> Result[int, NotFoundError]:
    count = await session.scalar(
        update(ReviewTable)
        .where(ReviewTable.id == review_id, ReviewTable.is_approved.is_(True))
        .values(helpful_count=ReviewTable.helpful_count + 1)
        .returning(ReviewTable.helpful_count)
        .execution_options(synchronize_session=False)
    )
    if count is None:
        return Error(_not_found())
    return Ok(count)


async def product_reviews(
    session: AsyncSession,
    product_id: int,
    *,
    page: int | None = None,
    limit: int | None = None,
) -> ProductReviews:
    page, limit = clamp(page, limit, 10)
    approved = (ReviewTable.product_id == product_id, ReviewTable.is_approved.is_(True))
    average, count = (
        await session.execute(select(func.avg(ReviewTable.rating), func.count()).where(*approved))
    ).one()
    stmt = (
        select(ReviewTable)
        .where(*approved)
        .order_by(ReviewTable.created_at.desc(), ReviewTable.id.desc())
    )
    return ProductReviews(
        await paginate(session, stmt, page, limit, Review.from_row),
        round(float(average), 2) if average is not None else None,
        int(count or 0),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Moderation
# ═══════════════════════════════════════════════════════════════════════════════


async def list_reviews(
    session: AsyncSession,
    *,
    approved: bool | None = None,
    product_id: int | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> Page[Review]:
    page, limit = clamp(page, limit, 20)
    stmt = select(ReviewTable).order_by(ReviewTable.created_at.desc(), ReviewTable.id.desc())
    if approved is not None:
        stmt = stmt.where(ReviewTable.is_approved.is_(approved))
    if product_id is not None:
        stmt = stmt.where(ReviewTable.product_id == product_id)
    return await paginate(session, stmt, page, limit, Review.from_row)


async def approve_review(
    session: AsyncSession, admin: Admin, review_id: int
) -> Result[Review, NotFoundError]:
    row = await session.get(ReviewTable, review_id)
    if row is None:
        return Error(_not_found())
    row.is_approved = True
    await session.flush()
    record_admin_action(session, admin, "approve_review", "review", review_id)
    return Ok(Review.from_row(row))


async def reject_review(
    session: AsyncSession, admin: Admin, review_id: int
) -> Result[None, NotFoundError]:
    """Rejected reviews are deleted."""
    result = await session.execute(
        delete(ReviewTable)
        .where(ReviewTable.id == review_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return Error(_not_found())
    record_admin_action(session, admin, "reject_review", "review", review_id)
    return Ok(None)


__all__ = (
    "MAX_TITLE",
    "Review",
    "ProductReviews",
    "has_purchased",
    "submit_review",
    "update_review",
    "delete_review",
    "mark_helpful",
    "product_reviews",
    "list_reviews",
    "approve_review",
    "reject_review",
)
