"""
Reviews — one per customer and product, moderated before publishing.
"""

from storefront.reviews._service import (
    MAX_TITLE,
    Review,
    ProductReviews,
    has_purchased,
    submit_review,
    update_review,
    delete_review,
    mark_helpful,
    product_reviews,
    list_reviews,
    approve_review,
    reject_review,
)

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
