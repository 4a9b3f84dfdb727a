"""
Newsletter — double opt-in subscriptions and CSV export.
"""

from storefront.newsletter._service import (
    EMAIL_RE,
    CSV_HEADER,
    STATUS_FILTERS,
    Subscriber,
    subscribe,
    verify_subscription,
    unsubscribe,
    list_subscribers,
    export_subscribers_csv,
)

__all__ = (
    "EMAIL_RE",
    "CSV_HEADER",
    "STATUS_FILTERS",
    "Subscriber",
    "subscribe",
    "verify_subscription",
    "unsubscribe",
    "list_subscribers",
    "export_subscribers_csv",
)
