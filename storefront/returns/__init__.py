"""
Returns — requests against delivered orders.
"""

from storefront.returns._service import (
    RETURN_STATUSES,
    OPEN_STATUSES,
    ReturnRequest,
    create_return,
    list_user_returns,
    list_returns,
    update_return_status,
)

__all__ = (
    "RETURN_STATUSES",
    "OPEN_STATUSES",
    "ReturnRequest",
    "create_return",
    "list_user_returns",
    "list_returns",
    "update_return_status",
)
