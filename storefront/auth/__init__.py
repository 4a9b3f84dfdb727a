"""
Auth — request principals, bearer tokens and password-reset tokens.

    match await A.resolve_principal(settings, session, authorization, session_id):
        case Ok(A.Customer(user_id)):
            ...
"""

from storefront.auth._principal import (
    Guest,
    Customer,
    Admin,
    Principal,
    require_customer,
    require_admin,
    require_super_admin,
)
from storefront.auth._tokens import ALGORITHM, issue_token, bearer_token, resolve_principal
from storefront.auth._reset import (
    RESET_TOKEN_TTL,
    MIN_PASSWORD_LENGTH,
    issue_reset_token,
    consume_reset_token,
    hash_password,
    check_password,
    reset_password,
    request_password_reset,
)

__all__ = (
    # Principal
    "Guest",
    "Customer",
    "Admin",
    "Principal",
    "require_customer",
    "require_admin",
    "require_super_admin",
    # Tokens
    "ALGORITHM",
    "issue_token",
    "bearer_token",
    "resolve_principal",
    # Password reset
    "RESET_TOKEN_TTL",
    "MIN_PASSWORD_LENGTH",
    "issue_reset_token",
    "consume_reset_token",
    "hash_password",
    "check_password",
    "reset_password",
    "request_password_reset",
)
