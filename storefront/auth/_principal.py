"""
Principal — who is making the request, resolved once per request.

    match principal:
        case Customer(user_id):
            ...
        case Admin(admin_id, role):
            ...
        case Guest(session_id):
            ...
"""

from __future__ import annotations

from dataclasses import dataclass

from kungfu import Result, Ok, Error

from storefront.errors import AuthError, ForbiddenError


@dataclass(frozen=True, slots=True)
class Guest:
    session_id: str | None = None


@dataclass(frozen=True, slots=True)
class Customer:
    user_id: int
    session_id: str | None = None


@dataclass(frozen=True, slots=True)
class Admin:
    admin_id: int
    role: str = "admin"

    @property
    def is_super(self) -> bool:
        return self.role == "super_admin"


type Principal = Guest | Customer | Admin


def require_customer(principal: Principal) -> Result[Customer, AuthError]:
    match principal:
        case Customer():
            return Ok(principal)
        case _:
            return Error(AuthError("Authentication required"))


def require_admin(principal: Principal) -> Result[Admin, AuthError]:
    match principal:
        case Admin():
            return Ok(principal)
        case _:
            return Error(AuthError("Admin authentication required."))


def require_super_admin(principal: Principal) -> Result[Admin, AuthError | ForbiddenError]:
    match principal:
        case Admin() if principal.is_super:
            return Ok(principal)
        case Admin():
            return Error(ForbiddenError("Super admin access required."))
        case _:
            return Error(AuthError("Admin authentication required."))


__all__ = (
    "Guest",
    "Customer",
    "Admin",
    "Principal",
    "require_customer",
    "require_admin",
    "require_super_admin",
)
