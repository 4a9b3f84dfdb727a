"""
Request dependencies: app state, the principal, client address, Result settling.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Annotated

import httpx
from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront import auth as A
from storefront.cart import CartOwner
from storefront.config import Settings
from storefront.db import SessionFactory, atomic
from storefront.errors import ShopError
from storefront.mail import Mailer
from storefront.payments import AlertSink, PaymentService


@dataclass(frozen=True, slots=True)
class AppState:
    settings: Settings
    session_factory: SessionFactory
    mailer: Mailer
    payments: PaymentService

    @classmethod
    def build(
        cls,
        settings: Settings,
        session_factory: SessionFactory,
        mailer: Mailer,
        alerts: AlertSink | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> AppState:
        payments = PaymentService(session_factory, settings, alerts=alerts, http=http)
        return cls(settings, session_factory, mailer, payments)

    async def atomic[T](
        self, operation: Callable[[AsyncSession], Awaitable[Result[T, ShopError]]]
    ) -> T:
        """Run one transaction and settle its Result."""
        return settle(await atomic(self.session_factory, operation))

    async def read[T](self, query: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async with self.session_factory() as session:
            return await query(session)


def settle[T](result: Result[T, ShopError]) -> T:
    """Ok value, or raise the ShopError for the app's error handler."""
    match result:
        case Ok(value):
            return value
        case Error(e):
            raise e


def get_state(request: Request) -> AppState:
    return request.app.state.storefront


State = Annotated[AppState, Depends(get_state)]


async def get_principal(
    state: State,
    authorization: Annotated[str | None, Header()] = None,
    x_session_id: Annotated[str | None, Header()] = None,
) -> A.Principal:
    async with state.session_factory() as session:
        return settle(
            await A.resolve_principal(state.settings, session, authorization, x_session_id)
        )


CurrentPrincipal = Annotated[A.Principal, Depends(get_principal)]


def get_customer(principal: CurrentPrincipal) -> A.Customer:
    return settle(A.require_customer(principal))


def get_admin(principal: CurrentPrincipal) -> A.Admin:
    return settle(A.require_admin(principal))


def get_super_admin(principal: CurrentPrincipal) -> A.Admin:
    return settle(A.require_super_admin(principal))


def get_cart_owner(principal: CurrentPrincipal) -> CartOwner:
    return settle(CartOwner.of(principal))


CurrentCustomer = Annotated[A.Customer, Depends(get_customer)]
CurrentAdmin = Annotated[A.Admin, Depends(get_admin)]
SuperAdmin = Annotated[A.Admin, Depends(get_super_admin)]
CurrentCartOwner = Annotated[CartOwner, Depends(get_cart_owner)]


def client_ip(request: Request, state: State) -> str | None:
    """Peer address; the first X-Forwarded-For hop when behind a trusted proxy."""
    if state.settings.trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


ClientIP = Annotated[str | None, Depends(client_ip)]


__all__ = (
    "AppState",
    "settle",
    "get_state",
    "State",
    "get_principal",
    "CurrentPrincipal",
    "CurrentCustomer",
    "CurrentAdmin",
    "SuperAdmin",
    "CurrentCartOwner",
    "client_ip",
    "ClientIP",
)
