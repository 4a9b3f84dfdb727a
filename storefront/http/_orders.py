"""
Customer orders and payments, including the PayFast ITN webhook.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Query, Request
from fastapi.responses import PlainTextResponse

from storefront import orders
from storefront.http._deps import (
    ClientIP,
    CurrentCustomer,
    CurrentPrincipal,
    State,
    settle,
)
from storefront.http._schemas import (
    CreatePaymentIn,
    Envelope,
    OrderOut,
    OrderQuery,
    OrderWithItemsOut,
    PageOut,
    PaymentCheckoutOut,
    PaymentOut,
    PlaceOrderIn,
    VerifySignatureIn,
)

log = logging.getLogger(__name__)

order_router = APIRouter(prefix="/orders", tags=["orders"])
payment_router = APIRouter(prefix="/payments", tags=["payments"])


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


@order_router.post("", status_code=201)
async def create_order(state: State, principal: CurrentPrincipal, body: PlaceOrderIn) -> Envelope:
    order = settle(
        await orders.create_order(
            state.session_factory, state.settings, principal, body.to_domain()
        )
    )
    return Envelope(data=OrderWithItemsOut.from_domain(order), message="Order created")


@order_router.get("")
async def list_orders(
    state: State, customer: CurrentCustomer, params: Annotated[OrderQuery, Query()]
) -> Envelope:
    page = await state.read(
        lambda s: orders.list_user_orders(
            s, customer, status=params.status, page=params.page, limit=params.limit
        )
    )
    return Envelope(data=PageOut.from_domain(page, OrderOut.from_domain))


@order_router.get("/{order_id}")
async def get_order(state: State, customer: CurrentCustomer, order_id: int) -> Envelope:
    order = await state.atomic(lambda s: orders.get_user_order(s, customer, order_id))
    return Envelope(data=OrderWithItemsOut.from_domain(order))


# ═══════════════════════════════════════════════════════════════════════════════
# Payments
# ═══════════════════════════════════════════════════════════════════════════════


@payment_router.post("/create")
async def create_payment(
    state: State, principal: CurrentPrincipal, body: CreatePaymentIn
) -> Envelope:
    checkout = settle(await state.payments.create_payment(principal, body.order_id))
    return Envelope(data=PaymentCheckoutOut.from_domain(checkout))


@payment_router.post("/payfast/notify", response_class=PlainTextResponse)
async def payfast_notify(request: Request, state: State, ip: ClientIP) -> str:
    """Gateway callback. Always answered with 200 "OK"; failures become alerts."""
    try:
        form = await request.form()
        fields = {key: str(value) for key, value in form.items()}
    except Exception:
        log.exception("unreadable itn body from %s", ip)
        return "OK"
    await state.payments.acknowledge(fields, ip)
    return "OK"


@payment_router.post("/verify")
async def verify_signature(state: State, body: VerifySignatureIn) -> Envelope:
    valid = state.payments.verify_signature(body.payment_data, body.signature)
    return Envelope(data={"valid": valid})


@payment_router.get("/{order_id}")
async def payment_status(state: State, principal: CurrentPrincipal, order_id: int) -> Envelope:
    payment = await state.atomic(
        lambda s: state.payments.payment_status(s, principal, order_id)
    )
    return Envelope(data=PaymentOut.from_domain(payment))
