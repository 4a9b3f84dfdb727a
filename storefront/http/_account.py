"""
Returns, newsletter and password reset.
"""

from typing import Annotated

from fastapi import APIRouter, Query

from storefront import auth as A
from storefront import newsletter, returns
from storefront.http._deps import ClientIP, CurrentCustomer, State
from storefront.http._schemas import (
    EmailIn,
    Envelope,
    PageOut,
    PasswordResetIn,
    ReturnIn,
    ReturnOut,
    ReturnQuery,
    TokenIn,
)

return_router = APIRouter(prefix="/returns", tags=["returns"])
newsletter_router = APIRouter(prefix="/newsletter", tags=["newsletter"])
auth_router = APIRouter(prefix="/auth", tags=["auth"])


@return_router.post("", status_code=201)
async def create_return(state: State, customer: CurrentCustomer, body: ReturnIn) -> Envelope:
    request = await state.atomic(
        lambda s: returns.create_return(s, customer, body.order_id, body.reason, body.items)
    )
    return Envelope(data=ReturnOut.from_domain(request), message="Return request submitted")


@return_router.get("")
async def list_returns(
    state: State, customer: CurrentCustomer, params: Annotated[ReturnQuery, Query()]
) -> Envelope:
    page = await state.read(
        lambda s: returns.list_user_returns(
            s, customer, status=params.status, page=params.page, limit=params.limit
        )
    )
    return Envelope(data=PageOut.from_domain(page, ReturnOut.from_domain))


@newsletter_router.post("/subscribe")
async def subscribe(state: State, body: EmailIn, ip: ClientIP) -> Envelope:
    message = await state.atomic(
        lambda s: newsletter.subscribe(
            s,
            state.mailer,
            body.email,
            frontend_url=state.settings.frontend_url,
            ip_address=ip,
        )
    )
    return Envelope(message=message)


@newsletter_router.post("/verify")
async def verify(state: State, body: TokenIn) -> Envelope:
    message = await state.atomic(lambda s: newsletter.verify_subscription(s, body.token))
    return Envelope(message=message)


@newsletter_router.post("/unsubscribe")
async def unsubscribe(state: State, body: EmailIn) -> Envelope:
    message = await state.atomic(lambda s: newsletter.unsubscribe(s, body.email))
    return Envelope(message=message)


@auth_router.post("/forgot-password")
async def forgot_password(state: State, body: EmailIn) -> Envelope:
    async with state.session_factory() as session, session.begin():
        await A.request_password_reset(
            session, state.mailer, body.email, frontend_url=state.settings.frontend_url
        )
    return Envelope(message="If an account exists for this email, a reset link has been sent")


@auth_router.post("/reset-password")
async def reset_password(state: State, body: PasswordResetIn) -> Envelope:
    await state.atomic(lambda s: A.reset_password(s, body.token, body.password))
    return Envelope(message="Password has been reset")
