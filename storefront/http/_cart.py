"""
Cart endpoints. Guests are identified by the `X-Session-Id` header; the
session id is echoed back in every cart body so new guests can keep it.
"""

from fastapi import APIRouter

from storefront import cart
from storefront.http._deps import CurrentCartOwner, CurrentCustomer, State
from storefront.http._schemas import (
    AddItemIn,
    CartOut,
    CartValidationOut,
    Envelope,
    MergeCartIn,
    UpdateItemIn,
)

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("")
async def get_cart(state: State, owner: CurrentCartOwner) -> Envelope:
    view = await state.read(lambda s: cart.cart_snapshot(s, owner))
    return Envelope(data=CartOut.from_domain(view))


@router.post("/items")
async def add_item(state: State, owner: CurrentCartOwner, body: AddItemIn) -> Envelope:
    view = await state.atomic(lambda s: cart.add_item(s, owner, body.variant_id, body.quantity))
    return Envelope(data=CartOut.from_domain(view), message="Item added to cart")


@router.put("/items/{item_id}")
async def update_item(
    state: State, owner: CurrentCartOwner, item_id: int, body: UpdateItemIn
) -> Envelope:
    view = await state.atomic(lambda s: cart.update_item(s, owner, item_id, body.quantity))
    return Envelope(data=CartOut.from_domain(view), message="Cart updated")


@router.delete("/items/{item_id}")
async def remove_item(state: State, owner: CurrentCartOwner, item_id: int) -> Envelope:
    view = await state.atomic(lambda s: cart.remove_item(s, owner, item_id))
    return Envelope(data=CartOut.from_domain(view), message="Item removed from cart")


@router.delete("")
async def clear_cart(state: State, owner: CurrentCartOwner) -> Envelope:
    view = await state.atomic(lambda s: cart.clear_cart(s, owner))
    return Envelope(data=CartOut.from_domain(view), message="Cart cleared")


@router.post("/validate")
async def validate_cart(state: State, owner: CurrentCartOwner) -> Envelope:
    result = await state.read(lambda s: cart.validate_cart(s, owner))
    return Envelope(data=CartValidationOut.from_domain(result))


@router.post("/merge")
async def merge_cart(state: State, customer: CurrentCustomer, body: MergeCartIn) -> Envelope:
    view = await state.atomic(
        lambda s: cart.merge_guest_cart(s, body.session_id, customer.user_id)
    )
    return Envelope(data=CartOut.from_domain(view), message="Cart merged")
