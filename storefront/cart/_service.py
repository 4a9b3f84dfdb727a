"""
Cart operations.

Every mutation expects to run inside one transaction (see `db.atomic`) and
returns the resulting cart so callers never re-read it separately.
"""

from __future__ import annotations

import logging

from sqlalchemy import ColumnElement, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront.cart._types import CartLine, CartOwner, CartValidation, CartView
from storefront.catalog import LineRequest, effective_price, valid_quantity, variant_details
from storefront.db import CartItemTable, CartTable, ProductTable, VariantTable, insert_for
from storefront.errors import Errors, NotFoundError, ShopError, ValidationError

log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Cart rows
# ═══════════════════════════════════════════════════════════════════════════════


def _owner_clause(owner: CartOwner) -> ColumnElement[bool]:
    if owner.user_id is not None:
        return CartTable.user_id == owner.user_id
    return CartTable.session_id == owner.session_id


async def find_cart(session: AsyncSession, owner: CartOwner) -> CartTable | None:
    return await session.scalar(select(CartTable).where(_owner_clause(owner)))


async def get_or_create_cart(session: AsyncSession, owner: CartOwner) -> CartTable:
    """
    Insert-if-missing, then read.

    Two first requests for the same owner race on the unique key; the loser's
    insert is a no-op and both read the same row.
    """
    insert = insert_for(session)
    key = "user_id" if owner.user_id is not None else "session_id"
    await session.execute(
        insert(CartTable)
        .values(user_id=owner.user_id, session_id=owner.session_id)
        .on_conflict_do_nothing(index_elements=[key])
    )
    cart = await find_cart(session, owner)
    if cart is None:
        raise RuntimeError(f"cart for {owner} vanished after insert")
    return cart


async def _lines(session: AsyncSession, cart_id: int) -> tuple[CartLine, ...]:
    rows = await session.execute(
        select(CartItemTable, VariantTable, ProductTable)
        .join(VariantTable, VariantTable.id == CartItemTable.variant_id)
        .join(ProductTable, ProductTable.id == VariantTable.product_id)
        .where(CartItemTable.cart_id == cart_id)
        .order_by(CartItemTable.added_at.desc(), CartItemTable.id.desc())
    )
    lines = []
    for item, variant, product in rows:
        price = effective_price(variant)
        lines.append(
            CartLine(
                item_id=item.id,
                variant_id=variant.id,
                product_id=product.id,
                product_name=product.name,
                details=variant_details(variant),
                quantity=item.quantity,
                unit_price=price,
                line_total=price * item.quantity,
                stock=variant.stock,
                available=variant.active and product.active,
            )
        )
    return tuple(lines)


async def cart_snapshot(session: AsyncSession, owner: CartOwner) -> CartView:
    """Current cart with live prices. A missing cart reads as empty."""
    cart = await find_cart(session, owner)
    if cart is None:
        return CartView(None, owner.session_id)
    return CartView(cart.id, cart.session_id, await _lines(session, cart.id))


async def line_requests(session: AsyncSession, owner: CartOwner) -> tuple[LineRequest, ...]:
    """The cart as bare (variant, quantity) requests for the pricing engine."""
    cart = await find_cart(session, owner)
    if cart is None:
        return ()
    rows = await session.execute(
        select(CartItemTable.variant_id, CartItemTable.quantity)
        .where(CartItemTable.cart_id == cart.id)
        .order_by(CartItemTable.id)
    )
    return tuple(LineRequest(variant_id, quantity) for variant_id, quantity in rows)


# ═══════════════════════════════════════════════════════════════════════════════
# Mutations
# ═══════════════════════════════════════════════════════════════════════════════


async def _purchasable(
    session: AsyncSession, variant_id: int
) -> Result[tuple[VariantTable, ProductTable], ShopError]:
    row = (
        await session.execute(
            select(VariantTable, ProductTable)
            .join(ProductTable, ProductTable.id == VariantTable.product_id)
            .where(VariantTable.id == variant_id)
        )
    ).first()
    if row is None:
        return Error(NotFoundError("Product variant not found", "VARIANT_NOT_FOUND"))
    variant, product = row
    if not variant.active or not product.active:
        return Error(ValidationError("Product is not available", "PRODUCT_UNAVAILABLE"))
    return Ok((variant, product))


async def add_item(
    session: AsyncSession, owner: CartOwner, variant_id: int, quantity: object
) -> Result[CartView, ShopError]:
    """
    Add `quantity` of a variant, merging with an existing line.

    The merge is one upsert on (cart_id, variant_id), so concurrent adds of
    the same variant sum instead of creating duplicate rows. The summed
    quantity is checked against stock after the write; the caller's
    transaction rolls back on StockError.
    """
    qty = valid_quantity(quantity)
    if qty is None:
        return Error(Errors.invalid_quantity())

    match await _purchasable(session, variant_id):
        case Error(e):
            return Error(e)
        case Ok((variant, product)):
            pass
    if qty > variant.stock:
        return Error(Errors.insufficient_stock(product.name, variant.stock))

    cart = await get_or_create_cart(session, owner)
    insert = insert_for(session)
    stmt = insert(CartItemTable).values(cart_id=cart.id, variant_id=variant_id, quantity=qty)
    merged = await session.scalar(
        stmt.on_conflict_do_update(
            index_elements=["cart_id", "variant_id"],
            set_={"quantity": CartItemTable.quantity + stmt.excluded.quantity},
        ).returning(CartItemTable.quantity)
    )

    stock = await session.scalar(select(VariantTable.stock).where(VariantTable.id == variant_id))
    if merged is None or stock is None or merged > stock:
        return Error(Errors.insufficient_stock(product.name, stock or 0))

    log.debug("cart %s: variant %s -> qty %s", cart.id, variant_id, merged)
    return Ok(CartView(cart.id, cart.session_id, await _lines(session, cart.id)))


async def _owned_item(
    session: AsyncSession, owner: CartOwner, item_id: int
) -> tuple[CartTable, CartItemTable] | None:
    row = (
        await session.execute(
            select(CartTable, CartItemTable)
            .join(CartItemTable, CartItemTable.cart_id == CartTable.id)
            .where(CartItemTable.id == item_id, _owner_clause(owner))
        )
    ).first()
    if row is None:
        return None
    cart, item = row
    return cart, item


async def update_item(
    session: AsyncSession, owner: CartOwner, item_id: int, quantity: object
) -> Result[CartView, ShopError]:
    """Set a line's quantity; 0 removes the line."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
        return Error(Errors.invalid_quantity())

    owned = await _owned_item(session, owner, item_id)
    if owned is None:
        return Error(NotFoundError("Cart item not found", "CART_ITEM_NOT_FOUND"))
    cart, item = owned

    if quantity == 0:
        await session.delete(item)
    else:
        match await _purchasable(session, item.variant_id):
            case Error(e):
                return Error(e)
            case Ok((variant, product)):
                pass
        if quantity > variant.stock:
            return Error(Errors.insufficient_stock(product.name, variant.stock))
        item.quantity = quantity

    await session.flush()
    return Ok(CartView(cart.id, cart.session_id, await _lines(session, cart.id)))


async def remove_item(
    session: AsyncSession, owner: CartOwner, item_id: int
) -> Result[CartView, ShopError]:
    owned = await _owned_item(session, owner, item_id)
    if owned is None:
        return Error(NotFoundError("Cart item not found", "CART_ITEM_NOT_FOUND"))
    cart, item = owned
    await session.delete(item)
    await session.flush()
    return Ok(CartView(cart.id, cart.session_id, await _lines(session, cart.id)))


async def clear_cart(session: AsyncSession, owner: CartOwner) -> Result[CartView, ShopError]:
    cart = await find_cart(session, owner)
    if cart is not None:
        await session.execute(delete(CartItemTable).where(CartItemTable.cart_id == cart.id))
        return Ok(CartView(cart.id, cart.session_id))
    return Ok(CartView(None, owner.session_id))


# ═══════════════════════════════════════════════════════════════════════════════
# Validation & merge
# ═══════════════════════════════════════════════════════════════════════════════


async def validate_cart(session: AsyncSession, owner: CartOwner) -> CartValidation:
    """
    Check every line against live availability and stock.

    Inactive or sold-out lines are errors; lines asking for more than is
    left are warnings (the shopper can still reduce them).
    """
    view = await cart_snapshot(session, owner)
    result = CartValidation(view)
    for line in view.lines:
        if not line.available:
            result.errors.append(f"{line.product_name} is no longer available")
        elif line.stock <= 0:
            result.errors.append(f"{line.product_name} is out of stock")
        elif line.quantity > line.stock:
            result.warnings.append(
                f"{line.product_name}: Only {line.stock} available (requested {line.quantity})"
            )
    return result


async def merge_guest_cart(
    session: AsyncSession, session_id: str, user_id: int
) -> Result[CartView, ShopError]:
    """Move a guest cart into the user's cart, capping each line at stock."""
    user_owner = CartOwner(user_id=user_id)
    guest = await find_cart(session, CartOwner(session_id=session_id))
    if guest is None:
        return Ok(await cart_snapshot(session, user_owner))

    cart = await get_or_create_cart(session, user_owner)
    rows = await session.execute(
        select(CartItemTable, VariantTable)
        .join(VariantTable, VariantTable.id == CartItemTable.variant_id)
        .where(CartItemTable.cart_id == guest.id)
    )
    insert = insert_for(session)
    for item, variant in rows:
        existing = await session.scalar(
            select(CartItemTable.quantity).where(
                CartItemTable.cart_id == cart.id, CartItemTable.variant_id == variant.id
            )
        )
        quantity = min((existing or 0) + item.quantity, variant.stock)
        if quantity <= 0:
            continue
        await session.execute(
            insert(CartItemTable)
            .values(cart_id=cart.id, variant_id=variant.id, quantity=quantity)
            .on_conflict_do_update(
                index_elements=["cart_id", "variant_id"], set_={"quantity": quantity}
            )
        )

    await session.execute(delete(CartTable).where(CartTable.id == guest.id))
    log.info("merged guest cart %s into user %s", guest.id, user_id)
    return Ok(CartView(cart.id, cart.session_id, await _lines(session, cart.id)))


__all__ = (
    "find_cart",
    "get_or_create_cart",
    "cart_snapshot",
    "line_requests",
    "add_item",
    "update_item",
    "remove_item",
    "clear_cart",
    "validate_cart",
    "merge_guest_cart",
)
