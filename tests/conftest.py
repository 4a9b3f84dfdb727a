from __future__ import annotations

import itertools
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx
import pytest

from kungfu import Ok, Error

from storefront import auth as A
from storefront.cart import CartOwner, add_item
from storefront.config import Settings
from storefront.db import (
    AddressTable,
    DiscountTable,
    ProductTable,
    SessionFactory,
    UserTable,
    VariantTable,
    atomic,
    create_database,
)
from storefront.http import create_app
from storefront.mail import MemoryMailer
from storefront.orders import Order, PlaceOrder, create_order
from storefront.payments import MemoryAlertSink, PaymentService, generate_signature

PASSPHRASE = "jt7NOE43FZPn"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="testing",
        jwt_secret="customer-secret",
        admin_jwt_secret="admin-secret",
        payfast_merchant_id="10000100",
        payfast_merchant_key="46f0cd694581a",
        payfast_passphrase=PASSPHRASE,
        frontend_url="http://shop.test",
        backend_url="http://api.test",
    )


@pytest.fixture
async def factory(tmp_path) -> AsyncIterator[SessionFactory]:
    session_factory, engine = await create_database(f"sqlite+aiosqlite:///{tmp_path / 'shop.db'}")
    yield session_factory
    await engine.dispose()


# ═══════════════════════════════════════════════════════════════════════════════
# Seed data
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class Seed:
    factory: SessionFactory
    _ids: itertools.count[int] = field(default_factory=lambda: itertools.count(1))

    async def add[R](self, row: R) -> R:
        async with self.factory() as session, session.begin():
            session.add(row)
        return row

    async def user(self, name: str = "Thandi Mokoena") -> UserTable:
        n = next(self._ids)
        return await self.add(UserTable(email=f"shopper{n}@example.com", name=name))

    async def address(self, user: UserTable) -> AddressTable:
        return await self.add(
            AddressTable(
                user_id=user.id,
                line1="12 Long Street",
                city="Cape Town",
                province="Western Cape",
                postal_code="8001",
            )
        )

    async def product(self, name: str = "Body Wave Bundle", *, active: bool = True) -> ProductTable:
        n = next(self._ids)
        return await self.add(ProductTable(name=name, slug=f"product-{n}", active=active))

    async def variant(
        self,
        *,
        price: int = 29999,
        stock: int = 10,
        sale_price: int | None = None,
        active: bool = True,
        product: ProductTable | None = None,
        product_active: bool = True,
        name: str = "Body Wave Bundle",
    ) -> VariantTable:
        if product is None:
            product = await self.product(name, active=product_active)
        n = next(self._ids)
        return await self.add(
            VariantTable(
                product_id=product.id,
                sku=f"SKU-{n:04d}",
                length="18 inch",
                price_cents=price,
                sale_price_cents=sale_price,
                stock=stock,
                active=active,
            )
        )

    async def discount(
        self,
        code: str = "SAVE10",
        *,
        type: str = "percentage",
        value_hundredths: int = 1000,
        min_purchase_cents: int | None = 10000,
        usage_limit: int | None = None,
        used_count: int = 0,
        expires_at: datetime | None = None,
        active: bool = True,
    ) -> DiscountTable:
        return await self.add(
            DiscountTable(
                code=code,
                type=type,
                value_hundredths=value_hundredths,
                min_purchase_cents=min_purchase_cents,
                usage_limit=usage_limit,
                used_count=used_count,
                expires_at=expires_at,
                active=active,
            )
        )

    async def fill_cart(self, user: UserTable, variant: VariantTable, quantity: int) -> None:
        ok(
            await atomic(
                self.factory,
                lambda s: add_item(s, CartOwner(user_id=user.id), variant.id, quantity),
            )
        )


@pytest.fixture
def seed(factory: SessionFactory) -> Seed:
    return Seed(factory)


# ═══════════════════════════════════════════════════════════════════════════════
# Orders & payments
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class Placed:
    user: UserTable
    variant: VariantTable
    order: Order


@pytest.fixture
def place_order(seed: Seed, settings: Settings, factory: SessionFactory):
    async def place(
        *, quantity: int = 2, stock: int = 10, discount_code: str | None = None
    ) -> Placed:
        user = await seed.user()
        address = await seed.address(user)
        variant = await seed.variant(stock=stock)
        await seed.fill_cart(user, variant, quantity)
        result = await create_order(
            factory,
            settings,
            A.Customer(user.id),
            PlaceOrder(shipping_address_id=address.id, discount_code=discount_code),
        )
        return Placed(user, variant, ok(result))

    return place


@pytest.fixture
def alerts() -> MemoryAlertSink:
    return MemoryAlertSink()


@pytest.fixture
def payments(
    factory: SessionFactory, settings: Settings, alerts: MemoryAlertSink
) -> PaymentService:
    return PaymentService(factory, settings, alerts=alerts)


def itn_fields(
    reference: str,
    amount: str,
    *,
    status: str = "COMPLETE",
    pf_id: str = "1089250",
    passphrase: str | None = PASSPHRASE,
) -> dict[str, str]:
    """A gateway notification signed the way the gateway signs it."""
    fields: dict[str, Any] = {
        "m_payment_id": reference,
        "pf_payment_id": pf_id,
        "payment_status": status,
        "item_name": "Order",
        "amount_gross": amount,
        "amount_fee": "-2.30",
        "amount_net": "97.70",
        "merchant_id": "10000100",
    }
    fields["signature"] = generate_signature(fields, passphrase)
    return fields


# ═══════════════════════════════════════════════════════════════════════════════
# HTTP
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def mailer() -> MemoryMailer:
    return MemoryMailer()


@pytest.fixture
async def client(
    settings: Settings, factory: SessionFactory, mailer: MemoryMailer, alerts: MemoryAlertSink
) -> AsyncIterator[httpx.AsyncClient]:
    app = create_app(settings, session_factory=factory, mailer=mailer, alerts=alerts)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


def bearer(settings: Settings, subject_id: int, role: str | None = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {A.issue_token(settings, subject_id, role=role)}"}


# ═══════════════════════════════════════════════════════════════════════════════
# Result helpers
# ═══════════════════════════════════════════════════════════════════════════════


def ok(result: Any) -> Any:
    match result:
        case Ok(value):
            return value
        case Error(e):
            raise AssertionError(f"expected Ok, got Error({e!r})")
    raise AssertionError(f"not a Result: {result!r}")


def err(result: Any) -> Any:
    match result:
        case Error(e):
            return e
        case Ok(value):
            raise AssertionError(f"expected Error, got Ok({value!r})")
    raise AssertionError(f"not a Result: {result!r}")
