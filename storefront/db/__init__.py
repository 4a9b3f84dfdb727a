"""
Database — SQLAlchemy 2.0 async models and session setup.

    from storefront import db

    session_factory, engine = await db.create_database("sqlite+aiosqlite:///shop.db")
    async with session_factory() as session, session.begin():
        session.add(db.ProductTable(name="Body Wave", slug="body-wave"))
"""

from storefront.db._models import (
    Base,
    UserTable,
    AddressTable,
    PasswordResetTokenTable,
    ProductTable,
    VariantTable,
    CartTable,
    CartItemTable,
    DiscountTable,
    OrderSequenceTable,
    OrderTable,
    OrderItemTable,
    PaymentTable,
    PaymentNotificationTable,
    RefundTable,
    ReturnTable,
    ReviewTable,
    NewsletterSubscriberTable,
    AdminLogTable,
)
from storefront.db._engine import SessionFactory, create_database, insert_for, atomic

__all__ = (
    # Models
    "Base",
    "UserTable",
    "AddressTable",
    "PasswordResetTokenTable",
    "ProductTable",
    "VariantTable",
    "CartTable",
    "CartItemTable",
    "DiscountTable",
    "OrderSequenceTable",
    "OrderTable",
    "OrderItemTable",
    "PaymentTable",
    "PaymentNotificationTable",
    "RefundTable",
    "ReturnTable",
    "ReviewTable",
    "NewsletterSubscriberTable",
    "AdminLogTable",
    # Setup
    "SessionFactory",
    "create_database",
    "insert_for",
    "atomic",
)
