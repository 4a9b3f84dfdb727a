"""
Payment service — outbound payments, ITN handling, refunds.

ITN pipeline (each step must pass before any state changes):

    source IP ─► signature ─► payment lookup ─► amount ─► [gateway validation]
        ─► idempotent apply (one transaction: payment, order, stock)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

import httpx
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error, LazyCoroResult
from combinators import flow, lift as L

from storefront import idempotency as I
from storefront._types import Cents, has_cent_precision, now, to_cents
from storefront.audit import record_admin_action
from storefront.auth import Admin, Customer, Principal
from storefront.config import Settings
from storefront.db import (
    OrderItemTable,
    OrderTable,
    PaymentNotificationTable,
    PaymentTable,
    RefundTable,
    SessionFactory,
    VariantTable,
    atomic,
)
from storefront.errors import (
    Errors,
    ForbiddenError,
    InternalError,
    NotFoundError,
    ShopError,
    ValidationError,
)
from storefront.payments._alerts import AlertSink, LoggingAlertSink, PaymentAlert
from storefront.payments._payfast import (
    Notification,
    build_payment_data,
    check_amount,
    check_signature,
    check_source,
    payment_url,
    signature_matches,
    validate_with_server,
)

log = logging.getLogger(__name__)

# Completed notification keys are kept for this long.
NOTIFICATION_TTL_HOURS = 24 * 30

# Order payment statuses a notification never overwrites.
SETTLED_ORDER = ("paid", "refunded")


# ═══════════════════════════════════════════════════════════════════════════════
# Types
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Payment:
    id: int
    order_id: int
    reference: str
    amount: Cents
    status: str
    payment_method: str
    transaction_id: str | None
    created_at: datetime
    completed_at: datetime | None
    refunded_at: datetime | None
    order_number: str | None = None
    order_total: Cents | None = None

    @classmethod
    def from_row(cls, row: PaymentTable, order: OrderTable | None = None) -> Payment:
        return cls(
            id=row.id,
            order_id=row.order_id,
            reference=row.reference,
            amount=row.amount_cents,
            status=row.status,
            payment_method=row.payment_method,
            transaction_id=row.transaction_id,
            created_at=row.created_at,
            completed_at=row.completed_at,
            refunded_at=row.refunded_at,
            order_number=order.order_number if order is not None else None,
            order_total=order.total_cents if order is not None else None,
        )


@dataclass(frozen=True, slots=True)
class PaymentCheckout:
    payment_id: int
    reference: str
    payfast_url: str
    payment_data: dict[str, str]


class ApplyOutcome(Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    ALREADY_COMPLETED = "already_completed"


@dataclass(frozen=True, slots=True)
class NotificationResult:
    reference: str
    outcome: ApplyOutcome
    # True when this exact notification was processed before.
    replayed: bool = False


@dataclass(frozen=True, slots=True)
class Shortfall:
    variant_id: int
    product_name: str
    wanted: int
    available: int


@dataclass(frozen=True, slots=True)
class _Applied:
    outcome: ApplyOutcome
    order_number: str
    shortfalls: list[Shortfall] = field(default_factory=list[Shortfall])
    # A COMPLETE notice for an order that another transaction already paid.
    duplicate: bool = False


def _as_shop_error(e: Exception) -> ShopError:
    if isinstance(e, ShopError):
        return e
    log.error("notification apply failed: %r", e)
    return InternalError(f"Notification processing failed: {type(e).__name__}")


def _pending_notification(key: str, n: Notification) -> PaymentNotificationTable:
    return PaymentNotificationTable(
        idempotency_key=key,
        reference=n.reference,
        transaction_id=n.transaction_id,
        payment_status=n.payment_status or "UNKNOWN",
    )


async def consume_stock(session: AsyncSession, order_id: int) -> list[Shortfall]:
    """
    Decrement stock for every line of a paid order.

    Each decrement is conditional on `stock >= quantity`; a line that cannot
    be covered leaves stock untouched and is reported as a shortfall.
    """
    rows = await session.execute(
        select(OrderItemTable.variant_id, OrderItemTable.quantity, OrderItemTable.product_name)
        .where(OrderItemTable.order_id == order_id)
        .order_by(OrderItemTable.variant_id)
    )
    shortfalls = []
    for variant_id, quantity, product_name in rows:
        if variant_id is None:
            continue
        result = await session.execute(
            update(VariantTable)
            .where(VariantTable.id == variant_id, VariantTable.stock >= quantity)
            .values(stock=VariantTable.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            available = await session.scalar(
                select(VariantTable.stock).where(VariantTable.id == variant_id)
            )
            shortfalls.append(Shortfall(variant_id, product_name, quantity, available or 0))
    return shortfalls


# ═══════════════════════════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentService:
    def __init__(
        self,
        session_factory: SessionFactory,
        settings: Settings,
        alerts: AlertSink | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self._session = session_factory
        self._settings = settings
        self._alerts: AlertSink = alerts if alerts is not None else LoggingAlertSink()
        self._http = http
        self._store = I.SQLAlchemyStore(
            session_factory,
            model=PaymentNotificationTable,
            to_pending=_pending_notification,
        )

    # ───────────────────────────────────────────────────────────────────────
    # Outbound
    # ───────────────────────────────────────────────────────────────────────

    async def create_payment(
        self, principal: Principal, order_id: int
    ) -> Result[PaymentCheckout, ShopError]:
        """Record a pending payment and return the signed gateway form."""
        match principal:
            case Customer():
                customer = principal
            case _:
                return Error(Errors.unauthenticated())
        return await atomic(self._session, lambda s: self._create(s, customer, order_id))

    async def _create(
        self, session: AsyncSession, customer: Customer, order_id: int
    ) -> Result[PaymentCheckout, ShopError]:
        order = await session.get(OrderTable, order_id)
        if order is None:
            return Error(Errors.order_not_found())
        if order.user_id != customer.user_id:
            return Error(ForbiddenError("Access denied", "NOT_ORDER_OWNER"))

        # A failed attempt may be retried; anything else blocks a new payment.
        statuses = set(
            await session.scalars(
                select(PaymentTable.status).where(
                    PaymentTable.order_id == order_id, PaymentTable.status != "failed"
                )
            )
        )
        if "completed" in statuses or order.payment_status == "paid":
            return Error(Errors.payment_already_completed())
        if statuses:
            return Error(Errors.payment_exists())

        reference = f"{order.order_number}_{int(time.time() * 1000)}"
        match build_payment_data(
            self._settings,
            order_id=order.id,
            order_number=order.order_number,
            reference=reference,
            amount=order.total_cents,
            name=order.customer_name,
            email=order.customer_email,
        ):
            case Error(e):
                return Error(e)
            case Ok(data):
                pass

        payment = PaymentTable(
            order_id=order.id,
            reference=reference,
            amount_cents=order.total_cents,
            status="pending",
            payment_method="payfast",
        )
        session.add(payment)
        order.payment_status = "pending"
        await session.flush()
        log.info("payment %s created for order %s", reference, order.order_number)
        return Ok(PaymentCheckout(payment.id, reference, payment_url(self._settings), data))

    def verify_signature(self, data: Mapping[str, object], signature: object) -> bool:
        return signature_matches(data, signature, self._settings.payfast_passphrase)

    # ───────────────────────────────────────────────────────────────────────
    # Inbound
    # ───────────────────────────────────────────────────────────────────────

    async def handle_notification(
        self, fields: Mapping[str, str], source_ip: str | None
    ) -> Result[NotificationResult, ShopError]:
        """
        Verify and apply one ITN.

        Fails with UntrustedSource, InvalidSignature, OrderNotFound,
        AmountMismatch or ServerValidationFailed before touching any state.
        Replays of a processed notification succeed with `replayed=True`
        and change nothing.
        """
        settings = self._settings
        notification = Notification(dict(fields))

        match check_source(settings, source_ip):
            case Error(e):
                return Error(e)
            case Ok(_):
                pass
        match check_signature(settings, notification):
            case Error(e):
                return Error(e)
            case Ok(_):
                pass

        async with self._session() as session:
            row = (
                await session.execute(
                    select(PaymentTable, OrderTable)
                    .join(OrderTable, OrderTable.id == PaymentTable.order_id)
                    .where(PaymentTable.reference == notification.reference)
                )
            ).first()
        if row is None:
            return Error(Errors.order_not_found())
        _, order = row

        match check_amount(order.total_cents, notification):
            case Error(e):
                return Error(e)
            case Ok(_):
                pass

        if settings.payfast_verify_server and settings.is_production:
            match await self._validate_with_server(notification):
                case Error(e):
                    return Error(e)
                case Ok(_):
                    pass

        executor = (
            I.idempotent(self._apply)
            .key(lambda n: n.key)
            .store(self._store.with_pending(notification))
            .policy(I.Policy().with_ttl(hours=NOTIFICATION_TTL_HOURS).with_wait_timeout(seconds=10))
            .build()
        )
        match await executor.run(notification):
            case Ok(idem):
                return Ok(
                    NotificationResult(
                        notification.reference, ApplyOutcome(idem.value), idem.from_cache
                    )
                )
            case Error(e):
                if isinstance(e.original_error, ShopError):
                    return Error(e.original_error)
                return Error(InternalError(e.message))

    async def _validate_with_server(self, notification: Notification) -> Result[None, ShopError]:
        if self._http is not None:
            return await validate_with_server(self._http, self._settings, notification)
        async with httpx.AsyncClient() as client:
            return await validate_with_server(client, self._settings, notification)

    def _apply(self, notification: Notification) -> LazyCoroResult[str, ShopError]:
        return (
            flow(
                L.catching_async(
                    lambda: self._apply_in_transaction(notification),
                    on_error=_as_shop_error,
                )
            )
            .map(lambda applied: applied.outcome.value)
            .compile()
        )

    async def _apply_in_transaction(self, notification: Notification) -> _Applied:
        async with self._session() as session, session.begin():
            payment = await session.scalar(
                select(PaymentTable).where(PaymentTable.reference == notification.reference)
            )
            if payment is None:
                raise Errors.order_not_found()
            order = await session.get(OrderTable, payment.order_id)
            if order is None:
                raise Errors.order_not_found()

            if notification.is_complete:
                applied = await self._complete(session, notification, payment, order)
            else:
                applied = await self._fail(session, notification, payment, order)

        log.info(
            "itn %s for order %s: %s",
            notification.key,
            applied.order_number,
            applied.outcome.value,
        )
        for shortfall in applied.shortfalls:
            await self._alerts.alert(
                PaymentAlert(
                    kind="oversold",
                    message=(
                        f"Order {applied.order_number} paid but {shortfall.product_name} "
                        f"has {shortfall.available} in stock (needs {shortfall.wanted})"
                    ),
                    reference=notification.reference,
                    details={"variant_id": shortfall.variant_id},
                )
            )
        if applied.duplicate:
            await self._alerts.alert(
                PaymentAlert(
                    kind="duplicate_payment",
                    message=(
                        f"Order {applied.order_number} is already paid but gateway "
                        f"transaction {notification.transaction_id} completed again"
                    ),
                    reference=notification.reference,
                    details={"transaction_id": notification.transaction_id},
                )
            )
        return applied

    async def _complete(
        self,
        session: AsyncSession,
        notification: Notification,
        payment: PaymentTable,
        order: OrderTable,
    ) -> _Applied:
        """
        Mark the order paid and consume its stock, once per order.

        The order row is claimed first, so a second payment completing for
        the same order changes nothing and is reported as a duplicate.
        """
        stamp = now()
        paid = await session.execute(
            update(OrderTable)
            .where(OrderTable.id == order.id, OrderTable.payment_status.not_in(SETTLED_ORDER))
            .values(status="processing", payment_status="paid", paid_at=stamp, updated_at=stamp)
            .execution_options(synchronize_session=False)
        )
        if paid.rowcount == 0:
            return _Applied(ApplyOutcome.ALREADY_COMPLETED, order.order_number, duplicate=True)

        claimed = await session.execute(
            update(PaymentTable)
            .where(
                PaymentTable.id == payment.id,
                PaymentTable.status.not_in(("completed", "refunded")),
            )
            .values(
                status="completed",
                transaction_id=notification.transaction_id or None,
                completed_at=stamp,
                updated_at=stamp,
            )
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount == 0:
            # Unpaid order with a settled payment row; roll the order back.
            raise InternalError(f"Payment {payment.reference} settled on an unpaid order")

        shortfalls = await consume_stock(session, order.id)
        return _Applied(ApplyOutcome.COMPLETED, order.order_number, shortfalls)

    async def _fail(
        self,
        session: AsyncSession,
        notification: Notification,
        payment: PaymentTable,
        order: OrderTable,
    ) -> _Applied:
        """Mark the payment failed; a paid order keeps its payment status."""
        stamp = now()
        claimed = await session.execute(
            update(PaymentTable)
            .where(
                PaymentTable.id == payment.id,
                PaymentTable.status.not_in(("completed", "refunded")),
            )
            .values(
                status="failed",
                transaction_id=notification.transaction_id or None,
                updated_at=stamp,
            )
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount == 0:
            return _Applied(ApplyOutcome.ALREADY_COMPLETED, order.order_number)

        await session.execute(
            update(OrderTable)
            .where(OrderTable.id == order.id, OrderTable.payment_status.not_in(SETTLED_ORDER))
            .values(payment_status="failed", updated_at=stamp)
            .execution_options(synchronize_session=False)
        )
        return _Applied(ApplyOutcome.FAILED, order.order_number)

    async def acknowledge(self, fields: Mapping[str, str], source_ip: str | None) -> None:
        """
        Webhook entry point: the gateway always gets its 200.

        Every failure is logged and raised as an alert instead of surfacing
        to the gateway, which would otherwise keep retrying.
        """
        reference = fields.get("m_payment_id")
        try:
            result = await self.handle_notification(fields, source_ip)
        except Exception as e:
            log.exception("itn %s crashed", reference)
            await self._alerts.alert(
                PaymentAlert("itn_error", f"Unhandled error: {e!r}", reference)
            )
            return

        match result:
            case Ok(outcome):
                if outcome.replayed:
                    log.info("itn %s replayed; nothing to do", reference)
            case Error(e):
                log.warning("itn %s rejected: [%s] %s", reference, e.code, e.message)
                await self._alerts.alert(
                    PaymentAlert(
                        kind=e.code.lower(),
                        message=e.message,
                        reference=reference,
                        details={"source_ip": source_ip},
                    )
                )

    # ───────────────────────────────────────────────────────────────────────
    # Queries & admin
    # ───────────────────────────────────────────────────────────────────────

    async def payment_status(
        self, session: AsyncSession, principal: Principal, order_id: int
    ) -> Result[Payment, ShopError]:
        """Latest payment for an order the caller may see."""
        order = await session.get(OrderTable, order_id)
        if order is None:
            return Error(Errors.order_not_found())
        match principal:
            case Admin():
                pass
            case Customer(user_id=user_id) if user_id == order.user_id:
                pass
            case Customer():
                return Error(ForbiddenError("Access denied", "NOT_ORDER_OWNER"))
            case _:
                return Error(Errors.unauthenticated())

        payment = await session.scalar(
            select(PaymentTable)
            .where(PaymentTable.order_id == order_id)
            .order_by(PaymentTable.created_at.desc(), PaymentTable.id.desc())
            .limit(1)
        )
        if payment is None:
            return Error(NotFoundError("Payment not found", "PAYMENT_NOT_FOUND"))
        return Ok(Payment.from_row(payment, order))

    async def refund_payment(
        self,
        admin: Admin,
        payment_id: int,
        amount: Decimal | None = None,
        reason: str | None = None,
    ) -> Result[Payment, ShopError]:
        try:
            return await atomic(
                self._session, lambda s: self._refund(s, admin, payment_id, amount, reason)
            )
        except SQLAlchemyError:
            log.exception("refund of payment %s failed", payment_id)
            return Error(Errors.internal())

    async def _refund(
        self,
        session: AsyncSession,
        admin: Admin,
        payment_id: int,
        amount: Decimal | None,
        reason: str | None,
    ) -> Result[Payment, ShopError]:
        payment = await session.get(PaymentTable, payment_id)
        if payment is None:
            return Error(NotFoundError("Payment not found", "PAYMENT_NOT_FOUND"))
        if payment.status != "completed":
            return Error(
                ValidationError("Only completed payments can be refunded", "NOT_REFUNDABLE")
            )

        refund_cents = payment.amount_cents
        if amount is not None:
            if amount <= 0 or not has_cent_precision(amount):
                return Error(ValidationError("Invalid refund amount", "INVALID_REFUND_AMOUNT"))
            refund_cents = to_cents(amount)
            if refund_cents > payment.amount_cents:
                return Error(
                    ValidationError(
                        "Refund amount cannot exceed the payment amount", "INVALID_REFUND_AMOUNT"
                    )
                )

        stamp = now()
        payment.status = "refunded"
        payment.refunded_at = stamp
        session.add(
            RefundTable(
                payment_id=payment.id,
                order_id=payment.order_id,
                amount_cents=refund_cents,
                reason=reason,
                admin_id=admin.admin_id,
            )
        )
        order = await session.get(OrderTable, payment.order_id)
        if order is not None:
            order.status = "cancelled"
            order.payment_status = "refunded"
            if order.cancelled_at is None:
                order.cancelled_at = stamp

        await session.flush()
        record_admin_action(
            session,
            admin,
            "refund_processed",
            "payment",
            payment.id,
            {"amount": refund_cents, "reason": reason},
        )
        return Ok(Payment.from_row(payment, order))


__all__ = (
    "NOTIFICATION_TTL_HOURS",
    "Payment",
    "PaymentCheckout",
    "ApplyOutcome",
    "NotificationResult",
    "Shortfall",
    "consume_stock",
    "PaymentService",
)
