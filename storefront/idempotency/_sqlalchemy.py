"""
SQLAlchemy store — idempotency columns on any model.

    class PaymentNotificationTable(Base, IdempotencyMixin):
        __tablename__ = "payment_notifications"
        id: Mapped[int] = mapped_column(primary_key=True)
        ...

    store = SQLAlchemyStore(
        session_factory,
        model=PaymentNotificationTable,
        to_pending=lambda key, n: PaymentNotificationTable(idempotency_key=key, ...),
    ).with_pending(notification)

Pending rows are inserted with ON CONFLICT DO NOTHING on `idempotency_key`,
which makes `set_pending` a compare-and-set across processes.
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Generic, TypeVar

from sqlalchemy import DateTime, String, Text, delete, inspect, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column

from kungfu import Result, Ok, Error

from storefront.idempotency._store import StoreError
from storefront.idempotency._types import IdempotencyRecord, RecordState


class IdempotencyMixin:
    """Adds idempotency_key / status / value / error / expires_at columns."""

    idempotency_key: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True, index=True
    )
    idempotency_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending"
    )
    idempotency_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    idempotency_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    idempotency_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )


class IdempotencyStatus:
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


_STATES = {
    IdempotencyStatus.PENDING: RecordState.PENDING,
    IdempotencyStatus.COMPLETED: RecordState.COMPLETED,
    IdempotencyStatus.FAILED: RecordState.FAILED,
}

M = TypeVar("M", bound=IdempotencyMixin)
P = TypeVar("P")


class SQLAlchemyStore(Generic[M, P]):
    """
    Store over a model with IdempotencyMixin.

    M: model type, P: data needed to build the pending row.
    Each call uses its own short session and commits immediately.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        model: type[M],
        to_pending: Callable[[str, P], M],
        pending: P | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._model = model
        self._to_pending = to_pending
        self._pending = pending

    def with_pending(self, pending: P) -> "SQLAlchemyStore[M, P]":
        """Bind the data for this request's pending row."""
        return SQLAlchemyStore(self._session_factory, self._model, self._to_pending, pending)

    async def _row(self, session: AsyncSession, key: str) -> M | None:
        stmt = select(self._model).where(self._model.idempotency_key == key)
        return (await session.execute(stmt)).scalar_one_or_none()

    async def get(self, key: str) -> Result[IdempotencyRecord | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await self._row(session, key)
                if row is None:
                    return Ok(None)
                record = IdempotencyRecord(
                    key=row.idempotency_key,
                    state=_STATES.get(row.idempotency_status, RecordState.PENDING),
                    value=row.idempotency_value,
                    error=row.idempotency_error,
                    expires_at=row.idempotency_expires_at,
                )
                return Ok(None if record.is_expired else record)
        except Exception as e:
            return Error(StoreError(f"Failed to get: {e}", e))

    async def set_pending(
        self, key: str, ttl: timedelta | None
    ) -> Result[bool, StoreError]:
        if self._pending is None:
            return Error(StoreError("Pending data not set. Call with_pending() first."))
        try:
            async with self._session_factory() as session:
                existing = await self._row(session, key)
                if existing is not None and existing.idempotency_expires_at is not None:
                    if datetime.now() > existing.idempotency_expires_at:
                        await session.execute(
                            delete(self._model).where(self._model.idempotency_key == key)
                        )

                model = self._to_pending(key, self._pending)
                model.idempotency_status = IdempotencyStatus.PENDING
                model.idempotency_expires_at = datetime.now() + ttl if ttl else None

                values = {
                    attr.key: getattr(model, attr.key)
                    for attr in inspect(self._model).column_attrs
                    if getattr(model, attr.key) is not None
                }
                dialect = session.get_bind().dialect.name
                insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
                stmt = (
                    insert(self._model)
                    .values(**values)
                    .on_conflict_do_nothing(index_elements=["idempotency_key"])
                )
                cursor: Any = await session.execute(stmt)
                await session.commit()
                return Ok(cursor.rowcount > 0)
        except Exception as e:
            return Error(StoreError(f"Failed to set pending: {e}", e))

    async def _finish(
        self, key: str, status: str, value: str | None, error: str | None, ttl: timedelta | None
    ) -> Result[None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await self._row(session, key)
                if row is None:
                    return Error(StoreError(f"Record not found: {key}"))
                row.idempotency_status = status
                row.idempotency_value = value
                row.idempotency_error = error
                if ttl:
                    row.idempotency_expires_at = datetime.now() + ttl
                await session.commit()
                return Ok(None)
        except Exception as e:
            return Error(StoreError(f"Failed to update {key}: {e}", e))

    async def set_completed(
        self, key: str, value: Any, ttl: timedelta | None
    ) -> Result[None, StoreError]:
        return await self._finish(key, IdempotencyStatus.COMPLETED, str(value), None, ttl)

    async def set_failed(
        self, key: str, error: Any, ttl: timedelta | None
    ) -> Result[None, StoreError]:
        return await self._finish(key, IdempotencyStatus.FAILED, None, str(error), ttl)

    async def delete(self, key: str) -> Result[bool, StoreError]:
        try:
            async with self._session_factory() as session:
                cursor: Any = await session.execute(
                    delete(self._model).where(self._model.idempotency_key == key)
                )
                await session.commit()
                return Ok(cursor.rowcount > 0)
        except Exception as e:
            return Error(StoreError(f"Failed to delete: {e}", e))


__all__ = ("IdempotencyMixin", "IdempotencyStatus", "SQLAlchemyStore")
