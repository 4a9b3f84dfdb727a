"""
Engine and session factory.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy import event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from kungfu import Result, Ok, Error

from storefront.db._models import Base

type SessionFactory = async_sessionmaker[AsyncSession]


async def create_database(
    url: str = "sqlite+aiosqlite:///./storefront.db",
    *,
    echo: bool = False,
) -> tuple[SessionFactory, AsyncEngine]:
    """Create engine + tables and return (session_factory, engine)."""
    engine = create_async_engine(url, echo=echo)

    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _sqlite_pragmas)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    return async_sessionmaker(engine, expire_on_commit=False), engine


def _sqlite_pragmas(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def insert_for(session: AsyncSession) -> Any:
    """
    Dialect-aware `insert` supporting ON CONFLICT.

        stmt = insert_for(session)(CartTable).values(...).on_conflict_do_nothing(...)
    """
    if session.get_bind().dialect.name == "postgresql":
        return postgresql.insert
    return sqlite.insert


async def atomic[T, E](
    session_factory: SessionFactory,
    operation: Callable[[AsyncSession], Awaitable[Result[T, E]]],
) -> Result[T, E]:
    """
    Run `operation` in one transaction.

    Ok commits, Error rolls back, an exception rolls back and propagates.

        result = await atomic(session_factory, lambda s: add_item(s, owner, 7, 1))
    """
    async with session_factory() as session:
        try:
            result = await operation(session)
        except BaseException:
            await session.rollback()
            raise
        match result:
            case Ok(_):
                await session.commit()
            case Error(_):
                await session.rollback()
        return result


__all__ = ("SessionFactory", "create_database", "insert_for", "atomic")
