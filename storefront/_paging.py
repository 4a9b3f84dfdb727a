"""
Pagination over SQLAlchemy selects.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

MAX_LIMIT = 100


@dataclass(frozen=True, slots=True)
class Page[T]:
    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def clamp(page: int | None, limit: int | None, default_limit: int) -> tuple[int, int]:
    """page >= 1, 1 <= limit <= MAX_LIMIT."""
    page = max(1, page or 1)
    limit = min(MAX_LIMIT, max(1, limit or default_limit))
    return page, limit


async def paginate[R, T](
    session: AsyncSession,
    stmt: Select[Any],
    page: int,
    limit: int,
    convert: Callable[[R], T],
) -> Page[T]:
    """Count + slice a select of ORM entities."""
    total = await session.scalar(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    )
    rows = await session.scalars(stmt.limit(limit).offset((page - 1) * limit))
    return Page([convert(row) for row in rows], int(total or 0), page, limit)


__all__ = ("MAX_LIMIT", "Page", "clamp", "paginate")
