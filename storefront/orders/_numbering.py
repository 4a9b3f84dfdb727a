"""
Order numbers: ORD-YYYYMMDD-NNNN.

The per-day counter lives in `order_sequences` and is advanced by a single
upsert inside the order transaction, so two checkouts on the same day can
never read the same "last" value.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db import OrderSequenceTable, insert_for

PREFIX = "ORD"


def format_order_number(day: str, sequence: int) -> str:
    return f"{PREFIX}-{day}-{sequence:04d}"


async def allocate_order_number(session: AsyncSession, at: datetime) -> str:
    day = at.strftime("%Y%m%d")
    insert = insert_for(session)
    sequence = await session.scalar(
        insert(OrderSequenceTable)
        .values(day=day, last_value=1)
        .on_conflict_do_update(
            index_elements=["day"],
            set_={"last_value": OrderSequenceTable.last_value + 1},
        )
        .returning(OrderSequenceTable.last_value)
    )
    if sequence is None:
        raise RuntimeError(f"order sequence for {day} was not returned")
    return format_order_number(day, sequence)


__all__ = ("PREFIX", "format_order_number", "allocate_order_number")
