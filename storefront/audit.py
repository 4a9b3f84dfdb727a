"""
Audit — admin actions recorded in the caller's transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront._paging import Page, clamp, paginate
from storefront.auth import Admin
from storefront.db import AdminLogTable


@dataclass(frozen=True, slots=True)
class AdminLogEntry:
    id: int
    admin_id: int
    action: str
    entity_type: str
    entity_id: str | None
    details: dict[str, Any]
    created_at: datetime


def record_admin_action(
    session: AsyncSession,
    admin: Admin,
    action: str,
    entity_type: str,
    entity_id: object = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Add the log row; it commits or rolls back with the admin's change."""
    session.add(
        AdminLogTable(
            admin_id=admin.admin_id,
            action=action,
            entity_type=entity_type,
            entity_id=None if entity_id is None else str(entity_id),
            details=details or {},
        )
    )


async def list_admin_logs(
    session: AsyncSession,
    *,
    action: str | None = None,
    admin_id: int | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> Page[AdminLogEntry]:
    page, limit = clamp(page, limit, 50)
    stmt = select(AdminLogTable).order_by(AdminLogTable.created_at.desc(), AdminLogTable.id.desc())
    if action:
        stmt = stmt.where(AdminLogTable.action == action)
    if admin_id is not None:
        stmt = stmt.where(AdminLogTable.admin_id == admin_id)
    return await paginate(
        session,
        stmt,
        page,
        limit,
        lambda row: AdminLogEntry(
            row.id,
            row.admin_id,
            row.action,
            row.entity_type,
            row.entity_id,
            dict(row.details or {}),
            row.created_at,
        ),
    )


__all__ = ("AdminLogEntry", "record_admin_action", "list_admin_logs")
