from __future__ import annotations

from enum import Enum
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from constructos.db.models import ActivityModel

logger = structlog.get_logger(__name__)


async def log_activity(
    session: AsyncSession,
    tenant_id: str,
    estimate_id: UUID | None,
    document_type: str,
    document_id: UUID | str,
    action: str,
    message: str | None = None,
    details: dict[str, Any] | None = None,
    actor: str = "system",
) -> ActivityModel:
    """Append an entry to the estimating activity trail.

    Args:
        session: Open DB session. Caller is responsible for commit.
        tenant_id: Tenant the document belongs to
        estimate_id: Estimate the activity rolls up to (None for tenant-level events)
        document_type: "estimate", "variation", "work_order", ...
        document_id: ID of the document acted on
        action: Action name (e.g. "workflow_transition", "converted")
        message: Human readable summary
        details: Structured payload stored alongside the entry
        actor: User name or "system"
    """
    entry = ActivityModel(
        tenant_id=tenant_id,
        estimate_id=estimate_id,
        document_type=document_type,
        document_id=str(document_id),
        action=action,
        message=message,
        details=_jsonable(details or {}),
        actor=actor,
    )
    session.add(entry)
    await session.flush()

    logger.info(
        "activity_logged",
        tenant_id=tenant_id,
        document_type=document_type,
        document_id=str(document_id),
        action=action,
    )
    return entry


async def list_activity(
    session: AsyncSession,
    tenant_id: str,
    document_type: str,
    document_id: UUID | str,
    limit: int = 50,
) -> list[ActivityModel]:
    """Most recent activity for one document, newest first."""
    stmt = (
        select(ActivityModel)
        .where(
            ActivityModel.tenant_id == tenant_id,
            ActivityModel.document_type == document_type,
            ActivityModel.document_id == str(document_id),
        )
        .order_by(ActivityModel.created_at.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


def _jsonable(details: dict[str, Any]) -> dict[str, Any]:
    # UUIDs, Decimals and enums go into a JSON column
    out: dict[str, Any] = {}
    for key, value in details.items():
        if isinstance(value, Enum):
            out[key] = value.value
        elif value is None or isinstance(value, (bool, int, float, str)):
            out[key] = value
        else:
            out[key] = str(value)
    return out
