"""Quote versions: immutable priced snapshots of an estimate."""

from __future__ import annotations

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from constructos.core.activity_logger import log_activity
from constructos.db.models import EstimateItemModel, EstimateSectionModel, QuoteVersionModel
from constructos.errors import NotFoundError
from constructos.estimates.service import get_estimate, list_estimate_items
from constructos.utils.money import jsonable

logger = structlog.get_logger(__name__)

QUOTE_VERSION_STATUSES = ("draft", "sent", "accepted", "rejected", "superseded")
DEFAULT_INTRO_TITLE = "Quotation"


def section_snapshot(section: EstimateSectionModel) -> dict[str, Any]:
    return jsonable({
        "id": section.id,
        "title": section.title,
        "sort_order": section.sort_order,
        "is_client_visible": section.is_client_visible,
    })


def item_snapshot(item: EstimateItemModel) -> dict[str, Any]:
    return jsonable({
        "id": item.id,
        "section_id": item.section_id,
        "item_type": item.item_type,
        "category": item.category,
        "title": item.title,
        "description": item.description,
        "tags": item.tags,
        "quantity": item.quantity,
        "unit": item.unit,
        "unit_cost": item.unit_cost,
        "unit_price": item.unit_price,
        "line_cost": item.line_cost,
        "line_total": item.line_total,
        "sort_order": item.sort_order,
    })


async def create_quote_version(
    session: AsyncSession,
    tenant_id: str,
    estimate_id: UUID,
    label: str | None = None,
    intro_title: str | None = None,
    actor: str = "system",
) -> QuoteVersionModel:
    """Snapshot the estimate's client-visible sections and items.

    The version number is one more than the highest existing version. Totals
    are copied from the estimate header as they stand, so recalculate first.
    """
    estimate = await get_estimate(session, tenant_id, estimate_id)

    sections_result = await session.execute(
        select(EstimateSectionModel)
        .where(
            EstimateSectionModel.tenant_id == tenant_id,
            EstimateSectionModel.estimate_id == estimate_id,
            EstimateSectionModel.is_client_visible.is_(True),
        )
        .order_by(EstimateSectionModel.sort_order.asc())
    )
    sections = list(sections_result.scalars().all())
    items = await list_estimate_items(session, tenant_id, estimate_id, client_visible_only=True)

    latest = await session.execute(
        select(func.max(QuoteVersionModel.version_number)).where(
            QuoteVersionModel.tenant_id == tenant_id,
            QuoteVersionModel.estimate_id == estimate_id,
        )
    )
    next_number = (latest.scalar_one_or_none() or 0) + 1

    version = QuoteVersionModel(
        tenant_id=tenant_id,
        estimate_id=estimate_id,
        version_number=next_number,
        label=label,
        status="draft",
        intro_title=intro_title or DEFAULT_INTRO_TITLE,
        sections_snapshot=[section_snapshot(s) for s in sections],
        items_snapshot=[item_snapshot(i) for i in items],
        subtotal=estimate.subtotal,
        vat_rate=estimate.vat_rate,
        vat_amount=estimate.vat_amount,
        total=estimate.total,
    )
    session.add(version)
    await session.flush()

    await log_activity(
        session,
        tenant_id,
        estimate_id,
        "quote_version",
        version.id,
        "version_created",
        f"Quote version {next_number} created",
        {"version_number": next_number, "label": label},
        actor=actor,
    )
    return version


async def list_quote_versions(
    session: AsyncSession, tenant_id: str, estimate_id: UUID
) -> list[QuoteVersionModel]:
    """Versions of an estimate, newest first."""
    result = await session.execute(
        select(QuoteVersionModel)
        .where(
            QuoteVersionModel.tenant_id == tenant_id,
            QuoteVersionModel.estimate_id == estimate_id,
        )
        .order_by(QuoteVersionModel.version_number.desc())
    )
    return list(result.scalars().all())


async def get_quote_version(
    session: AsyncSession, tenant_id: str, version_id: UUID
) -> QuoteVersionModel:
    result = await session.execute(
        select(QuoteVersionModel).where(
            QuoteVersionModel.tenant_id == tenant_id, QuoteVersionModel.id == version_id
        )
    )
    version = result.scalar_one_or_none()
    if version is None:
        raise NotFoundError("Quote version", version_id)
    return version


async def mark_version_status(
    session: AsyncSession, tenant_id: str, version_id: UUID, status: str
) -> None:
    if status not in QUOTE_VERSION_STATUSES:
        raise ValueError(f"Invalid quote version status: {status}")
    result = await session.execute(
        update(QuoteVersionModel)
        .where(QuoteVersionModel.tenant_id == tenant_id, QuoteVersionModel.id == version_id)
        .values(status=status)
    )
    if result.rowcount == 0:
        raise NotFoundError("Quote version", version_id)
    logger.info("quote_version_status_changed", version_id=str(version_id), status=status)
