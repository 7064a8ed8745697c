"""Immutable Work/Purchase Order line snapshots.

Snapshots copy the accepted quote version's items verbatim at conversion time.
They are append-only and are never re-derived from the live estimate.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from constructos.db.models import PurchaseOrderLineSnapshotModel, WorkOrderLineSnapshotModel
from constructos.utils.money import to_decimal


def _snapshot_fields(item: Mapping[str, Any], sort_order: int) -> dict[str, Any]:
    return {
        "source_estimate_item_id": str(item["id"]) if item.get("id") is not None else None,
        "sort_order": sort_order,
        "item_type": str(item.get("item_type") or ""),
        "title": str(item.get("title") or ""),
        "description": item.get("description"),
        "quantity": to_decimal(item.get("quantity")),
        "unit": item.get("unit"),
        "unit_cost": to_decimal(item.get("unit_cost")),
        "line_cost": to_decimal(item.get("line_cost")),
    }


async def create_work_order_snapshots(
    session: AsyncSession,
    tenant_id: str,
    work_order_id: UUID,
    quote_version_id: UUID,
    items: Sequence[Mapping[str, Any]],
) -> list[WorkOrderLineSnapshotModel]:
    snapshots = [
        WorkOrderLineSnapshotModel(
            tenant_id=tenant_id,
            work_order_id=work_order_id,
            source_quote_version_id=quote_version_id,
            **_snapshot_fields(item, idx),
        )
        for idx, item in enumerate(items)
    ]
    if snapshots:
        session.add_all(snapshots)
        await session.flush()
    return snapshots


async def create_purchase_order_snapshots(
    session: AsyncSession,
    tenant_id: str,
    purchase_order_id: UUID,
    quote_version_id: UUID,
    items: Sequence[Mapping[str, Any]],
) -> list[PurchaseOrderLineSnapshotModel]:
    snapshots = [
        PurchaseOrderLineSnapshotModel(
            tenant_id=tenant_id,
            purchase_order_id=purchase_order_id,
            source_quote_version_id=quote_version_id,
            **_snapshot_fields(item, idx),
        )
        for idx, item in enumerate(items)
    ]
    if snapshots:
        session.add_all(snapshots)
        await session.flush()
    return snapshots


async def list_work_order_snapshots(
    session: AsyncSession, tenant_id: str, work_order_id: UUID
) -> list[WorkOrderLineSnapshotModel]:
    result = await session.execute(
        select(WorkOrderLineSnapshotModel)
        .where(
            WorkOrderLineSnapshotModel.tenant_id == tenant_id,
            WorkOrderLineSnapshotModel.work_order_id == work_order_id,
        )
        .order_by(WorkOrderLineSnapshotModel.sort_order.asc())
    )
    return list(result.scalars().all())


async def list_purchase_order_snapshots(
    session: AsyncSession, tenant_id: str, purchase_order_id: UUID
) -> list[PurchaseOrderLineSnapshotModel]:
    result = await session.execute(
        select(PurchaseOrderLineSnapshotModel)
        .where(
            PurchaseOrderLineSnapshotModel.tenant_id == tenant_id,
            PurchaseOrderLineSnapshotModel.purchase_order_id == purchase_order_id,
        )
        .order_by(PurchaseOrderLineSnapshotModel.sort_order.asc())
    )
    return list(result.scalars().all())
