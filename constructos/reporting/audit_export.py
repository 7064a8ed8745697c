"""
Audit bundle export for a single estimate.

Read-only aggregation of everything recorded against an estimate, serialized
as one downloadable JSON document. Access tokens are redacted.
"""

import json
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import inspect, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from constructos.conversion.snapshots import (
    list_purchase_order_snapshots,
    list_work_order_snapshots,
)
from constructos.db.models import (
    ActivityModel,
    DocumentAccessTokenModel,
    ProjectModel,
    PurchaseOrderModel,
    QuoteVersionModel,
    VariationModel,
    WorkOrderModel,
)
from constructos.estimates.service import get_estimate
from constructos.utils.money import jsonable

logger = structlog.get_logger(__name__)

TOKEN_VISIBLE_CHARS = 6
REDACTION_NOTE = "First 6 characters shown, rest redacted"


def redact_token(token: str | None) -> str:
    """Keep the first six characters of a token."""
    if not token or len(token) < TOKEN_VISIBLE_CHARS:
        return "***"
    return token[:TOKEN_VISIBLE_CHARS] + "***"


def row_to_dict(row: Any) -> dict[str, Any]:
    """Column attributes of an ORM row as a JSON-safe dict."""
    mapper = inspect(row).mapper
    return jsonable({attr.key: getattr(row, attr.key) for attr in mapper.column_attrs})


async def _all(session: AsyncSession, stmt) -> list[Any]:
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def build_audit_bundle(
    session: AsyncSession, tenant_id: str, estimate_id: UUID
) -> dict[str, Any]:
    """Collect the estimate and every related record into one dict.

    Raises:
        NotFoundError: Estimate does not exist for this tenant
    """
    estimate = await get_estimate(session, tenant_id, estimate_id)

    versions = await _all(
        session,
        select(QuoteVersionModel)
        .where(QuoteVersionModel.tenant_id == tenant_id, QuoteVersionModel.estimate_id == estimate_id)
        .order_by(QuoteVersionModel.version_number.asc()),
    )
    variations = await _all(
        session,
        select(VariationModel)
        .where(VariationModel.tenant_id == tenant_id, VariationModel.estimate_id == estimate_id)
        .order_by(VariationModel.created_at.asc()),
    )

    # Tokens may be issued for the estimate itself or for any of its versions/variations
    document_ids = [str(estimate_id)] + [str(v.id) for v in versions] + [str(v.id) for v in variations]
    tokens = await _all(
        session,
        select(DocumentAccessTokenModel).where(
            DocumentAccessTokenModel.tenant_id == tenant_id,
            or_(*(DocumentAccessTokenModel.document_id == doc_id for doc_id in document_ids)),
        ),
    )

    work_orders = await _all(
        session,
        select(WorkOrderModel)
        .where(WorkOrderModel.tenant_id == tenant_id, WorkOrderModel.estimate_id == estimate_id)
        .order_by(WorkOrderModel.created_at.asc()),
    )
    purchase_orders = await _all(
        session,
        select(PurchaseOrderModel)
        .where(PurchaseOrderModel.tenant_id == tenant_id, PurchaseOrderModel.estimate_id == estimate_id)
        .order_by(PurchaseOrderModel.created_at.asc()),
    )
    activity = await _all(
        session,
        select(ActivityModel)
        .where(ActivityModel.tenant_id == tenant_id, ActivityModel.estimate_id == estimate_id)
        .order_by(ActivityModel.created_at.asc()),
    )

    project = None
    if estimate.converted_project_id is not None:
        project = (
            await session.execute(
                select(ProjectModel).where(
                    ProjectModel.tenant_id == tenant_id,
                    ProjectModel.id == estimate.converted_project_id,
                )
            )
        ).scalar_one_or_none()

    work_order_dicts = []
    for order in work_orders:
        lines = await list_work_order_snapshots(session, tenant_id, order.id)
        work_order_dicts.append({**row_to_dict(order), "line_snapshots": [row_to_dict(line) for line in lines]})

    purchase_order_dicts = []
    for order in purchase_orders:
        lines = await list_purchase_order_snapshots(session, tenant_id, order.id)
        purchase_order_dicts.append(
            {**row_to_dict(order), "line_snapshots": [row_to_dict(line) for line in lines]}
        )

    redacted_tokens = []
    for token in tokens:
        data = row_to_dict(token)
        data["token"] = redact_token(token.token)
        redacted_tokens.append(data)

    return {
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "tenant_id": tenant_id,
        "estimate_id": str(estimate_id),
        "entities": {
            "estimate": row_to_dict(estimate),
            "quote_versions": [row_to_dict(v) for v in versions],
            "tokens": redacted_tokens,
            "variations": [row_to_dict(v) for v in variations],
            "work_orders": work_order_dicts,
            "purchase_orders": purchase_order_dicts,
            "project": row_to_dict(project) if project is not None else None,
            "activity": [row_to_dict(a) for a in activity],
        },
        "redactions": {"tokens": REDACTION_NOTE},
    }


async def export_audit_bundle(
    session: AsyncSession, tenant_id: str, estimate_id: UUID
) -> tuple[str, bytes]:
    """Audit bundle as (download filename, JSON bytes)."""
    bundle = await build_audit_bundle(session, tenant_id, estimate_id)
    filename = f"audit-bundle-{estimate_id}-{datetime.now(timezone.utc).date().isoformat()}.json"

    logger.info(
        "audit_bundle_exported",
        tenant_id=tenant_id,
        estimate_id=str(estimate_id),
        tokens=len(bundle["entities"]["tokens"]),
        activity=len(bundle["entities"]["activity"]),
    )
    return filename, json.dumps(bundle, indent=2).encode("utf-8")
