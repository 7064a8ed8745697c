"""Conversion routes.

Routes:
- GET  /api/estimating/estimates/{estimate_id}/versions/{version_id}/plan - Grouping preview
- POST /api/estimating/estimates/{estimate_id}/convert                     - Convert to project
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from constructos.conversion.pipeline import ConversionPipeline
from constructos.core.logging import bind_request_context
from constructos.db.connection import get_session
from constructos.web.dependencies import get_actor, get_permissions, get_tenant_id
from constructos.web.models import ConvertRequest, ConvertResponse
from constructos.workflow.permissions import RolePermissionChecker

router = APIRouter(tags=["conversion"])


@router.get("/api/estimating/estimates/{estimate_id}/versions/{version_id}/plan")
async def conversion_plan(
    estimate_id: UUID,
    version_id: UUID,
    tenant_id: str = Depends(get_tenant_id),
):
    """Work/Purchase Orders the conversion would create, without writing."""
    async with get_session() as session:
        plan = await ConversionPipeline(session, tenant_id).preview(estimate_id, version_id)
    return plan.model_dump(mode="json")


@router.post("/api/estimating/estimates/{estimate_id}/convert", response_model=ConvertResponse)
async def convert_estimate(
    estimate_id: UUID,
    body: ConvertRequest,
    tenant_id: str = Depends(get_tenant_id),
    permissions: RolePermissionChecker = Depends(get_permissions),
    actor: str = Depends(get_actor),
):
    bind_request_context(tenant_id=tenant_id, estimate_id=str(estimate_id), actor=actor)
    async with get_session() as session:
        pipeline = ConversionPipeline(session, tenant_id, permissions, actor=actor)
        result = await pipeline.convert(estimate_id, body.quote_version_id)
    return ConvertResponse(
        project_id=result.project_id,
        work_order_ids=result.work_order_ids,
        purchase_order_ids=result.purchase_order_ids,
    )
