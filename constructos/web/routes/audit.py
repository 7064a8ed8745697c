"""Audit export route.

Routes:
- GET /api/estimating/estimates/{estimate_id}/audit-export - Download redacted audit bundle
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from constructos.db.connection import get_session
from constructos.reporting.audit_export import export_audit_bundle
from constructos.web.dependencies import get_permissions, get_tenant_id, require_permission
from constructos.workflow.permissions import RolePermissionChecker

router = APIRouter(tags=["audit"])


@router.get("/api/estimating/estimates/{estimate_id}/audit-export")
async def audit_export(
    estimate_id: UUID,
    tenant_id: str = Depends(get_tenant_id),
    permissions: RolePermissionChecker = Depends(get_permissions),
):
    require_permission(permissions, "estimating.read")

    async with get_session() as session:
        filename, payload = await export_audit_bundle(session, tenant_id, estimate_id)

    return Response(
        content=payload,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
