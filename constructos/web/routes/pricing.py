"""Pricing routes.

Routes:
- POST  /api/estimating/pricing/preview - Price lines without saving anything
- GET   /api/estimating/settings        - Tenant pricing settings
- PATCH /api/estimating/settings        - Update tenant pricing settings
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from constructos.db.connection import get_session
from constructos.pricing.engine import compute_estimate_totals
from constructos.pricing.settings import get_or_create_settings, update_settings
from constructos.web.dependencies import get_permissions, get_tenant_id, require_permission
from constructos.web.models import PricingPreviewRequest, SettingsUpdateRequest
from constructos.workflow.permissions import RolePermissionChecker

router = APIRouter(tags=["pricing"])


@router.post("/api/estimating/pricing/preview")
async def pricing_preview(
    body: PricingPreviewRequest,
    tenant_id: str = Depends(get_tenant_id),
):
    """Per-line breakdowns and totals for the submitted lines."""
    settings = body.settings
    if settings is None:
        async with get_session() as session:
            settings = await get_or_create_settings(session, tenant_id)

    totals = compute_estimate_totals(settings, body.lines)
    return totals.model_dump(mode="json")


@router.get("/api/estimating/settings")
async def get_pricing_settings(tenant_id: str = Depends(get_tenant_id)):
    async with get_session() as session:
        settings = await get_or_create_settings(session, tenant_id)
    return settings.model_dump(mode="json")


@router.patch("/api/estimating/settings")
async def patch_pricing_settings(
    body: SettingsUpdateRequest,
    tenant_id: str = Depends(get_tenant_id),
    permissions: RolePermissionChecker = Depends(get_permissions),
):
    require_permission(permissions, "estimating.configure_rates")
    patch = body.model_dump(exclude_unset=True)

    async with get_session() as session:
        settings = await update_settings(session, tenant_id, **patch)
    return settings.model_dump(mode="json")
