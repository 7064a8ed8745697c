"""Workflow routes.

Routes:
- GET  /api/estimating/workflow/{entity_type}/allowed      - Legal next statuses
- POST /api/estimating/estimates/{estimate_id}/transition  - Move an estimate
- POST /api/estimating/variations/{variation_id}/transition - Move a variation
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from constructos.core.logging import bind_request_context
from constructos.db.connection import get_session
from constructos.web.dependencies import get_actor, get_permissions, get_tenant_id
from constructos.web.models import TransitionRequest, TransitionResponse
from constructos.workflow.permissions import RolePermissionChecker
from constructos.workflow.service import TransitionResult, WorkflowGuard
from constructos.workflow.transitions import EntityType, allowed_transitions

router = APIRouter(tags=["workflow"])


def _response(result: TransitionResult) -> TransitionResponse:
    return TransitionResponse(
        entity_type=result.entity_type.value,
        entity_id=result.entity_id,
        from_status=result.from_status,
        to_status=result.to_status,
        revision=result.revision,
    )


@router.get("/api/estimating/workflow/{entity_type}/allowed")
async def allowed(
    entity_type: EntityType,
    status: str = Query(default="draft"),
):
    return {
        "entity_type": entity_type.value,
        "status": status,
        "allowed": allowed_transitions(status, entity_type),
    }


@router.post("/api/estimating/estimates/{estimate_id}/transition", response_model=TransitionResponse)
async def transition_estimate(
    estimate_id: UUID,
    body: TransitionRequest,
    tenant_id: str = Depends(get_tenant_id),
    permissions: RolePermissionChecker = Depends(get_permissions),
    actor: str = Depends(get_actor),
):
    bind_request_context(tenant_id=tenant_id, estimate_id=str(estimate_id), actor=actor)
    async with get_session() as session:
        guard = WorkflowGuard(session, tenant_id, permissions, actor=actor)
        result = await guard.transition_estimate(estimate_id, body.to_status, body.note)
    return _response(result)


@router.post("/api/estimating/variations/{variation_id}/transition", response_model=TransitionResponse)
async def transition_variation(
    variation_id: UUID,
    body: TransitionRequest,
    tenant_id: str = Depends(get_tenant_id),
    permissions: RolePermissionChecker = Depends(get_permissions),
    actor: str = Depends(get_actor),
):
    bind_request_context(tenant_id=tenant_id, variation_id=str(variation_id), actor=actor)
    async with get_session() as session:
        guard = WorkflowGuard(session, tenant_id, permissions, actor=actor)
        result = await guard.transition_variation(variation_id, body.to_status, body.note)
    return _response(result)
