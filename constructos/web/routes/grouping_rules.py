"""Grouping rule management routes.

Routes:
- GET    /api/estimating/group-rules           - List rules in evaluation order
- POST   /api/estimating/group-rules           - Create rule
- PATCH  /api/estimating/group-rules/{rule_id} - Update rule
- DELETE /api/estimating/group-rules/{rule_id} - Remove rule
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from constructos.db.connection import get_session
from constructos.grouping.repository import GroupRuleRepository
from constructos.models import GroupRule, GroupRuleType
from constructos.web.dependencies import get_permissions, get_tenant_id, require_permission
from constructos.web.models import GroupRuleCreate, GroupRuleUpdate
from constructos.workflow.permissions import RolePermissionChecker

router = APIRouter(tags=["grouping-rules"])

MANAGE_PERMISSION = "estimating.configure_templates"


@router.get("/api/estimating/group-rules")
async def list_rules(
    rule_type: GroupRuleType | None = Query(default=None),
    include_disabled: bool = Query(default=False),
    tenant_id: str = Depends(get_tenant_id),
):
    async with get_session() as session:
        rows = await GroupRuleRepository(session).list_rules(tenant_id, rule_type, include_disabled)
        rules = [GroupRule.model_validate(row).model_dump(mode="json") for row in rows]
    return {"rules": rules}


@router.post("/api/estimating/group-rules", status_code=201)
async def create_rule(
    body: GroupRuleCreate,
    tenant_id: str = Depends(get_tenant_id),
    permissions: RolePermissionChecker = Depends(get_permissions),
):
    require_permission(permissions, MANAGE_PERMISSION)

    async with get_session() as session:
        try:
            row = await GroupRuleRepository(session).create_rule(tenant_id, **body.model_dump())
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        rule = GroupRule.model_validate(row)
    return rule.model_dump(mode="json")


@router.patch("/api/estimating/group-rules/{rule_id}")
async def update_rule(
    rule_id: UUID,
    body: GroupRuleUpdate,
    tenant_id: str = Depends(get_tenant_id),
    permissions: RolePermissionChecker = Depends(get_permissions),
):
    require_permission(permissions, MANAGE_PERMISSION)

    async with get_session() as session:
        try:
            row = await GroupRuleRepository(session).update_rule(
                tenant_id, rule_id, **body.model_dump(exclude_unset=True)
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        rule = GroupRule.model_validate(row)
    return rule.model_dump(mode="json")


@router.delete("/api/estimating/group-rules/{rule_id}")
async def remove_rule(
    rule_id: UUID,
    tenant_id: str = Depends(get_tenant_id),
    permissions: RolePermissionChecker = Depends(get_permissions),
):
    require_permission(permissions, MANAGE_PERMISSION)

    async with get_session() as session:
        await GroupRuleRepository(session).remove_rule(tenant_id, rule_id)
    return {"success": True, "rule_id": str(rule_id)}
