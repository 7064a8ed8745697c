"""Shared dependencies for estimating API routes.

Usage:
    from fastapi import Depends
    from constructos.web.dependencies import get_permissions, get_tenant_id

    @router.post("/api/estimating/estimates/{estimate_id}/transition")
    async def transition(
        estimate_id: UUID,
        tenant_id: str = Depends(get_tenant_id),
        permissions: RolePermissionChecker = Depends(get_permissions),
    ):
        ...
"""

from __future__ import annotations

from fastapi import Header

from constructos.config import get_config
from constructos.errors import UnauthorizedError
from constructos.workflow.permissions import PermissionLookup, RolePermissionChecker


def get_tenant_id() -> str:
    """Tenant every request is scoped to (required configuration)."""
    return get_config().tenant_id


def get_permissions(x_role: str | None = Header(default=None)) -> RolePermissionChecker:
    """Resolve the caller's role from the ``X-Role`` header.

    Falls back to the configured default role; unknown roles are downgraded to
    ``user`` by the checker.
    """
    return RolePermissionChecker(x_role or get_config().workflow.default_role)


def get_actor(x_user: str | None = Header(default=None)) -> str:
    """Name recorded on activity entries (``X-User`` header)."""
    return x_user or "api"


def require_permission(permissions: PermissionLookup, permission: str) -> None:
    if not permissions.has_permission(permission):
        raise UnauthorizedError(permission)
