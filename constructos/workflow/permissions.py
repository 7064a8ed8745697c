"""Role-based permission lookup for estimating actions."""

from __future__ import annotations

from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)

ESTIMATING_PERMISSIONS: tuple[str, ...] = (
    "estimating.read",
    "estimating.write",
    "estimating.delete",
    "estimating.send",
    "estimating.approve_internal",
    "estimating.convert",
    "estimating.configure_rates",
    "estimating.configure_templates",
    "estimating.configure_pdf",
)

PERMISSION_MAP: dict[str, frozenset[str]] = {
    "superadmin": frozenset(ESTIMATING_PERMISSIONS),
    "admin": frozenset(ESTIMATING_PERMISSIONS),
    "manager": frozenset({
        "estimating.read",
        "estimating.write",
        "estimating.send",
        "estimating.approve_internal",
        "estimating.convert",
    }),
    "user": frozenset({"estimating.read", "estimating.write"}),
}

DEFAULT_ROLE = "user"


class PermissionLookup(Protocol):
    """Answers whether the current caller holds a named permission."""

    def has_permission(self, permission: str) -> bool: ...


class RolePermissionChecker:
    """Permission lookup over the static role map.

    Unknown or missing roles resolve to the least-privileged ``user`` role.
    """

    def __init__(self, role: str | None):
        resolved = (role or "").strip().lower()
        if resolved not in PERMISSION_MAP:
            if role:
                logger.warning("unknown_role_downgraded", role=role, resolved=DEFAULT_ROLE)
            resolved = DEFAULT_ROLE
        self.role = resolved

    def has_permission(self, permission: str) -> bool:
        return permission in PERMISSION_MAP[self.role]

    def __repr__(self) -> str:
        return f"RolePermissionChecker(role={self.role!r})"
