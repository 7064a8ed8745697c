"""Estimate and variation workflow state machines."""

from constructos.workflow.permissions import PermissionLookup, RolePermissionChecker
from constructos.workflow.rules import CheckResult, ValidationRuleEvaluator
from constructos.workflow.service import TransitionResult, WorkflowGuard
from constructos.workflow.transitions import (
    ESTIMATE_TRANSITIONS,
    VARIATION_TRANSITIONS,
    EntityType,
    WorkflowTransition,
    allowed_transitions,
)

__all__ = [
    "CheckResult",
    "ESTIMATE_TRANSITIONS",
    "EntityType",
    "PermissionLookup",
    "RolePermissionChecker",
    "TransitionResult",
    "VARIATION_TRANSITIONS",
    "ValidationRuleEvaluator",
    "WorkflowGuard",
    "WorkflowTransition",
    "allowed_transitions",
]
