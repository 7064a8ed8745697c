"""Static workflow edge tables for estimates and variations.

The tables are the single source of truth for which status changes are legal;
surfaces ask ``allowed_transitions`` rather than deciding for themselves.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from constructos.models import EstimateStatus, VariationStatus


class EntityType(str, Enum):
    ESTIMATE = "estimate"
    VARIATION = "variation"


@dataclass(frozen=True, slots=True)
class WorkflowTransition:
    from_status: str
    to_status: str
    requires_permission: str | None = None
    requires_validation: tuple[str, ...] = ()


_E = EstimateStatus
_V = VariationStatus

ESTIMATE_TRANSITIONS: tuple[WorkflowTransition, ...] = (
    WorkflowTransition(_E.DRAFT.value, _E.INTERNAL_REVIEW.value),
    WorkflowTransition(_E.INTERNAL_REVIEW.value, _E.DRAFT.value),
    WorkflowTransition(
        _E.INTERNAL_REVIEW.value,
        _E.READY_TO_SEND.value,
        requires_permission="estimating.send",
        requires_validation=("has_totals", "has_at_least_one_version", "has_layout_or_default"),
    ),
    WorkflowTransition(_E.READY_TO_SEND.value, _E.SENT.value, requires_permission="estimating.send"),
    WorkflowTransition(_E.SENT.value, _E.ACCEPTED.value),
    WorkflowTransition(_E.ACCEPTED.value, _E.WON.value),
    WorkflowTransition(_E.ACCEPTED.value, _E.LOST.value),
    WorkflowTransition(_E.SENT.value, _E.LOST.value),
    WorkflowTransition(_E.DRAFT.value, _E.ARCHIVED.value),
    WorkflowTransition(_E.INTERNAL_REVIEW.value, _E.ARCHIVED.value),
    WorkflowTransition(_E.READY_TO_SEND.value, _E.ARCHIVED.value),
    WorkflowTransition(_E.SENT.value, _E.ARCHIVED.value),
    WorkflowTransition(_E.LOST.value, _E.ARCHIVED.value),
)

VARIATION_TRANSITIONS: tuple[WorkflowTransition, ...] = (
    WorkflowTransition(_V.DRAFT.value, _V.INTERNAL_REVIEW.value),
    WorkflowTransition(_V.INTERNAL_REVIEW.value, _V.DRAFT.value),
    WorkflowTransition(
        _V.INTERNAL_REVIEW.value,
        _V.SENT.value,
        requires_permission="estimating.send",
        requires_validation=("has_lines", "has_title"),
    ),
    WorkflowTransition(_V.SENT.value, _V.APPROVED.value),
    WorkflowTransition(_V.SENT.value, _V.REJECTED.value),
    WorkflowTransition(_V.SENT.value, _V.WITHDRAWN.value, requires_permission="estimating.write"),
)

TRANSITION_TABLES: dict[EntityType, tuple[WorkflowTransition, ...]] = {
    EntityType.ESTIMATE: ESTIMATE_TRANSITIONS,
    EntityType.VARIATION: VARIATION_TRANSITIONS,
}


def find_transition(
    entity_type: EntityType | str, from_status: str, to_status: str
) -> WorkflowTransition | None:
    for transition in TRANSITION_TABLES[EntityType(entity_type)]:
        if transition.from_status == from_status and transition.to_status == to_status:
            return transition
    return None


def allowed_transitions(current_status: str | None, entity_type: EntityType | str) -> list[str]:
    """Statuses reachable in one step from ``current_status`` (None reads as draft)."""
    current = _status_value(current_status) or "draft"
    return [
        t.to_status
        for t in TRANSITION_TABLES[EntityType(entity_type)]
        if t.from_status == current
    ]


def _status_value(status: str | Enum | None) -> str | None:
    if isinstance(status, Enum):
        return status.value
    return status
