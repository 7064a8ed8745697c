"""Workflow guard: validated status transitions for estimates and variations.

Order of checks is fixed: edge lookup, then permission, then every named
validation. Nothing is written until all of them pass, so a rejected call
never leaves a half-applied transition behind.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from constructos.core.activity_logger import log_activity
from constructos.db.models import EstimateModel, VariationModel
from constructos.errors import (
    ConcurrentModificationError,
    IllegalTransitionError,
    NotFoundError,
    UnauthorizedError,
    ValidationFailedError,
)
from constructos.models import EstimateStatus, VariationStatus
from constructos.workflow.permissions import PermissionLookup
from constructos.workflow.rules import ValidationRuleEvaluator
from constructos.workflow.transitions import EntityType, allowed_transitions, find_transition

logger = structlog.get_logger(__name__)

_ENTITY_MODELS = {
    EntityType.ESTIMATE: EstimateModel,
    EntityType.VARIATION: VariationModel,
}

_ENTITY_LABELS = {
    EntityType.ESTIMATE: "Estimate",
    EntityType.VARIATION: "Variation",
}


@dataclass(frozen=True, slots=True)
class TransitionResult:
    entity_type: EntityType
    entity_id: UUID
    from_status: str
    to_status: str
    revision: int


class WorkflowGuard:
    """Applies workflow transitions for one tenant and one caller."""

    def __init__(
        self,
        session: AsyncSession,
        tenant_id: str,
        permissions: PermissionLookup,
        validator: ValidationRuleEvaluator | None = None,
        actor: str = "system",
    ):
        self.session = session
        self.tenant_id = tenant_id
        self.permissions = permissions
        self.validator = validator or ValidationRuleEvaluator(session, tenant_id)
        self.actor = actor

    async def transition_estimate(
        self,
        estimate_id: UUID,
        to_status: EstimateStatus | str,
        note: str | None = None,
    ) -> TransitionResult:
        return await self._transition(EntityType.ESTIMATE, estimate_id, to_status, note)

    async def transition_variation(
        self,
        variation_id: UUID,
        to_status: VariationStatus | str,
        note: str | None = None,
    ) -> TransitionResult:
        return await self._transition(EntityType.VARIATION, variation_id, to_status, note)

    @staticmethod
    def allowed_transitions(current_status: str | None, entity_type: EntityType | str) -> list[str]:
        return allowed_transitions(current_status, entity_type)

    async def _transition(
        self,
        entity_type: EntityType,
        entity_id: UUID,
        to_status: Enum | str,
        note: str | None,
    ) -> TransitionResult:
        model = _ENTITY_MODELS[entity_type]
        label = _ENTITY_LABELS[entity_type]
        to_value = to_status.value if isinstance(to_status, Enum) else str(to_status)
        log = logger.bind(
            tenant_id=self.tenant_id,
            entity_type=entity_type.value,
            entity_id=str(entity_id),
            to_status=to_value,
        )

        result = await self.session.execute(
            select(model).where(model.id == entity_id, model.tenant_id == self.tenant_id)
        )
        entity = result.scalar_one_or_none()
        if entity is None:
            raise NotFoundError(label, entity_id)

        from_value = entity.workflow_status or EstimateStatus.DRAFT.value
        expected_revision = entity.revision or 0

        transition = find_transition(entity_type, from_value, to_value)
        if transition is None:
            log.info("transition_rejected", reason="illegal", from_status=from_value)
            raise IllegalTransitionError(from_value, to_value)

        if transition.requires_permission and not self.permissions.has_permission(
            transition.requires_permission
        ):
            log.info(
                "transition_rejected",
                reason="unauthorized",
                from_status=from_value,
                permission=transition.requires_permission,
            )
            raise UnauthorizedError(transition.requires_permission)

        if transition.requires_validation:
            checks = await self.validator.evaluate_all(transition.requires_validation, entity)
            failures = [c.reason or c.name for c in checks if not c.passed]
            if failures:
                log.info("transition_rejected", reason="validation", failures=failures)
                raise ValidationFailedError(failures)

        now = datetime.now(timezone.utc)
        values = {
            "workflow_status": to_value,
            "workflow_updated_at": now,
            "revision": expected_revision + 1,
        }
        if entity_type is EntityType.VARIATION and to_value == VariationStatus.SENT.value:
            values["sent_at"] = now

        # Compare-and-swap on revision: a concurrent writer makes this match zero rows
        update_result = await self.session.execute(
            update(model)
            .where(
                model.id == entity.id,
                model.tenant_id == self.tenant_id,
                model.revision == expected_revision,
            )
            .values(**values)
        )
        if update_result.rowcount != 1:
            log.warning("transition_conflict", expected_revision=expected_revision)
            raise ConcurrentModificationError(label, entity_id, expected_revision)

        estimate_id = entity.id if entity_type is EntityType.ESTIMATE else entity.estimate_id
        prefix = "Status" if entity_type is EntityType.ESTIMATE else "Variation status"
        await log_activity(
            self.session,
            self.tenant_id,
            estimate_id,
            entity_type.value,
            entity.id,
            "workflow_transition",
            f"{prefix} changed from {from_value} to {to_value}",
            {"from": from_value, "to": to_value, "note": note},
            actor=self.actor,
        )

        log.info("transition_applied", from_status=from_value, revision=expected_revision + 1)
        return TransitionResult(
            entity_type=entity_type,
            entity_id=entity.id,
            from_status=from_value,
            to_status=to_value,
            revision=expected_revision + 1,
        )
