"""Estimating engine error taxonomy.

Every rejected operation raises a subclass of EstimatingError. The ``kind``
attribute is machine-distinguishable; the message is meant for people.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID


class EstimatingError(Exception):
    """Base class for rejected estimating operations."""

    kind: str = "estimating_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class NotFoundError(EstimatingError):
    """A required estimate, variation, quote version or rule does not exist."""

    kind = "not_found"

    def __init__(self, entity: str, entity_id: UUID | str):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class IllegalTransitionError(EstimatingError):
    """Requested (from, to) pair is absent from the edge table."""

    kind = "illegal_transition"

    def __init__(self, from_status: str, to_status: str):
        super().__init__(f"Transition from {from_status} to {to_status} is not allowed")
        self.from_status = from_status
        self.to_status = to_status


class UnauthorizedError(EstimatingError):
    """Caller's role lacks the permission an edge requires."""

    kind = "unauthorized"

    def __init__(self, permission: str):
        super().__init__(f"Permission required: {permission}")
        self.permission = permission


class ValidationFailedError(EstimatingError):
    """One or more named pre-conditions are unmet. Carries every failure."""

    kind = "validation_failed"

    def __init__(self, errors: Sequence[str]):
        self.errors = list(errors)
        super().__init__(f"Validation failed: {', '.join(self.errors)}")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "errors": self.errors}


class ConcurrentModificationError(EstimatingError):
    """The row changed between read and conditional write."""

    kind = "conflict"

    def __init__(self, entity: str, entity_id: UUID | str, expected_revision: int):
        super().__init__(
            f"{entity} {entity_id} was modified concurrently "
            f"(expected revision {expected_revision}); reload and retry"
        )
        self.entity = entity
        self.entity_id = entity_id
        self.expected_revision = expected_revision


class AlreadyConvertedError(EstimatingError):
    """Estimate is already linked to a project."""

    kind = "already_converted"

    def __init__(self, estimate_id: UUID | str, project_id: UUID | str):
        super().__init__(f"Estimate {estimate_id} is already converted to project {project_id}")
        self.estimate_id = estimate_id
        self.project_id = project_id


class PartialConversionError(EstimatingError):
    """A step failed after the estimate was linked to its project.

    The link is left in place; reconciliation is manual.
    """

    kind = "partial_conversion"

    def __init__(self, estimate_id: UUID | str, project_id: UUID | str, stage: str, cause: str):
        super().__init__(
            f"Conversion of estimate {estimate_id} failed during {stage} after linking "
            f"project {project_id}: {cause}"
        )
        self.estimate_id = estimate_id
        self.project_id = project_id
        self.stage = stage

    def to_dict(self) -> dict:
        return {**super().to_dict(), "project_id": str(self.project_id), "stage": self.stage}
