"""Named pre-condition checks evaluated before a workflow transition.

Each check receives the loaded entity and returns a CheckResult; the guard
evaluates every check an edge names and reports all failures together.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from constructos.db.models import EstimateItemModel, EstimatingSettingsModel, QuoteVersionModel

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CheckResult:
    name: str
    passed: bool
    reason: str | None = None


CheckFn = Callable[["ValidationRuleEvaluator", Any], Awaitable[CheckResult]]


class ValidationRuleEvaluator:
    """Evaluates named checks against estimates and variations."""

    def __init__(self, session: AsyncSession, tenant_id: str):
        self.session = session
        self.tenant_id = tenant_id

    async def evaluate(self, name: str, entity: Any) -> CheckResult:
        check = CHECKS.get(name)
        if check is None:
            # A table naming an unknown check must not let the transition through
            logger.warning("unknown_validation_check", check=name)
            return CheckResult(name, False, f"Unknown validation check '{name}'")
        return await check(self, entity)

    async def evaluate_all(self, names: Sequence[str], entity: Any) -> list[CheckResult]:
        return [await self.evaluate(name, entity) for name in names]

    # -- estimate checks ---------------------------------------------------

    async def has_totals(self, estimate: Any) -> CheckResult:
        total = _to_decimal(_get(estimate, "total"))
        if total is None or total <= 0:
            return CheckResult("has_totals", False, "Estimate must have a total greater than 0")
        return CheckResult("has_totals", True)

    async def has_at_least_one_version(self, estimate: Any) -> CheckResult:
        count = await self._count(
            select(func.count())
            .select_from(QuoteVersionModel)
            .where(
                QuoteVersionModel.tenant_id == self.tenant_id,
                QuoteVersionModel.estimate_id == _get(estimate, "id"),
            )
        )
        if count == 0:
            return CheckResult(
                "has_at_least_one_version", False, "Estimate must have at least one quote version"
            )
        return CheckResult("has_at_least_one_version", True)

    async def has_layout_or_default(self, estimate: Any) -> CheckResult:
        if _get(estimate, "layout_id"):
            return CheckResult("has_layout_or_default", True)
        result = await self.session.execute(
            select(EstimatingSettingsModel.default_layout_id).where(
                EstimatingSettingsModel.tenant_id == self.tenant_id
            )
        )
        if result.scalar_one_or_none():
            return CheckResult("has_layout_or_default", True)
        return CheckResult(
            "has_layout_or_default",
            False,
            "Estimate must have a quote layout assigned or a default layout configured",
        )

    async def has_scope_items(self, estimate: Any) -> CheckResult:
        count = await self._count(
            select(func.count())
            .select_from(EstimateItemModel)
            .where(
                EstimateItemModel.tenant_id == self.tenant_id,
                EstimateItemModel.estimate_id == _get(estimate, "id"),
            )
        )
        if count == 0:
            return CheckResult("has_scope_items", False, "Estimate must have at least one line item")
        return CheckResult("has_scope_items", True)

    # -- variation checks --------------------------------------------------

    async def has_lines(self, variation: Any) -> CheckResult:
        if not _get(variation, "lines"):
            return CheckResult("has_lines", False, "Variation must have at least one line item")
        return CheckResult("has_lines", True)

    async def has_title(self, variation: Any) -> CheckResult:
        title = _get(variation, "title")
        if not title or not str(title).strip():
            return CheckResult("has_title", False, "Variation must have a title")
        return CheckResult("has_title", True)

    async def _count(self, stmt) -> int:
        result = await self.session.execute(stmt)
        return int(result.scalar_one())


CHECKS: dict[str, CheckFn] = {
    "has_totals": ValidationRuleEvaluator.has_totals,
    "has_at_least_one_version": ValidationRuleEvaluator.has_at_least_one_version,
    "has_layout_or_default": ValidationRuleEvaluator.has_layout_or_default,
    "has_scope_items": ValidationRuleEvaluator.has_scope_items,
    "has_lines": ValidationRuleEvaluator.has_lines,
    "has_title": ValidationRuleEvaluator.has_title,
}


def _get(source: Any, key: str) -> Any:
    if isinstance(source, Mapping):
        return source.get(key)
    return getattr(source, key, None)


def _to_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None
