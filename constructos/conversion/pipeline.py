"""Accepted quote → Project, Work Orders and Purchase Orders.

The estimate is linked to its new project and committed before any order is
created. Anything that fails after that checkpoint surfaces as a
PartialConversionError; the link is left in place and a second run is rejected
with AlreadyConvertedError until support reconciles the estimate.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from constructos.conversion.last_buy import LastBuyCostCache
from constructos.conversion.snapshots import (
    create_purchase_order_snapshots,
    create_work_order_snapshots,
)
from constructos.core.activity_logger import log_activity
from constructos.db.models import (
    EstimateModel,
    ProjectModel,
    PurchaseOrderModel,
    QuoteVersionModel,
    WorkOrderModel,
)
from constructos.errors import (
    AlreadyConvertedError,
    ConcurrentModificationError,
    NotFoundError,
    PartialConversionError,
    UnauthorizedError,
)
from constructos.grouping.repository import GroupRuleRepository
from constructos.models import GroupingPlan, PlanGroup
from constructos.utils.money import quantize_money, to_decimal, vat_on
from constructos.workflow.permissions import PermissionLookup

logger = structlog.get_logger(__name__)

CONVERT_PERMISSION = "estimating.convert"
LAST_BUY_ITEM_TYPES = frozenset({"material", "plant"})


@dataclass
class ConversionResult:
    project_id: UUID
    work_order_ids: list[UUID] = field(default_factory=list)
    purchase_order_ids: list[UUID] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class GroupTotals:
    subtotal: Decimal
    vat_amount: Decimal
    total: Decimal


def group_totals(items: Sequence[Mapping[str, Any]], vat_rate: Decimal) -> GroupTotals:
    """Subtotal is the sum of the items' ``line_total``; VAT at the version's rate."""
    subtotal = quantize_money(sum((to_decimal(i.get("line_total")) for i in items), Decimal("0")))
    vat_amount = vat_on(subtotal, vat_rate)
    return GroupTotals(subtotal=subtotal, vat_amount=vat_amount, total=subtotal + vat_amount)


class ConversionPipeline:
    """Converts an accepted quote version into a project with its orders."""

    def __init__(
        self,
        session: AsyncSession,
        tenant_id: str,
        permissions: PermissionLookup | None = None,
        actor: str = "system",
    ):
        self.session = session
        self.tenant_id = tenant_id
        self.permissions = permissions
        self.actor = actor
        self.rules = GroupRuleRepository(session)
        self.last_buy = LastBuyCostCache(session)

    async def convert(self, estimate_id: UUID, quote_version_id: UUID) -> ConversionResult:
        log = logger.bind(
            tenant_id=self.tenant_id,
            estimate_id=str(estimate_id),
            quote_version_id=str(quote_version_id),
        )

        if self.permissions is not None and not self.permissions.has_permission(CONVERT_PERMISSION):
            log.info("conversion_rejected", reason="unauthorized")
            raise UnauthorizedError(CONVERT_PERMISSION)

        estimate = await self._load_estimate(estimate_id)
        if estimate.converted_project_id is not None:
            log.info("conversion_rejected", reason="already_converted")
            raise AlreadyConvertedError(estimate_id, estimate.converted_project_id)

        version = await self._load_version(estimate_id, quote_version_id)
        items = list(version.items_snapshot or [])
        sections = list(version.sections_snapshot or [])
        vat_rate = to_decimal(version.vat_rate)
        version_number = version.version_number

        project = ProjectModel(
            tenant_id=self.tenant_id,
            name=f"Project - {version.intro_title or 'Accepted Quote'} (Estimate {estimate_id})",
            status="active",
            source_estimate_id=estimate_id,
            created_by=self.actor,
        )
        self.session.add(project)
        await self.session.flush()
        project_id = project.id

        await self._link_estimate(estimate, project_id, quote_version_id)
        await self.session.commit()
        log = log.bind(project_id=str(project_id))
        log.info("conversion_linked")

        result = ConversionResult(project_id=project_id)
        stage = "grouping"
        try:
            plan = await self.rules.resolve(self.tenant_id, items, sections)
            items_by_id = {str(item.get("id")): item for item in items}

            stage = "work_orders"
            for group in plan.work_orders:
                order_id = await self._create_work_order(
                    estimate_id, project_id, quote_version_id, group, items_by_id, vat_rate
                )
                result.work_order_ids.append(order_id)

            stage = "purchase_orders"
            for group in plan.purchase_orders:
                order_id = await self._create_purchase_order(
                    estimate_id, project_id, quote_version_id, group, items_by_id, vat_rate
                )
                result.purchase_order_ids.append(order_id)

            stage = "activity"
            await log_activity(
                self.session,
                self.tenant_id,
                estimate_id,
                "estimate",
                estimate_id,
                "converted",
                "Estimate converted to project.",
                {
                    "project_id": project_id,
                    "quote_version_id": quote_version_id,
                    "version_number": version_number,
                },
                actor=self.actor,
            )
        except Exception as exc:
            log.error("conversion_partial", stage=stage, error=str(exc))
            raise PartialConversionError(estimate_id, project_id, stage, str(exc)) from exc

        log.info(
            "conversion_completed",
            work_orders=len(result.work_order_ids),
            purchase_orders=len(result.purchase_order_ids),
        )
        return result

    async def preview(self, estimate_id: UUID, quote_version_id: UUID) -> GroupingPlan:
        """Grouping plan the conversion would use, without writing anything."""
        version = await self._load_version(estimate_id, quote_version_id)
        return await self.rules.resolve(
            self.tenant_id,
            list(version.items_snapshot or []),
            list(version.sections_snapshot or []),
        )

    async def _load_estimate(self, estimate_id: UUID) -> EstimateModel:
        result = await self.session.execute(
            select(EstimateModel).where(
                EstimateModel.id == estimate_id, EstimateModel.tenant_id == self.tenant_id
            )
        )
        estimate = result.scalar_one_or_none()
        if estimate is None:
            raise NotFoundError("Estimate", estimate_id)
        return estimate

    async def _load_version(self, estimate_id: UUID, quote_version_id: UUID) -> QuoteVersionModel:
        result = await self.session.execute(
            select(QuoteVersionModel).where(
                QuoteVersionModel.id == quote_version_id,
                QuoteVersionModel.estimate_id == estimate_id,
                QuoteVersionModel.tenant_id == self.tenant_id,
            )
        )
        version = result.scalar_one_or_none()
        if version is None:
            raise NotFoundError("Quote version", quote_version_id)
        return version

    async def _link_estimate(
        self, estimate: EstimateModel, project_id: UUID, quote_version_id: UUID
    ) -> None:
        expected_revision = estimate.revision or 0
        update_result = await self.session.execute(
            update(EstimateModel)
            .where(
                EstimateModel.id == estimate.id,
                EstimateModel.tenant_id == self.tenant_id,
                EstimateModel.revision == expected_revision,
                EstimateModel.converted_project_id.is_(None),
            )
            .values(
                converted_project_id=project_id,
                converted_at=datetime.now(timezone.utc),
                converted_from_quote_version_id=quote_version_id,
                status="won",
                revision=expected_revision + 1,
            )
        )
        if update_result.rowcount != 1:
            raise ConcurrentModificationError("Estimate", estimate.id, expected_revision)

    async def _create_work_order(
        self,
        estimate_id: UUID,
        project_id: UUID,
        quote_version_id: UUID,
        group: PlanGroup,
        items_by_id: Mapping[str, Mapping[str, Any]],
        vat_rate: Decimal,
    ) -> UUID:
        items = _group_items(group, items_by_id)
        totals = group_totals(items, vat_rate)
        order = WorkOrderModel(
            tenant_id=self.tenant_id,
            estimate_id=estimate_id,
            project_id=project_id,
            source_quote_version_id=quote_version_id,
            title=group.title,
            status="draft",
            assigned_to_name=group.party_name,
            subtotal=totals.subtotal,
            vat_rate=vat_rate,
            vat_amount=totals.vat_amount,
            total=totals.total,
        )
        self.session.add(order)
        await self.session.flush()

        await create_work_order_snapshots(
            self.session, self.tenant_id, order.id, quote_version_id, items
        )
        logger.info(
            "work_order_created",
            work_order_id=str(order.id),
            party=group.party_name,
            lines=len(items),
            subtotal=str(totals.subtotal),
        )
        return order.id

    async def _create_purchase_order(
        self,
        estimate_id: UUID,
        project_id: UUID,
        quote_version_id: UUID,
        group: PlanGroup,
        items_by_id: Mapping[str, Mapping[str, Any]],
        vat_rate: Decimal,
    ) -> UUID:
        items = _group_items(group, items_by_id)
        totals = group_totals(items, vat_rate)
        order = PurchaseOrderModel(
            tenant_id=self.tenant_id,
            estimate_id=estimate_id,
            project_id=project_id,
            source_quote_version_id=quote_version_id,
            title=group.title,
            status="draft",
            supplier_name=group.party_name,
            subtotal=totals.subtotal,
            vat_rate=vat_rate,
            vat_amount=totals.vat_amount,
            total=totals.total,
        )
        self.session.add(order)
        await self.session.flush()

        snapshots = await create_purchase_order_snapshots(
            self.session, self.tenant_id, order.id, quote_version_id, items
        )
        for snapshot in snapshots:
            if snapshot.item_type not in LAST_BUY_ITEM_TYPES:
                continue
            await self.last_buy.upsert(
                self.tenant_id,
                material_name=snapshot.title,
                unit=snapshot.unit or "item",
                cost=snapshot.unit_cost,
                purchase_order_id=order.id,
                supplier=group.party_name,
            )

        logger.info(
            "purchase_order_created",
            purchase_order_id=str(order.id),
            party=group.party_name,
            lines=len(items),
            subtotal=str(totals.subtotal),
        )
        return order.id


def _group_items(
    group: PlanGroup, items_by_id: Mapping[str, Mapping[str, Any]]
) -> list[Mapping[str, Any]]:
    return [items_by_id[item_id] for item_id in group.item_ids if item_id in items_by_id]
