"""Live estimate lookup and recalculation."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from constructos.db.models import EstimateItemModel, EstimateModel
from constructos.errors import NotFoundError
from constructos.models import EstimateTotals, LineInput, PricingSettings
from constructos.pricing.engine import compute_estimate_totals
from constructos.pricing.settings import get_or_create_settings
from constructos.utils.money import quantize_money

logger = structlog.get_logger(__name__)


async def get_estimate(session: AsyncSession, tenant_id: str, estimate_id: UUID) -> EstimateModel:
    result = await session.execute(
        select(EstimateModel).where(
            EstimateModel.id == estimate_id, EstimateModel.tenant_id == tenant_id
        )
    )
    estimate = result.scalar_one_or_none()
    if estimate is None:
        raise NotFoundError("Estimate", estimate_id)
    return estimate


async def list_estimate_items(
    session: AsyncSession, tenant_id: str, estimate_id: UUID, client_visible_only: bool = False
) -> list[EstimateItemModel]:
    stmt = select(EstimateItemModel).where(
        EstimateItemModel.tenant_id == tenant_id,
        EstimateItemModel.estimate_id == estimate_id,
    )
    if client_visible_only:
        stmt = stmt.where(EstimateItemModel.is_client_visible.is_(True))
    stmt = stmt.order_by(EstimateItemModel.sort_order.asc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


def line_input_from_item(item: EstimateItemModel) -> LineInput:
    return LineInput(
        item_type=item.item_type,
        category=item.category,
        quantity=item.quantity,
        unit_cost=item.unit_cost,
        fixed_price_ex_vat=item.fixed_price_ex_vat,
        markup_pct_override=item.markup_pct_override,
        wastage_pct_override=item.wastage_pct_override,
    )


async def recalculate_estimate(
    session: AsyncSession,
    tenant_id: str,
    estimate_id: UUID,
    settings: PricingSettings | None = None,
) -> EstimateTotals:
    """Re-price every live item and write the derived columns back.

    Per item: ``line_cost`` is quantity x unit cost, ``line_total`` the rounded
    ex-VAT sell price and ``unit_price`` that price per unit. The estimate
    header gets the aggregated subtotal, VAT and total at the tenant's VAT rate.
    """
    estimate = await get_estimate(session, tenant_id, estimate_id)
    if settings is None:
        settings = await get_or_create_settings(session, tenant_id)

    items = await list_estimate_items(session, tenant_id, estimate_id)
    totals = compute_estimate_totals(settings, (line_input_from_item(i) for i in items))

    for item, breakdown in zip(items, totals.breakdowns):
        quantity = item.quantity or Decimal("0")
        item.line_cost = quantize_money(quantity * (item.unit_cost or Decimal("0")))
        item.line_total = quantize_money(breakdown.price_ex_vat)
        if quantity > 0:
            item.unit_price = quantize_money(breakdown.price_ex_vat / quantity)
        else:
            item.unit_price = item.line_total

    estimate.subtotal = quantize_money(totals.subtotal_ex_vat)
    estimate.vat_amount = quantize_money(totals.vat)
    estimate.vat_rate = settings.vat_rate
    estimate.total = estimate.subtotal + estimate.vat_amount
    await session.flush()

    logger.info(
        "estimate_recalculated",
        tenant_id=tenant_id,
        estimate_id=str(estimate_id),
        items=len(items),
        total=str(estimate.total),
    )
    return totals
