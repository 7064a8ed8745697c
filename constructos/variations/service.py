"""Variations (change orders) raised against an estimate."""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from constructos.core.activity_logger import log_activity
from constructos.db.models import VariationModel
from constructos.errors import NotFoundError
from constructos.estimates.service import get_estimate
from constructos.models import ItemType, LineInput, PricingSettings, VariationLine
from constructos.pricing.engine import compute_estimate_totals
from constructos.utils.money import jsonable, quantize_money, vat_on

logger = structlog.get_logger(__name__)

DEFAULT_VARIATION_VAT_RATE = Decimal("20")

# Narrative lines grouping several trades; they carry no price of their own
COMBINED_ITEM_TYPE = "combined"


def variation_totals(
    lines: Sequence[VariationLine],
    settings: PricingSettings | None = None,
    vat_rate: Decimal = DEFAULT_VARIATION_VAT_RATE,
) -> tuple[Decimal, Decimal, Decimal]:
    """(subtotal, vat_amount, total) for a set of variation lines.

    With tenant settings each priced line goes through the calculator with its
    ex-VAT price as a fixed price. Without them the ex-VAT prices are summed and
    VAT is applied at ``vat_rate``.
    """
    if settings is not None:
        inputs = [
            LineInput(
                item_type=ItemType(line.item_type),
                quantity=line.quantity,
                unit_cost=line.unit_cost,
                fixed_price_ex_vat=line.price_ex_vat,
            )
            for line in lines
            if line.item_type != COMBINED_ITEM_TYPE
        ]
        totals = compute_estimate_totals(settings, inputs)
        subtotal = quantize_money(totals.subtotal_ex_vat)
        vat_amount = quantize_money(totals.vat)
        return subtotal, vat_amount, subtotal + vat_amount

    subtotal = quantize_money(sum((line.price_ex_vat for line in lines), Decimal("0")))
    vat_amount = vat_on(subtotal, vat_rate)
    return subtotal, vat_amount, subtotal + vat_amount


async def create_variation(
    session: AsyncSession,
    tenant_id: str,
    estimate_id: UUID,
    title: str,
    lines: Sequence[VariationLine],
    description: str | None = None,
    settings: PricingSettings | None = None,
    vat_rate: Decimal | None = None,
    actor: str = "system",
) -> VariationModel:
    await get_estimate(session, tenant_id, estimate_id)

    if vat_rate is None:
        vat_rate = settings.vat_rate if settings is not None else DEFAULT_VARIATION_VAT_RATE
    subtotal, vat_amount, total = variation_totals(lines, settings, vat_rate)

    variation = VariationModel(
        tenant_id=tenant_id,
        estimate_id=estimate_id,
        title=title,
        description=description,
        lines=[jsonable(line.model_dump()) for line in lines],
        subtotal=subtotal,
        vat_rate=vat_rate,
        vat_amount=vat_amount,
        total=total,
        status="draft",
        workflow_status="draft",
        revision=0,
    )
    session.add(variation)
    await session.flush()

    await log_activity(
        session,
        tenant_id,
        estimate_id,
        "variation",
        variation.id,
        "variation_created",
        f"Variation '{title}' created",
        {"lines": len(lines), "total": total},
        actor=actor,
    )
    return variation


async def list_variations(
    session: AsyncSession, tenant_id: str, estimate_id: UUID
) -> list[VariationModel]:
    """Variations on an estimate, newest first."""
    result = await session.execute(
        select(VariationModel)
        .where(VariationModel.tenant_id == tenant_id, VariationModel.estimate_id == estimate_id)
        .order_by(VariationModel.created_at.desc())
    )
    return list(result.scalars().all())


async def get_variation(session: AsyncSession, tenant_id: str, variation_id: UUID) -> VariationModel:
    result = await session.execute(
        select(VariationModel).where(
            VariationModel.tenant_id == tenant_id, VariationModel.id == variation_id
        )
    )
    variation = result.scalar_one_or_none()
    if variation is None:
        raise NotFoundError("Variation", variation_id)
    return variation
