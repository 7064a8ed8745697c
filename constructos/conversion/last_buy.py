"""Last-known buy cost cache keyed by material name + unit.

Future estimates default a material's unit cost to the most recently observed
purchase price.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from constructos.db.models import LastBuyCostModel

logger = structlog.get_logger(__name__)


class LastBuyCostCache:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def upsert(
        self,
        tenant_id: str,
        material_name: str,
        unit: str,
        cost: Decimal,
        purchase_order_id: UUID | None = None,
        supplier: str | None = None,
        material_code: str | None = None,
    ) -> LastBuyCostModel:
        """Record ``cost`` as the latest buy cost for (material_name, unit).

        One row per tenant + material name + unit; later observations overwrite
        earlier ones.
        """
        now = datetime.now(timezone.utc)
        result = await self.session.execute(
            select(LastBuyCostModel).where(
                LastBuyCostModel.tenant_id == tenant_id,
                LastBuyCostModel.material_name == material_name,
                LastBuyCostModel.unit == unit,
            )
        )
        row = result.scalar_one_or_none()

        if row is None:
            row = LastBuyCostModel(
                tenant_id=tenant_id,
                material_name=material_name,
                unit=unit,
            )
            self.session.add(row)

        row.material_code = material_code
        row.last_buy_cost = cost
        row.last_buy_at = now
        row.source_purchase_order_id = purchase_order_id
        row.source_supplier = supplier
        await self.session.flush()

        logger.debug(
            "last_buy_cost_recorded",
            tenant_id=tenant_id,
            material_name=material_name,
            unit=unit,
            cost=str(cost),
        )
        return row

    async def get(
        self, tenant_id: str, material_name: str, unit: str | None = None
    ) -> LastBuyCostModel | None:
        """Most recent buy cost for a material (name match is case-insensitive)."""
        stmt = select(LastBuyCostModel).where(
            LastBuyCostModel.tenant_id == tenant_id,
            func.lower(LastBuyCostModel.material_name) == material_name.lower(),
        )
        if unit:
            stmt = stmt.where(LastBuyCostModel.unit == unit)
        stmt = stmt.order_by(LastBuyCostModel.last_buy_at.desc()).limit(1)

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
