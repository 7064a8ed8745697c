"""Tenant pricing settings persistence."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import structlog
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from constructos.config import get_config
from constructos.db.models import EstimatingSettingsModel
from constructos.errors import ValidationFailedError
from constructos.models import PricingSettings

logger = structlog.get_logger(__name__)

_UPDATABLE_FIELDS = {
    "vat_rate",
    "labour_burden_pct",
    "overhead_pct",
    "margin_pct",
    "rounding_mode",
    "pricing_mode",
    "wastage_defaults",
    "default_layout_id",
}


def settings_from_model(row: EstimatingSettingsModel) -> PricingSettings:
    return PricingSettings(
        vat_rate=row.vat_rate,
        labour_burden_pct=row.labour_burden_pct,
        overhead_pct=row.overhead_pct,
        margin_pct=row.margin_pct,
        rounding_mode=row.rounding_mode,
        pricing_mode=row.pricing_mode,
        wastage_defaults={k: Decimal(str(v)) for k, v in (row.wastage_defaults or {}).items()},
    )


async def get_settings_row(session: AsyncSession, tenant_id: str) -> EstimatingSettingsModel | None:
    result = await session.execute(
        select(EstimatingSettingsModel).where(EstimatingSettingsModel.tenant_id == tenant_id)
    )
    return result.scalar_one_or_none()


async def get_or_create_settings(session: AsyncSession, tenant_id: str) -> PricingSettings:
    """Load the tenant's pricing settings, seeding a row from config defaults.

    Args:
        session: Open DB session (caller commits)
        tenant_id: Tenant identifier

    Returns:
        PricingSettings for the tenant
    """
    row = await get_settings_row(session, tenant_id)
    if row is None:
        defaults = get_config().pricing
        row = EstimatingSettingsModel(
            tenant_id=tenant_id,
            vat_rate=defaults.vat_rate,
            labour_burden_pct=defaults.labour_burden_pct,
            overhead_pct=defaults.overhead_pct,
            margin_pct=defaults.margin_pct,
            rounding_mode=defaults.rounding_mode,
            pricing_mode=defaults.pricing_mode,
            wastage_defaults={},
        )
        session.add(row)
        await session.flush()
        logger.info("pricing_settings_created", tenant_id=tenant_id)
    return settings_from_model(row)


async def update_settings(
    session: AsyncSession, tenant_id: str, **patch: Any
) -> PricingSettings:
    """Apply a partial update to the tenant's pricing settings.

    A None value leaves the stored setting unchanged, except for
    default_layout_id where it clears the layout. The merged result is
    validated through PricingSettings before it is written, so negative
    percentages or unknown modes are rejected.

    Raises:
        ValueError: Unknown field in patch
        ValidationFailedError: Invalid merged settings
    """
    unknown = set(patch) - _UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown pricing settings field(s): {', '.join(sorted(unknown))}")

    await get_or_create_settings(session, tenant_id)
    row = await get_settings_row(session, tenant_id)

    layout_id = patch.pop("default_layout_id", row.default_layout_id)
    changes = {k: v for k, v in patch.items() if v is not None}
    current = settings_from_model(row).model_dump()
    try:
        merged = PricingSettings(**{**current, **changes})
    except ValidationError as exc:
        raise ValidationFailedError(
            [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
        ) from exc

    row.vat_rate = merged.vat_rate
    row.labour_burden_pct = merged.labour_burden_pct
    row.overhead_pct = merged.overhead_pct
    row.margin_pct = merged.margin_pct
    row.rounding_mode = merged.rounding_mode.value
    row.pricing_mode = merged.pricing_mode.value
    row.wastage_defaults = {k: str(v) for k, v in merged.wastage_defaults.items()}
    row.default_layout_id = layout_id
    await session.flush()

    logger.info("pricing_settings_updated", tenant_id=tenant_id, fields=sorted(changes))
    return merged
