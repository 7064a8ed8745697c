"""Request and response bodies for the estimating API."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from constructos.models import (
    GroupRuleType,
    LineInput,
    PricingMode,
    PricingSettings,
    RoundingMode,
)


class PricingPreviewRequest(BaseModel):
    """Lines to price; tenant settings are used when ``settings`` is omitted."""

    settings: PricingSettings | None = None
    lines: list[LineInput] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "lines": [
                    {"item_type": "labour", "quantity": "10", "unit_cost": "20"},
                    {"item_type": "material", "category": "Timber", "quantity": "4", "unit_cost": "12.50"},
                ]
            }
        }


class SettingsUpdateRequest(BaseModel):
    vat_rate: Decimal | None = Field(default=None, ge=0)
    labour_burden_pct: Decimal | None = Field(default=None, ge=0)
    overhead_pct: Decimal | None = Field(default=None, ge=0)
    margin_pct: Decimal | None = Field(default=None, ge=0)
    rounding_mode: RoundingMode | None = None
    pricing_mode: PricingMode | None = None
    wastage_defaults: dict[str, Decimal] | None = None
    default_layout_id: str | None = None


class TransitionRequest(BaseModel):
    to_status: str
    note: str | None = None


class TransitionResponse(BaseModel):
    entity_type: str
    entity_id: UUID
    from_status: str
    to_status: str
    revision: int


class ConvertRequest(BaseModel):
    quote_version_id: UUID


class ConvertResponse(BaseModel):
    project_id: UUID
    work_order_ids: list[UUID]
    purchase_order_ids: list[UUID]


class GroupRuleCreate(BaseModel):
    rule_type: GroupRuleType
    target_party_name: str = Field(..., min_length=1)
    priority: int = 100
    match_item_type: str | None = None
    match_section_contains: str | None = None
    match_title_contains: str | None = None
    match_tag_contains: str | None = None
    target_document_title: str | None = None


class GroupRuleUpdate(BaseModel):
    is_enabled: bool | None = None
    priority: int | None = None
    match_item_type: str | None = None
    match_section_contains: str | None = None
    match_title_contains: str | None = None
    match_tag_contains: str | None = None
    target_party_name: str | None = None
    target_document_title: str | None = None
