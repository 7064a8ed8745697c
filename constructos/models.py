"""ConstructOS estimating Pydantic models for type-safe data validation.

Money and percentages are Decimal. Percentages are stored in percent
(20 means 20%), matching what the settings screens capture.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class ItemType(str, Enum):
    """Kind of cost a line item represents."""

    LABOUR = "labour"
    MATERIAL = "material"
    PLANT = "plant"
    SUBCONTRACT = "subcontract"


class RoundingMode(str, Enum):
    """Rounding applied to the ex-VAT price only."""

    NONE = "none"
    NEAREST_1 = "nearest_1"
    NEAREST_5 = "nearest_5"
    NEAREST_10 = "nearest_10"


class PricingMode(str, Enum):
    COST_PLUS = "cost_plus"
    PRICE_ONLY = "price_only"


class EstimateStatus(str, Enum):
    """Estimate workflow statuses."""

    DRAFT = "draft"
    INTERNAL_REVIEW = "internal_review"
    READY_TO_SEND = "ready_to_send"
    SENT = "sent"
    ACCEPTED = "accepted"
    WON = "won"
    LOST = "lost"
    ARCHIVED = "archived"

    # Legacy statuses kept so older rows still load
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    CANCELLED = "cancelled"
    QUOTED = "quoted"
    NEGOTIATING = "negotiating"

    @property
    def is_terminal(self) -> bool:
        return self in (EstimateStatus.WON, EstimateStatus.LOST, EstimateStatus.ARCHIVED)


class VariationStatus(str, Enum):
    """Variation (change order) workflow statuses."""

    DRAFT = "draft"
    INTERNAL_REVIEW = "internal_review"
    SENT = "sent"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class GroupRuleType(str, Enum):
    """Document a grouping rule routes items into."""

    WORK_ORDER = "work_order"
    PURCHASE_ORDER = "purchase_order"


def _zero_if_missing(value: Any) -> Any:
    # Partially filled draft lines arrive with blanks; price them as zero
    if value is None or value == "":
        return Decimal("0")
    return value


class PricingSettings(BaseModel):
    """Tenant-wide pricing settings."""

    vat_rate: Decimal = Decimal("20")
    labour_burden_pct: Decimal = Decimal("0")
    overhead_pct: Decimal = Decimal("0")
    margin_pct: Decimal = Decimal("0")
    rounding_mode: RoundingMode = RoundingMode.NONE
    pricing_mode: PricingMode = PricingMode.COST_PLUS
    wastage_defaults: dict[str, Decimal] = Field(default_factory=dict)

    @field_validator("vat_rate", "labour_burden_pct", "overhead_pct", "margin_pct", mode="before")
    @classmethod
    def default_missing_pct(cls, v: Any) -> Any:
        return _zero_if_missing(v)

    @field_validator("vat_rate", "labour_burden_pct", "overhead_pct", "margin_pct")
    @classmethod
    def validate_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("percentages must be non-negative")
        return v

    @field_validator("wastage_defaults")
    @classmethod
    def validate_wastage(cls, v: dict[str, Decimal]) -> dict[str, Decimal]:
        for category, pct in v.items():
            if pct < 0:
                raise ValueError(f"wastage for '{category}' must be non-negative")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "vat_rate": "20",
                "labour_burden_pct": "10",
                "overhead_pct": "5",
                "margin_pct": "15",
                "rounding_mode": "nearest_1",
                "pricing_mode": "cost_plus",
                "wastage_defaults": {"Timber": "10", "Plasterboard": "7.5"},
            }
        }


class LineInput(BaseModel):
    """Raw quantity/cost inputs for one estimate line."""

    item_type: ItemType
    category: str | None = None
    quantity: Decimal = Decimal("0")
    unit_cost: Decimal = Decimal("0")
    fixed_price_ex_vat: Decimal | None = None
    markup_pct_override: Decimal | None = None
    wastage_pct_override: Decimal | None = None

    @field_validator("quantity", "unit_cost", mode="before")
    @classmethod
    def default_missing_number(cls, v: Any) -> Any:
        return _zero_if_missing(v)

    @field_validator("quantity", "unit_cost")
    @classmethod
    def validate_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("quantity and unit_cost must be non-negative")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "item_type": "labour",
                "category": "Carpentry",
                "quantity": "10",
                "unit_cost": "20",
            }
        }


class LineBreakdown(BaseModel):
    """Full cost/markup/VAT breakdown for one line. Always re-derivable."""

    base_cost: Decimal
    wastage_cost: Decimal
    labour_burden_cost: Decimal
    overhead_cost: Decimal
    margin_cost: Decimal
    price_ex_vat: Decimal
    vat: Decimal
    total_inc_vat: Decimal

    class Config:
        frozen = True


class EstimateTotals(BaseModel):
    breakdowns: list[LineBreakdown] = Field(default_factory=list)
    subtotal_ex_vat: Decimal = Decimal("0")
    vat: Decimal = Decimal("0")
    total: Decimal = Decimal("0")


class GroupRule(BaseModel):
    """A persisted, priority-ordered routing rule (read-only during resolution)."""

    id: UUID | None = None
    rule_type: GroupRuleType
    priority: int = 100
    is_enabled: bool = True
    match_item_type: str | None = None
    match_section_contains: str | None = None
    match_title_contains: str | None = None
    match_tag_contains: str | None = None
    target_party_name: str
    target_document_title: str | None = None

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "rule_type": "purchase_order",
                "priority": 10,
                "match_item_type": "material",
                "match_title_contains": "plasterboard",
                "target_party_name": "Jewson",
                "target_document_title": "Drylining Materials",
            }
        }


class PlanGroup(BaseModel):
    """One resolved Work Order or Purchase Order bucket."""

    rule_type: GroupRuleType
    party_name: str
    title: str
    item_ids: list[str] = Field(default_factory=list)


class GroupingPlan(BaseModel):
    work_orders: list[PlanGroup] = Field(default_factory=list)
    purchase_orders: list[PlanGroup] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.work_orders and not self.purchase_orders


class VariationLine(BaseModel):
    """One priced line on a variation."""

    item_type: Literal["labour", "material", "plant", "subcontract", "combined"]
    title: str
    description: str | None = None
    quantity: Decimal = Decimal("0")
    unit: str = "item"
    unit_cost: Decimal = Decimal("0")
    price_ex_vat: Decimal = Decimal("0")
    vat: Decimal = Decimal("0")
    total_inc_vat: Decimal = Decimal("0")

    @field_validator("quantity", "unit_cost", "price_ex_vat", "vat", "total_inc_vat", mode="before")
    @classmethod
    def default_missing_number(cls, v: Any) -> Any:
        return _zero_if_missing(v)
