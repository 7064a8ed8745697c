"""SQLAlchemy async database models for the ConstructOS estimating engine.

Every table carries a ``tenant_id`` and every query is scoped by it.
Work/Purchase Order line snapshots are append-only copies of the accepted
quote version's items and are never recomputed from a live estimate.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class EstimatingSettingsModel(Base):
    """Tenant-wide pricing settings (one row per tenant)."""

    __tablename__ = "estimating_settings"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)

    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("20"))
    labour_burden_pct: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    overhead_pct: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    margin_pct: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    rounding_mode: Mapped[str] = mapped_column(Text, nullable=False, default="none")
    pricing_mode: Mapped[str] = mapped_column(Text, nullable=False, default="cost_plus")
    wastage_defaults: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    # Layout used when an estimate has none assigned
    default_layout_id: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "vat_rate >= 0 AND labour_burden_pct >= 0 AND overhead_pct >= 0 AND margin_pct >= 0",
            name="check_settings_pct_non_negative",
        ),
    )


class ProjectModel(Base):
    """Project created when an accepted quote is converted."""

    __tablename__ = "projects"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active")
    source_estimate_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), index=True)

    created_by: Mapped[str] = mapped_column(Text, default="system", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class EstimateModel(Base):
    """A priced proposal progressing through the approval workflow."""

    __tablename__ = "estimates"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    reference: Mapped[str | None] = mapped_column(Text)
    title: Mapped[str] = mapped_column(Text, nullable=False, default="Untitled estimate")
    client_name: Mapped[str | None] = mapped_column(Text)

    # Commercial status (won/lost) and approval workflow status are separate columns;
    # NULL workflow_status on legacy rows reads as draft
    status: Mapped[str] = mapped_column(Text, nullable=False, default="open")
    workflow_status: Mapped[str | None] = mapped_column(Text, default="draft")
    workflow_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    vat_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    layout_id: Mapped[str | None] = mapped_column(Text)

    # Conversion linkage
    converted_project_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="SET NULL")
    )
    converted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    converted_from_quote_version_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True))

    # Checked-and-incremented on every status write
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_estimates_tenant_status", "tenant_id", "workflow_status"),
    )


class EstimateSectionModel(Base):
    __tablename__ = "estimate_sections"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False)
    estimate_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("estimates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_client_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class EstimateItemModel(Base):
    """Live, editable estimate line item."""

    __tablename__ = "estimate_items"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False)
    estimate_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("estimates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    section_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("estimate_sections.id", ondelete="SET NULL")
    )

    item_type: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str | None] = mapped_column(Text)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    tags: Mapped[str | None] = mapped_column(Text)

    # Pricing inputs
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=Decimal("0"))
    unit: Mapped[str] = mapped_column(Text, nullable=False, default="item")
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    fixed_price_ex_vat: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    markup_pct_override: Mapped[Decimal | None] = mapped_column(Numeric(5, 2))
    wastage_pct_override: Mapped[Decimal | None] = mapped_column(Numeric(5, 2))

    # Derived by recalculation
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    line_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    line_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_client_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="check_item_quantity_non_negative"),
        CheckConstraint("unit_cost >= 0", name="check_item_unit_cost_non_negative"),
    )


class QuoteVersionModel(Base):
    """Immutable priced snapshot of an estimate at a point in time."""

    __tablename__ = "quote_versions"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False)
    estimate_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("estimates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    label: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="draft")
    intro_title: Mapped[str | None] = mapped_column(Text)

    items_snapshot: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    sections_snapshot: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    vat_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("estimate_id", "version_number", name="uq_quote_versions_estimate_version"),
    )


class VariationModel(Base):
    """Proposed change order against an estimate."""

    __tablename__ = "estimate_variations"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False)
    estimate_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("estimates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    description: Mapped[str | None] = mapped_column(Text)
    lines: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    vat_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    status: Mapped[str] = mapped_column(Text, nullable=False, default="draft")
    workflow_status: Mapped[str | None] = mapped_column(Text, default="draft")
    workflow_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class GroupRuleModel(Base):
    """Priority-ordered rule routing quote items into Work/Purchase Orders."""

    __tablename__ = "estimating_group_rules"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False)
    rule_type: Mapped[str] = mapped_column(Text, nullable=False)  # work_order, purchase_order
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Predicates (NULL = don't care)
    match_item_type: Mapped[str | None] = mapped_column(Text)
    match_section_contains: Mapped[str | None] = mapped_column(Text)
    match_title_contains: Mapped[str | None] = mapped_column(Text)
    match_tag_contains: Mapped[str | None] = mapped_column(Text)

    target_party_name: Mapped[str] = mapped_column(Text, nullable=False)
    target_document_title: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "rule_type IN ('work_order', 'purchase_order')", name="check_group_rule_type"
        ),
        Index("idx_group_rules_tenant_priority", "tenant_id", "priority"),
    )


class WorkOrderModel(Base):
    __tablename__ = "work_orders"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False)
    estimate_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("estimates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    project_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="SET NULL")
    )
    source_quote_version_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True))
    title: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="draft")
    assigned_to_name: Mapped[str] = mapped_column(Text, nullable=False)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    vat_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class WorkOrderLineSnapshotModel(Base):
    """Frozen copy of one quote item on a Work Order."""

    __tablename__ = "work_order_line_snapshots"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False)
    work_order_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source_quote_version_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    source_estimate_item_id: Mapped[str | None] = mapped_column(Text)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    item_type: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=Decimal("0"))
    unit: Mapped[str | None] = mapped_column(Text)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    line_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class PurchaseOrderModel(Base):
    __tablename__ = "purchase_orders"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False)
    estimate_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("estimates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    project_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="SET NULL")
    )
    source_quote_version_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True))
    title: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="draft")
    supplier_name: Mapped[str] = mapped_column(Text, nullable=False)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    vat_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class PurchaseOrderLineSnapshotModel(Base):
    """Frozen copy of one quote item on a Purchase Order."""

    __tablename__ = "purchase_order_line_snapshots"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False)
    purchase_order_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source_quote_version_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    source_estimate_item_id: Mapped[str | None] = mapped_column(Text)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    item_type: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=Decimal("0"))
    unit: Mapped[str | None] = mapped_column(Text)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    line_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class LastBuyCostModel(Base):
    """Most recent observed buy cost per material name + unit."""

    __tablename__ = "rate_last_buy"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False)
    material_code: Mapped[str | None] = mapped_column(Text)
    material_name: Mapped[str] = mapped_column(Text, nullable=False)
    unit: Mapped[str] = mapped_column(Text, nullable=False)
    last_buy_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    last_buy_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    source_purchase_order_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True))
    source_supplier: Mapped[str | None] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "material_name", "unit", name="uq_rate_last_buy_material_unit"),
    )


class ActivityModel(Base):
    """Append-only audit activity for estimates, variations and orders."""

    __tablename__ = "estimating_activity"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False)
    estimate_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), index=True)
    document_type: Mapped[str] = mapped_column(Text, nullable=False)  # estimate, variation, ...
    document_id: Mapped[str] = mapped_column(Text, nullable=False)
    action: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str | None] = mapped_column(Text)
    # "metadata" is reserved on declarative classes
    details: Mapped[dict] = mapped_column("metadata", JSON, default=dict, nullable=False)
    actor: Mapped[str] = mapped_column(Text, nullable=False, default="system")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_activity_document", "tenant_id", "document_type", "document_id"),
    )


class DocumentAccessTokenModel(Base):
    """Share-link token for a client-facing document."""

    __tablename__ = "document_access_tokens"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    tenant_id: Mapped[str] = mapped_column(Text, nullable=False)
    document_type: Mapped[str] = mapped_column(Text, nullable=False)
    document_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    token: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
