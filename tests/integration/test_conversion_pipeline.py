"""Integration tests for quote-to-project conversion.

Scenario: an accepted quote version with labour and material lines is turned
into a project, Work Orders, Purchase Orders and immutable line snapshots.
"""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest
from sqlalchemy import select

from constructos.conversion.last_buy import LastBuyCostCache
from constructos.conversion.pipeline import ConversionPipeline, group_totals
from constructos.conversion.snapshots import (
    list_purchase_order_snapshots,
    list_work_order_snapshots,
)
from constructos.core.activity_logger import list_activity
from constructos.db.models import (
    EstimateModel,
    ProjectModel,
    PurchaseOrderModel,
    WorkOrderModel,
)
from constructos.errors import (
    AlreadyConvertedError,
    NotFoundError,
    PartialConversionError,
    UnauthorizedError,
)
from constructos.estimates.versions import create_quote_version
from constructos.grouping.repository import GroupRuleRepository
from constructos.workflow.permissions import RolePermissionChecker
from tests.factories import make_estimate, make_item, make_version, snapshot_item


@pytest.fixture
def quote_items() -> list[dict]:
    return [
        snapshot_item("labour", "First-fix carpentry", "480.00", quantity="16", unit_cost="25", unit="hr"),
        snapshot_item("labour", "Second-fix carpentry", "320.00", quantity="10", unit_cost="28", unit="hr"),
        snapshot_item("material", "Plasterboard 12.5mm", "150.00", quantity="20", unit_cost="6.25", unit="sheet"),
    ]


@pytest.mark.asyncio
async def test_two_labour_one_material_gives_one_wo_and_one_po(db_session, tenant_id, quote_items):
    estimate = await make_estimate(db_session, workflow_status="accepted")
    version = await make_version(db_session, estimate, quote_items)

    result = await ConversionPipeline(db_session, tenant_id).convert(estimate.id, version.id)

    assert len(result.work_order_ids) == 1
    assert len(result.purchase_order_ids) == 1

    work_order = (
        await db_session.execute(select(WorkOrderModel).where(WorkOrderModel.id == result.work_order_ids[0]))
    ).scalar_one()
    assert work_order.assigned_to_name == "Unassigned Labour"
    assert work_order.title == "Unassigned Labour Work Order"
    assert work_order.subtotal == Decimal("800.00")
    assert work_order.vat_amount == Decimal("160.00")
    assert work_order.total == Decimal("960.00")
    assert work_order.project_id == result.project_id
    assert work_order.source_quote_version_id == version.id

    purchase_order = (
        await db_session.execute(
            select(PurchaseOrderModel).where(PurchaseOrderModel.id == result.purchase_order_ids[0])
        )
    ).scalar_one()
    assert purchase_order.supplier_name == "Unassigned Materials"
    assert purchase_order.subtotal == Decimal("150.00")
    assert purchase_order.total == Decimal("180.00")


@pytest.mark.asyncio
async def test_estimate_linked_and_project_created(db_session, tenant_id, quote_items):
    estimate = await make_estimate(db_session, workflow_status="accepted")
    version = await make_version(db_session, estimate, quote_items)

    result = await ConversionPipeline(db_session, tenant_id, actor="jo").convert(estimate.id, version.id)

    refreshed = (
        await db_session.execute(select(EstimateModel).where(EstimateModel.id == estimate.id))
    ).scalar_one()
    assert refreshed.converted_project_id == result.project_id
    assert refreshed.converted_from_quote_version_id == version.id
    assert refreshed.converted_at is not None
    assert refreshed.status == "won"
    assert refreshed.revision == 1

    project = (
        await db_session.execute(select(ProjectModel).where(ProjectModel.id == result.project_id))
    ).scalar_one()
    assert project.name == f"Project - Kitchen extension (Estimate {estimate.id})"
    assert project.source_estimate_id == estimate.id
    assert project.created_by == "jo"


@pytest.mark.asyncio
async def test_snapshots_copy_version_items_in_order(db_session, tenant_id, quote_items):
    estimate = await make_estimate(db_session)
    version = await make_version(db_session, estimate, quote_items)

    result = await ConversionPipeline(db_session, tenant_id).convert(estimate.id, version.id)

    wo_lines = await list_work_order_snapshots(db_session, tenant_id, result.work_order_ids[0])
    assert [line.title for line in wo_lines] == ["First-fix carpentry", "Second-fix carpentry"]
    assert [line.sort_order for line in wo_lines] == [0, 1]
    assert wo_lines[0].source_estimate_item_id == quote_items[0]["id"]
    assert wo_lines[0].source_quote_version_id == version.id
    assert wo_lines[0].quantity == Decimal("16")
    assert wo_lines[0].line_cost == Decimal("400")

    po_lines = await list_purchase_order_snapshots(db_session, tenant_id, result.purchase_order_ids[0])
    assert len(po_lines) == 1
    assert po_lines[0].unit == "sheet"
    assert po_lines[0].unit_cost == Decimal("6.25")


@pytest.mark.asyncio
async def test_snapshots_come_from_version_not_live_estimate(db_session, tenant_id):
    estimate = await make_estimate(db_session)
    item = await make_item(
        db_session,
        estimate,
        "labour",
        "Tiling",
        quantity="10",
        unit_cost="25",
        unit="hr",
        line_cost=Decimal("250"),
        line_total=Decimal("300"),
    )
    version = await create_quote_version(db_session, tenant_id, estimate.id)

    item.quantity = Decimal("40")
    item.unit_cost = Decimal("99")
    item.line_cost = Decimal("3960")
    item.line_total = Decimal("9999")
    await db_session.flush()

    result = await ConversionPipeline(db_session, tenant_id).convert(estimate.id, version.id)

    lines = await list_work_order_snapshots(db_session, tenant_id, result.work_order_ids[0])
    assert len(lines) == 1
    assert lines[0].source_estimate_item_id == str(item.id)
    assert lines[0].quantity == Decimal("10")
    assert lines[0].unit_cost == Decimal("25")
    assert lines[0].line_cost == Decimal("250")
    assert lines[0].line_total == Decimal("300")

    work_order = (
        await db_session.execute(select(WorkOrderModel).where(WorkOrderModel.id == result.work_order_ids[0]))
    ).scalar_one()
    assert work_order.subtotal == Decimal("300.00")


@pytest.mark.asyncio
async def test_purchase_order_updates_last_buy_cost(db_session, tenant_id, quote_items):
    estimate = await make_estimate(db_session)
    version = await make_version(db_session, estimate, quote_items)
    await GroupRuleRepository(db_session).create_rule(
        tenant_id, "purchase_order", "Jewson", priority=10, match_title_contains="plasterboard"
    )

    result = await ConversionPipeline(db_session, tenant_id).convert(estimate.id, version.id)

    cached = await LastBuyCostCache(db_session).get(tenant_id, "PLASTERBOARD 12.5MM", "sheet")
    assert cached is not None
    assert cached.last_buy_cost == Decimal("6.25")
    assert cached.source_supplier == "Jewson"
    assert cached.source_purchase_order_id == result.purchase_order_ids[0]
    # Labour never reaches the cache
    assert await LastBuyCostCache(db_session).get(tenant_id, "First-fix carpentry") is None


@pytest.mark.asyncio
async def test_custom_rules_split_work_orders_by_party(db_session, tenant_id):
    items = [
        snapshot_item("labour", "Rewire kitchen", "900", section_id="s-elec"),
        snapshot_item("labour", "Skim walls", "400", section_id="s-plaster"),
        snapshot_item("subcontract", "Sockets", "120", section_id="s-elec"),
    ]
    sections = [
        {"id": "s-elec", "title": "Electrical"},
        {"id": "s-plaster", "title": "Plastering"},
    ]
    estimate = await make_estimate(db_session)
    version = await make_version(db_session, estimate, items, sections=sections)
    await GroupRuleRepository(db_session).create_rule(
        tenant_id,
        "work_order",
        "Bright Sparks Ltd",
        priority=1,
        match_section_contains="electrical",
        target_document_title="Electrical Works",
    )

    result = await ConversionPipeline(db_session, tenant_id).convert(estimate.id, version.id)

    orders = (
        await db_session.execute(
            select(WorkOrderModel).where(WorkOrderModel.id.in_(result.work_order_ids))
        )
    ).scalars().all()
    by_party = {order.assigned_to_name: order for order in orders}
    assert set(by_party) == {"Bright Sparks Ltd", "Unassigned Labour"}
    assert by_party["Bright Sparks Ltd"].title == "Electrical Works"
    assert by_party["Bright Sparks Ltd"].subtotal == Decimal("1020.00")
    assert by_party["Unassigned Labour"].subtotal == Decimal("400.00")
    assert result.purchase_order_ids == []


@pytest.mark.asyncio
async def test_conversion_logs_activity(db_session, tenant_id, quote_items):
    estimate = await make_estimate(db_session)
    version = await make_version(db_session, estimate, quote_items)

    result = await ConversionPipeline(db_session, tenant_id).convert(estimate.id, version.id)

    activity = await list_activity(db_session, tenant_id, "estimate", estimate.id)
    assert [a.action for a in activity] == ["converted"]
    assert activity[0].message == "Estimate converted to project."
    assert activity[0].details == {
        "project_id": str(result.project_id),
        "quote_version_id": str(version.id),
        "version_number": 1,
    }


@pytest.mark.asyncio
async def test_second_conversion_rejected(db_session, tenant_id, quote_items):
    estimate = await make_estimate(db_session)
    version = await make_version(db_session, estimate, quote_items)
    pipeline = ConversionPipeline(db_session, tenant_id)
    first = await pipeline.convert(estimate.id, version.id)

    with pytest.raises(AlreadyConvertedError) as exc_info:
        await pipeline.convert(estimate.id, version.id)

    assert exc_info.value.project_id == first.project_id
    projects = (await db_session.execute(select(ProjectModel))).scalars().all()
    assert len(projects) == 1


@pytest.mark.asyncio
async def test_version_must_belong_to_estimate(db_session, tenant_id, quote_items):
    estimate = await make_estimate(db_session)
    other = await make_estimate(db_session)
    version = await make_version(db_session, other, quote_items)

    with pytest.raises(NotFoundError):
        await ConversionPipeline(db_session, tenant_id).convert(estimate.id, version.id)

    with pytest.raises(NotFoundError):
        await ConversionPipeline(db_session, tenant_id).convert(estimate.id, uuid4())


@pytest.mark.asyncio
async def test_convert_permission_enforced_when_lookup_given(db_session, tenant_id, quote_items):
    estimate = await make_estimate(db_session)
    version = await make_version(db_session, estimate, quote_items)
    pipeline = ConversionPipeline(db_session, tenant_id, RolePermissionChecker("user"))

    with pytest.raises(UnauthorizedError):
        await pipeline.convert(estimate.id, version.id)

    projects = (await db_session.execute(select(ProjectModel))).scalars().all()
    assert projects == []


@pytest.mark.asyncio
async def test_failure_after_link_is_partial_and_keeps_link(db_session, tenant_id, quote_items):
    estimate = await make_estimate(db_session)
    version = await make_version(db_session, estimate, quote_items)
    pipeline = ConversionPipeline(db_session, tenant_id)

    with patch(
        "constructos.conversion.pipeline.create_purchase_order_snapshots",
        side_effect=RuntimeError("snapshot store unavailable"),
    ):
        with pytest.raises(PartialConversionError) as exc_info:
            await pipeline.convert(estimate.id, version.id)

    err = exc_info.value
    assert err.stage == "purchase_orders"
    assert "snapshot store unavailable" in err.message
    await db_session.rollback()

    # Link was committed before the failing step; reconciliation is manual
    refreshed = (
        await db_session.execute(select(EstimateModel).where(EstimateModel.id == estimate.id))
    ).scalar_one()
    await db_session.refresh(refreshed)
    assert refreshed.converted_project_id == err.project_id

    with pytest.raises(AlreadyConvertedError):
        await pipeline.convert(estimate.id, version.id)


def test_group_totals_sums_line_totals():
    totals = group_totals(
        [{"line_total": "10.005"}, {"line_total": 5}, {"line_total": None}], Decimal("20")
    )

    assert totals.subtotal == Decimal("15.01")
    assert totals.vat_amount == Decimal("3.00")
    assert totals.total == Decimal("18.01")
