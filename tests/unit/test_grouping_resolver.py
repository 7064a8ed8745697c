"""Unit tests for the Work/Purchase Order grouping resolver."""

from __future__ import annotations

from constructos.grouping.resolver import (
    UNASSIGNED_LABOUR,
    UNASSIGNED_MATERIALS,
    resolve_grouping,
    rule_matches,
)
from constructos.models import GroupRule, GroupRuleType


def _item(item_id: str, item_type: str, title: str, section_id: str | None = None, tags=None) -> dict:
    return {
        "id": item_id,
        "item_type": item_type,
        "title": title,
        "section_id": section_id,
        "tags": tags,
    }


def _rule(priority: int, party: str, rule_type=GroupRuleType.PURCHASE_ORDER, **predicates) -> GroupRule:
    return GroupRule(rule_type=rule_type, priority=priority, target_party_name=party, **predicates)


class TestFirstMatchWins:
    def test_lower_priority_number_beats_more_specific_rule(self):
        rules = [
            _rule(2, "Paint Supplies Ltd", match_item_type="material", match_title_contains="paint"),
            _rule(1, "Builders Merchant", match_item_type="material"),
        ]
        items = [_item("i1", "material", "Paint, 5L")]

        plan = resolve_grouping(rules, items, [])

        assert len(plan.purchase_orders) == 1
        assert plan.purchase_orders[0].party_name == "Builders Merchant"
        assert plan.purchase_orders[0].item_ids == ["i1"]

    def test_disabled_rules_ignored(self):
        rules = [
            _rule(1, "Off", match_item_type="material", is_enabled=False),
            _rule(2, "On", match_item_type="material"),
        ]

        plan = resolve_grouping(rules, [_item("i1", "material", "Sand")], [])

        assert plan.purchase_orders[0].party_name == "On"


class TestFallbackBuckets:
    def test_unmatched_labour_goes_to_unassigned_labour(self):
        plan = resolve_grouping([], [_item("l1", "labour", "Carpenter")], [])

        assert plan.purchase_orders == []
        assert len(plan.work_orders) == 1
        group = plan.work_orders[0]
        assert group.party_name == UNASSIGNED_LABOUR
        assert group.title == f"{UNASSIGNED_LABOUR} Work Order"
        assert group.item_ids == ["l1"]

    def test_subcontract_joins_labour_and_plant_joins_materials(self):
        items = [
            _item("a", "labour", "Fitter"),
            _item("b", "subcontract", "Electrician"),
            _item("c", "material", "Screws"),
            _item("d", "plant", "Mini digger"),
        ]

        plan = resolve_grouping([], items, [])

        assert [g.item_ids for g in plan.work_orders] == [["a", "b"]]
        assert [g.item_ids for g in plan.purchase_orders] == [["c", "d"]]
        assert plan.purchase_orders[0].party_name == UNASSIGNED_MATERIALS

    def test_unknown_item_type_without_match_is_skipped(self):
        plan = resolve_grouping([], [_item("x", "combined", "Narrative")], [])

        assert plan.is_empty


class TestPredicates:
    def test_section_title_match_is_case_insensitive(self):
        rule = _rule(1, "Sparks", GroupRuleType.WORK_ORDER, match_section_contains="ELECTRICAL")
        sections = [{"id": "s1", "title": "First-fix electrical"}]
        items = [_item("i1", "labour", "Cable runs", section_id="s1")]

        plan = resolve_grouping([rule], items, sections)

        assert plan.work_orders[0].party_name == "Sparks"

    def test_tag_match_against_list_and_string(self):
        rule = _rule(1, "Roofer", GroupRuleType.WORK_ORDER, match_tag_contains="roof")

        assert rule_matches(rule, _item("a", "labour", "x", tags=["external", "Roofing"]), "")
        assert rule_matches(rule, _item("b", "labour", "x", tags="roof,slate"), "")
        assert not rule_matches(rule, _item("c", "labour", "x", tags=None), "")

    def test_every_declared_predicate_must_hold(self):
        rule = _rule(1, "P", match_item_type="material", match_title_contains="board")

        assert rule_matches(rule, _item("a", "material", "Plasterboard 12.5mm"), "")
        assert not rule_matches(rule, _item("b", "plant", "Plasterboard lifter"), "")
        assert not rule_matches(rule, _item("c", "material", "Timber"), "")

    def test_rule_with_no_predicates_matches_everything(self):
        rule = _rule(1, "Main contractor", GroupRuleType.WORK_ORDER)

        plan = resolve_grouping([rule], [_item("a", "material", "Sand")], [])

        assert plan.purchase_orders == []
        assert plan.work_orders[0].item_ids == ["a"]


class TestGroupTitles:
    def test_explicit_document_title_from_rule(self):
        rule = _rule(1, "Jewson", match_item_type="material", target_document_title="Drylining Materials")

        plan = resolve_grouping([rule], [_item("a", "material", "Board")], [])

        assert plan.purchase_orders[0].title == "Drylining Materials"

    def test_default_title_uses_party_name(self):
        rule = _rule(1, "Jewson", match_item_type="material")

        plan = resolve_grouping([rule], [_item("a", "material", "Board")], [])

        assert plan.purchase_orders[0].title == "Jewson Purchase Order"

    def test_identical_inputs_identical_plan(self):
        rules = [_rule(1, "A", match_item_type="material"), _rule(5, "B", GroupRuleType.WORK_ORDER)]
        items = [_item(str(n), t, f"Item {n}") for n, t in enumerate(["material", "labour", "plant"])]

        assert resolve_grouping(rules, items, []) == resolve_grouping(rules, items, [])
