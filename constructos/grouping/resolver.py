"""Routes quote line items into Work Order and Purchase Order buckets.

Pure over its three inputs (rules, items, sections): identical inputs always
produce an identical plan. Rules are scanned in ascending priority and the
first rule whose every declared predicate holds wins, even when a later rule
is more specific.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import structlog

from constructos.models import GroupingPlan, GroupRule, GroupRuleType, PlanGroup

logger = structlog.get_logger(__name__)

UNASSIGNED_LABOUR = "Unassigned Labour"
UNASSIGNED_MATERIALS = "Unassigned Materials"

# Fallback bucket per item type when no rule matches
FALLBACK_BUCKETS: dict[str, tuple[GroupRuleType, str]] = {
    "labour": (GroupRuleType.WORK_ORDER, UNASSIGNED_LABOUR),
    "subcontract": (GroupRuleType.WORK_ORDER, UNASSIGNED_LABOUR),
    "material": (GroupRuleType.PURCHASE_ORDER, UNASSIGNED_MATERIALS),
    "plant": (GroupRuleType.PURCHASE_ORDER, UNASSIGNED_MATERIALS),
}

DEFAULT_TITLE_SUFFIX: dict[GroupRuleType, str] = {
    GroupRuleType.WORK_ORDER: "Work Order",
    GroupRuleType.PURCHASE_ORDER: "Purchase Order",
}


def rule_matches(rule: GroupRule, item: Mapping[str, Any], section_title: str) -> bool:
    """True when every predicate the rule declares holds for the item.

    Unset predicates are "don't care". Text predicates are case-insensitive
    substring matches.
    """
    if rule.match_item_type and item.get("item_type") != rule.match_item_type:
        return False
    if rule.match_title_contains and not _contains(item.get("title"), rule.match_title_contains):
        return False
    if rule.match_section_contains and not _contains(section_title, rule.match_section_contains):
        return False
    if rule.match_tag_contains and not _contains(_tag_string(item.get("tags")), rule.match_tag_contains):
        return False
    return True


def resolve_grouping(
    rules: Iterable[GroupRule],
    items: Sequence[Mapping[str, Any]],
    sections: Sequence[Mapping[str, Any]],
) -> GroupingPlan:
    """Partition item snapshots into named Work/Purchase Order groups.

    Args:
        rules: Persisted rules; disabled ones are ignored, the rest sorted by priority
        items: Quote version ``items_snapshot`` entries
        sections: Quote version ``sections_snapshot`` entries

    Returns:
        GroupingPlan with groups in first-seen order and item ids in input order
    """
    ordered_rules = sorted((r for r in rules if r.is_enabled), key=lambda r: r.priority)
    section_titles = {
        str(section.get("id")): str(section.get("title") or "") for section in sections
    }

    # (rule_type, party) -> (originating rule, item ids); dict keeps first-seen order
    buckets: dict[tuple[GroupRuleType, str], tuple[GroupRule | None, list[str]]] = {}
    skipped: list[str] = []

    for item in items:
        item_id = str(item.get("id"))
        section_title = section_titles.get(str(item.get("section_id")), "")

        matched = next(
            (rule for rule in ordered_rules if rule_matches(rule, item, section_title)), None
        )
        if matched is not None:
            key = (matched.rule_type, matched.target_party_name)
            origin = matched
        else:
            fallback = FALLBACK_BUCKETS.get(str(item.get("item_type") or ""))
            if fallback is None:
                skipped.append(item_id)
                continue
            key = fallback
            origin = None

        if key not in buckets:
            buckets[key] = (origin, [])
        buckets[key][1].append(item_id)

    plan = GroupingPlan()
    for (rule_type, party), (origin, item_ids) in buckets.items():
        group = PlanGroup(
            rule_type=rule_type,
            party_name=party,
            title=_group_title(origin, rule_type, party),
            item_ids=item_ids,
        )
        if rule_type is GroupRuleType.WORK_ORDER:
            plan.work_orders.append(group)
        else:
            plan.purchase_orders.append(group)

    logger.debug(
        "grouping_resolved",
        rules=len(ordered_rules),
        items=len(items),
        work_orders=len(plan.work_orders),
        purchase_orders=len(plan.purchase_orders),
        skipped=skipped,
    )
    return plan


def _group_title(origin: GroupRule | None, rule_type: GroupRuleType, party: str) -> str:
    if origin is not None and origin.target_document_title:
        return origin.target_document_title
    return f"{party} {DEFAULT_TITLE_SUFFIX[rule_type]}"


def _contains(haystack: Any, needle: str) -> bool:
    if haystack is None:
        return False
    return needle.lower() in str(haystack).lower()


def _tag_string(tags: Any) -> str:
    if tags is None:
        return ""
    if isinstance(tags, (list, tuple, set)):
        return ",".join(str(t) for t in tags)
    return str(tags)
