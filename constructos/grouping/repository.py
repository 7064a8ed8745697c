"""Database operations for Work/Purchase Order grouping rules."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from constructos.db.models import GroupRuleModel
from constructos.errors import NotFoundError
from constructos.grouping.resolver import resolve_grouping
from constructos.models import GroupingPlan, GroupRule, GroupRuleType

logger = structlog.get_logger(__name__)

_UPDATABLE_FIELDS = {
    "is_enabled",
    "priority",
    "match_item_type",
    "match_section_contains",
    "match_title_contains",
    "match_tag_contains",
    "target_party_name",
    "target_document_title",
}
_REQUIRED_FIELDS = {"is_enabled", "priority", "target_party_name"}


class GroupRuleRepository:
    """Tenant-scoped grouping rule storage."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_rules(
        self,
        tenant_id: str,
        rule_type: GroupRuleType | str | None = None,
        include_disabled: bool = False,
    ) -> list[GroupRuleModel]:
        """Rules in evaluation order (priority ascending, then creation order)."""
        stmt = select(GroupRuleModel).where(GroupRuleModel.tenant_id == tenant_id)
        if not include_disabled:
            stmt = stmt.where(GroupRuleModel.is_enabled.is_(True))
        if rule_type is not None:
            stmt = stmt.where(GroupRuleModel.rule_type == GroupRuleType(rule_type).value)
        stmt = stmt.order_by(
            GroupRuleModel.priority.asc(),
            GroupRuleModel.created_at.asc(),
            GroupRuleModel.id.asc(),
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_rule(self, tenant_id: str, rule_id: UUID) -> GroupRuleModel:
        result = await self.session.execute(
            select(GroupRuleModel).where(
                GroupRuleModel.tenant_id == tenant_id, GroupRuleModel.id == rule_id
            )
        )
        rule = result.scalar_one_or_none()
        if rule is None:
            raise NotFoundError("Group rule", rule_id)
        return rule

    async def create_rule(
        self,
        tenant_id: str,
        rule_type: GroupRuleType | str,
        target_party_name: str,
        priority: int = 100,
        match_item_type: str | None = None,
        match_section_contains: str | None = None,
        match_title_contains: str | None = None,
        match_tag_contains: str | None = None,
        target_document_title: str | None = None,
    ) -> GroupRuleModel:
        if not target_party_name or not target_party_name.strip():
            raise ValueError("target_party_name is required")

        rule = GroupRuleModel(
            tenant_id=tenant_id,
            rule_type=GroupRuleType(rule_type).value,
            priority=priority,
            is_enabled=True,
            match_item_type=match_item_type,
            match_section_contains=match_section_contains,
            match_title_contains=match_title_contains,
            match_tag_contains=match_tag_contains,
            target_party_name=target_party_name.strip(),
            target_document_title=target_document_title,
        )
        self.session.add(rule)
        await self.session.flush()

        logger.info(
            "group_rule_created",
            tenant_id=tenant_id,
            rule_id=str(rule.id),
            rule_type=rule.rule_type,
            priority=priority,
        )
        return rule

    async def update_rule(self, tenant_id: str, rule_id: UUID, **patch: Any) -> GroupRuleModel:
        unknown = set(patch) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown group rule field(s): {', '.join(sorted(unknown))}")

        rule = await self.get_rule(tenant_id, rule_id)
        for field_name in _REQUIRED_FIELDS & set(patch):
            if patch[field_name] is None:
                raise ValueError(f"{field_name} cannot be null")
        if "target_party_name" in patch:
            party = patch["target_party_name"].strip()
            if not party:
                raise ValueError("target_party_name is required")
            patch["target_party_name"] = party

        for field_name, value in patch.items():
            setattr(rule, field_name, value)
        await self.session.flush()

        logger.info("group_rule_updated", tenant_id=tenant_id, rule_id=str(rule_id), fields=sorted(patch))
        return rule

    async def remove_rule(self, tenant_id: str, rule_id: UUID) -> None:
        result = await self.session.execute(
            delete(GroupRuleModel).where(
                GroupRuleModel.tenant_id == tenant_id, GroupRuleModel.id == rule_id
            )
        )
        if result.rowcount == 0:
            raise NotFoundError("Group rule", rule_id)
        logger.info("group_rule_removed", tenant_id=tenant_id, rule_id=str(rule_id))

    async def resolve(
        self,
        tenant_id: str,
        items: Sequence[Mapping[str, Any]],
        sections: Sequence[Mapping[str, Any]],
    ) -> GroupingPlan:
        """Resolve a grouping plan against the tenant's currently enabled rules."""
        rows = await self.list_rules(tenant_id)
        rules = [GroupRule.model_validate(row) for row in rows]
        return resolve_grouping(rules, items, sections)
