"""Work Order / Purchase Order grouping rules."""

from constructos.grouping.repository import GroupRuleRepository
from constructos.grouping.resolver import (
    UNASSIGNED_LABOUR,
    UNASSIGNED_MATERIALS,
    resolve_grouping,
    rule_matches,
)

__all__ = [
    "GroupRuleRepository",
    "UNASSIGNED_LABOUR",
    "UNASSIGNED_MATERIALS",
    "resolve_grouping",
    "rule_matches",
]
