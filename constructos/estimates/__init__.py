"""Estimates and their quote versions."""

from constructos.estimates.service import get_estimate, list_estimate_items, recalculate_estimate
from constructos.estimates.versions import (
    create_quote_version,
    get_quote_version,
    list_quote_versions,
    mark_version_status,
)

__all__ = [
    "create_quote_version",
    "get_estimate",
    "get_quote_version",
    "list_estimate_items",
    "list_quote_versions",
    "mark_version_status",
    "recalculate_estimate",
]
