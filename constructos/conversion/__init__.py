"""Quote-to-project conversion."""

from constructos.conversion.last_buy import LastBuyCostCache
from constructos.conversion.pipeline import ConversionPipeline, ConversionResult, group_totals
from constructos.conversion.snapshots import (
    create_purchase_order_snapshots,
    create_work_order_snapshots,
    list_purchase_order_snapshots,
    list_work_order_snapshots,
)

__all__ = [
    "ConversionPipeline",
    "ConversionResult",
    "LastBuyCostCache",
    "create_purchase_order_snapshots",
    "create_work_order_snapshots",
    "group_totals",
    "list_purchase_order_snapshots",
    "list_work_order_snapshots",
]
