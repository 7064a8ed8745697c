"""Variations (change orders)."""

from constructos.variations.service import (
    create_variation,
    get_variation,
    list_variations,
    variation_totals,
)

__all__ = ["create_variation", "get_variation", "list_variations", "variation_totals"]
