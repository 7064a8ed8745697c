"""Pricing calculator, totals aggregator and tenant settings."""

from constructos.pricing.breakdown import price_line, round_price
from constructos.pricing.engine import compute_estimate_totals

__all__ = ["compute_estimate_totals", "price_line", "round_price"]
