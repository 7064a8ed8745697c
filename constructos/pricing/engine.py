"""Estimate totals aggregation over the per-line calculator."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from constructos.models import EstimateTotals, LineInput, PricingSettings
from constructos.pricing.breakdown import price_line


def compute_estimate_totals(
    settings: PricingSettings, lines: Iterable[LineInput]
) -> EstimateTotals:
    """Price every line and sum the results.

    Ex-VAT prices and VAT are summed independently rather than re-applying the
    VAT rate to the subtotal, since each line is rounded on its own.
    """
    breakdowns = [price_line(settings, line) for line in lines]
    subtotal_ex_vat = sum((b.price_ex_vat for b in breakdowns), Decimal("0"))
    vat = sum((b.vat for b in breakdowns), Decimal("0"))
    return EstimateTotals(
        breakdowns=breakdowns,
        subtotal_ex_vat=subtotal_ex_vat,
        vat=vat,
        total=subtotal_ex_vat + vat,
    )
