"""Per-line pricing calculator.

Turns one line's quantity/cost inputs plus tenant pricing settings into a full
cost, markup and VAT breakdown. Pure: no I/O, no shared state.

Order of computation:
    base -> +wastage -> +labour burden (labour only) -> +overhead
    -> price ex VAT (fixed price, or cost x (1 + margin)) -> rounding -> VAT
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from constructos.models import (
    ItemType,
    LineBreakdown,
    LineInput,
    PricingSettings,
    RoundingMode,
)

_HUNDRED = Decimal("100")
_ZERO = Decimal("0")

ROUNDING_STEPS: dict[RoundingMode, Decimal] = {
    RoundingMode.NEAREST_1: Decimal("1"),
    RoundingMode.NEAREST_5: Decimal("5"),
    RoundingMode.NEAREST_10: Decimal("10"),
}


def round_price(mode: RoundingMode | str, value: Decimal) -> Decimal:
    """Round an ex-VAT price to the step implied by ``mode``.

    Halves round away from zero. ``none`` returns the value untouched.
    Idempotent: rounding an already rounded value returns it unchanged.
    """
    step = ROUNDING_STEPS.get(RoundingMode(mode))
    if step is None:
        return value
    return (value / step).quantize(Decimal("1"), rounding=ROUND_HALF_UP) * step


def effective_wastage_pct(settings: PricingSettings, line: LineInput) -> Decimal:
    if line.wastage_pct_override is not None:
        return line.wastage_pct_override
    return Decimal(settings.wastage_defaults.get(line.category or "", _ZERO))


def effective_margin_pct(settings: PricingSettings, line: LineInput) -> Decimal:
    if line.markup_pct_override is not None:
        return line.markup_pct_override
    return settings.margin_pct


def price_line(settings: PricingSettings, line: LineInput) -> LineBreakdown:
    """Price a single line.

    A fixed ex-VAT price always wins over cost-plus pricing, whatever the
    pricing mode, but wastage, burden and overhead are still accrued on the cost
    side so the breakdown stays auditable.

    Args:
        settings: Tenant pricing settings
        line: Line inputs (missing numbers already coerced to zero)

    Returns:
        LineBreakdown with ``total_inc_vat == price_ex_vat + vat``
    """
    base_cost = line.quantity * line.unit_cost

    wastage_cost = base_cost * (effective_wastage_pct(settings, line) / _HUNDRED)
    cost_before_burden = base_cost + wastage_cost

    if line.item_type == ItemType.LABOUR:
        labour_burden_cost = cost_before_burden * (settings.labour_burden_pct / _HUNDRED)
    else:
        labour_burden_cost = _ZERO
    cost_after_burden = cost_before_burden + labour_burden_cost

    overhead_cost = cost_after_burden * (settings.overhead_pct / _HUNDRED)
    cost_after_overhead = cost_after_burden + overhead_cost

    margin_pct = effective_margin_pct(settings, line) / _HUNDRED
    has_fixed_price = line.fixed_price_ex_vat is not None

    if has_fixed_price:
        price_ex_vat = line.fixed_price_ex_vat
    else:
        price_ex_vat = cost_after_overhead * (1 + margin_pct)

    price_ex_vat = round_price(settings.rounding_mode, price_ex_vat)

    vat = price_ex_vat * (settings.vat_rate / _HUNDRED)
    total_inc_vat = price_ex_vat + vat

    # Never show a negative margin when a fixed price undercuts cost
    if has_fixed_price:
        margin_cost = max(_ZERO, price_ex_vat - cost_after_overhead)
    else:
        margin_cost = cost_after_overhead * margin_pct

    return LineBreakdown(
        base_cost=base_cost,
        wastage_cost=wastage_cost,
        labour_burden_cost=labour_burden_cost,
        overhead_cost=overhead_cost,
        margin_cost=margin_cost,
        price_ex_vat=price_ex_vat,
        vat=vat,
        total_inc_vat=total_inc_vat,
    )
