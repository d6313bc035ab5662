"""
Calculation breakdown rendering.

Pure function, deterministic, no I/O.  The text is stored on the invoice
as what the operator saw at creation time and can be regenerated from the
invoice's stored columns:

    Billing Period: 2024-06-01 to 2024-06-30
    Tenant Usage: 1,000 kWh
    Property Total: 25,000 kWh
    Tenant Ratio: 4.00%
    Average Rate: $0.1100/kWh
    Direct Cost: $110.00
    Overlapping Bills: 2

A ``Warnings:`` block follows, after a blank line, only when the invoice
relied on a fallback or incomplete data.
"""

from __future__ import annotations

from decimal import Decimal

from billing_kernel.domain.billing import Degradation
from billing_kernel.domain.invoice import InvoiceFigures
from billing_kernel.domain.values import HUNDRED, calc_context, quantize


def _usage(value: Decimal) -> str:
    """Thousands separators, no forced decimals (``1234.5`` -> ``1,234.5``)."""
    return format(value.normalize(calc_context()), ",f")


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def _warning_lines(figures: InvoiceFigures, currency_symbol: str) -> list[str]:
    lines = []
    for degradation in figures.degradations:
        if degradation is Degradation.FALLBACK_RATE:
            lines.append(
                f"- Fallback rate {currency_symbol}{quantize(figures.average_rate, 4):f}/kWh "
                "used: no overlapping bill supplied a rate"
            )
        elif degradation is Degradation.EXCLUDED_BILLS:
            lines.append(
                f"- {_plural(figures.excluded_bill_count, 'bill')} excluded: "
                "missing billing dates"
            )
        elif degradation is Degradation.ZERO_PROPERTY_USAGE:
            lines.append("- Property usage is zero: tenant ratio set to 0")
        elif degradation is Degradation.MISSING_BILL_USAGE:
            lines.append(
                f"- {_plural(figures.bills_without_usage_count, 'overlapping bill')} "
                "missing usage"
            )
        elif degradation is Degradation.PARTIAL_COVERAGE:
            lines.append(
                f"- Partial coverage: {figures.uncovered_days} of "
                f"{figures.period_days} days not covered by any bill"
            )
    return lines


def render_breakdown(figures: InvoiceFigures, currency_symbol: str = "$") -> str:
    lines = [
        f"Billing Period: {figures.period_start.isoformat()} to {figures.period_end.isoformat()}",
        f"Tenant Usage: {_usage(figures.tenant_usage_kwh)} kWh",
        f"Property Total: {quantize(figures.total_property_kwh, 0):,f} kWh",
        f"Tenant Ratio: {quantize(figures.tenant_ratio * HUNDRED, 2):f}%",
        f"Average Rate: {currency_symbol}{quantize(figures.average_rate, 4):f}/kWh",
        f"Direct Cost: {currency_symbol}{quantize(figures.direct_cost, 2):f}",
        f"Overlapping Bills: {figures.overlapping_bill_count}",
    ]
    warnings = _warning_lines(figures, currency_symbol)
    if warnings:
        lines.append("")
        lines.append("Warnings:")
        lines.extend(warnings)
    return "\n".join(lines)
