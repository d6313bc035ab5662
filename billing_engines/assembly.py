"""
Invoice Assembler -- builds an invoice draft from computed figures.

Pure functions with deterministic behavior. No I/O.

The assembler takes the selected billing periods, the overlap scan over
their envelope and the allocation result, and produces an ``InvoiceDraft``:
figures rounded to their storage scales, the rendered calculation
breakdown, and the allocation trail.  The invoice number is allocated by
the caller and passed in.

Invariants:
    - The breakdown is rendered from exactly the figures stored on the
      draft, so regenerating it from the persisted row is byte-identical.
    - ``total_amount == direct_cost + allocated_costs.total()``.
    - Multi-period invoices cover the envelope of their periods (earliest
      start to latest end) and the sum of the periods' usage.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from billing_engines.breakdown import render_breakdown
from billing_engines.tracer import traced_engine
from billing_kernel.domain.billing import AllocationResult, DateWindow, OverlapScan
from billing_kernel.domain.invoice import InvoiceDraft, InvoiceFigures
from billing_kernel.domain.values import (
    KWH_PLACES,
    RATE_PLACES,
    RATIO_PLACES,
    ZERO,
    quantize,
)
from billing_kernel.exceptions import EmptyBillingPeriodSelectionError
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.assembly")


class PeriodLike(Protocol):
    id: UUID
    start_date: date
    end_date: date
    kilowatt_hours: Decimal


def period_envelope(periods: Sequence[PeriodLike]) -> DateWindow:
    """Earliest start to latest end of the selected periods."""
    if not periods:
        raise EmptyBillingPeriodSelectionError()
    return DateWindow.envelope(DateWindow(p.start_date, p.end_date) for p in periods)


def total_period_usage(periods: Sequence[PeriodLike]) -> Decimal:
    return sum((p.kilowatt_hours for p in periods), ZERO)


def build_figures(scan: OverlapScan, allocation: AllocationResult) -> InvoiceFigures:
    """Invoice figures at storage scale."""
    return InvoiceFigures(
        period_start=scan.window.start,
        period_end=scan.window.end,
        tenant_usage_kwh=quantize(allocation.tenant_usage_kwh, KWH_PLACES),
        total_property_kwh=quantize(allocation.total_property_kwh, KWH_PLACES),
        tenant_ratio=quantize(allocation.tenant_ratio, RATIO_PLACES),
        average_rate=quantize(allocation.average_rate, RATE_PLACES),
        direct_cost=allocation.direct_cost,
        overlapping_bill_count=scan.overlapping_bill_count,
        used_fallback_rate=allocation.used_fallback_rate,
        excluded_bill_count=scan.excluded_bill_count,
        bills_without_usage_count=len(allocation.bills_without_usage),
        period_days=scan.coverage.period_days,
        coverage_days=scan.coverage.covered_days,
    )


@traced_engine(
    "invoice_assembly", "1.0",
    fingerprint_fields=("property_id", "tenant_id", "invoice_number"),
)
def assemble_invoice(
    *,
    property_id: UUID,
    tenant_id: UUID,
    periods: Sequence[PeriodLike],
    scan: OverlapScan,
    allocation: AllocationResult,
    invoice_number: str,
    invoice_date: date,
    due_date: date | None = None,
    notes: str | None = None,
    currency_symbol: str = "$",
) -> InvoiceDraft:
    if not periods:
        raise EmptyBillingPeriodSelectionError()

    figures = build_figures(scan, allocation)
    breakdown = render_breakdown(figures, currency_symbol=currency_symbol)

    draft = InvoiceDraft(
        property_id=property_id,
        tenant_id=tenant_id,
        billing_period_ids=tuple(p.id for p in periods),
        invoice_number=invoice_number,
        invoice_date=invoice_date,
        figures=figures,
        allocated_costs=allocation.allocated_costs,
        total_amount=allocation.total_amount,
        allocations=allocation.allocations,
        calculation_breakdown=breakdown,
        due_date=due_date,
        notes=notes,
    )

    if draft.degradations:
        logger.warning(
            "invoice_assembled_low_confidence",
            extra={
                "invoice_number": invoice_number,
                "degradations": [d.value for d in draft.degradations],
            },
        )
    else:
        logger.info("invoice_assembled", extra={"invoice_number": invoice_number})
    return draft
