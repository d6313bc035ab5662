"""
Module: billing_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines: overlap
    resolution, bill coverage, pro-rata cost allocation, invoice numbering,
    breakdown rendering and invoice assembly.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel.domain, billing_kernel.exceptions and
    billing_kernel.logging_config.  MUST NOT import billing_services.

Invariants enforced:
    - Engines never read the wall clock.  Dates and epoch milliseconds are
      passed in by the caller.
    - Decimal-only arithmetic; floats never enter a calculation.
    - Identical inputs produce identical outputs.

Every engine entry point is wrapped in ``@traced_engine`` and emits a
BILLING_ENGINE_TRACE log record with an input fingerprint.
"""

from billing_engines.allocation import DEFAULT_FALLBACK_RATE, CostAllocator
from billing_engines.assembly import (
    assemble_invoice,
    build_figures,
    period_envelope,
    total_period_usage,
)
from billing_engines.breakdown import render_breakdown
from billing_engines.coverage import compute_coverage, covered_day_count
from billing_engines.invoice_number import InvoiceNumberGenerator, month_prefix, to_base36
from billing_engines.overlap import allocate_bill, find_overlaps, resolve_overlap
from billing_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "DEFAULT_FALLBACK_RATE",
    "CostAllocator",
    "assemble_invoice",
    "build_figures",
    "period_envelope",
    "total_period_usage",
    "render_breakdown",
    "compute_coverage",
    "covered_day_count",
    "InvoiceNumberGenerator",
    "month_prefix",
    "to_base36",
    "allocate_bill",
    "find_overlaps",
    "resolve_overlap",
    "compute_input_fingerprint",
    "traced_engine",
]
