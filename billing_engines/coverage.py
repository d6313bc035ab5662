"""
Coverage Report -- how much of a billing window the overlapping bills cover.

Pure functions with deterministic behavior. No I/O.

Covered days are the size of the union of the bills' overlap ranges, so a
day covered by two bills counts once.  A window with uncovered days still
allocates; the gap is reported so the invoice can warn about it.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import timedelta
from decimal import Decimal, localcontext

from billing_kernel.domain.billing import BillAllocation, CoverageReport, DateWindow
from billing_kernel.domain.values import calc_context


def covered_day_count(allocations: Sequence[BillAllocation]) -> int:
    """Size of the union of ``[overlap_start, overlap_end]`` ranges."""
    ranges = sorted((a.overlap_start, a.overlap_end) for a in allocations)
    covered = 0
    current_start = current_end = None
    for start, end in ranges:
        if current_end is None or start > current_end + timedelta(days=1):
            if current_end is not None:
                covered += (current_end - current_start).days + 1
            current_start, current_end = start, end
        elif end > current_end:
            current_end = end
    if current_end is not None:
        covered += (current_end - current_start).days + 1
    return covered


def compute_coverage(
    window: DateWindow,
    allocations: Sequence[BillAllocation],
) -> CoverageReport:
    period_days = window.days
    covered = covered_day_count(allocations)
    with localcontext(calc_context()):
        percentage = Decimal(covered) / Decimal(period_days)
    return CoverageReport(
        period_days=period_days,
        covered_days=covered,
        coverage_percentage=percentage,
        bills_missing_usage=tuple(
            a.utility_bill_id for a in allocations if a.kilowatt_hours is None
        ),
        bills_missing_rate=tuple(
            a.utility_bill_id for a in allocations if a.rate is None
        ),
    )
