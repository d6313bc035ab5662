"""
Interval Overlap Resolver and Bill Overlap Finder.

Pure functions with deterministic behavior. No I/O.

Dates are calendar days and every range is closed: a bill from Jun 1 to
Jun 15 covers 15 days.  ``resolve_overlap`` intersects one bill with a
billing window; ``find_overlaps`` runs it over a property's bills.

Invariants:
    - ``resolve_overlap`` returns None iff ``bill_end < period_start`` or
      ``bill_start > period_end``.  Otherwise
      ``1 <= overlap_days <= min(period_days, bill_days)``.
    - Each bill is intersected once with the full window; it never appears
      twice in a scan.
    - Scan output keeps input (upload) order.
    - Bills without a usable window are excluded and counted, never raised.

Usage:
    from billing_engines.overlap import find_overlaps

    scan = find_overlaps(DateWindow(date(2024, 6, 1), date(2024, 6, 30)), bills)
    scan.allocations, scan.excluded_bill_count, scan.coverage
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal, localcontext

from billing_engines.coverage import compute_coverage
from billing_engines.tracer import traced_engine
from billing_kernel.domain.billing import (
    BillAllocation,
    DateWindow,
    OverlapResult,
    OverlapScan,
    UtilityBillRecord,
)
from billing_kernel.domain.values import calc_context
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.overlap")


def resolve_overlap(
    period_start: date,
    period_end: date,
    bill_start: date,
    bill_end: date,
) -> OverlapResult | None:
    """
    Intersect a billing window with one bill's window.

    Raises:
        ValueError: if either range is reversed.
    """
    if period_start > period_end:
        raise ValueError(f"Period start {period_start} is after end {period_end}")
    if bill_start > bill_end:
        raise ValueError(f"Bill start {bill_start} is after end {bill_end}")

    if bill_end < period_start or bill_start > period_end:
        return None

    overlap_start = max(period_start, bill_start)
    overlap_end = min(period_end, bill_end)
    overlap_days = (overlap_end - overlap_start).days + 1
    bill_total_days = (bill_end - bill_start).days + 1

    with localcontext(calc_context()):
        percentage = Decimal(overlap_days) / Decimal(bill_total_days)

    return OverlapResult(
        overlap_start=overlap_start,
        overlap_end=overlap_end,
        overlap_days=overlap_days,
        bill_total_days=bill_total_days,
        overlap_percentage=percentage,
    )


def allocate_bill(bill: UtilityBillRecord, overlap: OverlapResult) -> BillAllocation:
    """The bill's property-wide share attributable to ``overlap``."""
    with localcontext(calc_context()):
        amounts = bill.shared_costs.scaled(overlap.overlap_percentage)
    return BillAllocation(
        utility_bill_id=bill.bill_id,
        overlap_start=overlap.overlap_start,
        overlap_end=overlap.overlap_end,
        overlap_days=overlap.overlap_days,
        total_days=overlap.bill_total_days,
        allocation_percentage=overlap.overlap_percentage,
        allocated_amounts=amounts,
        kilowatt_hours=bill.kilowatt_hours,
        rate=bill.cost_per_kilowatt_hour,
    )


@traced_engine("bill_overlap", "1.0", fingerprint_fields=("window", "bills"))
def find_overlaps(window: DateWindow, bills: Iterable[UtilityBillRecord]) -> OverlapScan:
    """
    Allocations of every bill overlapping ``window``, in input order.

    Bills with a missing or reversed date range are excluded and reported
    in ``excluded_bill_ids``.
    """
    allocations: list[BillAllocation] = []
    excluded: list[str] = []
    non_overlapping = 0

    for bill in bills:
        bill_window = bill.window
        if bill_window is None:
            excluded.append(bill.bill_id)
            logger.warning(
                "bill_excluded_missing_dates",
                extra={
                    "utility_bill_id": bill.bill_id,
                    "start_date": bill.start_date,
                    "end_date": bill.end_date,
                },
            )
            continue

        overlap = resolve_overlap(window.start, window.end, bill_window.start, bill_window.end)
        if overlap is None:
            non_overlapping += 1
            continue

        allocations.append(allocate_bill(bill, overlap))

    coverage = compute_coverage(window, allocations)

    logger.info(
        "bill_overlap_scanned",
        extra={
            "window_start": window.start,
            "window_end": window.end,
            "overlapping_bill_count": len(allocations),
            "excluded_bill_count": len(excluded),
            "non_overlapping_count": non_overlapping,
            "covered_days": coverage.covered_days,
            "period_days": coverage.period_days,
        },
    )

    return OverlapScan(
        window=window,
        allocations=tuple(allocations),
        excluded_bill_ids=tuple(excluded),
        non_overlapping_count=non_overlapping,
        coverage=coverage,
    )
