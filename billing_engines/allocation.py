"""
Cost Allocator -- tenant share of a property's utility costs for one window.

Pure functions with deterministic behavior. No I/O.

Given the tenant's metered usage and the bill allocations from the overlap
finder, the allocator computes:

    1. total_property_kwh = sum(bill kWh * allocation percentage)
    2. tenant_ratio       = tenant kWh / total_property_kwh   (0 when total is 0)
    3. average_rate       = sum(rate * overlap_days) / sum(overlap_days),
                            over bills with a rate; the configured fallback
                            rate when no bill has one
    4. direct_cost        = tenant kWh * average_rate
    5. allocated cost     = sum(bill allocated amount) * tenant_ratio,
                            for each shared-cost category
    6. total_amount       = direct_cost + sum(allocated costs)

Arithmetic runs in a 50-digit Decimal context with no intermediate
rounding.  Direct cost and each allocated category are then rounded once
to storage scale (9 places) and the total is their exact sum, so
``total_amount == direct_cost + allocated_costs.total()`` holds without
residual before and after persistence.

Sums run over allocations sorted by bill id, so shuffling the input
produces identical figures.

Failure modes:
    - Bad bill data never raises: absent usage counts as zero, absent rate
      triggers the fallback, zero property usage forces a zero ratio.  Each
      case is flagged on the result.
    - ValueError for negative tenant usage or a negative fallback rate
      (caller error).

Usage:
    allocator = CostAllocator(fallback_rate=Decimal("0.1479"))
    result = allocator.allocate(Decimal("1000"), scan.allocations)
    result.total_amount, result.used_fallback_rate, result.degradations
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal, localcontext

from billing_engines.tracer import traced_engine
from billing_kernel.domain.billing import (
    AllocationResult,
    BillAllocation,
    SharedCosts,
)
from billing_kernel.domain.values import ZERO, calc_context, to_money
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")

DEFAULT_FALLBACK_RATE = Decimal("0.1479")


class CostAllocator:
    """Pro-rata cost allocation with a configured fallback rate."""

    def __init__(self, fallback_rate: Decimal = DEFAULT_FALLBACK_RATE):
        fallback_rate = Decimal(fallback_rate)
        if fallback_rate < ZERO:
            raise ValueError(f"fallback_rate must be non-negative, got {fallback_rate}")
        self.fallback_rate = fallback_rate

    @traced_engine(
        "cost_allocation", "1.0",
        fingerprint_fields=("tenant_usage_kwh", "allocations"),
    )
    def allocate(
        self,
        tenant_usage_kwh: Decimal,
        allocations: Sequence[BillAllocation],
    ) -> AllocationResult:
        tenant_usage_kwh = Decimal(tenant_usage_kwh)
        if tenant_usage_kwh < ZERO:
            raise ValueError(f"tenant_usage_kwh must be non-negative, got {tenant_usage_kwh}")

        ordered = sorted(allocations, key=lambda a: a.utility_bill_id)

        with localcontext(calc_context()):
            total_property_kwh = sum((a.allocated_kwh for a in ordered), ZERO)

            if total_property_kwh > ZERO:
                tenant_ratio = tenant_usage_kwh / total_property_kwh
            else:
                tenant_ratio = ZERO

            rated = [a for a in ordered if a.rate is not None]
            rated_days = sum(a.overlap_days for a in rated)
            if rated and rated_days > 0:
                weighted = sum((a.rate * a.overlap_days for a in rated), ZERO)
                average_rate = weighted / Decimal(rated_days)
                used_fallback = False
            else:
                average_rate = self.fallback_rate
                used_fallback = True

            direct_cost = to_money(tenant_usage_kwh * average_rate)

            pooled = sum((a.allocated_amounts for a in ordered), SharedCosts())
            allocated_costs = pooled.map(lambda amount: to_money(amount * tenant_ratio))

            total_amount = direct_cost + allocated_costs.total()

        bills_without_usage = tuple(
            a.utility_bill_id for a in allocations if a.kilowatt_hours is None
        )
        bills_without_rate = tuple(
            a.utility_bill_id for a in allocations if a.rate is None
        )

        if used_fallback:
            logger.warning(
                "allocation_fallback_rate_used",
                extra={
                    "fallback_rate": str(self.fallback_rate),
                    "overlapping_bill_count": len(allocations),
                },
            )
        if total_property_kwh == ZERO:
            logger.warning(
                "allocation_zero_property_usage",
                extra={"overlapping_bill_count": len(allocations)},
            )

        logger.info(
            "allocation_completed",
            extra={
                "tenant_usage_kwh": str(tenant_usage_kwh),
                "total_property_kwh": str(total_property_kwh),
                "direct_cost": str(direct_cost),
                "total_amount": str(total_amount),
            },
        )

        return AllocationResult(
            tenant_usage_kwh=tenant_usage_kwh,
            total_property_kwh=total_property_kwh,
            tenant_ratio=tenant_ratio,
            average_rate=average_rate,
            used_fallback_rate=used_fallback,
            direct_cost=direct_cost,
            allocated_costs=allocated_costs,
            total_amount=total_amount,
            allocations=tuple(allocations),
            bills_without_usage=bills_without_usage,
            bills_without_rate=bills_without_rate,
        )
