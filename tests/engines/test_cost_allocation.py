"""
Tests for the Cost Allocator.

Covers:
- The June worked example (110 direct + 8 tax = 118)
- Overlap-day weighted average rate
- Fallback rate when no bill supplies one
- Zero property usage
- Rounding and the total == components identity
- Input order independence
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from billing_engines.allocation import DEFAULT_FALLBACK_RATE, CostAllocator
from billing_kernel.domain.billing import BillAllocation, Degradation, SharedCosts


def _allocation(
    bill_id="a",
    overlap_days=30,
    total_days=30,
    kwh="1000",
    rate="0.10",
    state_sales_tax="0",
    delivery_charges="0",
):
    start = date(2024, 6, 1)
    with_pct = Decimal(overlap_days) / Decimal(total_days)
    return BillAllocation(
        utility_bill_id=bill_id,
        overlap_start=start,
        overlap_end=start + timedelta(days=overlap_days - 1),
        overlap_days=overlap_days,
        total_days=total_days,
        allocation_percentage=with_pct,
        allocated_amounts=SharedCosts(
            state_sales_tax=Decimal(state_sales_tax),
            delivery_charges=Decimal(delivery_charges),
        ),
        kilowatt_hours=None if kwh is None else Decimal(kwh),
        rate=None if rate is None else Decimal(rate),
    )


def _june_allocations():
    return [
        _allocation("a", 15, 15, kwh="15000", rate="0.12", state_sales_tax="100"),
        _allocation("b", 15, 30, kwh="20000", rate="0.10", state_sales_tax="100"),
    ]


class TestWorkedExample:

    def setup_method(self):
        self.allocator = CostAllocator()

    def test_property_total_and_ratio(self):
        result = self.allocator.allocate(Decimal("1000"), _june_allocations())

        assert result.total_property_kwh == Decimal("25000")
        assert result.tenant_ratio == Decimal("0.04")

    def test_average_rate_weighted_by_overlap_days(self):
        result = self.allocator.allocate(Decimal("1000"), _june_allocations())

        assert result.average_rate == Decimal("0.11")
        assert not result.used_fallback_rate

    def test_direct_and_shared_costs(self):
        result = self.allocator.allocate(Decimal("1000"), _june_allocations())

        assert result.direct_cost == Decimal("110")
        assert result.allocated_costs.state_sales_tax == Decimal("8")
        assert result.allocated_costs.delivery_charges == Decimal("0")
        assert result.total_amount == Decimal("118")

    def test_no_degradations(self):
        result = self.allocator.allocate(Decimal("1000"), _june_allocations())

        assert result.degradations == ()
        assert not result.is_low_confidence


class TestAverageRate:

    def setup_method(self):
        self.allocator = CostAllocator()

    def test_unequal_overlap_weights(self):
        allocations = [
            _allocation("a", overlap_days=10, rate="0.20"),
            _allocation("b", overlap_days=30, rate="0.10"),
        ]

        result = self.allocator.allocate(Decimal("100"), allocations)

        # (0.20 * 10 + 0.10 * 30) / 40
        assert result.average_rate == Decimal("0.125")

    def test_bills_without_rate_ignored_in_average(self):
        allocations = [
            _allocation("a", overlap_days=10, rate="0.20"),
            _allocation("b", overlap_days=20, rate=None),
        ]

        result = self.allocator.allocate(Decimal("100"), allocations)

        assert result.average_rate == Decimal("0.20")
        assert result.bills_without_rate == ("b",)
        assert not result.used_fallback_rate

    def test_zero_rate_counts_as_supplied(self):
        result = self.allocator.allocate(
            Decimal("100"), [_allocation("a", rate="0")],
        )

        assert result.average_rate == Decimal("0")
        assert not result.used_fallback_rate
        assert result.direct_cost == Decimal("0")

    def test_fallback_rate_when_no_bill_has_rate(self):
        result = self.allocator.allocate(
            Decimal("1000"), [_allocation("a", rate=None)],
        )

        assert result.used_fallback_rate
        assert result.average_rate == DEFAULT_FALLBACK_RATE
        assert result.direct_cost == Decimal("147.9")
        assert Degradation.FALLBACK_RATE in result.degradations

    def test_fallback_rate_with_no_bills(self):
        result = self.allocator.allocate(Decimal("1000"), [])

        assert result.used_fallback_rate
        assert result.total_property_kwh == Decimal("0")
        assert result.tenant_ratio == Decimal("0")
        assert result.total_amount == Decimal("147.9")

    def test_configured_fallback_rate(self):
        allocator = CostAllocator(fallback_rate=Decimal("0.2"))

        result = allocator.allocate(Decimal("10"), [])

        assert result.average_rate == Decimal("0.2")
        assert result.direct_cost == Decimal("2")

    def test_fallback_logged(self, captured_logs):
        self.allocator.allocate(Decimal("10"), [])

        messages = [r["message"] for r in captured_logs()]
        assert "allocation_fallback_rate_used" in messages


class TestZeroPropertyUsage:

    def test_ratio_zero_and_flagged(self):
        allocator = CostAllocator()
        allocations = [_allocation("a", kwh="0", state_sales_tax="50")]

        result = allocator.allocate(Decimal("100"), allocations)

        assert result.tenant_ratio == Decimal("0")
        assert result.allocated_costs.total() == Decimal("0")
        assert result.zero_property_usage
        assert Degradation.ZERO_PROPERTY_USAGE in result.degradations
        # Direct cost still charged at the average rate
        assert result.direct_cost == Decimal("10")

    def test_missing_bill_usage_counts_as_zero(self):
        allocator = CostAllocator()

        result = allocator.allocate(Decimal("100"), [_allocation("a", kwh=None)])

        assert result.bills_without_usage == ("a",)
        assert Degradation.MISSING_BILL_USAGE in result.degradations
        assert result.zero_property_usage


class TestRounding:

    def test_components_at_storage_scale_and_total_is_their_sum(self):
        allocator = CostAllocator()
        allocations = [
            _allocation("a", 7, 31, kwh="12345.678", rate="0.1234567", state_sales_tax="33.33"),
            _allocation("b", 11, 29, kwh="9876.5", rate="0.0987", delivery_charges="17.01"),
        ]

        result = allocator.allocate(Decimal("333.333"), allocations)

        assert result.direct_cost.as_tuple().exponent >= -9
        for amount in result.allocated_costs.as_dict().values():
            assert Decimal(amount).as_tuple().exponent >= -9
        assert result.total_amount == result.direct_cost + result.allocated_costs.total()

    def test_negative_adjustment_reduces_total(self):
        allocator = CostAllocator()
        allocation = BillAllocation(
            utility_bill_id="credit",
            overlap_start=date(2024, 6, 1),
            overlap_end=date(2024, 6, 30),
            overlap_days=30,
            total_days=30,
            allocation_percentage=Decimal("1"),
            allocated_amounts=SharedCosts(adjustment=Decimal("-40")),
            kilowatt_hours=Decimal("1000"),
            rate=Decimal("0.10"),
        )

        result = allocator.allocate(Decimal("100"), [allocation])

        assert result.allocated_costs.adjustment == Decimal("-4")
        assert result.total_amount == Decimal("6")


class TestOrderIndependence:

    def test_shuffled_allocations_give_identical_figures(self):
        allocator = CostAllocator()
        allocations = [
            _allocation("a", 7, 31, kwh="12345.678", rate="0.1234567", state_sales_tax="33.33"),
            _allocation("b", 11, 29, kwh="9876.5", rate="0.0987", delivery_charges="17.01"),
            _allocation("c", 3, 3, kwh="77", rate="0.3", state_sales_tax="1.11"),
        ]

        forward = allocator.allocate(Decimal("250"), allocations)
        backward = allocator.allocate(Decimal("250"), list(reversed(allocations)))

        assert forward.total_property_kwh == backward.total_property_kwh
        assert forward.average_rate == backward.average_rate
        assert forward.direct_cost == backward.direct_cost
        assert forward.allocated_costs == backward.allocated_costs
        assert forward.total_amount == backward.total_amount


class TestValidation:

    def test_negative_usage_rejected(self):
        with pytest.raises(ValueError):
            CostAllocator().allocate(Decimal("-1"), [])

    def test_negative_fallback_rate_rejected(self):
        with pytest.raises(ValueError):
            CostAllocator(fallback_rate=Decimal("-0.01"))
