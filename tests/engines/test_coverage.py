"""Tests for the coverage report."""

from datetime import date
from decimal import Decimal

from billing_engines.coverage import compute_coverage, covered_day_count
from billing_kernel.domain.billing import BillAllocation, DateWindow, SharedCosts


def _allocation(bill_id, start, end, kwh="100", rate="0.1"):
    days = (end - start).days + 1
    return BillAllocation(
        utility_bill_id=bill_id,
        overlap_start=start,
        overlap_end=end,
        overlap_days=days,
        total_days=days,
        allocation_percentage=Decimal("1"),
        allocated_amounts=SharedCosts(),
        kilowatt_hours=None if kwh is None else Decimal(kwh),
        rate=None if rate is None else Decimal(rate),
    )


class TestCoveredDayCount:

    def test_disjoint_ranges_add_up(self):
        allocations = [
            _allocation("a", date(2024, 6, 1), date(2024, 6, 10)),
            _allocation("b", date(2024, 6, 21), date(2024, 6, 30)),
        ]

        assert covered_day_count(allocations) == 20

    def test_overlapping_ranges_count_days_once(self):
        allocations = [
            _allocation("a", date(2024, 6, 1), date(2024, 6, 20)),
            _allocation("b", date(2024, 6, 11), date(2024, 6, 30)),
        ]

        assert covered_day_count(allocations) == 30

    def test_adjacent_ranges_merge(self):
        allocations = [
            _allocation("a", date(2024, 6, 16), date(2024, 6, 30)),
            _allocation("b", date(2024, 6, 1), date(2024, 6, 15)),
        ]

        assert covered_day_count(allocations) == 30

    def test_nested_range(self):
        allocations = [
            _allocation("outer", date(2024, 6, 1), date(2024, 6, 30)),
            _allocation("inner", date(2024, 6, 5), date(2024, 6, 6)),
        ]

        assert covered_day_count(allocations) == 30

    def test_empty(self):
        assert covered_day_count([]) == 0


class TestComputeCoverage:

    def test_partial_coverage_reported(self):
        window = DateWindow(date(2024, 6, 1), date(2024, 6, 30))
        report = compute_coverage(
            window, [_allocation("a", date(2024, 6, 1), date(2024, 6, 15))],
        )

        assert report.period_days == 30
        assert report.covered_days == 15
        assert report.uncovered_days == 15
        assert report.coverage_percentage == Decimal("0.5")
        assert not report.has_full_coverage

    def test_bills_missing_usage_and_rate_listed(self):
        window = DateWindow(date(2024, 6, 1), date(2024, 6, 30))
        report = compute_coverage(
            window,
            [
                _allocation("no-kwh", date(2024, 6, 1), date(2024, 6, 15), kwh=None),
                _allocation("no-rate", date(2024, 6, 16), date(2024, 6, 30), rate=None),
            ],
        )

        assert report.bills_missing_usage == ("no-kwh",)
        assert report.bills_missing_rate == ("no-rate",)
        assert report.has_full_coverage
