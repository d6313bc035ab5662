"""
Billing domain types (``billing_kernel.domain.billing``).

Responsibility
--------------
Pure value objects that flow through the allocation pipeline: the typed
utility bill record the engines read, the date window of a billing period,
per-bill overlap metrics and allocations, the overlap scan with its
coverage report, and the allocation result with its degradation flags.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports from
``db/``, ``models/``, ``services/`` or outer layers.

Invariants enforced
-------------------
* Day windows are closed and inclusive; ``DateWindow.days`` counts both
  end points.
* ``0 < allocation_percentage <= 1`` for every ``BillAllocation``.
* Monetary and usage fields are ``Decimal``.  Absent shared costs on a
  bill are zero; absent usage and rate stay ``None`` so callers can tell
  "missing" from "zero".
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from billing_kernel.domain.values import ONE, ZERO, format_decimal_plain


@dataclass(frozen=True, slots=True)
class DateWindow:
    """Closed, inclusive calendar window."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(
                f"Window start {self.start} is after end {self.end}"
            )

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @classmethod
    def envelope(cls, windows: Iterable[DateWindow]) -> DateWindow:
        """Earliest start to latest end across ``windows``."""
        windows = list(windows)
        if not windows:
            raise ValueError("Cannot build an envelope of zero windows")
        return cls(
            start=min(w.start for w in windows),
            end=max(w.end for w in windows),
        )


class SharedCostCategory(str, Enum):
    """Non-usage charges split between tenants by usage share."""

    STATE_SALES_TAX = "state_sales_tax"
    GROSS_RECEIPT_TAX = "gross_receipt_tax"
    ADJUSTMENT = "adjustment"
    DELIVERY_CHARGES = "delivery_charges"


@dataclass(frozen=True, slots=True)
class SharedCosts:
    """One amount per shared-cost category.  Amounts are signed."""

    state_sales_tax: Decimal = ZERO
    gross_receipt_tax: Decimal = ZERO
    adjustment: Decimal = ZERO
    delivery_charges: Decimal = ZERO

    def get(self, category: SharedCostCategory) -> Decimal:
        return getattr(self, category.value)

    def scaled(self, factor: Decimal) -> SharedCosts:
        return SharedCosts(
            **{c.value: self.get(c) * factor for c in SharedCostCategory}
        )

    def map(self, fn) -> SharedCosts:
        return SharedCosts(**{c.value: fn(self.get(c)) for c in SharedCostCategory})

    def __add__(self, other: SharedCosts) -> SharedCosts:
        return SharedCosts(
            **{c.value: self.get(c) + other.get(c) for c in SharedCostCategory}
        )

    def total(self) -> Decimal:
        return sum((self.get(c) for c in SharedCostCategory), ZERO)

    def as_dict(self) -> dict[str, str]:
        return {c.value: str(self.get(c)) for c in SharedCostCategory}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> SharedCosts:
        return cls(
            **{
                c.value: Decimal(str(data[c.value])) if data.get(c.value) is not None else ZERO
                for c in SharedCostCategory
            }
        )


@dataclass(frozen=True, slots=True)
class UtilityBillRecord:
    """
    Engine view of one supplier bill.

    Built from a stored, already-normalized utility bill.  Read-only to the
    engines.  ``window`` is None when either date is missing or the dates
    are reversed; such bills cannot be overlapped.
    """

    bill_id: str
    start_date: date | None
    end_date: date | None
    kilowatt_hours: Decimal | None = None
    cost_per_kilowatt_hour: Decimal | None = None
    shared_costs: SharedCosts = field(default_factory=SharedCosts)

    @property
    def window(self) -> DateWindow | None:
        if self.start_date is None or self.end_date is None:
            return None
        if self.start_date > self.end_date:
            return None
        return DateWindow(self.start_date, self.end_date)

    @property
    def has_rate(self) -> bool:
        return self.cost_per_kilowatt_hour is not None


@dataclass(frozen=True, slots=True)
class OverlapResult:
    """Intersection of a billing window with one bill's window."""

    overlap_start: date
    overlap_end: date
    overlap_days: int
    bill_total_days: int
    overlap_percentage: Decimal


@dataclass(frozen=True, slots=True)
class BillAllocation:
    """
    One bill's contribution to a billing window.

    ``allocated_amounts`` is the property-wide share of each shared cost
    attributable to the overlap, before the tenant ratio is applied.
    """

    utility_bill_id: str
    overlap_start: date
    overlap_end: date
    overlap_days: int
    total_days: int
    allocation_percentage: Decimal
    allocated_amounts: SharedCosts
    kilowatt_hours: Decimal | None
    rate: Decimal | None

    def __post_init__(self) -> None:
        if not (ZERO < self.allocation_percentage <= ONE):
            raise ValueError(
                f"allocation_percentage {self.allocation_percentage} outside (0, 1]"
            )

    @property
    def allocated_kwh(self) -> Decimal:
        """Bill usage pro-rated to the overlap; absent usage counts as zero."""
        return (self.kilowatt_hours or ZERO) * self.allocation_percentage

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe form stored on the invoice.  Decimals become strings."""
        return {
            "utility_bill_id": self.utility_bill_id,
            "overlap_start": self.overlap_start.isoformat(),
            "overlap_end": self.overlap_end.isoformat(),
            "overlap_days": self.overlap_days,
            "total_days": self.total_days,
            "allocation_percentage": str(self.allocation_percentage),
            "allocated_amounts": self.allocated_amounts.as_dict(),
            "kilowatt_hours": (
                None if self.kilowatt_hours is None
                else format_decimal_plain(self.kilowatt_hours)
            ),
            "rate": None if self.rate is None else str(self.rate),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BillAllocation:
        return cls(
            utility_bill_id=str(data["utility_bill_id"]),
            overlap_start=date.fromisoformat(data["overlap_start"]),
            overlap_end=date.fromisoformat(data["overlap_end"]),
            overlap_days=int(data["overlap_days"]),
            total_days=int(data["total_days"]),
            allocation_percentage=Decimal(data["allocation_percentage"]),
            allocated_amounts=SharedCosts.from_mapping(data["allocated_amounts"]),
            kilowatt_hours=(
                None if data.get("kilowatt_hours") is None
                else Decimal(data["kilowatt_hours"])
            ),
            rate=None if data.get("rate") is None else Decimal(data["rate"]),
        )


@dataclass(frozen=True, slots=True)
class CoverageReport:
    """
    How much of a billing window is covered by overlapping bills.

    ``covered_days`` counts the union of overlap ranges, so two bills
    covering the same day count it once.
    """

    period_days: int
    covered_days: int
    coverage_percentage: Decimal
    bills_missing_usage: tuple[str, ...] = ()
    bills_missing_rate: tuple[str, ...] = ()

    @property
    def has_full_coverage(self) -> bool:
        return self.covered_days >= self.period_days

    @property
    def uncovered_days(self) -> int:
        return max(self.period_days - self.covered_days, 0)


@dataclass(frozen=True, slots=True)
class OverlapScan:
    """Output of the bill overlap finder for one window."""

    window: DateWindow
    allocations: tuple[BillAllocation, ...]
    excluded_bill_ids: tuple[str, ...]
    non_overlapping_count: int
    coverage: CoverageReport

    @property
    def excluded_bill_count(self) -> int:
        return len(self.excluded_bill_ids)

    @property
    def overlapping_bill_count(self) -> int:
        return len(self.allocations)


class Degradation(str, Enum):
    """Data-completeness fallbacks that make an invoice low-confidence."""

    FALLBACK_RATE = "fallback_rate"
    EXCLUDED_BILLS = "excluded_bills"
    ZERO_PROPERTY_USAGE = "zero_property_usage"
    MISSING_BILL_USAGE = "missing_bill_usage"
    PARTIAL_COVERAGE = "partial_coverage"


@dataclass(frozen=True, slots=True)
class AllocationResult:
    """
    Tenant cost allocation for one window.

    ``total_amount`` equals ``direct_cost + allocated_costs.total()``
    exactly: component figures are at storage scale and the total is their
    sum, so no residual appears after persistence either.
    """

    tenant_usage_kwh: Decimal
    total_property_kwh: Decimal
    tenant_ratio: Decimal
    average_rate: Decimal
    used_fallback_rate: bool
    direct_cost: Decimal
    allocated_costs: SharedCosts
    total_amount: Decimal
    allocations: tuple[BillAllocation, ...]
    bills_without_usage: tuple[str, ...] = ()
    bills_without_rate: tuple[str, ...] = ()

    @property
    def zero_property_usage(self) -> bool:
        return self.total_property_kwh == ZERO

    @property
    def degradations(self) -> tuple[Degradation, ...]:
        """Allocator-level degradations.  Scan-level ones are added by the assembler."""
        return collect_degradations(
            used_fallback_rate=self.used_fallback_rate,
            zero_property_usage=self.zero_property_usage,
            excluded_bill_count=0,
            bills_without_usage=len(self.bills_without_usage),
        )

    @property
    def is_low_confidence(self) -> bool:
        return bool(self.degradations)


def collect_degradations(
    *,
    used_fallback_rate: bool,
    zero_property_usage: bool,
    excluded_bill_count: int,
    bills_without_usage: int = 0,
    uncovered_days: int = 0,
) -> tuple[Degradation, ...]:
    """Ordered degradation list for a complete invoice calculation."""
    found: list[Degradation] = []
    if used_fallback_rate:
        found.append(Degradation.FALLBACK_RATE)
    if excluded_bill_count:
        found.append(Degradation.EXCLUDED_BILLS)
    if zero_property_usage:
        found.append(Degradation.ZERO_PROPERTY_USAGE)
    if bills_without_usage:
        found.append(Degradation.MISSING_BILL_USAGE)
    if uncovered_days:
        found.append(Degradation.PARTIAL_COVERAGE)
    return tuple(found)


@dataclass(frozen=True, slots=True)
class MeterReadings:
    """
    Optional sub-meter readings recorded with a billing period.

    Tenants on a shared meter report ``room`` and ``fan`` readings and are
    billed for the difference; tenants with their own meter report ``main``.
    """

    room: Decimal | None = None
    fan: Decimal | None = None
    main: Decimal | None = None

    def derived_usage(self) -> Decimal | None:
        if self.room is not None and self.fan is not None:
            return self.room - self.fan
        return self.main

    def describe(self) -> str | None:
        """Human note such as ``Room: 2456 - Fan: 1089 = 1367 kWh``."""
        if self.room is not None and self.fan is not None:
            return (
                f"Room: {format_decimal_plain(self.room)} - "
                f"Fan: {format_decimal_plain(self.fan)} = "
                f"{format_decimal_plain(self.room - self.fan)} kWh"
            )
        if self.main is not None:
            return f"Main: {format_decimal_plain(self.main)} kWh"
        return None

    def as_dict(self) -> dict[str, str]:
        return {
            name: format_decimal_plain(value)
            for name, value in (("room", self.room), ("fan", self.fan), ("main", self.main))
            if value is not None
        }
