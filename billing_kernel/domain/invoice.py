"""
Invoice domain types (``billing_kernel.domain.invoice``).

Responsibility
--------------
Pure value objects for the tenant invoice: the lifecycle state machine,
actor roles, the stored figures the calculation breakdown is rendered
from, and the assembled draft handed to the writer.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Lifecycle -- ``INVOICE_TRANSITIONS`` defines the only valid status
  changes: ``draft -> sent -> paid``.  ``paid`` is terminal.
* Attachments are open while the invoice is not ``paid``.
* ``InvoiceFigures`` holds every number the breakdown text needs, so the
  text is reproducible from stored columns alone.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from billing_kernel.domain.billing import (
    BillAllocation,
    Degradation,
    SharedCosts,
    collect_degradations,
)
from billing_kernel.domain.values import ZERO
from billing_kernel.exceptions import UnknownInvoiceStatusError


class InvoiceStatus(str, Enum):
    """Invoice lifecycle states."""

    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"


INVOICE_TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: frozenset({InvoiceStatus.SENT}),
    InvoiceStatus.SENT: frozenset({InvoiceStatus.PAID}),
    InvoiceStatus.PAID: frozenset(),
}

TERMINAL_INVOICE_STATUSES: frozenset[InvoiceStatus] = frozenset({
    status for status, targets in INVOICE_TRANSITIONS.items() if not targets
})

ATTACHMENT_OPEN_STATUSES: frozenset[InvoiceStatus] = frozenset({
    InvoiceStatus.DRAFT,
    InvoiceStatus.SENT,
})


def is_valid_transition(current: InvoiceStatus, target: InvoiceStatus) -> bool:
    return target in INVOICE_TRANSITIONS.get(current, frozenset())


def parse_invoice_status(value: InvoiceStatus | str, field_name: str = "status") -> InvoiceStatus:
    """Caller-supplied status as an ``InvoiceStatus``; unknown values are rejected."""
    try:
        return InvoiceStatus(value)
    except ValueError as exc:
        raise UnknownInvoiceStatusError(field_name, value) from exc


class ActorRole(str, Enum):
    """Roles known to the calling layer, lowest privilege first."""

    VIEWER = "viewer"
    MANAGER = "manager"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

    def at_least(self, other: ActorRole) -> bool:
        return self.rank >= other.rank


_ROLE_RANK = {ActorRole.VIEWER: 0, ActorRole.MANAGER: 1, ActorRole.ADMIN: 2}


@dataclass(frozen=True, slots=True)
class ActorContext:
    """Pre-authenticated acting user, as handed over by the calling layer."""

    actor_id: UUID
    role: ActorRole = ActorRole.MANAGER


@dataclass(frozen=True, slots=True)
class InvoiceFigures:
    """
    Every stored number the calculation breakdown shows.

    ``from_record`` reads the same attribute names off a persisted invoice
    row, which is how the breakdown is regenerated for verification.
    """

    period_start: date
    period_end: date
    tenant_usage_kwh: Decimal
    total_property_kwh: Decimal
    tenant_ratio: Decimal
    average_rate: Decimal
    direct_cost: Decimal
    overlapping_bill_count: int
    used_fallback_rate: bool = False
    excluded_bill_count: int = 0
    bills_without_usage_count: int = 0
    period_days: int = 0
    coverage_days: int = 0

    @property
    def zero_property_usage(self) -> bool:
        return self.total_property_kwh == ZERO

    @property
    def uncovered_days(self) -> int:
        return max(self.period_days - self.coverage_days, 0)

    @property
    def degradations(self) -> tuple[Degradation, ...]:
        return collect_degradations(
            used_fallback_rate=self.used_fallback_rate,
            zero_property_usage=self.zero_property_usage,
            excluded_bill_count=self.excluded_bill_count,
            bills_without_usage=self.bills_without_usage_count,
            uncovered_days=self.uncovered_days,
        )

    @classmethod
    def from_record(cls, record: Any) -> InvoiceFigures:
        return cls(
            period_start=record.period_start,
            period_end=record.period_end,
            tenant_usage_kwh=record.total_kilowatt_hours,
            total_property_kwh=record.total_property_kwh,
            tenant_ratio=record.tenant_ratio,
            average_rate=record.electric_rate,
            direct_cost=record.direct_cost,
            overlapping_bill_count=len(record.utility_bill_allocations or ()),
            used_fallback_rate=record.used_fallback_rate,
            excluded_bill_count=record.excluded_bill_count,
            bills_without_usage_count=record.bills_without_usage_count,
            period_days=record.period_days,
            coverage_days=record.coverage_days,
        )


@dataclass(frozen=True, slots=True)
class InvoiceDraft:
    """Fully assembled invoice, not yet persisted."""

    property_id: UUID
    tenant_id: UUID
    billing_period_ids: tuple[UUID, ...]
    invoice_number: str
    invoice_date: date
    figures: InvoiceFigures
    allocated_costs: SharedCosts
    total_amount: Decimal
    allocations: tuple[BillAllocation, ...]
    calculation_breakdown: str
    due_date: date | None = None
    notes: str | None = None
    calculation_method: str = "pro_rata"

    @property
    def degradations(self) -> tuple[Degradation, ...]:
        return self.figures.degradations


@dataclass(frozen=True, slots=True)
class InvoiceSnapshot:
    """Read-side view of a persisted invoice."""

    id: UUID
    invoice_number: str
    property_id: UUID
    tenant_id: UUID
    billing_period_ids: tuple[UUID, ...]
    status: InvoiceStatus
    version: int
    invoice_date: date
    due_date: date | None
    figures: InvoiceFigures
    allocated_costs: SharedCosts
    total_amount: Decimal
    allocations: tuple[BillAllocation, ...]
    calculation_breakdown: str
    attachment_urls: tuple[str, ...] = field(default_factory=tuple)
    notes: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_INVOICE_STATUSES
