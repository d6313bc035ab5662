"""
Pure domain layer.

Value objects and state machines with NO dependencies on the ORM, the
database, the wall clock (beyond the injectable Clock) or any I/O.
All domain objects are immutable and deterministic.
"""

from billing_kernel.domain.audit import AuditAction, AuditPort
from billing_kernel.domain.billing import (
    AllocationResult,
    BillAllocation,
    CoverageReport,
    DateWindow,
    Degradation,
    OverlapResult,
    OverlapScan,
    SharedCostCategory,
    SharedCosts,
    UtilityBillRecord,
)
from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billing_kernel.domain.invoice import (
    INVOICE_TRANSITIONS,
    ActorContext,
    ActorRole,
    InvoiceDraft,
    InvoiceFigures,
    InvoiceSnapshot,
    InvoiceStatus,
)

__all__ = [
    "AuditAction",
    "AuditPort",
    "AllocationResult",
    "BillAllocation",
    "CoverageReport",
    "DateWindow",
    "Degradation",
    "OverlapResult",
    "OverlapScan",
    "SharedCostCategory",
    "SharedCosts",
    "UtilityBillRecord",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "INVOICE_TRANSITIONS",
    "ActorContext",
    "ActorRole",
    "InvoiceDraft",
    "InvoiceFigures",
    "InvoiceSnapshot",
    "InvoiceStatus",
]
