"""
Kernel services -- the imperative shell of the billing kernel.

Services own the writes: sequence allocation, the hash-chained audit trail,
bill and billing period recording, invoice persistence and the invoice
lifecycle.  None of them commits; the caller owns the transaction.
"""

from billing_kernel.services.auditor_service import (
    AuditorService,
    AuditTrace,
    AuditTraceEntry,
)
from billing_kernel.services.billing_period_service import BillingPeriodService
from billing_kernel.services.invoice_lifecycle_service import InvoiceLifecycleService
from billing_kernel.services.invoice_writer import InvoiceWriter
from billing_kernel.services.sequence_service import SequenceService
from billing_kernel.services.utility_bill_service import UtilityBillService

__all__ = [
    "AuditorService",
    "AuditTrace",
    "AuditTraceEntry",
    "BillingPeriodService",
    "InvoiceLifecycleService",
    "InvoiceWriter",
    "SequenceService",
    "UtilityBillService",
]
