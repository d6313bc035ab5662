"""
billing_services -- orchestration layer over the billing kernel and engines.

The calling layer (API handlers, scripts) talks to ``InvoicingService``
and applies the role policy in ``authority`` before invoking write
operations.
"""

from billing_services.authority import can_generate_invoices, require_role
from billing_services.invoicing_service import (
    AllocationPreview,
    GeneratedInvoice,
    InvoiceDetail,
    InvoicingService,
)

__all__ = [
    "AllocationPreview",
    "GeneratedInvoice",
    "InvoiceDetail",
    "InvoicingService",
    "can_generate_invoices",
    "require_role",
]
