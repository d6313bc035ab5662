"""ORM models for the billing kernel."""

from billing_kernel.models.audit_event import AuditEvent
from billing_kernel.models.billing_period import TenantBillingPeriod
from billing_kernel.models.invoice import TenantInvoice
from billing_kernel.models.property import Property, Tenant
from billing_kernel.models.sequence import SequenceCounter
from billing_kernel.models.utility_bill import UtilityBill

__all__ = [
    "AuditEvent",
    "Property",
    "SequenceCounter",
    "Tenant",
    "TenantBillingPeriod",
    "TenantInvoice",
    "UtilityBill",
]
