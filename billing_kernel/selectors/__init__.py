"""Read-only query selectors for billing data."""

from billing_kernel.selectors.bill_selector import BillSelector
from billing_kernel.selectors.billing_period_selector import (
    BillingPeriodSelector,
    BillingPeriodView,
)
from billing_kernel.selectors.invoice_selector import InvoiceSelector
from billing_kernel.selectors.party_selector import (
    PartySelector,
    PropertyView,
    TenantView,
)

__all__ = [
    "BillSelector",
    "BillingPeriodSelector",
    "BillingPeriodView",
    "InvoiceSelector",
    "PartySelector",
    "PropertyView",
    "TenantView",
]
