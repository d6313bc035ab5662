"""
Audit port (``billing_kernel.domain.audit``).

Every successful mutation of billing state emits exactly one audit record,
synchronously, inside the caller's transaction.  Services depend on the
``AuditPort`` protocol rather than on the hash-chained ``AuditorService``
so the side effect can be swapped for a recording double in tests.
Failures raised by the port propagate; audit is never best-effort.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any, Protocol
from uuid import UUID


class AuditAction(str, Enum):
    """Actions recorded in the audit trail."""

    UTILITY_BILL_UPLOADED = "utility_bill_uploaded"
    UTILITY_BILL_EXTRACTED = "utility_bill_extracted"
    BILLING_PERIOD_CREATED = "billing_period_created"
    INVOICE_GENERATED = "invoice_generated"
    INVOICE_SENT = "invoice_sent"
    INVOICE_PAID = "invoice_paid"
    INVOICE_ATTACHMENT_ADDED = "invoice_attachment_added"


class AuditPort(Protocol):
    """What billing services need from an audit sink."""

    def record_utility_bill_uploaded(
        self, bill_id: UUID, property_id: UUID, actor_id: UUID, upload_seq: int,
    ) -> Any: ...

    def record_utility_bill_extracted(
        self, bill_id: UUID, actor_id: UUID, fields_present: list[str],
    ) -> Any: ...

    def record_billing_period_created(
        self,
        period_id: UUID,
        property_id: UUID,
        tenant_id: UUID,
        actor_id: UUID,
        start_date: str,
        end_date: str,
        kilowatt_hours: Decimal,
    ) -> Any: ...

    def record_invoice_generated(
        self,
        invoice_id: UUID,
        actor_id: UUID,
        invoice_number: str,
        property_id: UUID,
        tenant_id: UUID,
        total_amount: Decimal,
        billing_period_count: int,
        degradations: list[str],
    ) -> Any: ...

    def record_invoice_status_changed(
        self,
        invoice_id: UUID,
        actor_id: UUID,
        from_status: str,
        to_status: str,
        version: int,
    ) -> Any: ...

    def record_invoice_attachment_added(
        self,
        invoice_id: UUID,
        actor_id: UUID,
        url: str,
        attachment_count: int,
    ) -> Any: ...
