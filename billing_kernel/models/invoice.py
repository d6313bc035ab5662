"""
Module: billing_kernel.models.invoice
Responsibility: ORM persistence for computed tenant invoices.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - invoice_number is unique (uq_invoice_number).
    - Financial and identity fields never change after insert; only
      status, attachment_urls, version and the updated_* audit columns
      may (db/immutability.py).
    - status moves draft -> sent -> paid, applied by
      InvoiceLifecycleService with a guarded UPDATE on (status, version).
    - Every figure the calculation breakdown shows is stored in its own
      column at the same scale the breakdown was rendered from, so the
      text is reproducible byte-for-byte.

Failure modes:
    - IntegrityError on duplicate invoice_number.
    - ImmutabilityViolationError on attempts to change financial fields or
      delete the row.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import ExactDecimal, TrackedBase, UUIDString


class TenantInvoice(TrackedBase):
    """A persisted pro-rata invoice and its full calculation trail."""

    __tablename__ = "tenant_invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoice_number"),
        Index("idx_invoice_tenant", "tenant_id"),
        Index("idx_invoice_property", "property_id"),
        Index("idx_invoice_status", "status"),
    )

    property_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("properties.id"), nullable=False,
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("tenants.id"), nullable=False,
    )

    # Ordered list of TenantBillingPeriod ids (strings)
    billing_period_ids: Mapped[list] = mapped_column(JSON, nullable=False)

    invoice_number: Mapped[str] = mapped_column(String(40), nullable=False)

    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)

    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    calculation_method: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pro_rata",
    )

    # Envelope of the covered billing periods
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    total_kilowatt_hours: Mapped[Decimal] = mapped_column(ExactDecimal(38, 9), nullable=False)
    total_property_kwh: Mapped[Decimal] = mapped_column(ExactDecimal(38, 9), nullable=False)
    tenant_ratio: Mapped[Decimal] = mapped_column(ExactDecimal(38, 18), nullable=False)
    electric_rate: Mapped[Decimal] = mapped_column(ExactDecimal(38, 18), nullable=False)

    direct_cost: Mapped[Decimal] = mapped_column(ExactDecimal(38, 9), nullable=False)
    allocated_state_sales_tax: Mapped[Decimal] = mapped_column(ExactDecimal(38, 9), nullable=False)
    allocated_gross_receipt_tax: Mapped[Decimal] = mapped_column(ExactDecimal(38, 9), nullable=False)
    allocated_adjustment: Mapped[Decimal] = mapped_column(ExactDecimal(38, 9), nullable=False)
    allocated_delivery_charges: Mapped[Decimal] = mapped_column(ExactDecimal(38, 9), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(ExactDecimal(38, 9), nullable=False)

    # BillAllocation.to_dict() per overlapping bill, in upload order
    utility_bill_allocations: Mapped[list] = mapped_column(JSON, nullable=False)

    # Degradation facts
    used_fallback_rate: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    excluded_bill_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bills_without_usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    period_days: Mapped[int] = mapped_column(Integer, nullable=False)
    coverage_days: Mapped[int] = mapped_column(Integer, nullable=False)

    calculation_breakdown: Mapped[str] = mapped_column(Text, nullable=False)

    # Lifecycle
    attachment_urls: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    def __repr__(self) -> str:
        return f"<TenantInvoice {self.invoice_number} {self.status} {self.total_amount}>"
