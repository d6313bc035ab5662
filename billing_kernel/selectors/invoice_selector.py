"""
Module: billing_kernel.selectors.invoice_selector
Responsibility: Read persisted invoices as ``InvoiceSnapshot`` records.

Invariants enforced:
    - Snapshots are rebuilt from stored columns only.  The figures they
      carry are exactly the ones the calculation breakdown was rendered
      from, so ``render_breakdown(snapshot.figures)`` reproduces
      ``snapshot.calculation_breakdown``.
"""

from uuid import UUID

from sqlalchemy import exists, select

from billing_kernel.domain.billing import BillAllocation, SharedCosts
from billing_kernel.domain.invoice import InvoiceFigures, InvoiceSnapshot, InvoiceStatus
from billing_kernel.models.invoice import TenantInvoice
from billing_kernel.selectors.base import BaseSelector


def to_snapshot(row: TenantInvoice) -> InvoiceSnapshot:
    return InvoiceSnapshot(
        id=row.id,
        invoice_number=row.invoice_number,
        property_id=row.property_id,
        tenant_id=row.tenant_id,
        billing_period_ids=tuple(UUID(str(pid)) for pid in row.billing_period_ids),
        status=InvoiceStatus(row.status),
        version=row.version,
        invoice_date=row.invoice_date,
        due_date=row.due_date,
        figures=InvoiceFigures.from_record(row),
        allocated_costs=SharedCosts(
            state_sales_tax=row.allocated_state_sales_tax,
            gross_receipt_tax=row.allocated_gross_receipt_tax,
            adjustment=row.allocated_adjustment,
            delivery_charges=row.allocated_delivery_charges,
        ),
        total_amount=row.total_amount,
        allocations=tuple(
            BillAllocation.from_dict(item) for item in row.utility_bill_allocations
        ),
        calculation_breakdown=row.calculation_breakdown,
        attachment_urls=tuple(row.attachment_urls or ()),
        notes=row.notes,
    )


class InvoiceSelector(BaseSelector[TenantInvoice]):
    """Invoice queries."""

    def get(self, invoice_id: UUID) -> InvoiceSnapshot | None:
        row = self.session.execute(
            select(TenantInvoice)
            .where(TenantInvoice.id == invoice_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return to_snapshot(row) if row is not None else None

    def get_by_number(self, invoice_number: str) -> InvoiceSnapshot | None:
        row = self.session.execute(
            select(TenantInvoice).where(TenantInvoice.invoice_number == invoice_number)
        ).scalar_one_or_none()
        return to_snapshot(row) if row is not None else None

    def number_exists(self, invoice_number: str) -> bool:
        return bool(
            self.session.execute(
                select(exists().where(TenantInvoice.invoice_number == invoice_number))
            ).scalar()
        )

    def by_tenant(self, tenant_id: UUID) -> list[InvoiceSnapshot]:
        rows = self.session.execute(
            select(TenantInvoice)
            .where(TenantInvoice.tenant_id == tenant_id)
            .order_by(TenantInvoice.invoice_date, TenantInvoice.invoice_number)
        ).scalars().all()
        return [to_snapshot(row) for row in rows]

    def by_status(self, status: InvoiceStatus) -> list[InvoiceSnapshot]:
        rows = self.session.execute(
            select(TenantInvoice)
            .where(TenantInvoice.status == status.value)
            .order_by(TenantInvoice.invoice_date, TenantInvoice.invoice_number)
        ).scalars().all()
        return [to_snapshot(row) for row in rows]
