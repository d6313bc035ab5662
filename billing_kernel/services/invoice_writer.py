"""
InvoiceWriter -- persists an assembled invoice draft.

Responsibility:
    Turns an ``InvoiceDraft`` into a TenantInvoice row in a single flush
    and emits the ``invoice_generated`` audit record.

Architecture position:
    Kernel > Services -- imperative shell.  The draft arrives fully
    computed from the pure assembly step; the writer does no arithmetic.

Invariants enforced:
    - One insert, one audit record, inside the caller's transaction.
    - New invoices start in ``draft`` at version 1 with no attachments.
    - Stored figures are exactly the draft's figures, which are the ones
      its calculation breakdown was rendered from.

Failure modes:
    - IntegrityError on a duplicate invoice_number (propagated; the caller
      decides whether to regenerate the number).
"""

from sqlalchemy.orm import Session

from billing_kernel.domain.audit import AuditPort
from billing_kernel.domain.invoice import ActorContext, InvoiceDraft, InvoiceStatus
from billing_kernel.logging_config import get_logger
from billing_kernel.models.invoice import TenantInvoice

logger = get_logger("services.invoice_writer")


class InvoiceWriter:
    """Inserts invoices.  Never commits."""

    def __init__(self, session: Session, auditor: AuditPort):
        self._session = session
        self._auditor = auditor

    def persist(self, draft: InvoiceDraft, actor: ActorContext) -> TenantInvoice:
        figures = draft.figures
        costs = draft.allocated_costs

        invoice = TenantInvoice(
            property_id=draft.property_id,
            tenant_id=draft.tenant_id,
            billing_period_ids=[str(pid) for pid in draft.billing_period_ids],
            invoice_number=draft.invoice_number,
            invoice_date=draft.invoice_date,
            due_date=draft.due_date,
            notes=draft.notes,
            calculation_method=draft.calculation_method,
            period_start=figures.period_start,
            period_end=figures.period_end,
            total_kilowatt_hours=figures.tenant_usage_kwh,
            total_property_kwh=figures.total_property_kwh,
            tenant_ratio=figures.tenant_ratio,
            electric_rate=figures.average_rate,
            direct_cost=figures.direct_cost,
            allocated_state_sales_tax=costs.state_sales_tax,
            allocated_gross_receipt_tax=costs.gross_receipt_tax,
            allocated_adjustment=costs.adjustment,
            allocated_delivery_charges=costs.delivery_charges,
            total_amount=draft.total_amount,
            utility_bill_allocations=[a.to_dict() for a in draft.allocations],
            used_fallback_rate=figures.used_fallback_rate,
            excluded_bill_count=figures.excluded_bill_count,
            bills_without_usage_count=figures.bills_without_usage_count,
            period_days=figures.period_days,
            coverage_days=figures.coverage_days,
            calculation_breakdown=draft.calculation_breakdown,
            attachment_urls=[],
            status=InvoiceStatus.DRAFT.value,
            version=1,
            created_by_id=actor.actor_id,
        )
        self._session.add(invoice)
        self._session.flush()

        degradations = [d.value for d in draft.degradations]
        self._auditor.record_invoice_generated(
            invoice_id=invoice.id,
            actor_id=actor.actor_id,
            invoice_number=draft.invoice_number,
            property_id=draft.property_id,
            tenant_id=draft.tenant_id,
            total_amount=draft.total_amount,
            billing_period_count=len(draft.billing_period_ids),
            degradations=degradations,
        )

        logger.info(
            "invoice_persisted",
            extra={
                "invoice_id": str(invoice.id),
                "invoice_number": draft.invoice_number,
                "total_amount": str(draft.total_amount),
                "degradations": degradations,
            },
        )
        return invoice
