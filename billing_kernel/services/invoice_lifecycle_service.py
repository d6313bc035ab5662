"""
InvoiceLifecycleService -- status transitions and attachments for invoices.

Responsibility:
    Moves invoices along ``draft -> sent -> paid`` and appends finished
    document URLs.  Both operations are optimistic: the UPDATE only
    matches when the row still has the status and version that were read,
    so two concurrent writers cannot both succeed.

Architecture position:
    Kernel > Services -- imperative shell.  Reads the state machine from
    ``billing_kernel.domain.invoice``.

Invariants enforced:
    - Only edges in ``INVOICE_TRANSITIONS`` are applied; ``paid`` is
      terminal.
    - Attachments are accepted in ``draft`` and ``sent`` only.
    - Every successful change increments ``version`` and emits exactly one
      audit record, after the UPDATE, in the same transaction.

Failure modes:
    - InvoiceNotFoundError.
    - InvalidStatusTransitionError for an edge outside the graph.
    - InvoiceAttachmentClosedError, InvalidAttachmentUrlError.
    - OptimisticLockError when the guarded UPDATE matches no row.  Safe to
      retry after re-reading.
"""

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from billing_kernel.domain.audit import AuditPort
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.invoice import (
    ATTACHMENT_OPEN_STATUSES,
    ActorContext,
    InvoiceStatus,
    is_valid_transition,
    parse_invoice_status,
)
from billing_kernel.exceptions import (
    InvalidAttachmentUrlError,
    InvalidStatusTransitionError,
    InvoiceAttachmentClosedError,
    InvoiceNotFoundError,
    OptimisticLockError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.models.invoice import TenantInvoice

logger = get_logger("services.invoice_lifecycle")


class InvoiceLifecycleService:
    """Guarded invoice mutations.  Never commits."""

    def __init__(self, session: Session, auditor: AuditPort, clock: Clock | None = None):
        self._session = session
        self._auditor = auditor
        self._clock = clock or SystemClock()

    def _load(self, invoice_id: UUID) -> TenantInvoice:
        invoice = self._session.execute(
            select(TenantInvoice)
            .where(TenantInvoice.id == invoice_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def _guarded_update(
        self,
        invoice: TenantInvoice,
        expected_status: InvoiceStatus,
        actor: ActorContext,
        **values,
    ) -> int:
        """Apply ``values`` iff status and version are unchanged.  Returns the new version."""
        new_version = invoice.version + 1
        result = self._session.execute(
            update(TenantInvoice)
            .where(
                TenantInvoice.id == invoice.id,
                TenantInvoice.status == expected_status.value,
                TenantInvoice.version == invoice.version,
            )
            .values(
                version=new_version,
                updated_at=self._clock.now(),
                updated_by_id=actor.actor_id,
                **values,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "invoice_optimistic_lock_conflict",
                extra={
                    "invoice_id": str(invoice.id),
                    "expected_status": expected_status.value,
                    "expected_version": invoice.version,
                },
            )
            raise OptimisticLockError("TenantInvoice", str(invoice.id))
        self._session.expire(invoice)
        return new_version

    def transition(
        self,
        invoice_id: UUID,
        new_status: InvoiceStatus | str,
        actor: ActorContext,
        expected_status: InvoiceStatus | str | None = None,
    ) -> None:
        """
        Move an invoice to ``new_status``.

        ``expected_status`` lets a caller assert the status it saw; when the
        stored status differs the call fails with OptimisticLockError.

        Raises:
            UnknownInvoiceStatusError: ``new_status`` or ``expected_status``
                is not a lifecycle state.
        """
        new_status = parse_invoice_status(new_status, "new_status")
        if expected_status is not None:
            expected_status = parse_invoice_status(expected_status, "expected_status")
        invoice = self._load(invoice_id)
        current = InvoiceStatus(invoice.status)

        if expected_status is not None and expected_status != current:
            logger.warning(
                "invoice_status_changed_underneath",
                extra={
                    "invoice_id": str(invoice_id),
                    "expected_status": expected_status.value,
                    "actual_status": current.value,
                },
            )
            raise OptimisticLockError("TenantInvoice", str(invoice_id))

        if not is_valid_transition(current, new_status):
            logger.warning(
                "invoice_transition_rejected",
                extra={
                    "invoice_id": str(invoice_id),
                    "from_status": current.value,
                    "to_status": new_status.value,
                },
            )
            raise InvalidStatusTransitionError(
                str(invoice_id), current.value, new_status.value,
            )

        version = self._guarded_update(
            invoice, current, actor, status=new_status.value,
        )

        self._auditor.record_invoice_status_changed(
            invoice_id=invoice_id,
            actor_id=actor.actor_id,
            from_status=current.value,
            to_status=new_status.value,
            version=version,
        )
        logger.info(
            "invoice_status_changed",
            extra={
                "invoice_id": str(invoice_id),
                "from_status": current.value,
                "to_status": new_status.value,
                "version": version,
            },
        )

    def add_attachment(self, invoice_id: UUID, url: str, actor: ActorContext) -> None:
        """Append a finished document URL to the invoice."""
        if not isinstance(url, str) or not url.strip():
            raise InvalidAttachmentUrlError(str(invoice_id), url)
        url = url.strip()

        invoice = self._load(invoice_id)
        current = InvoiceStatus(invoice.status)
        if current not in ATTACHMENT_OPEN_STATUSES:
            raise InvoiceAttachmentClosedError(str(invoice_id), current.value)

        attachments = [*(invoice.attachment_urls or []), url]
        version = self._guarded_update(
            invoice, current, actor, attachment_urls=attachments,
        )

        self._auditor.record_invoice_attachment_added(
            invoice_id=invoice_id,
            actor_id=actor.actor_id,
            url=url,
            attachment_count=len(attachments),
        )
        logger.info(
            "invoice_attachment_added",
            extra={
                "invoice_id": str(invoice_id),
                "attachment_count": len(attachments),
                "version": version,
            },
        )
