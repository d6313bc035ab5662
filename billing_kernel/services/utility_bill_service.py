"""
UtilityBillService -- storage boundary for supplier utility bills.

Responsibility:
    Registers uploaded bills (assigning their monotonic ``upload_seq``) and
    stores the fields the extraction pipeline produced for them.  Raw
    extraction output is normalized into typed columns here, once, so the
    allocation engine never sees "string or number" values.

Architecture position:
    Kernel > Services -- imperative shell.  Uses SequenceService for
    ``upload_seq`` and the AuditPort for the audit trail.

Invariants enforced:
    - Every stored extracted field went through
      ``normalize_extracted_fields``.
    - Exactly one audit record per successful call.

Failure modes:
    - PropertyNotFoundError, UtilityBillNotFoundError.
    - ExtractionFieldError when a raw field cannot be normalized; nothing
      is written in that case.
"""

from collections.abc import Mapping
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from billing_kernel.domain.audit import AuditPort
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.extraction import (
    NormalizedBillFields,
    normalize_extracted_fields,
)
from billing_kernel.domain.invoice import ActorContext
from billing_kernel.exceptions import (
    ExtractionFieldError,
    PropertyNotFoundError,
    UtilityBillNotFoundError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.models.property import Property
from billing_kernel.models.utility_bill import UtilityBill
from billing_kernel.services.sequence_service import SequenceService
from billing_kernel.utils.hashing import to_json_safe

logger = get_logger("services.utility_bill")

_EXTRACTED_COLUMNS = (
    "start_date",
    "end_date",
    "due_date",
    "bill_date",
    "kilowatt_hours",
    "cost_per_kilowatt_hour",
    "state_sales_tax",
    "gross_receipt_tax",
    "adjustment",
    "delivery_charges",
    "account_number",
    "meter_number",
)


class UtilityBillService:
    """Registers bills and records their extracted fields.  Never commits."""

    def __init__(self, session: Session, auditor: AuditPort, clock: Clock | None = None):
        self._session = session
        self._auditor = auditor
        self._clock = clock or SystemClock()
        self._sequence = SequenceService(session)

    def record_upload(
        self,
        property_id: UUID,
        bill_pdf_url: str | None,
        actor: ActorContext,
    ) -> UtilityBill:
        """Create an un-extracted bill row with the next upload sequence."""
        if self._session.get(Property, property_id) is None:
            raise PropertyNotFoundError(str(property_id))

        upload_seq = self._sequence.next_value(SequenceService.UTILITY_BILL_UPLOAD)
        bill = UtilityBill(
            property_id=property_id,
            upload_seq=upload_seq,
            bill_pdf_url=bill_pdf_url,
            created_by_id=actor.actor_id,
        )
        self._session.add(bill)
        self._session.flush()

        self._auditor.record_utility_bill_uploaded(
            bill_id=bill.id,
            property_id=property_id,
            actor_id=actor.actor_id,
            upload_seq=upload_seq,
        )
        logger.info(
            "utility_bill_uploaded",
            extra={
                "utility_bill_id": str(bill.id),
                "property_id": str(property_id),
                "upload_seq": upload_seq,
            },
        )
        return bill

    def record_extraction(
        self,
        bill_id: UUID,
        raw: Mapping[str, Any],
        actor: ActorContext,
    ) -> NormalizedBillFields:
        """
        Normalize ``raw`` and store it on the bill.

        A later extraction for the same bill replaces the earlier one.
        """
        bill = self._session.get(UtilityBill, bill_id)
        if bill is None:
            raise UtilityBillNotFoundError(str(bill_id))

        try:
            fields = normalize_extracted_fields(raw)
        except ExtractionFieldError:
            logger.warning(
                "utility_bill_extraction_rejected",
                extra={"utility_bill_id": str(bill_id)},
                exc_info=True,
            )
            raise

        for name in _EXTRACTED_COLUMNS:
            setattr(bill, name, getattr(fields, name))
        bill.raw_extracted_data = to_json_safe(dict(raw))
        bill.extracted_at = self._clock.now()
        bill.updated_by_id = actor.actor_id
        self._session.flush()

        self._auditor.record_utility_bill_extracted(
            bill_id=bill.id,
            actor_id=actor.actor_id,
            fields_present=fields.fields_present,
        )

        if fields.ignored_fields:
            logger.info(
                "utility_bill_fields_ignored",
                extra={
                    "utility_bill_id": str(bill_id),
                    "ignored_fields": list(fields.ignored_fields),
                },
            )
        if not bill.has_billing_window:
            logger.warning(
                "utility_bill_missing_dates",
                extra={"utility_bill_id": str(bill_id)},
            )
        logger.info(
            "utility_bill_extracted",
            extra={
                "utility_bill_id": str(bill_id),
                "fields_present": fields.fields_present,
            },
        )
        return fields
