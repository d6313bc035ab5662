"""
AuditorService -- tamper-evident audit trail and hash chain maintenance.

Responsibility:
    Production implementation of the ``AuditPort``.  Creates immutable,
    hash-chained audit events for every billing mutation, validates the
    chain for tamper detection, and serves per-entity traces.

Architecture position:
    Kernel > Services -- imperative shell, called by UtilityBillService,
    BillingPeriodService, InvoiceWriter and InvoiceLifecycleService.

Invariants enforced:
    - Sequence monotonicity via SequenceService (never max+1).
    - Chain integrity: ``hash = H(entity_type | entity_id | action |
      payload_hash | prev_hash)``.  Each event links to its predecessor.
    - Append-only: the AuditEvent model is protected by ORM listeners.

Failure modes:
    - AuditChainBrokenError when a recomputed hash or link does not match.
    - IntegrityError on a concurrent sequence counter race.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_kernel.domain.audit import AuditAction
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.exceptions import AuditChainBrokenError
from billing_kernel.logging_config import get_logger
from billing_kernel.models.audit_event import AuditEvent
from billing_kernel.services.sequence_service import SequenceService
from billing_kernel.utils.hashing import hash_audit_event, hash_payload, to_json_safe

logger = get_logger("services.auditor")


@dataclass(frozen=True)
class AuditTraceEntry:
    """A single entry in an audit trace."""

    seq: int
    action: AuditAction
    occurred_at: datetime
    actor_id: UUID
    payload: dict[str, Any]
    hash: str


@dataclass(frozen=True)
class AuditTrace:
    """All audit events for one entity, oldest first."""

    entity_type: str
    entity_id: UUID
    entries: tuple[AuditTraceEntry, ...]

    @property
    def is_empty(self) -> bool:
        return len(self.entries) == 0

    @property
    def actions(self) -> tuple[AuditAction, ...]:
        return tuple(entry.action for entry in self.entries)

    @property
    def last_action(self) -> AuditAction | None:
        return self.entries[-1].action if self.entries else None


class AuditorService:
    """
    Hash-chained audit sink.

    Guarantees:
        - Every event's ``hash`` is a deterministic function of its entity,
          action, payload and predecessor.  Tampering with any stored field
          is detected by ``validate_chain()``.
        - Payloads are stored in canonical JSON-safe form; the payload hash
          is computed over exactly what is stored.

    Non-goals:
        - Does NOT call ``session.commit()``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        last_event = self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq.desc()).limit(1)
        ).scalar_one_or_none()
        return last_event.hash if last_event else None

    def _create_audit_event(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        seq = self._sequence_service.next_value(SequenceService.AUDIT_EVENT)
        prev_hash = self._get_last_hash()

        payload_data = to_json_safe(payload or {})
        computed_payload_hash = hash_payload(payload_data)

        event_hash = hash_audit_event(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action.value,
            payload_hash=computed_payload_hash,
            prev_hash=prev_hash,
        )

        audit_event = AuditEvent(
            seq=seq,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action.value,
            actor_id=actor_id,
            occurred_at=self._clock.now(),
            payload=payload_data,
            payload_hash=computed_payload_hash,
            prev_hash=prev_hash,
            hash=event_hash,
        )

        self._session.add(audit_event)
        self._session.flush()

        logger.info(
            "audit_event_created",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action.value,
                "seq": seq,
            },
        )

        return audit_event

    # Domain-specific recording methods (AuditPort)

    def record_utility_bill_uploaded(
        self, bill_id: UUID, property_id: UUID, actor_id: UUID, upload_seq: int,
    ) -> AuditEvent:
        return self._create_audit_event(
            entity_type="UtilityBill",
            entity_id=bill_id,
            action=AuditAction.UTILITY_BILL_UPLOADED,
            actor_id=actor_id,
            payload={"property_id": property_id, "upload_seq": upload_seq},
        )

    def record_utility_bill_extracted(
        self, bill_id: UUID, actor_id: UUID, fields_present: list[str],
    ) -> AuditEvent:
        return self._create_audit_event(
            entity_type="UtilityBill",
            entity_id=bill_id,
            action=AuditAction.UTILITY_BILL_EXTRACTED,
            actor_id=actor_id,
            payload={"fields_present": sorted(fields_present)},
        )

    def record_billing_period_created(
        self,
        period_id: UUID,
        property_id: UUID,
        tenant_id: UUID,
        actor_id: UUID,
        start_date: str,
        end_date: str,
        kilowatt_hours: Decimal,
    ) -> AuditEvent:
        return self._create_audit_event(
            entity_type="TenantBillingPeriod",
            entity_id=period_id,
            action=AuditAction.BILLING_PERIOD_CREATED,
            actor_id=actor_id,
            payload={
                "property_id": property_id,
                "tenant_id": tenant_id,
                "start_date": start_date,
                "end_date": end_date,
                "kilowatt_hours": kilowatt_hours,
            },
        )

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
    ) -> AuditEvent:
        return self._create_audit_event(
            entity_type="TenantInvoice",
            entity_id=invoice_id,
            action=AuditAction.INVOICE_GENERATED,
            actor_id=actor_id,
            payload={
                "invoice_number": invoice_number,
                "property_id": property_id,
                "tenant_id": tenant_id,
                "total_amount": total_amount,
                "billing_period_count": billing_period_count,
                "degradations": list(degradations),
            },
        )

    def record_invoice_status_changed(
        self,
        invoice_id: UUID,
        actor_id: UUID,
        from_status: str,
        to_status: str,
        version: int,
    ) -> AuditEvent:
        action = {
            "sent": AuditAction.INVOICE_SENT,
            "paid": AuditAction.INVOICE_PAID,
        }[to_status]
        return self._create_audit_event(
            entity_type="TenantInvoice",
            entity_id=invoice_id,
            action=action,
            actor_id=actor_id,
            payload={
                "from_status": from_status,
                "to_status": to_status,
                "version": version,
            },
        )

    def record_invoice_attachment_added(
        self,
        invoice_id: UUID,
        actor_id: UUID,
        url: str,
        attachment_count: int,
    ) -> AuditEvent:
        return self._create_audit_event(
            entity_type="TenantInvoice",
            entity_id=invoice_id,
            action=AuditAction.INVOICE_ATTACHMENT_ADDED,
            actor_id=actor_id,
            payload={"url": url, "attachment_count": attachment_count},
        )

    # Chain validation

    def validate_chain(self) -> bool:
        """
        Validate the entire audit chain.

        Returns True only if every stored payload hashes to its
        ``payload_hash``, every event's ``hash`` matches the recomputed
        value, and every ``prev_hash`` matches its predecessor.

        Raises:
            AuditChainBrokenError: at the first event that fails.
        """
        events = self._session.execute(
            select(AuditEvent).order_by(AuditEvent.seq)
        ).scalars().all()

        if not events:
            return True

        if events[0].prev_hash is not None:
            logger.critical("audit_chain_broken", extra={"seq": events[0].seq})
            raise AuditChainBrokenError(str(events[0].id), "None", events[0].prev_hash)

        for i, event in enumerate(events):
            recomputed_payload_hash = hash_payload(event.payload or {})
            if recomputed_payload_hash != event.payload_hash:
                logger.critical("audit_chain_broken", extra={"seq": event.seq})
                raise AuditChainBrokenError(
                    str(event.id), recomputed_payload_hash, event.payload_hash,
                )

            expected_hash = hash_audit_event(
                entity_type=event.entity_type,
                entity_id=str(event.entity_id),
                action=event.action,
                payload_hash=event.payload_hash,
                prev_hash=event.prev_hash,
            )
            if event.hash != expected_hash:
                logger.critical("audit_chain_broken", extra={"seq": event.seq})
                raise AuditChainBrokenError(str(event.id), expected_hash, event.hash)

            if i > 0 and event.prev_hash != events[i - 1].hash:
                logger.critical("audit_chain_broken", extra={"seq": event.seq})
                raise AuditChainBrokenError(
                    str(event.id), events[i - 1].hash, event.prev_hash or "None",
                )

        logger.info("audit_chain_valid", extra={"event_count": len(events)})
        return True

    # Trace and query methods

    def get_trace(self, entity_type: str, entity_id: UUID) -> AuditTrace:
        """All audit events for one entity, in chain order."""
        events = self._session.execute(
            select(AuditEvent)
            .where(
                AuditEvent.entity_type == entity_type,
                AuditEvent.entity_id == entity_id,
            )
            .order_by(AuditEvent.seq)
        ).scalars().all()

        entries = tuple(
            AuditTraceEntry(
                seq=event.seq,
                action=AuditAction(event.action),
                occurred_at=event.occurred_at,
                actor_id=event.actor_id,
                payload=event.payload or {},
                hash=event.hash,
            )
            for event in events
        )
        return AuditTrace(entity_type=entity_type, entity_id=entity_id, entries=entries)
