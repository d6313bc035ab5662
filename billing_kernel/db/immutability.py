"""
ORM-level immutability enforcement for billing records.

SQLAlchemy fires mapper events before UPDATE/DELETE statements are sent.
The listeners registered here inspect attribute history and raise
ImmutabilityViolationError when a protected field is about to change, so
the flush aborts and the database is never modified.

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
         |
    [before_delete] --> _check_*_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Protected entities:

Entity               | What is frozen                         | Mutable afterwards
---------------------|----------------------------------------|------------------------------------
TenantInvoice        | every financial and identity field     | status, attachment_urls, version,
                     | from insert; deletion always blocked   | updated_at, updated_by_id
TenantBillingPeriod  | window, usage, tenant, property        | notes, meter readings, image id
AuditEvent           | everything, always; no deletes         | nothing

Lifecycle changes on invoices are issued as guarded Core UPDATE statements
that only touch mutable columns; the listeners here catch everything that
goes through ORM attribute assignment.

Usage:

    from billing_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect

from billing_kernel.exceptions import ImmutabilityViolationError
from billing_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

INVOICE_MUTABLE_FIELDS = frozenset(
    {"status", "attachment_urls", "version", "updated_at", "updated_by_id"}
)

BILLING_PERIOD_FROZEN_FIELDS = frozenset(
    {"property_id", "tenant_id", "start_date", "end_date", "kilowatt_hours"}
)


def _block(entity_type: str, target, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _changed_fields(target) -> list[str]:
    return [attr.key for attr in inspect(target).attrs if attr.history.has_changes()]


def _check_invoice_immutability(mapper, connection, target):
    """Only lifecycle fields of an invoice may change after insert."""
    for key in _changed_fields(target):
        if key not in INVOICE_MUTABLE_FIELDS:
            _block(
                "TenantInvoice",
                target,
                "UPDATE",
                f"Cannot modify field '{key}' on an issued invoice",
                field=key,
            )


def _check_invoice_delete(mapper, connection, target):
    _block("TenantInvoice", target, "DELETE", "Invoices cannot be deleted")


def _check_billing_period_immutability(mapper, connection, target):
    for key in _changed_fields(target):
        if key in BILLING_PERIOD_FROZEN_FIELDS:
            _block(
                "TenantBillingPeriod",
                target,
                "UPDATE",
                f"Cannot modify field '{key}' on a recorded billing period",
                field=key,
            )


def _check_audit_event_immutability(mapper, connection, target):
    _block(
        "AuditEvent",
        target,
        "UPDATE",
        "Audit events are immutable and cannot be modified",
    )


def _check_audit_event_delete(mapper, connection, target):
    _block("AuditEvent", target, "DELETE", "Audit events cannot be deleted")


def _listeners():
    from billing_kernel.models.audit_event import AuditEvent
    from billing_kernel.models.billing_period import TenantBillingPeriod
    from billing_kernel.models.invoice import TenantInvoice

    return (
        (TenantInvoice, "before_update", _check_invoice_immutability),
        (TenantInvoice, "before_delete", _check_invoice_delete),
        (TenantBillingPeriod, "before_update", _check_billing_period_immutability),
        (AuditEvent, "before_update", _check_audit_event_immutability),
        (AuditEvent, "before_delete", _check_audit_event_delete),
    )


def register_immutability_listeners() -> None:
    """Register all immutability listeners (idempotent)."""
    for target, event_name, fn in _listeners():
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability listeners.

    WARNING: Only use this in tests that deliberately tamper with rows to
    verify detection (e.g. audit chain validation).
    """
    for target, event_name, fn in _listeners():
        if event.contains(target, event_name, fn):
            event.remove(target, event_name, fn)
