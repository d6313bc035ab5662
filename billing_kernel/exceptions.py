"""
Typed exception hierarchy for the billing kernel.

Every error the engine raises is a typed class with a machine-readable
``code`` class attribute and structured attributes carrying the data a
caller needs. Callers catch by type, never by message text.

    BillingKernelError (base)
    |
    +-- ValidationError
    |   +-- PropertyNotFoundError
    |   +-- TenantNotFoundError
    |   +-- TenantPropertyMismatchError
    |   +-- BillingPeriodNotFoundError
    |   +-- EmptyBillingPeriodSelectionError
    |   +-- DuplicateBillingPeriodError
    |   +-- BillingPeriodMismatchError
    |   +-- InvalidBillingPeriodError
    |   +-- UtilityBillNotFoundError
    |   +-- ExtractionFieldError
    |   +-- InsufficientRoleError
    |   +-- InvalidAttachmentUrlError
    |
    +-- InvoiceError
    |   +-- InvoiceNotFoundError
    |   +-- InvalidStatusTransitionError
    |   +-- InvoiceAttachmentClosedError
    |   +-- InvoiceNumberExhaustedError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- AuditError
    |   +-- AuditChainBrokenError
    |
    +-- ConfigurationError

Data-completeness problems in supplier bills (missing dates, missing rate,
zero property usage) are NOT exceptions. They are reported on the
allocation result and persisted on the invoice so the calculation still
completes.

Handling guide:
    ValidationError     -> reject the request, nothing was written
    InvoiceError        -> the invoice exists but cannot move that way
    ConcurrencyError    -> re-read and retry
    ImmutabilityError   -> log a security alert
    AuditError          -> halt processing and investigate
"""

from __future__ import annotations


class BillingKernelError(Exception):
    """Base exception for all billing kernel errors."""

    code: str = "BILLING_KERNEL_ERROR"


# Validation exceptions


class ValidationError(BillingKernelError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class PropertyNotFoundError(ValidationError):
    code: str = "PROPERTY_NOT_FOUND"

    def __init__(self, property_id: str):
        self.property_id = property_id
        super().__init__(f"Property not found: {property_id}")


class TenantNotFoundError(ValidationError):
    code: str = "TENANT_NOT_FOUND"

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"Tenant not found: {tenant_id}")


class TenantPropertyMismatchError(ValidationError):
    """Tenant does not belong to the property named in the request."""

    code: str = "TENANT_PROPERTY_MISMATCH"

    def __init__(self, tenant_id: str, property_id: str):
        self.tenant_id = tenant_id
        self.property_id = property_id
        super().__init__(
            f"Tenant {tenant_id} does not belong to property {property_id}"
        )


class BillingPeriodNotFoundError(ValidationError):
    code: str = "BILLING_PERIOD_NOT_FOUND"

    def __init__(self, billing_period_id: str):
        self.billing_period_id = billing_period_id
        super().__init__(f"Billing period not found: {billing_period_id}")


class EmptyBillingPeriodSelectionError(ValidationError):
    """An invoice was requested without any billing periods."""

    code: str = "EMPTY_BILLING_PERIOD_SELECTION"

    def __init__(self) -> None:
        super().__init__("At least one billing period is required")


class DuplicateBillingPeriodError(ValidationError):
    """The same billing period was selected more than once."""

    code: str = "DUPLICATE_BILLING_PERIOD"

    def __init__(self, billing_period_id: str):
        self.billing_period_id = billing_period_id
        super().__init__(
            f"Billing period {billing_period_id} selected more than once"
        )


class BillingPeriodMismatchError(ValidationError):
    """A selected period belongs to a different tenant or property."""

    code: str = "BILLING_PERIOD_MISMATCH"

    def __init__(
        self,
        billing_period_id: str,
        expected_tenant_id: str,
        expected_property_id: str,
    ):
        self.billing_period_id = billing_period_id
        self.expected_tenant_id = expected_tenant_id
        self.expected_property_id = expected_property_id
        super().__init__(
            f"Billing period {billing_period_id} does not belong to tenant "
            f"{expected_tenant_id} on property {expected_property_id}"
        )


class InvalidBillingPeriodError(ValidationError):
    """Billing period window or usage is invalid."""

    code: str = "INVALID_BILLING_PERIOD"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid billing period: {reason}")


class UtilityBillNotFoundError(ValidationError):
    code: str = "UTILITY_BILL_NOT_FOUND"

    def __init__(self, utility_bill_id: str):
        self.utility_bill_id = utility_bill_id
        super().__init__(f"Utility bill not found: {utility_bill_id}")


class ExtractionFieldError(ValidationError):
    """An extracted bill field could not be normalized."""

    code: str = "EXTRACTION_FIELD_INVALID"

    def __init__(self, field_name: str, raw_value: object, reason: str):
        self.field_name = field_name
        self.raw_value = repr(raw_value)
        self.reason = reason
        super().__init__(
            f"Extracted field {field_name}={raw_value!r} rejected: {reason}"
        )


class InsufficientRoleError(ValidationError):
    """Actor's role is below the minimum required for the operation."""

    code: str = "INSUFFICIENT_ROLE"

    def __init__(self, actor_id: str, actor_role: str, required_role: str):
        self.actor_id = actor_id
        self.actor_role = actor_role
        self.required_role = required_role
        super().__init__(
            f"Actor {actor_id} has role {actor_role}; {required_role} or "
            "higher is required"
        )


class InvalidAttachmentUrlError(ValidationError):
    """Attachment URL is blank."""

    code: str = "INVALID_ATTACHMENT_URL"

    def __init__(self, invoice_id: str, url: object):
        self.invoice_id = invoice_id
        self.url = url
        super().__init__(f"Invalid attachment URL for invoice {invoice_id}: {url!r}")


class UnknownInvoiceStatusError(ValidationError):
    """Requested status is not an invoice lifecycle state."""

    code: str = "UNKNOWN_INVOICE_STATUS"

    def __init__(self, field_name: str, value: object):
        self.field_name = field_name
        self.value = value
        super().__init__(f"Unknown invoice status for {field_name}: {value!r}")


# Invoice exceptions


class InvoiceError(BillingKernelError):
    """Base exception for invoice lifecycle errors."""

    code: str = "INVOICE_ERROR"


class InvoiceNotFoundError(InvoiceError):
    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class InvalidStatusTransitionError(InvoiceError):
    """Requested status change is not an edge of the lifecycle graph."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, invoice_id: str, from_status: str, to_status: str):
        self.invoice_id = invoice_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invoice {invoice_id} cannot move from {from_status} to {to_status}"
        )


class InvoiceAttachmentClosedError(InvoiceError):
    """Attachments cannot be added to an invoice in its current status."""

    code: str = "INVOICE_ATTACHMENT_CLOSED"

    def __init__(self, invoice_id: str, status: str):
        self.invoice_id = invoice_id
        self.status = status
        super().__init__(
            f"Invoice {invoice_id} is {status}; attachments are closed"
        )


class InvoiceNumberExhaustedError(InvoiceError):
    """No unused invoice number could be generated within the retry budget."""

    code: str = "INVOICE_NUMBER_EXHAUSTED"

    def __init__(self, prefix: str, attempts: int):
        self.prefix = prefix
        self.attempts = attempts
        super().__init__(
            f"No unused invoice number under {prefix} after {attempts} attempts"
        )


# Concurrency exceptions


class ConcurrencyError(BillingKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected. Safe to retry after re-read."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Immutability exceptions


class ImmutabilityError(BillingKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Invoice financial fields, billing period windows and audit events
    never change after insert.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Audit exceptions


class AuditError(BillingKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_event_id: str, expected_hash: str, actual_hash: str):
        self.audit_event_id = audit_event_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_event_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


# Configuration exceptions


class ConfigurationError(BillingKernelError):
    """Billing configuration set is missing or invalid."""

    code: str = "CONFIGURATION_INVALID"

    def __init__(self, source: str, errors: list[str]):
        self.source = source
        self.errors = list(errors)
        super().__init__(
            f"Invalid billing configuration {source}: " + "; ".join(self.errors)
        )
