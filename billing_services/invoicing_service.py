"""
InvoicingService -- the billing engine's external operations.

Responsibility:
    Orchestrates the read -> compute -> write flow for tenant invoices:

        find_overlapping_bills     read-only overlap scan for a date range
        preview_period_allocation  read-only allocation for one period
        generate_invoice           validate, scan, allocate, assemble, persist
        transition_invoice_status  one lifecycle edge
        add_invoice_attachment     append a finished document URL
        get_invoice                invoice with its tenant, property and periods

Architecture position:
    Services -- sits above billing_kernel, billing_engines and
    billing_config.  Reads through selectors, computes through the pure
    engines, writes through the kernel's InvoiceWriter and
    InvoiceLifecycleService.

Invariants enforced:
    - Every call reads fresh rows; nothing is cached between calls.
    - Never commits.  The caller (or ``session_scope``) owns the
      transaction, so an abandoned call leaves no partial invoice.
    - Duplicate invoices for the same periods are not prevented here;
      that policy belongs to the calling layer.
    - Role gating is not enforced here either (see ``authority``).

Failure modes:
    - ValidationError subclasses for unknown or mismatched identifiers.
    - InvoiceNumberExhaustedError when token mode cannot find an unused
      number within ``invoice_number.max_attempts``.
    - Lifecycle errors from InvoiceLifecycleService.
    - Database errors propagate unchanged; invoice writes are not retried.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from billing_config.schema import BillingEngineConfig
from billing_engines.allocation import CostAllocator
from billing_engines.assembly import (
    assemble_invoice,
    build_figures,
    period_envelope,
    total_period_usage,
)
from billing_engines.breakdown import render_breakdown
from billing_engines.invoice_number import InvoiceNumberGenerator, month_prefix
from billing_engines.overlap import find_overlaps
from billing_kernel.domain.audit import AuditPort
from billing_kernel.domain.billing import (
    AllocationResult,
    DateWindow,
    Degradation,
    OverlapScan,
)
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.invoice import (
    ActorContext,
    InvoiceFigures,
    InvoiceSnapshot,
    InvoiceStatus,
)
from billing_kernel.domain.values import coerce_date
from billing_kernel.exceptions import (
    BillingPeriodMismatchError,
    BillingPeriodNotFoundError,
    DuplicateBillingPeriodError,
    EmptyBillingPeriodSelectionError,
    InvalidBillingPeriodError,
    InvoiceNotFoundError,
    InvoiceNumberExhaustedError,
    PropertyNotFoundError,
    TenantNotFoundError,
    TenantPropertyMismatchError,
)
from billing_kernel.logging_config import LogContext, get_logger
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
from billing_kernel.services.auditor_service import AuditorService
from billing_kernel.services.invoice_lifecycle_service import InvoiceLifecycleService
from billing_kernel.services.invoice_writer import InvoiceWriter
from billing_kernel.services.sequence_service import SequenceService

logger = get_logger("services.invoicing")


@dataclass(frozen=True)
class AllocationPreview:
    """Read-only allocation of one billing period, as an invoice would compute it."""

    billing_period: BillingPeriodView
    scan: OverlapScan
    allocation: AllocationResult
    figures: InvoiceFigures
    calculation_breakdown: str

    @property
    def degradations(self) -> tuple[Degradation, ...]:
        return self.figures.degradations


@dataclass(frozen=True)
class GeneratedInvoice:
    invoice_id: UUID
    invoice_number: str
    total_amount: Decimal
    degradations: tuple[Degradation, ...] = ()

    @property
    def is_low_confidence(self) -> bool:
        return bool(self.degradations)


@dataclass(frozen=True)
class InvoiceDetail:
    """An invoice with the parties and periods it references."""

    invoice: InvoiceSnapshot
    tenant: TenantView | None
    property: PropertyView | None
    billing_periods: tuple[BillingPeriodView, ...]


class InvoicingService:
    """
    Facade over the billing kernel and engines.

    Usage:
        with session_scope() as session:
            service = InvoicingService(session, get_active_config())
            result = service.generate_invoice(actor, property_id, tenant_id, [period_id])
    """

    def __init__(
        self,
        session: Session,
        config: BillingEngineConfig,
        clock: Clock | None = None,
        auditor: AuditPort | None = None,
        rng: random.Random | None = None,
    ):
        self._session = session
        self._config = config
        self._clock = clock or SystemClock()
        self._auditor = auditor or AuditorService(session, self._clock)

        self._bills = BillSelector(session)
        self._periods = BillingPeriodSelector(session)
        self._invoices = InvoiceSelector(session)
        self._parties = PartySelector(session)

        self._allocator = CostAllocator(config.fallback_electric_rate)
        self._numbers = InvoiceNumberGenerator(
            time_chars=config.invoice_number.time_chars,
            random_chars=config.invoice_number.random_chars,
            rng=rng,
        )
        self._writer = InvoiceWriter(session, self._auditor)
        self._lifecycle = InvoiceLifecycleService(session, self._auditor, self._clock)

    # Read operations

    def find_overlapping_bills(
        self, property_id: UUID, start_date: date, end_date: date,
    ) -> OverlapScan:
        if self._parties.get_property(property_id) is None:
            raise PropertyNotFoundError(str(property_id))
        start_date = coerce_date(start_date, "start_date")
        end_date = coerce_date(end_date, "end_date")
        if start_date is None or end_date is None or start_date > end_date:
            raise InvalidBillingPeriodError(
                f"start_date {start_date} must not be after end_date {end_date}"
            )

        window = DateWindow(start_date, end_date)
        bills = self._bills.in_date_range(property_id, start_date, end_date)
        return find_overlaps(window, bills)

    def preview_period_allocation(self, billing_period_id: UUID) -> AllocationPreview:
        period = self._periods.get(billing_period_id)
        if period is None:
            raise BillingPeriodNotFoundError(str(billing_period_id))

        scan = self._scan(period.property_id, period.window)
        allocation = self._allocator.allocate(period.kilowatt_hours, scan.allocations)
        figures = build_figures(scan, allocation)
        return AllocationPreview(
            billing_period=period,
            scan=scan,
            allocation=allocation,
            figures=figures,
            calculation_breakdown=render_breakdown(
                figures, currency_symbol=self._config.currency_symbol,
            ),
        )

    def get_invoice(self, invoice_id: UUID) -> InvoiceDetail:
        invoice = self._invoices.get(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        periods = self._periods.get_many(invoice.billing_period_ids)
        return InvoiceDetail(
            invoice=invoice,
            tenant=self._parties.get_tenant(invoice.tenant_id),
            property=self._parties.get_property(invoice.property_id),
            billing_periods=tuple(
                periods[pid] for pid in invoice.billing_period_ids if pid in periods
            ),
        )

    def render_stored_breakdown(self, invoice_id: UUID) -> str:
        """Re-render an invoice's breakdown from its stored figures."""
        invoice = self._invoices.get(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return render_breakdown(
            invoice.figures, currency_symbol=self._config.currency_symbol,
        )

    # Write operations

    def generate_invoice(
        self,
        actor: ActorContext,
        property_id: UUID,
        tenant_id: UUID,
        billing_period_ids: Sequence[UUID],
        due_date: date | str | None = None,
        notes: str | None = None,
    ) -> GeneratedInvoice:
        with LogContext.bind(actor_id=actor.actor_id, property_id=property_id):
            periods = self._validated_periods(property_id, tenant_id, billing_period_ids)
            due = coerce_date(due_date, "due_date")

            window = period_envelope(periods)
            usage = total_period_usage(periods)
            scan = self._scan(property_id, window)
            allocation = self._allocator.allocate(usage, scan.allocations)

            invoice_date = self._clock.today()
            invoice_number = self._allocate_invoice_number(invoice_date)

            draft = assemble_invoice(
                property_id=property_id,
                tenant_id=tenant_id,
                periods=periods,
                scan=scan,
                allocation=allocation,
                invoice_number=invoice_number,
                invoice_date=invoice_date,
                due_date=due,
                notes=notes,
                currency_symbol=self._config.currency_symbol,
            )
            invoice = self._writer.persist(draft, actor)

            logger.info(
                "invoice_generated",
                extra={
                    "invoice_id": str(invoice.id),
                    "invoice_number": invoice_number,
                    "tenant_id": str(tenant_id),
                    "billing_period_count": len(periods),
                    "total_amount": str(draft.total_amount),
                },
            )
            return GeneratedInvoice(
                invoice_id=invoice.id,
                invoice_number=invoice_number,
                total_amount=draft.total_amount,
                degradations=draft.degradations,
            )

    def transition_invoice_status(
        self,
        actor: ActorContext,
        invoice_id: UUID,
        new_status: InvoiceStatus | str,
        expected_status: InvoiceStatus | str | None = None,
    ) -> None:
        with LogContext.bind(actor_id=actor.actor_id, invoice_id=invoice_id):
            self._lifecycle.transition(
                invoice_id, new_status, actor, expected_status=expected_status,
            )

    def add_invoice_attachment(self, actor: ActorContext, invoice_id: UUID, url: str) -> None:
        with LogContext.bind(actor_id=actor.actor_id, invoice_id=invoice_id):
            self._lifecycle.add_attachment(invoice_id, url, actor)

    # Internals

    def _scan(self, property_id: UUID, window: DateWindow) -> OverlapScan:
        bills = self._bills.in_date_range(property_id, window.start, window.end)
        return find_overlaps(window, bills)

    def _validated_periods(
        self,
        property_id: UUID,
        tenant_id: UUID,
        billing_period_ids: Sequence[UUID],
    ) -> list[BillingPeriodView]:
        if self._parties.get_property(property_id) is None:
            raise PropertyNotFoundError(str(property_id))
        tenant = self._parties.get_tenant(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(str(tenant_id))
        if tenant.property_id != property_id:
            raise TenantPropertyMismatchError(str(tenant_id), str(property_id))

        ids = list(billing_period_ids or ())
        if not ids:
            raise EmptyBillingPeriodSelectionError()

        seen: set[UUID] = set()
        for pid in ids:
            if pid in seen:
                raise DuplicateBillingPeriodError(str(pid))
            seen.add(pid)

        found = self._periods.get_many(ids)
        periods: list[BillingPeriodView] = []
        for pid in ids:
            period = found.get(pid)
            if period is None:
                raise BillingPeriodNotFoundError(str(pid))
            if period.tenant_id != tenant_id or period.property_id != property_id:
                raise BillingPeriodMismatchError(str(pid), str(tenant_id), str(property_id))
            periods.append(period)
        return periods

    def _allocate_invoice_number(self, issued_on: date) -> str:
        policy = self._config.invoice_number

        if policy.uses_sequence:
            value = SequenceService(self._session).next_value(
                SequenceService.invoice_number_sequence(issued_on.year, issued_on.month)
            )
            return self._numbers.sequence_number(issued_on, value, policy.sequence_width)

        for attempt in range(1, policy.max_attempts + 1):
            candidate = self._numbers.token_number(issued_on, self._clock.epoch_millis())
            if not self._invoices.number_exists(candidate):
                return candidate
            logger.warning(
                "invoice_number_collision",
                extra={"invoice_number": candidate, "attempt": attempt},
            )
        raise InvoiceNumberExhaustedError(month_prefix(issued_on), policy.max_attempts)
