"""
Tests for InvoicingService.

Covers:
- Invoice generation for the June worked example
- Multi-period invoices
- Degraded (low-confidence) invoices
- Input validation
- Breakdown regeneration from stored figures
- Invoice numbering in token and sequence mode
- Read operations: overlap scan, allocation preview, invoice detail
"""

import re
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_kernel.domain.audit import AuditAction
from billing_kernel.domain.billing import Degradation
from billing_kernel.domain.invoice import InvoiceStatus
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
from billing_kernel.selectors.invoice_selector import InvoiceSelector
from billing_services.invoicing_service import InvoicingService

EXPECTED_BREAKDOWN = (
    "Billing Period: 2024-06-01 to 2024-06-30\n"
    "Tenant Usage: 1,000 kWh\n"
    "Property Total: 25,000 kWh\n"
    "Tenant Ratio: 4.00%\n"
    "Average Rate: $0.1100/kWh\n"
    "Direct Cost: $110.00\n"
    "Overlapping Bills: 2"
)


class _ScriptedRandom:
    """Plays back a fixed list of digits, repeating the last one."""

    def __init__(self, values):
        self._values = list(values)

    def randrange(self, stop):
        value = self._values.pop(0) if len(self._values) > 1 else self._values[0]
        return value % stop


class TestGenerateInvoice:

    def test_worked_example_totals(self, invoicing_service, june_example, actor):
        result = invoicing_service.generate_invoice(
            actor, june_example.property_id, june_example.tenant_id, [june_example.period_id],
        )

        assert result.total_amount == Decimal("118")
        assert result.degradations == ()
        assert not result.is_low_confidence
        assert re.match(r"^INV-202407-[0-9A-Z]{6}$", result.invoice_number)

    def test_stored_invoice(self, invoicing_service, june_example, actor):
        result = invoicing_service.generate_invoice(
            actor, june_example.property_id, june_example.tenant_id, [june_example.period_id],
            due_date="07/31/2024", notes="June electricity",
        )

        invoice = invoicing_service.get_invoice(result.invoice_id).invoice

        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.version == 1
        assert invoice.invoice_date == date(2024, 7, 1)
        assert invoice.due_date == date(2024, 7, 31)
        assert invoice.notes == "June electricity"
        assert invoice.billing_period_ids == (june_example.period_id,)
        assert invoice.figures.direct_cost == Decimal("110")
        assert invoice.figures.tenant_ratio == Decimal("0.04")
        assert invoice.figures.average_rate == Decimal("0.11")
        assert invoice.allocated_costs.state_sales_tax == Decimal("8")
        assert invoice.total_amount == Decimal("118")
        assert invoice.total_amount == (
            invoice.figures.direct_cost + invoice.allocated_costs.total()
        )
        assert invoice.attachment_urls == ()
        assert invoice.calculation_breakdown == EXPECTED_BREAKDOWN

    def test_allocation_trail_stored(self, invoicing_service, june_example, actor):
        result = invoicing_service.generate_invoice(
            actor, june_example.property_id, june_example.tenant_id, [june_example.period_id],
        )

        allocations = invoicing_service.get_invoice(result.invoice_id).invoice.allocations

        assert [a.utility_bill_id for a in allocations] == [
            str(bill_id) for bill_id in june_example.bill_ids
        ]
        assert allocations[1].allocation_percentage == Decimal("0.5")
        assert allocations[1].allocated_amounts.state_sales_tax == Decimal("100")

    def test_breakdown_regenerates_byte_identical(self, invoicing_service, june_example, actor):
        result = invoicing_service.generate_invoice(
            actor, june_example.property_id, june_example.tenant_id, [june_example.period_id],
        )

        stored = invoicing_service.get_invoice(result.invoice_id).invoice.calculation_breakdown

        assert invoicing_service.render_stored_breakdown(result.invoice_id) == stored

    def test_audited(self, invoicing_service, auditor_service, june_example, actor):
        result = invoicing_service.generate_invoice(
            actor, june_example.property_id, june_example.tenant_id, [june_example.period_id],
        )

        trace = auditor_service.get_trace("TenantInvoice", result.invoice_id)

        assert trace.actions == (AuditAction.INVOICE_GENERATED,)
        assert trace.entries[0].payload["total_amount"] == "118"
        assert auditor_service.validate_chain()

    def test_logs_carry_actor_context(self, invoicing_service, june_example, actor, captured_logs):
        invoicing_service.generate_invoice(
            actor, june_example.property_id, june_example.tenant_id, [june_example.period_id],
        )

        generated = [r for r in captured_logs() if r["message"] == "invoice_generated"]
        assert len(generated) == 1
        assert generated[0]["actor_id"] == str(actor.actor_id)
        assert generated[0]["property_id"] == str(june_example.property_id)

    def test_reads_fresh_bills_each_call(
        self, invoicing_service, june_example, make_bill, actor,
    ):
        first = invoicing_service.generate_invoice(
            actor, june_example.property_id, june_example.tenant_id, [june_example.period_id],
        )
        make_bill(
            june_example.property_id,
            start_date="2024-06-01",
            end_date="2024-06-30",
            kilowatt_hours=25000,
            cost_per_kilowatt_hour="0.11",
        )

        second = invoicing_service.generate_invoice(
            actor, june_example.property_id, june_example.tenant_id, [june_example.period_id],
        )

        # Property total doubles, so the shared tax halves: 110 + 4
        assert first.total_amount == Decimal("118")
        assert second.total_amount == Decimal("114")


class TestMultiPeriodInvoice:

    def test_envelope_and_summed_usage(
        self, invoicing_service, june_example, make_period, actor,
    ):
        first = make_period(
            june_example.property_id, june_example.tenant_id,
            date(2024, 6, 1), date(2024, 6, 15), kwh="600",
        )
        second = make_period(
            june_example.property_id, june_example.tenant_id,
            date(2024, 6, 16), date(2024, 6, 30), kwh="400",
        )

        result = invoicing_service.generate_invoice(
            actor, june_example.property_id, june_example.tenant_id, [first.id, second.id],
        )
        invoice = invoicing_service.get_invoice(result.invoice_id).invoice

        assert result.total_amount == Decimal("118")
        assert invoice.figures.period_start == date(2024, 6, 1)
        assert invoice.figures.period_end == date(2024, 6, 30)
        assert invoice.figures.tenant_usage_kwh == Decimal("1000")
        assert invoice.billing_period_ids == (first.id, second.id)

    def test_detail_lists_periods(self, invoicing_service, june_example, make_period, actor):
        extra = make_period(
            june_example.property_id, june_example.tenant_id,
            date(2024, 7, 1), date(2024, 7, 15), kwh="100",
        )

        result = invoicing_service.generate_invoice(
            actor, june_example.property_id, june_example.tenant_id,
            [june_example.period_id, extra.id],
        )
        detail = invoicing_service.get_invoice(result.invoice_id)

        assert [p.id for p in detail.billing_periods] == [june_example.period_id, extra.id]
        assert detail.tenant.id == june_example.tenant_id
        assert detail.property.id == june_example.property_id


class TestDegradedInvoice:

    def test_no_bills_uses_fallback_rate(
        self, invoicing_service, make_property, make_tenant, make_period, actor,
    ):
        prop = make_property()
        tenant = make_tenant(prop.id)
        period = make_period(prop.id, tenant.id, date(2024, 6, 1), date(2024, 6, 30))

        result = invoicing_service.generate_invoice(actor, prop.id, tenant.id, [period.id])
        invoice = invoicing_service.get_invoice(result.invoice_id).invoice

        assert result.total_amount == Decimal("147.9")
        assert result.is_low_confidence
        assert result.degradations == (
            Degradation.FALLBACK_RATE,
            Degradation.ZERO_PROPERTY_USAGE,
            Degradation.PARTIAL_COVERAGE,
        )
        assert "Warnings:" in invoice.calculation_breakdown
        assert "- Fallback rate $0.1479/kWh used" in invoice.calculation_breakdown
        assert invoicing_service.render_stored_breakdown(result.invoice_id) == (
            invoice.calculation_breakdown
        )

    def test_undated_bill_excluded(self, invoicing_service, june_example, make_bill, actor):
        make_bill(june_example.property_id, kilowatt_hours=5000)

        result = invoicing_service.generate_invoice(
            actor, june_example.property_id, june_example.tenant_id, [june_example.period_id],
        )

        assert result.total_amount == Decimal("118")
        assert result.degradations == (Degradation.EXCLUDED_BILLS,)


class TestGenerateInvoiceValidation:

    def test_unknown_property(self, invoicing_service, june_example, actor):
        with pytest.raises(PropertyNotFoundError):
            invoicing_service.generate_invoice(
                actor, uuid4(), june_example.tenant_id, [june_example.period_id],
            )

    def test_unknown_tenant(self, invoicing_service, june_example, actor):
        with pytest.raises(TenantNotFoundError):
            invoicing_service.generate_invoice(
                actor, june_example.property_id, uuid4(), [june_example.period_id],
            )

    def test_tenant_of_other_property(
        self, invoicing_service, june_example, make_property, make_tenant, actor,
    ):
        other = make_property("Elm Plaza")
        stranger = make_tenant(other.id)

        with pytest.raises(TenantPropertyMismatchError):
            invoicing_service.generate_invoice(
                actor, june_example.property_id, stranger.id, [june_example.period_id],
            )

    def test_empty_selection(self, invoicing_service, june_example, actor):
        with pytest.raises(EmptyBillingPeriodSelectionError):
            invoicing_service.generate_invoice(
                actor, june_example.property_id, june_example.tenant_id, [],
            )

    def test_duplicate_period(self, invoicing_service, june_example, actor):
        with pytest.raises(DuplicateBillingPeriodError):
            invoicing_service.generate_invoice(
                actor, june_example.property_id, june_example.tenant_id,
                [june_example.period_id, june_example.period_id],
            )

    def test_unknown_period(self, invoicing_service, june_example, actor):
        with pytest.raises(BillingPeriodNotFoundError):
            invoicing_service.generate_invoice(
                actor, june_example.property_id, june_example.tenant_id,
                [june_example.period_id, uuid4()],
            )

    def test_period_of_other_tenant(
        self, invoicing_service, june_example, make_tenant, make_period, actor,
    ):
        neighbour = make_tenant(june_example.property_id, name="Unit 5 Florist")
        their_period = make_period(
            june_example.property_id, neighbour.id, date(2024, 6, 1), date(2024, 6, 30),
        )

        with pytest.raises(BillingPeriodMismatchError):
            invoicing_service.generate_invoice(
                actor, june_example.property_id, june_example.tenant_id, [their_period.id],
            )

    def test_failed_generation_writes_nothing(self, session, invoicing_service, june_example, actor):
        with pytest.raises(BillingPeriodNotFoundError):
            invoicing_service.generate_invoice(
                actor, june_example.property_id, june_example.tenant_id, [uuid4()],
            )

        assert InvoiceSelector(session).by_tenant(june_example.tenant_id) == []


class TestInvoiceNumbering:

    def test_collision_retried(
        self, session, default_config, deterministic_clock, auditor_service, june_example, actor,
    ):
        # First invoice draws "00"; the second draws "00" again, then "11"
        service = InvoicingService(
            session, default_config, deterministic_clock, auditor_service,
            rng=_ScriptedRandom([0, 0, 0, 0, 1]),
        )

        first = service.generate_invoice(
            actor, june_example.property_id, june_example.tenant_id, [june_example.period_id],
        )
        second = service.generate_invoice(
            actor, june_example.property_id, june_example.tenant_id, [june_example.period_id],
        )

        assert first.invoice_number.endswith("00")
        assert second.invoice_number.endswith("11")
        assert first.invoice_number[:-2] == second.invoice_number[:-2]

    def test_exhaustion_raises(
        self, session, default_config, deterministic_clock, auditor_service, june_example, actor,
    ):
        service = InvoicingService(
            session, default_config, deterministic_clock, auditor_service,
            rng=_ScriptedRandom([7]),
        )
        service.generate_invoice(
            actor, june_example.property_id, june_example.tenant_id, [june_example.period_id],
        )

        with pytest.raises(InvoiceNumberExhaustedError) as exc_info:
            service.generate_invoice(
                actor, june_example.property_id, june_example.tenant_id, [june_example.period_id],
            )

        assert exc_info.value.prefix == "INV-202407"
        assert exc_info.value.attempts == default_config.invoice_number.max_attempts

    def test_sequence_mode(
        self, session, sequential_config, deterministic_clock, auditor_service, june_example, actor,
    ):
        service = InvoicingService(session, sequential_config, deterministic_clock, auditor_service)

        numbers = [
            service.generate_invoice(
                actor, june_example.property_id, june_example.tenant_id, [june_example.period_id],
            ).invoice_number
            for _ in range(3)
        ]

        assert numbers == ["INV-202407-0001", "INV-202407-0002", "INV-202407-0003"]


class TestReadOperations:

    def test_find_overlapping_bills(self, invoicing_service, june_example):
        scan = invoicing_service.find_overlapping_bills(
            june_example.property_id, date(2024, 6, 10), date(2024, 6, 20),
        )

        assert scan.overlapping_bill_count == 2
        assert [a.overlap_days for a in scan.allocations] == [6, 5]

    def test_find_overlapping_bills_accepts_strings(self, invoicing_service, june_example):
        scan = invoicing_service.find_overlapping_bills(
            june_example.property_id, "2024-07-01", "2024-07-31",
        )

        assert scan.overlapping_bill_count == 1
        assert scan.allocations[0].overlap_days == 15

    def test_find_overlapping_bills_none_in_range(self, invoicing_service, june_example):
        scan = invoicing_service.find_overlapping_bills(
            june_example.property_id, date(2025, 1, 1), date(2025, 1, 31),
        )

        assert scan.allocations == ()

    def test_find_overlapping_bills_reversed_range(self, invoicing_service, june_example):
        with pytest.raises(InvalidBillingPeriodError):
            invoicing_service.find_overlapping_bills(
                june_example.property_id, date(2024, 6, 30), date(2024, 6, 1),
            )

    def test_find_overlapping_bills_unknown_property(self, invoicing_service, june_example):
        with pytest.raises(PropertyNotFoundError):
            invoicing_service.find_overlapping_bills(
                uuid4(), date(2024, 6, 1), date(2024, 6, 30),
            )

    def test_preview_matches_generated_invoice(self, invoicing_service, june_example, actor):
        preview = invoicing_service.preview_period_allocation(june_example.period_id)
        result = invoicing_service.generate_invoice(
            actor, june_example.property_id, june_example.tenant_id, [june_example.period_id],
        )

        assert preview.allocation.total_amount == result.total_amount
        assert preview.calculation_breakdown == EXPECTED_BREAKDOWN
        assert preview.degradations == ()

    def test_preview_writes_nothing(self, session, invoicing_service, june_example):
        invoicing_service.preview_period_allocation(june_example.period_id)

        assert InvoiceSelector(session).by_tenant(june_example.tenant_id) == []

    def test_preview_unknown_period(self, invoicing_service, june_example):
        with pytest.raises(BillingPeriodNotFoundError):
            invoicing_service.preview_period_allocation(uuid4())

    def test_get_unknown_invoice(self, invoicing_service):
        with pytest.raises(InvoiceNotFoundError):
            invoicing_service.get_invoice(uuid4())
