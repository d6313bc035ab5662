#!/usr/bin/env python3
"""
Invoice demo: seed the June 2024 example and walk an invoice to paid.

Seeds one property, one tenant, two supplier bills (Jun 1-15 and
Jun 16-Jul 15) and a June billing period of 1,000 kWh, then generates the
tenant's invoice, sends it, attaches a PDF link, marks it paid, and prints
the calculation breakdown and the invoice's audit trail.

Usage:
    python3 scripts/demo_invoice.py
    python3 scripts/demo_invoice.py --config sequential
    python3 scripts/demo_invoice.py --db-url sqlite:///demo.db
    python3 scripts/demo_invoice.py --role viewer   # rejected by the role gate
"""

import argparse
import logging
import sys
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from billing_config import get_active_config  # noqa: E402
from billing_kernel.db.engine import (  # noqa: E402
    create_tables,
    init_engine_from_url,
    session_scope,
)
from billing_kernel.db.immutability import register_immutability_listeners  # noqa: E402
from billing_kernel.domain.clock import DeterministicClock  # noqa: E402
from billing_kernel.domain.invoice import ActorContext, ActorRole, InvoiceStatus  # noqa: E402
from billing_kernel.exceptions import InsufficientRoleError  # noqa: E402
from billing_kernel.logging_config import configure_logging  # noqa: E402
from billing_kernel.models.property import Property, Tenant  # noqa: E402
from billing_kernel.services.auditor_service import AuditorService  # noqa: E402
from billing_kernel.services.billing_period_service import BillingPeriodService  # noqa: E402
from billing_kernel.services.utility_bill_service import UtilityBillService  # noqa: E402
from billing_services import InvoicingService, require_role  # noqa: E402

W = 72

EXAMPLE_BILLS = (
    {
        "start_date": "2024-06-01",
        "end_date": "06/15/2024",
        "kilowatt_hours": "15,000",
        "cost_per_kilowatt_hour": 0.12,
        "state_sales_tax": "$100.00",
        "account_number": 884120093,
    },
    {
        "start_date": "2024-06-16",
        "end_date": "2024-07-15",
        "kilowatt_hours": 20000,
        "cost_per_kilowatt_hour": "0.10",
        "state_sales_tax": "200",
        "meter_number": "M-3318",
    },
)


def banner(title: str) -> None:
    print()
    print("=" * W)
    print(f"  {title}")
    print("=" * W)


def field(name: str, value, indent: int = 4) -> None:
    print(f"{' ' * indent}{name}: {value}")


def seed(session, clock, actor):
    auditor = AuditorService(session, clock)

    prop = Property(name="Maple Court", address="12 Maple Ct", created_by_id=actor.actor_id)
    session.add(prop)
    session.flush()
    tenant = Tenant(
        property_id=prop.id, name="Unit 4 Bakery", unit_number="4",
        created_by_id=actor.actor_id,
    )
    session.add(tenant)
    session.flush()

    bills = UtilityBillService(session, auditor, clock)
    for n, raw in enumerate(EXAMPLE_BILLS, start=1):
        bill = bills.record_upload(prop.id, f"https://files.example/bills/{n}.pdf", actor)
        bills.record_extraction(bill.id, raw, actor)

    period = BillingPeriodService(session, auditor).create_period(
        actor,
        property_id=prop.id,
        tenant_id=tenant.id,
        start_date=date(2024, 6, 1),
        end_date=date(2024, 6, 30),
        kilowatt_hours=Decimal("1000"),
    )
    return prop, tenant, period


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate and settle a pro-rata tenant invoice.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--db-url", default="sqlite:///:memory:")
    parser.add_argument("--config", default="default", help="configuration set name")
    parser.add_argument(
        "--role", default=ActorRole.MANAGER.value,
        choices=[r.value for r in ActorRole],
        help="role of the acting user",
    )
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args()

    configure_logging(level=getattr(logging, args.log_level.upper(), logging.WARNING))
    init_engine_from_url(args.db_url)
    create_tables()
    register_immutability_listeners()

    config = get_active_config(args.config)
    clock = DeterministicClock(datetime(2024, 7, 1, 12, 0, tzinfo=UTC))
    actor = ActorContext(actor_id=uuid4(), role=ActorRole(args.role))

    with session_scope() as session:
        prop, tenant, period = seed(session, clock, actor)

    try:
        require_role(actor, config.roles.minimum_invoice_role)
    except InsufficientRoleError as exc:
        print(f"Rejected: {exc}")
        return 1

    with session_scope() as session:
        service = InvoicingService(session, config, clock)
        generated = service.generate_invoice(
            actor, prop.id, tenant.id, [period.id],
            due_date="2024-07-31", notes="June electricity",
        )

    with session_scope() as session:
        service = InvoicingService(session, config, clock)
        service.transition_invoice_status(actor, generated.invoice_id, InvoiceStatus.SENT)
        service.add_invoice_attachment(
            actor, generated.invoice_id,
            f"https://files.example/invoices/{generated.invoice_number}.pdf",
        )
        service.transition_invoice_status(actor, generated.invoice_id, InvoiceStatus.PAID)

    with session_scope() as session:
        detail = InvoicingService(session, config, clock).get_invoice(generated.invoice_id)
        auditor = AuditorService(session, clock)
        trace = auditor.get_trace("TenantInvoice", generated.invoice_id)
        chain_ok = auditor.validate_chain()

    invoice = detail.invoice
    banner(f"Invoice {invoice.invoice_number}")
    field("Tenant", f"{detail.tenant.name} (unit {detail.tenant.unit_number})")
    field("Property", detail.property.name)
    field("Status", invoice.status.value)
    field("Total", f"{config.currency_symbol}{invoice.total_amount.quantize(Decimal('0.01'))}")
    field("Attachments", ", ".join(invoice.attachment_urls) or "-")
    field("Low confidence", "yes" if generated.is_low_confidence else "no")

    banner("Calculation breakdown")
    for line in invoice.calculation_breakdown.splitlines():
        print(f"    {line}")

    banner("Bill allocations")
    for alloc in invoice.allocations:
        field(
            alloc.utility_bill_id[:8],
            f"{alloc.overlap_start} to {alloc.overlap_end}, "
            f"{alloc.overlap_days}/{alloc.total_days} days",
        )

    banner("Audit trail")
    for entry in trace.entries:
        field(f"#{entry.seq}", f"{entry.action.value} at {entry.occurred_at.isoformat()}")
    field("Chain valid", chain_ok)
    return 0


if __name__ == "__main__":
    sys.exit(main())
