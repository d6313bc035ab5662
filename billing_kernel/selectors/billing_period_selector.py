"""
Module: billing_kernel.selectors.billing_period_selector
Responsibility: Read tenant billing periods as frozen views.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from billing_kernel.domain.billing import DateWindow, MeterReadings
from billing_kernel.models.billing_period import TenantBillingPeriod
from billing_kernel.selectors.base import BaseSelector


@dataclass(frozen=True, slots=True)
class BillingPeriodView:
    id: UUID
    property_id: UUID
    tenant_id: UUID
    start_date: date
    end_date: date
    kilowatt_hours: Decimal
    meter_readings: MeterReadings | None = None
    calculation_notes: str | None = None
    supporting_image_id: str | None = None

    @property
    def window(self) -> DateWindow:
        return DateWindow(self.start_date, self.end_date)


def _readings(data: dict | None) -> MeterReadings | None:
    if not data:
        return None
    return MeterReadings(
        **{
            name: Decimal(str(data[name]))
            for name in ("room", "fan", "main")
            if data.get(name) is not None
        }
    )


def to_period_view(row: TenantBillingPeriod) -> BillingPeriodView:
    return BillingPeriodView(
        id=row.id,
        property_id=row.property_id,
        tenant_id=row.tenant_id,
        start_date=row.start_date,
        end_date=row.end_date,
        kilowatt_hours=row.kilowatt_hours,
        meter_readings=_readings(row.meter_readings),
        calculation_notes=row.calculation_notes,
        supporting_image_id=row.supporting_image_id,
    )


class BillingPeriodSelector(BaseSelector[TenantBillingPeriod]):
    """Billing period queries."""

    def get(self, period_id: UUID) -> BillingPeriodView | None:
        row = self.session.get(TenantBillingPeriod, period_id)
        return to_period_view(row) if row is not None else None

    def get_many(self, period_ids: Sequence[UUID]) -> dict[UUID, BillingPeriodView]:
        """Views keyed by id.  Unknown ids are simply absent from the result."""
        if not period_ids:
            return {}
        rows = self.session.execute(
            select(TenantBillingPeriod).where(TenantBillingPeriod.id.in_(list(period_ids)))
        ).scalars().all()
        return {row.id: to_period_view(row) for row in rows}

    def for_tenant(self, tenant_id: UUID) -> list[BillingPeriodView]:
        rows = self.session.execute(
            select(TenantBillingPeriod)
            .where(TenantBillingPeriod.tenant_id == tenant_id)
            .order_by(TenantBillingPeriod.start_date)
        ).scalars().all()
        return [to_period_view(row) for row in rows]
