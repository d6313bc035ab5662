"""
Module: billing_kernel.models.billing_period
Responsibility: ORM persistence for a tenant's declared usage over a
    billing window.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - start_date < end_date (strict), checked by BillingPeriodService and
      backed by a CHECK constraint.
    - kilowatt_hours >= 0.
    - Window, usage, tenant and property are immutable after insert
      (db/immutability.py).

Failure modes:
    - IntegrityError when the CHECK constraints are violated.
    - ImmutabilityViolationError on attempts to change frozen fields.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import ExactDecimal, TrackedBase, UUIDString


class TenantBillingPeriod(TrackedBase):
    """A tenant's metered usage for one window."""

    __tablename__ = "tenant_billing_periods"

    __table_args__ = (
        CheckConstraint("start_date < end_date", name="ck_billing_period_window"),
        Index("idx_billing_period_property", "property_id"),
        Index("idx_billing_period_tenant", "tenant_id"),
        Index("idx_billing_period_dates", "start_date", "end_date"),
    )

    property_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("properties.id"),
        nullable=False,
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    kilowatt_hours: Mapped[Decimal] = mapped_column(ExactDecimal(38, 9), nullable=False)

    # {"room": "2456", "fan": "1089"} style sub-meter readings
    meter_readings: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    calculation_notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    supporting_image_id: Mapped[str | None] = mapped_column(String(200), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<TenantBillingPeriod tenant={self.tenant_id} "
            f"{self.start_date}..{self.end_date} kwh={self.kilowatt_hours}>"
        )
