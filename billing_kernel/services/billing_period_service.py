"""
BillingPeriodService -- records a tenant's metered usage for a window.

Responsibility:
    Validates and persists TenantBillingPeriod rows.  Usage is either given
    directly or derived from sub-meter readings (room minus fan, or a main
    meter reading).

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - ``start_date < end_date`` (strict).
    - ``kilowatt_hours >= 0``.
    - The tenant belongs to the property.
    - Exactly one ``billing_period_created`` audit record per period.

Failure modes:
    - PropertyNotFoundError, TenantNotFoundError, TenantPropertyMismatchError.
    - InvalidBillingPeriodError for a bad window or usage.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from billing_kernel.domain.audit import AuditPort
from billing_kernel.domain.billing import MeterReadings
from billing_kernel.domain.invoice import ActorContext
from billing_kernel.domain.values import KWH_PLACES, ZERO, quantize
from billing_kernel.exceptions import (
    InvalidBillingPeriodError,
    PropertyNotFoundError,
    TenantNotFoundError,
    TenantPropertyMismatchError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.models.billing_period import TenantBillingPeriod
from billing_kernel.models.property import Property, Tenant
from billing_kernel.selectors.billing_period_selector import (
    BillingPeriodView,
    to_period_view,
)

logger = get_logger("services.billing_period")


class BillingPeriodService:
    """Creates billing periods.  Never commits."""

    def __init__(self, session: Session, auditor: AuditPort):
        self._session = session
        self._auditor = auditor

    def create_period(
        self,
        actor: ActorContext,
        property_id: UUID,
        tenant_id: UUID,
        start_date: date,
        end_date: date,
        kilowatt_hours: Decimal | None = None,
        meter_readings: MeterReadings | None = None,
        calculation_notes: str | None = None,
        supporting_image_id: str | None = None,
    ) -> BillingPeriodView:
        """
        Persist a billing period.

        When ``kilowatt_hours`` is omitted it is derived from
        ``meter_readings``, and the readings' description becomes the
        calculation note unless one is supplied.
        """
        if self._session.get(Property, property_id) is None:
            raise PropertyNotFoundError(str(property_id))
        tenant = self._session.get(Tenant, tenant_id)
        if tenant is None:
            raise TenantNotFoundError(str(tenant_id))
        if tenant.property_id != property_id:
            raise TenantPropertyMismatchError(str(tenant_id), str(property_id))

        if start_date >= end_date:
            raise InvalidBillingPeriodError(
                f"start_date {start_date.isoformat()} must be before "
                f"end_date {end_date.isoformat()}"
            )

        if kilowatt_hours is None and meter_readings is not None:
            kilowatt_hours = meter_readings.derived_usage()
            if calculation_notes is None:
                calculation_notes = meter_readings.describe()
        if kilowatt_hours is None:
            raise InvalidBillingPeriodError("kilowatt_hours or meter readings required")
        kilowatt_hours = Decimal(kilowatt_hours)
        if kilowatt_hours < ZERO:
            raise InvalidBillingPeriodError(
                f"kilowatt_hours must be non-negative, got {kilowatt_hours}"
            )
        kilowatt_hours = quantize(kilowatt_hours, KWH_PLACES)

        period = TenantBillingPeriod(
            property_id=property_id,
            tenant_id=tenant_id,
            start_date=start_date,
            end_date=end_date,
            kilowatt_hours=kilowatt_hours,
            meter_readings=meter_readings.as_dict() if meter_readings else None,
            calculation_notes=calculation_notes,
            supporting_image_id=supporting_image_id,
            created_by_id=actor.actor_id,
        )
        self._session.add(period)
        self._session.flush()

        self._auditor.record_billing_period_created(
            period_id=period.id,
            property_id=property_id,
            tenant_id=tenant_id,
            actor_id=actor.actor_id,
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
            kilowatt_hours=kilowatt_hours,
        )
        logger.info(
            "billing_period_created",
            extra={
                "billing_period_id": str(period.id),
                "tenant_id": str(tenant_id),
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
            },
        )
        return to_period_view(period)
