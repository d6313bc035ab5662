"""
Module: billing_kernel.selectors.bill_selector
Responsibility: Read utility bills of a property as engine records.

Bills come back in upload order (``upload_seq``), which is the stable
order the overlap finder reports allocations in.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import and_, or_, select

from billing_kernel.domain.billing import SharedCosts, UtilityBillRecord
from billing_kernel.domain.values import ZERO
from billing_kernel.models.utility_bill import UtilityBill
from billing_kernel.selectors.base import BaseSelector


def to_bill_record(bill: UtilityBill) -> UtilityBillRecord:
    """Map a stored bill to the read-only record the engines consume."""
    return UtilityBillRecord(
        bill_id=str(bill.id),
        start_date=bill.start_date,
        end_date=bill.end_date,
        kilowatt_hours=bill.kilowatt_hours,
        cost_per_kilowatt_hour=bill.cost_per_kilowatt_hour,
        shared_costs=SharedCosts(
            state_sales_tax=bill.state_sales_tax or ZERO,
            gross_receipt_tax=bill.gross_receipt_tax or ZERO,
            adjustment=bill.adjustment or ZERO,
            delivery_charges=bill.delivery_charges or ZERO,
        ),
    )


class BillSelector(BaseSelector[UtilityBill]):
    """Utility bill queries."""

    def get(self, bill_id: UUID) -> UtilityBillRecord | None:
        bill = self.session.get(UtilityBill, bill_id)
        return to_bill_record(bill) if bill is not None else None

    def for_property(self, property_id: UUID) -> list[UtilityBillRecord]:
        """Every bill of the property, including undated ones, in upload order."""
        rows = self.session.execute(
            select(UtilityBill)
            .where(UtilityBill.property_id == property_id)
            .order_by(UtilityBill.upload_seq)
        ).scalars().all()
        return [to_bill_record(row) for row in rows]

    def in_date_range(
        self, property_id: UUID, start_date: date, end_date: date,
    ) -> list[UtilityBillRecord]:
        """
        Bills whose window intersects ``[start_date, end_date]``, plus every
        bill with a missing date, in upload order.

        Undated bills are returned so the overlap finder can count them as
        excluded rather than have them vanish silently.
        """
        rows = self.session.execute(
            select(UtilityBill)
            .where(
                UtilityBill.property_id == property_id,
                or_(
                    UtilityBill.start_date.is_(None),
                    UtilityBill.end_date.is_(None),
                    and_(
                        UtilityBill.start_date <= end_date,
                        UtilityBill.end_date >= start_date,
                    ),
                ),
            )
            .order_by(UtilityBill.upload_seq)
        ).scalars().all()
        return [to_bill_record(row) for row in rows]
