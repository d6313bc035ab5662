"""
Module: billing_kernel.models.utility_bill
Responsibility: ORM persistence for supplier utility bills and their
    normalized extracted fields.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Extracted fields are typed, nullable columns.  Values reach them only
      through UtilityBillService, which normalizes the raw extraction
      mapping first; the raw mapping is kept alongside for audit.
    - upload_seq is unique and monotonic (SequenceService) and defines the
      stable order in which overlap results are reported.
    - Read-only to the allocation engine.

Failure modes:
    - IntegrityError on duplicate upload_seq.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, BigInteger, Date, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import ExactDecimal, TrackedBase, UUIDString


class UtilityBill(TrackedBase):
    """One supplier invoice for a property."""

    __tablename__ = "utility_bills"

    __table_args__ = (
        Index("idx_utility_bill_property", "property_id", "upload_seq"),
        Index("idx_utility_bill_dates", "property_id", "start_date", "end_date"),
    )

    property_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("properties.id"),
        nullable=False,
    )

    upload_seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    bill_pdf_url: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    # Billing window (inclusive)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Informational dates
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    bill_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    kilowatt_hours: Mapped[Decimal | None] = mapped_column(
        ExactDecimal(38, 9), nullable=True,
    )

    cost_per_kilowatt_hour: Mapped[Decimal | None] = mapped_column(
        ExactDecimal(38, 18), nullable=True,
    )

    # Shared costs (signed)
    state_sales_tax: Mapped[Decimal | None] = mapped_column(
        ExactDecimal(38, 9), nullable=True,
    )
    gross_receipt_tax: Mapped[Decimal | None] = mapped_column(
        ExactDecimal(38, 9), nullable=True,
    )
    adjustment: Mapped[Decimal | None] = mapped_column(
        ExactDecimal(38, 9), nullable=True,
    )
    delivery_charges: Mapped[Decimal | None] = mapped_column(
        ExactDecimal(38, 9), nullable=True,
    )

    account_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    meter_number: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Mapping exactly as handed over by the extraction pipeline
    raw_extracted_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    extracted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    @property
    def has_billing_window(self) -> bool:
        return self.start_date is not None and self.end_date is not None

    def __repr__(self) -> str:
        return f"<UtilityBill seq={self.upload_seq} {self.start_date}..{self.end_date}>"
