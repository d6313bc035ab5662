"""
Extracted-field normalization (``billing_kernel.domain.extraction``).

Responsibility:
    The extraction pipeline hands over a loosely typed mapping of bill
    fields: numbers sometimes as strings with currency symbols, identifiers
    sometimes as numbers, dates in more than one format.
    ``normalize_extracted_fields`` turns that mapping into a strongly typed
    ``NormalizedBillFields`` once, at the storage boundary, so nothing
    downstream carries "string or number" ambiguity into the allocation
    math.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Called by UtilityBillService before
    a bill's extracted columns are written.

Invariants enforced:
    - ``start_date <= end_date`` when both are present.
    - ``kilowatt_hours`` and ``cost_per_kilowatt_hour`` are non-negative.
    - Shared-cost amounts are signed (adjustments may be credits).

Failure modes:
    - ExtractionFieldError naming the offending field.  Unknown keys are
      ignored and reported in ``ignored_fields``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from billing_kernel.domain.billing import SharedCostCategory, SharedCosts
from billing_kernel.domain.values import (
    ZERO,
    coerce_date,
    coerce_decimal,
    coerce_identifier,
)
from billing_kernel.exceptions import ExtractionFieldError

DATE_FIELDS = ("start_date", "end_date", "due_date", "bill_date")
NON_NEGATIVE_FIELDS = ("kilowatt_hours", "cost_per_kilowatt_hour")
SHARED_COST_FIELDS = tuple(c.value for c in SharedCostCategory)
IDENTIFIER_FIELDS = ("account_number", "meter_number")

KNOWN_FIELDS = frozenset(
    DATE_FIELDS + NON_NEGATIVE_FIELDS + SHARED_COST_FIELDS + IDENTIFIER_FIELDS
)


@dataclass(frozen=True, slots=True)
class NormalizedBillFields:
    """Strongly typed extracted fields of one utility bill."""

    start_date: date | None = None
    end_date: date | None = None
    due_date: date | None = None
    bill_date: date | None = None
    kilowatt_hours: Decimal | None = None
    cost_per_kilowatt_hour: Decimal | None = None
    state_sales_tax: Decimal | None = None
    gross_receipt_tax: Decimal | None = None
    adjustment: Decimal | None = None
    delivery_charges: Decimal | None = None
    account_number: str | None = None
    meter_number: str | None = None
    ignored_fields: tuple[str, ...] = field(default=())

    @property
    def fields_present(self) -> list[str]:
        return sorted(
            name for name in KNOWN_FIELDS if getattr(self, name) is not None
        )

    @property
    def shared_costs(self) -> SharedCosts:
        """Absent shared costs count as zero."""
        return SharedCosts(
            **{name: getattr(self, name) or ZERO for name in SHARED_COST_FIELDS}
        )


def normalize_extracted_fields(raw: Mapping[str, Any]) -> NormalizedBillFields:
    """
    Parse a raw extraction mapping into ``NormalizedBillFields``.

    >>> normalize_extracted_fields({"kilowatt_hours": "15,000",
    ...     "state_sales_tax": "$100.00"}).kilowatt_hours
    Decimal('15000')
    """
    values: dict[str, Any] = {}

    for name in DATE_FIELDS:
        values[name] = coerce_date(raw.get(name), name)

    for name in NON_NEGATIVE_FIELDS:
        amount = coerce_decimal(raw.get(name), name)
        if amount is not None and amount < ZERO:
            raise ExtractionFieldError(name, raw.get(name), "must be non-negative")
        values[name] = amount

    for name in SHARED_COST_FIELDS:
        values[name] = coerce_decimal(raw.get(name), name)

    for name in IDENTIFIER_FIELDS:
        values[name] = coerce_identifier(raw.get(name), name)

    start, end = values["start_date"], values["end_date"]
    if start is not None and end is not None and start > end:
        raise ExtractionFieldError(
            "end_date", raw.get("end_date"), f"before start_date {start.isoformat()}"
        )

    ignored = tuple(sorted(k for k in raw if k not in KNOWN_FIELDS))
    return NormalizedBillFields(ignored_fields=ignored, **values)
