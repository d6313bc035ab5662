"""
Values -- Decimal policy and parse-don't-trust field coercion.

Responsibility:
    Single home for the numeric rules of the billing system: the calculation
    context, storage and presentation scales, the sanctioned rounding
    function, and the coercion of loosely-typed extracted values (numbers
    and dates as the extraction pipeline hands them over) into Decimal and
    date.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Imported by every
    other domain module, the engines and the storage boundary.

Invariants enforced:
    - No floats in calculations.  Floats arriving from extraction are
      converted through ``str()`` so 0.1 becomes Decimal("0.1"), never its
      binary expansion.
    - ROUND_HALF_UP everywhere; rounding happens only through ``quantize``.

Failure modes:
    - ExtractionFieldError for values that carry digits but cannot be
      parsed, for NaN/Infinity, for booleans, and for unrecognized dates.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation, localcontext
from typing import Any

from billing_kernel.exceptions import ExtractionFieldError

# 50 significant digits for every intermediate product and quotient.
CALC_PRECISION = 50

MONEY_PLACES = 9
RATE_PLACES = 18
RATIO_PLACES = 18
KWH_PLACES = 9
PRESENTATION_PLACES = 2

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")


def calc_context() -> Context:
    """Local decimal context used by the engines."""
    return Context(prec=CALC_PRECISION, rounding=ROUND_HALF_UP)


def quantize(value: Decimal, places: int, rounding: str = ROUND_HALF_UP) -> Decimal:
    """
    Round ``value`` to ``places`` decimal places.

    The only sanctioned rounding function for billing figures.
    """
    with localcontext(calc_context()):
        return value.quantize(ONE.scaleb(-places), rounding=rounding)


def to_money(value: Decimal) -> Decimal:
    """Storage-scale money (9 places)."""
    return quantize(value, MONEY_PLACES)


def to_presentation(value: Decimal) -> Decimal:
    """Two-place money for display."""
    return quantize(value, PRESENTATION_PLACES)


_NUMBER_RE = re.compile(r"^-?(\d+(\.\d*)?|\.\d+)$")
# Currency symbol, thousands separators and whitespace; anything else must parse
_FORMATTING_RE = re.compile(r"[$,\s]")


def coerce_decimal(value: Any, field_name: str) -> Decimal | None:
    """
    Coerce an extracted numeric value to Decimal.

    Accepts int, float, Decimal and strings such as ``"$1,234.50"``,
    ``" 12 "``, ``"-3.25"`` or ``"(3.25)"`` (accounting negative).  None,
    empty strings and strings with no digits at all (``"N/A"``, ``"--"``)
    mean the field is absent and yield None.

    Raises:
        ExtractionFieldError: digits present but not a single plain
            number (``"1e5"``, ``"12/06"``, ``"15 kWh"``), non-finite
            values, booleans, or unsupported types.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ExtractionFieldError(field_name, value, "boolean is not a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not any(ch.isdigit() for ch in text):
            return None
        negative = text.startswith("(") and text.endswith(")")
        if negative:
            text = text[1:-1]
        cleaned = _FORMATTING_RE.sub("", text)
        if not _NUMBER_RE.match(cleaned):
            raise ExtractionFieldError(field_name, value, "not a single number")
        try:
            result = Decimal(cleaned)
        except InvalidOperation as exc:
            raise ExtractionFieldError(field_name, value, "not a number") from exc
        if negative:
            result = -abs(result)
    else:
        raise ExtractionFieldError(
            field_name, value, f"unsupported type {type(value).__name__}"
        )

    if not result.is_finite():
        raise ExtractionFieldError(field_name, value, "not a finite number")
    return result


_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%B %d, %Y", "%b %d, %Y")


def coerce_date(value: Any, field_name: str) -> date | None:
    """
    Coerce an extracted date to ``datetime.date``.

    Accepts ``date``/``datetime`` objects, ISO ``YYYY-MM-DD`` (optionally
    followed by a time part), ``MM/DD/YYYY``, ``MM/DD/YY`` and long forms
    such as ``June 1, 2024``.  None or blank means absent.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ExtractionFieldError(
            field_name, value, f"unsupported type {type(value).__name__}"
        )

    text = value.strip()
    if not text:
        return None
    # ISO timestamps: keep the calendar date only
    if len(text) > 10 and text[4] == "-" and text[10] in "T ":
        text = text[:10]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ExtractionFieldError(field_name, value, "unrecognized date format")


def coerce_identifier(value: Any, field_name: str) -> str | None:
    """Account and meter numbers arrive as strings or numbers; store strings."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ExtractionFieldError(field_name, value, "boolean is not an identifier")
    if isinstance(value, float):
        if not value.is_integer():
            raise ExtractionFieldError(field_name, value, "fractional identifier")
        value = int(value)
    text = str(value).strip()
    return text or None


def format_decimal_plain(value: Decimal) -> str:
    """Fixed-point text with trailing zeros trimmed (``1000.50`` -> ``1000.5``)."""
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"
