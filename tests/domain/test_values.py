"""
Tests for the Decimal policy and field coercion.

Covers:
- quantize / to_money / to_presentation rounding
- coerce_decimal over the shapes extraction produces
- coerce_date formats
- coerce_identifier
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from billing_kernel.domain.values import (
    coerce_date,
    coerce_decimal,
    coerce_identifier,
    format_decimal_plain,
    quantize,
    to_money,
    to_presentation,
)
from billing_kernel.exceptions import ExtractionFieldError


class TestRounding:

    def test_half_up(self):
        assert quantize(Decimal("0.125"), 2) == Decimal("0.13")
        assert quantize(Decimal("-0.125"), 2) == Decimal("-0.13")

    def test_money_scale(self):
        assert to_money(Decimal("1.0000000005")) == Decimal("1.000000001")
        assert to_money(Decimal("3")).as_tuple().exponent == -9

    def test_presentation_scale(self):
        assert to_presentation(Decimal("117.995")) == Decimal("118.00")

    def test_large_values_do_not_overflow_context(self):
        big = Decimal("12345678901234567890123456789.123456789123")
        assert to_money(big) == Decimal("12345678901234567890123456789.123456789")


class TestCoerceDecimal:

    @pytest.mark.parametrize(
        "raw,expected",
        [
            (15000, Decimal("15000")),
            ("15,000", Decimal("15000")),
            ("$1,234.50", Decimal("1234.50")),
            (" 12 ", Decimal("12")),
            ("-3.25", Decimal("-3.25")),
            ("(3.25)", Decimal("-3.25")),
            ("($25.00)", Decimal("-25.00")),
            (".5", Decimal("0.5")),
            (Decimal("7.1"), Decimal("7.1")),
        ],
    )
    def test_accepted_shapes(self, raw, expected):
        assert coerce_decimal(raw, "f") == expected

    def test_float_goes_through_str(self):
        assert coerce_decimal(0.1, "f") == Decimal("0.1")

    @pytest.mark.parametrize("raw", [None, "", "   ", "N/A", "--"])
    def test_absent(self, raw):
        assert coerce_decimal(raw, "f") is None

    @pytest.mark.parametrize(
        "raw",
        ["1.2.3", "12-34", "1..2", "1.5E+3", "1e5", "12/06", "15000 kWh", "#42", "(-)3"],
    )
    def test_garbled_numbers_rejected(self, raw):
        with pytest.raises(ExtractionFieldError) as exc_info:
            coerce_decimal(raw, "kilowatt_hours")

        assert exc_info.value.field_name == "kilowatt_hours"
        assert exc_info.value.code == "EXTRACTION_FIELD_INVALID"

    def test_boolean_rejected(self):
        with pytest.raises(ExtractionFieldError):
            coerce_decimal(True, "f")

    def test_non_finite_rejected(self):
        with pytest.raises(ExtractionFieldError):
            coerce_decimal(float("nan"), "f")
        with pytest.raises(ExtractionFieldError):
            coerce_decimal(Decimal("Infinity"), "f")

    def test_unsupported_type_rejected(self):
        with pytest.raises(ExtractionFieldError):
            coerce_decimal([1], "f")


class TestCoerceDate:

    @pytest.mark.parametrize(
        "raw",
        [
            "2024-06-01",
            "2024-06-01T00:00:00Z",
            "2024-06-01 08:30:00",
            "06/01/2024",
            "06/01/24",
            "June 1, 2024",
            "Jun 1, 2024",
            date(2024, 6, 1),
            datetime(2024, 6, 1, 23, 59),
        ],
    )
    def test_formats(self, raw):
        assert coerce_date(raw, "start_date") == date(2024, 6, 1)

    @pytest.mark.parametrize("raw", [None, "", "  "])
    def test_absent(self, raw):
        assert coerce_date(raw, "start_date") is None

    def test_unrecognized_rejected(self):
        with pytest.raises(ExtractionFieldError) as exc_info:
            coerce_date("first of June", "start_date")

        assert exc_info.value.field_name == "start_date"

    def test_number_rejected(self):
        with pytest.raises(ExtractionFieldError):
            coerce_date(20240601, "start_date")


class TestCoerceIdentifier:

    def test_integer_account_number_becomes_string(self):
        assert coerce_identifier(123456, "account_number") == "123456"

    def test_integral_float_accepted(self):
        assert coerce_identifier(123456.0, "account_number") == "123456"

    def test_fractional_float_rejected(self):
        with pytest.raises(ExtractionFieldError):
            coerce_identifier(12.5, "account_number")

    def test_blank_is_absent(self):
        assert coerce_identifier("  ", "meter_number") is None


class TestFormatDecimalPlain:

    def test_trailing_zeros_trimmed(self):
        assert format_decimal_plain(Decimal("1000.50")) == "1000.5"
        assert format_decimal_plain(Decimal("1000.000")) == "1000"
        assert format_decimal_plain(Decimal("0")) == "0"
