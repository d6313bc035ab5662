"""Tests for the structured logging system (billing_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from billing_kernel.exceptions import InvalidStatusTransitionError
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Start each test unconfigured; restore the suite's configuration after."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_all_logs(stream)[0]
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "billing_kernel.test"
        assert "ts" in record

    def test_extra_fields_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        invoice_id = uuid4()
        get_logger("test").info(
            "invoice_generated",
            extra={"invoice_id": invoice_id, "total_amount": Decimal("118.00")},
        )

        record = _parse_all_logs(stream)[0]
        assert record["invoice_id"] == str(invoice_id)
        assert record["total_amount"] == "118.00"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="corr-1", property_id="prop-9")
        get_logger("test").info("scoped")

        record = _parse_all_logs(stream)[0]
        assert record["correlation_id"] == "corr-1"
        assert record["property_id"] == "prop-9"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise InvalidStatusTransitionError("inv-1", "draft", "paid")
        except InvalidStatusTransitionError:
            get_logger("test").exception("transition_failed")

        record = _parse_all_logs(stream)[0]
        assert record["exc_type"] == "InvalidStatusTransitionError"
        assert record["exc_code"] == "INVALID_STATUS_TRANSITION"
        assert record["exc_from_status"] == "draft"
        assert record["exc_to_status"] == "paid"
        assert "Traceback" in record["traceback"]


class TestConfigureLogging:

    def test_idempotent(self):
        first, first_stream = _make_handler()
        second, second_stream = _make_handler()
        configure_logging(handler=first)
        configure_logging(handler=second)
        get_logger("test").info("once")

        assert len(_parse_all_logs(first_stream)) == 1
        assert second_stream.getvalue() == ""

    def test_level_respected(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        get_logger("test").info("dropped")
        get_logger("test").warning("kept")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["kept"]

    def test_does_not_propagate(self):
        configure_logging(handler=logging.NullHandler())

        assert logging.getLogger("billing_kernel").propagate is False


class TestLogContext:

    def test_unknown_field_rejected(self):
        with pytest.raises(KeyError):
            LogContext.set(tenant_name="bakery")

    def test_none_values_skipped(self):
        LogContext.set(actor_id="a-1", invoice_id=None)

        assert LogContext.get_all() == {"actor_id": "a-1"}

    def test_bind_restores_previous_values(self):
        LogContext.set(invoice_id="outer")

        with LogContext.bind(invoice_id="inner", trace_id="t-1"):
            assert LogContext.get_all() == {"invoice_id": "inner", "trace_id": "t-1"}

        assert LogContext.get_all() == {"invoice_id": "outer"}

    def test_clear(self):
        LogContext.set(correlation_id="c", actor_id="a")
        LogContext.clear()

        assert LogContext.get_all() == {}
