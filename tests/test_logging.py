"""Tests for compliance_kernel.logging_config: JSON lines and evaluation context."""

import json
import logging
from decimal import Decimal
from io import StringIO

import pytest

from compliance_kernel.exceptions import TaxServiceError
from compliance_kernel.logging_config import (
    LogContext,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture
def stream():
    """Route the package logger to a fresh stream, then restore the suite setup."""
    out = StringIO()
    reset_logging()
    configure_logging(level=logging.DEBUG, handler=logging.StreamHandler(out))
    yield out
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _records(stream: StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


class TestStructuredFormatter:
    def test_one_json_object_per_record(self, stream):
        logger = get_logger("services.credit")
        logger.debug("one")
        logger.info("two")

        records = _records(stream)
        assert [r["message"] for r in records] == ["one", "two"]
        assert records[1]["level"] == "INFO"
        assert records[1]["logger"] == "compliance_kernel.services.credit"
        assert "ts" in records[1]

    def test_extra_fields_and_decimals(self, stream):
        get_logger("test").info(
            "certificate_debited",
            extra={"certificate_id": "C-1", "version": 2, "quantity_after": Decimal("6.50")},
        )

        record = _records(stream)[0]
        assert record["certificate_id"] == "C-1"
        assert record["version"] == 2
        assert record["quantity_after"] == "6.50"

    def test_compliance_error_fields(self, stream):
        try:
            raise TaxServiceError("https://tax.example.test", 503)
        except TaxServiceError:
            get_logger("test").exception("tax_area_lookup_failed")

        record = _records(stream)[0]
        assert record["exc_type"] == "TaxServiceError"
        assert record["exc_code"] == "TAX_SERVICE_ERROR"
        assert record["exc_url"] == "https://tax.example.test"
        assert record["exc_status_code"] == 503
        assert "traceback" in record


class TestLogContext:
    def test_bound_fields_on_every_line(self, stream):
        with LogContext.bind(order_id="SO-9", customer_id="42"):
            get_logger("test").info("inside")
        get_logger("test").info("outside")

        inside, outside = _records(stream)
        assert (inside["order_id"], inside["customer_id"]) == ("SO-9", "42")
        assert "order_id" not in outside

    def test_nested_bind_restores_outer(self):
        with LogContext.bind(order_id="SO-1"):
            with LogContext.bind(order_id="SO-2", customer_id=None):
                assert LogContext.get_all() == {"order_id": "SO-2"}
            assert LogContext.get_all() == {"order_id": "SO-1"}
        assert LogContext.get_all() == {}


class TestConfigureLogging:
    def test_idempotent(self, stream):
        configure_logging(handler=logging.StreamHandler(StringIO()))

        assert len(logging.getLogger("compliance_kernel").handlers) == 1

    def test_level_filters(self):
        out = StringIO()
        reset_logging()
        try:
            configure_logging(level=logging.WARNING, handler=logging.StreamHandler(out))
            get_logger("test").info("hidden")
            get_logger("test").warning("shown")
        finally:
            reset_logging()
            configure_logging(level=logging.DEBUG)

        assert [r["message"] for r in _records(out)] == ["shown"]
