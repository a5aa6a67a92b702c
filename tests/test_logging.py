"""Tests for burnwise_kernel/logging_config.py."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from burnwise_kernel.exceptions import ExchangeRateNotFoundError, OverPaymentError
from burnwise_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)
from burnwise_kernel.models.debt import DebtKind


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


@pytest.fixture
def log_stream():
    """Configure the kernel logger into a StringIO; return a reader of parsed lines."""
    stream = StringIO()
    configure_logging(handler=logging.StreamHandler(stream))

    def _read() -> list[dict]:
        return [json.loads(line) for line in stream.getvalue().splitlines() if line]

    return _read


class TestStructuredFormatter:
    def test_base_fields(self, log_stream):
        get_logger("services.payment_recorder").info("payment_recorded")

        (record,) = log_stream()
        assert record["level"] == "INFO"
        assert record["message"] == "payment_recorded"
        assert record["logger"] == "burnwise_kernel.services.payment_recorder"
        assert record["ts"].endswith("+00:00")

    def test_extras_keep_their_json_types(self, log_stream):
        get_logger("test").info("installment_payment_applied", extra={"attempt": 2, "status": "partial"})

        (record,) = log_stream()
        assert record["attempt"] == 2
        assert record["status"] == "partial"

    def test_ledger_values_serialized(self, log_stream):
        installment_id = uuid4()
        get_logger("test").info(
            "summary",
            extra={
                "installment_id": installment_id,
                "amount": Decimal("12.500000000"),
                "as_of": date(2025, 2, 15),
                "kind": DebtKind.RECEIVABLE,
            },
        )

        (record,) = log_stream()
        assert record["installment_id"] == str(installment_id)
        assert record["amount"] == "12.500000000"
        assert record["as_of"] == "2025-02-15"
        assert record["kind"] == "receivable"

    def test_bound_context_included(self, log_stream):
        with LogContext.bind(payment_id="pay-1", debt_id="debt-1"):
            get_logger("test").info("inside")
        get_logger("test").info("outside")

        inside, outside = log_stream()
        assert inside["payment_id"] == "pay-1"
        assert inside["debt_id"] == "debt-1"
        assert "payment_id" not in outside
        assert "debt_id" not in outside

    def test_plain_exception(self, log_stream):
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        (record,) = log_stream()
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "exc_code" not in record
        assert "Traceback" in record["traceback"]

    def test_kernel_exception_fields(self, log_stream):
        try:
            raise ExchangeRateNotFoundError("USD", "TRY", date(2025, 3, 1))
        except ExchangeRateNotFoundError:
            get_logger("test").warning("rate_missing", exc_info=True)

        (record,) = log_stream()
        assert record["exc_code"] == "EXCHANGE_RATE_NOT_FOUND"
        assert record["exc_currency"] == "USD"
        assert record["exc_base_currency"] == "TRY"
        assert record["exc_on_date"] == "2025-03-01"
        assert record["exc_reason"] == "MISSING_RATE"

    def test_over_payment_amounts_logged_exactly(self, log_stream):
        exc = OverPaymentError("installment", "i-1", Decimal("1000.00"), Decimal("400.00"), Decimal("700.00"))
        get_logger("test").warning("rejected", exc_info=(type(exc), exc, None))

        (record,) = log_stream()
        assert record["exc_code"] == exc.code
        assert record["exc_attempted"] == "700.00"
        assert record["exc_entity_type"] == "installment"

    def test_debug_dropped_at_default_level(self, log_stream):
        logger = get_logger("test")
        logger.debug("quiet")
        logger.info("loud")

        assert [r["message"] for r in log_stream()] == ["loud"]


class TestLogContext:
    def test_empty_by_default(self):
        assert LogContext.get_all() == {}

    def test_bind_and_restore(self):
        with LogContext.bind(actor_id="outer"):
            with LogContext.bind(actor_id="inner", debt_id="d"):
                assert LogContext.get_all() == {"actor_id": "inner", "debt_id": "d"}
            assert LogContext.get_all() == {"actor_id": "outer"}
        assert LogContext.get_all() == {}

    def test_restored_after_exception(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(payment_id="p"):
                raise RuntimeError

        assert LogContext.get_all() == {}

    def test_none_and_unknown_fields_ignored(self):
        with LogContext.bind(debt_id="d", payment_id=None, not_a_field="z"):
            assert LogContext.get_all() == {"debt_id": "d"}

    def test_values_stringified(self):
        debt_id = uuid4()
        with LogContext.bind(debt_id=debt_id):
            assert LogContext.get_all() == {"debt_id": str(debt_id)}


class TestConfigureLogging:
    def test_idempotent(self):
        first = logging.StreamHandler(StringIO())
        configure_logging(handler=first)
        configure_logging(handler=logging.StreamHandler(StringIO()))

        root = logging.getLogger("burnwise_kernel")
        structured = [
            h for h in root.handlers
            if isinstance(h, logging.StreamHandler) and isinstance(h.formatter, StructuredFormatter)
        ]
        assert structured == [first]

    def test_level_applies_to_children(self):
        stream = StringIO()
        configure_logging(handler=logging.StreamHandler(stream), level=logging.DEBUG)

        get_logger("deep.nested.module").debug("hierarchy")

        record = json.loads(stream.getvalue().splitlines()[0])
        assert record["logger"] == "burnwise_kernel.deep.nested.module"

    def test_reset_allows_reconfiguration(self):
        configure_logging(handler=logging.StreamHandler(StringIO()))
        reset_logging()
        stream = StringIO()
        configure_logging(handler=logging.StreamHandler(stream))

        get_logger("test").info("again")

        assert json.loads(stream.getvalue())["message"] == "again"
