"""Tests for the structured logging system (ledger_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "ledger_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("ipc_saved", extra={"order_of_bill": 3, "bill_number": "IPC-3"})

        record = _parse_log(stream)
        assert record["order_of_bill"] == 3
        assert record["bill_number"] == "IPC-3"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", project_id="P-1")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["project_id"] == "P-1"

    def test_ledger_exception_fields_extracted(self):
        """Ledger exceptions contribute their code and structured attributes."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        from ledger_kernel.exceptions import VariationNotDraftError

        try:
            raise VariationNotDraftError("vo-1", "Approved", "delete")
        except VariationNotDraftError:
            get_logger("test").error("delete_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "VariationNotDraftError"
        assert record["exc_code"] == "VARIATION_NOT_DRAFT"
        assert record["exc_variation_id"] == "vo-1"
        assert "traceback" in record

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "project_id" not in record

    def test_decimal_date_and_uuid_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("values", extra={
            "amount": Decimal("107443.00"),
            "bill_date": date(2024, 4, 30),
            "entity_id": uid,
        })

        record = _parse_log(stream)
        assert record["amount"] == "107443.00"
        assert record["bill_date"] == "2024-04-30"
        assert record["entity_id"] == str(uid)

    def test_debug_filtered_at_default_level(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        assert [r["message"] for r in logs] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", actor_id="u-1")
        assert LogContext.get_all() == {"correlation_id": "x", "actor_id": "u-1"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_outer_value(self):
        LogContext.set(project_id="outer")
        with LogContext.bind(project_id="inner"):
            assert LogContext.get_all()["project_id"] == "inner"
        assert LogContext.get_all()["project_id"] == "outer"

    def test_bind_skips_none(self):
        """None values leave the current field alone."""
        LogContext.set(actor_id="u-1")
        with LogContext.bind(actor_id=None, document_id="vo-9"):
            ctx = LogContext.get_all()
            assert ctx["actor_id"] == "u-1"
            assert ctx["document_id"] == "vo-9"
        assert "document_id" not in LogContext.get_all()


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        reset_logging()
        ledger_logger = logging.getLogger("ledger_kernel")
        first, _ = _make_handler()
        configure_logging(handler=first)
        after_first = list(ledger_logger.handlers)

        second, _ = _make_handler()
        configure_logging(handler=second)

        assert ledger_logger.handlers == after_first
        assert first in ledger_logger.handlers
        assert second not in ledger_logger.handlers

    def test_reset_allows_reconfigure(self):
        handler1, _ = _make_handler()
        configure_logging(handler=handler1)
        reset_logging()
        handler2, stream2 = _make_handler()
        configure_logging(handler=handler2)
        get_logger("test").info("after_reset")
        assert _parse_log(stream2)["message"] == "after_reset"

    def test_does_not_propagate_to_root(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        assert logging.getLogger("ledger_kernel").propagate is False


class TestContextFields:

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="vo_number"):
            LogContext.set(vo_number="VO-1")

    def test_status_logged_as_value(self):
        from ledger_kernel.domain.billing import SubcontractorBillStatus

        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("status", extra={"status": SubcontractorBillStatus.PAID})

        assert _parse_log(stream)["status"] == "Paid"
