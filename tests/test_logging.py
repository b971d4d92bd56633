"""Tests for the structured logging system (hvac_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from hvac_kernel.domain.values import StoredUnitStatus
from hvac_kernel.exceptions import UnitAlreadyReservedError
from hvac_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite config."""
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
        assert record["logger"] == "hvac_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("unit_reserved", extra={"work_item_count": 2})

        record = _parse_log(stream)
        assert record["work_item_count"] == 2

    def test_domain_values_serialized(self):
        """UUID, dates, Decimal and enums become JSON scalars."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info(
            "values",
            extra={
                "unit_ref": uid,
                "release_date": date(2026, 2, 1),
                "sales": Decimal("1595000"),
                "unit_status": StoredUnitStatus.REQUESTED,
            },
        )

        record = _parse_log(stream)
        assert record["unit_ref"] == str(uid)
        assert record["release_date"] == "2026-02-01"
        assert record["sales"] == "1595000"
        assert record["unit_status"] == "requested"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", order_id="ord-1")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["order_id"] == "ord-1"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "unit_id" not in record

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_code_extracted(self):
        """Kernel exceptions carry a .code and structured attributes."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise UnitAlreadyReservedError("unit-1", "requested", "order-9")
        except UnitAlreadyReservedError:
            logger.error("reserve_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "UNIT_ALREADY_RESERVED"
        assert record["exc_type"] == "UnitAlreadyReservedError"
        assert record["exc_unit_id"] == "unit-1"
        assert record["exc_holder_order_id"] == "order-9"

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # default level is INFO
        assert len(logs) == 2
        for record in logs:
            assert {"ts", "level", "logger", "message"} <= set(record)


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", unit_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "unit_id": "y"}

    def test_unknown_and_none_fields_ignored(self):
        LogContext.set(correlation_id=None, not_a_field="z")
        assert LogContext.get_all() == {}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(order_id="outer")
        with LogContext.bind(order_id="inner"):
            assert LogContext.get_all()["order_id"] == "inner"
        assert LogContext.get_all()["order_id"] == "outer"

    def test_bind_restores_none(self):
        assert "batch_id" not in LogContext.get_all()
        with LogContext.bind(batch_id="temp"):
            assert LogContext.get_all()["batch_id"] == "temp"
        assert "batch_id" not in LogContext.get_all()

    def test_bind_stringifies_uuid(self):
        uid = uuid4()
        with LogContext.bind(unit_id=uid):
            assert LogContext.get_all()["unit_id"] == str(uid)

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            actor_id="a",
            order_id="o",
            unit_id="u",
            batch_id="b",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["batch_id"] == "b"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        root = logging.getLogger("hvac_kernel")
        assert len(root.handlers) == 1

    def test_get_logger_returns_child(self):
        logger = get_logger("services.reservation")
        assert logger.name == "hvac_kernel.services.reservation"

    def test_logger_hierarchy(self):
        """Child loggers inherit the hvac_kernel root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "hvac_kernel.deep.nested.module"
