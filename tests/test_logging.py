"""Tests for the structured logging system (declaration_kernel/logging_config.py)."""

import ast
import json
import logging
from decimal import Decimal
from io import StringIO
from pathlib import Path
from uuid import uuid4

import pytest

from declaration_kernel.exceptions import DeclarationStateError, PeriodFormatError
from declaration_kernel.logging_config import (
    _STDLIB_KEYS,
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests and restore the suite's config."""
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


def _records(stream: StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


@pytest.fixture
def emitted():
    """Configure logging at INFO into a buffer; returns the parsed records."""
    handler, stream = _make_handler()
    configure_logging(handler=handler)
    return lambda: _records(stream)


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self, emitted):
        get_logger("test").info("hello")

        [record] = emitted()
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "declaration_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self, emitted):
        get_logger("test").info(
            "declaration_created", extra={"total_shipments": 3, "period": "102025"},
        )

        [record] = emitted()
        assert record["total_shipments"] == 3
        assert record["period"] == "102025"

    def test_context_fields_included(self, emitted):
        LogContext.set(session_id="s-1", waste_stream_number="087970000001")
        get_logger("test").info("test_msg")

        [record] = emitted()
        assert record["session_id"] == "s-1"
        assert record["waste_stream_number"] == "087970000001"

    def test_exception_fields(self, emitted):
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        [record] = emitted()
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_fields_extracted(self, emitted):
        try:
            raise DeclarationStateError("900000000001", "COMPLETED", "WAITING_APPROVAL")
        except DeclarationStateError:
            get_logger("test").error("approval_rejected", exc_info=True)

        [record] = emitted()
        assert record["exc_code"] == "DECLARATION_STATE_CONFLICT"
        assert record["exc_declaration_id"] == "900000000001"
        assert record["exc_status"] == "COMPLETED"
        assert record["exc_expected"] == "WAITING_APPROVAL"

    def test_period_error_message_is_dutch(self, emitted):
        try:
            raise PeriodFormatError("132025", "maand buiten bereik")
        except PeriodFormatError:
            get_logger("test").warning("period_invalid", exc_info=True)

        [record] = emitted()
        assert record["exc_code"] == "INVALID_PERIOD"
        assert record["exc_message"].startswith("Ongeldige periode '132025'")

    def test_no_context_fields_when_empty(self, emitted):
        get_logger("test").info("bare_message")

        [record] = emitted()
        assert "correlation_id" not in record
        assert "job_id" not in record

    def test_uuid_and_decimal_serialized(self, emitted):
        uid = uuid4()
        get_logger("test").info(
            "with_values", extra={"job": uid, "total_weight": Decimal("1250.5")},
        )

        [record] = emitted()
        assert record["job"] == str(uid)
        assert record["total_weight"] == "1250.5"

    def test_valid_json_every_line(self, emitted):
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = emitted()
        # Default level is INFO.
        assert [r["message"] for r in logs] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", declaration_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "declaration_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(session_id="outer")
        with LogContext.bind(session_id="inner"):
            assert LogContext.get_all()["session_id"] == "inner"
        assert LogContext.get_all()["session_id"] == "outer"

    def test_bind_restores_none(self):
        assert "job_id" not in LogContext.get_all()
        with LogContext.bind(job_id="temp"):
            assert LogContext.get_all()["job_id"] == "temp"
        assert "job_id" not in LogContext.get_all()

    def test_bind_stringifies_values(self):
        uid = uuid4()
        with LogContext.bind(job_id=uid):
            assert LogContext.get_all()["job_id"] == str(uid)

    def test_bind_ignores_unknown_fields(self):
        with LogContext.bind(tenant="acme", correlation_id="c"):
            assert LogContext.get_all() == {"correlation_id": "c"}

    def test_set_rejects_unknown_fields(self):
        with pytest.raises(TypeError, match="tenant"):
            LogContext.set(tenant="acme")

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            job_id="j",
            session_id="s",
            declaration_id="d",
            waste_stream_number="w",
        )
        assert len(LogContext.get_all()) == 5


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # no-op
        handlers = logging.getLogger("declaration_kernel").handlers
        assert h1 in handlers
        assert h2 not in handlers

    def test_get_logger_returns_child(self):
        assert get_logger("services.approval").name == "declaration_kernel.services.approval"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        [record] = _records(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "declaration_kernel.deep.nested.module"


# ---------------------------------------------------------------------------
# extra= keys across the code base
# ---------------------------------------------------------------------------

_REPO_ROOT = Path(__file__).resolve().parents[1]
_SOURCE_DIRS = ("declaration_kernel", "declaration_batch", "declaration_config", "scripts")


def _extra_keys() -> list[tuple[str, int, str]]:
    """Every literal key passed as ``extra={...}`` in the shipped sources."""
    found = []
    for directory in _SOURCE_DIRS:
        for path in sorted((_REPO_ROOT / directory).rglob("*.py")):
            tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
            for node in ast.walk(tree):
                if not isinstance(node, ast.Call):
                    continue
                for keyword in node.keywords:
                    if keyword.arg != "extra" or not isinstance(keyword.value, ast.Dict):
                        continue
                    for key in keyword.value.keys:
                        if isinstance(key, ast.Constant) and isinstance(key.value, str):
                            relative = path.relative_to(_REPO_ROOT).as_posix()
                            found.append((relative, key.lineno, key.value))
    return found


class TestExtraKeys:
    """LogRecord raises KeyError when ``extra`` overwrites one of its own attributes."""

    def test_sources_use_extra(self):
        assert any(key == "cutoff" for _, _, key in _extra_keys())

    def test_no_reserved_record_attributes(self):
        clashes = [
            f"{path}:{line} {key}"
            for path, line, key in _extra_keys()
            if key in _STDLIB_KEYS
        ]
        assert clashes == []

    @pytest.mark.parametrize("key", ["created", "name", "msg", "module", "lineno"])
    def test_reserved_key_is_rejected_by_logging(self, key):
        with pytest.raises(KeyError):
            get_logger("test").warning("clash", extra={key: 1})
