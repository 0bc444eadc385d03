"""Tests for contravention_kernel.logging_config."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from contravention_kernel.domain.escalation import EscalationTier
from contravention_kernel.exceptions import InvalidStatusTransitionError
from contravention_kernel.logging_config import (
    CONTEXT_FIELDS,
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


@pytest.fixture
def stream():
    """Configure the namespace with a JSON handler writing to a buffer."""
    buf = StringIO()
    handler = logging.StreamHandler(buf)
    configure_logging(handler=handler, level=logging.DEBUG)
    return buf


def _records(buf: StringIO) -> list[dict]:
    return [json.loads(line) for line in buf.getvalue().splitlines() if line]


class TestStructuredFormatter:

    def test_header_fields(self, stream):
        get_logger("services.points_ledger").info("points_applied")

        [record] = _records(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "points_applied"
        assert record["logger"] == "contravention_kernel.services.points_ledger"
        assert record["ts"].endswith("+00:00")

    def test_extra_values_are_serialised(self, stream):
        employee = uuid4()
        get_logger("test").info(
            "points_applied",
            extra={
                "employee_ref": employee,
                "new_tier": EscalationTier.TIER_1,
                "value": Decimal("12.50"),
                "actions": ("Notify reporting manager",),
            },
        )

        [record] = _records(stream)
        assert record["employee_ref"] == str(employee)
        assert record["new_tier"] == "TIER_1"
        assert record["value"] == "12.50"
        assert record["actions"] == ["Notify reporting manager"]

    def test_context_is_merged(self, stream):
        with LogContext.bind(operation="file_contravention", employee_id="e-1"):
            get_logger("test").info("inside")
        get_logger("test").info("outside")

        inside, outside = _records(stream)
        assert inside["operation"] == "file_contravention"
        assert inside["employee_id"] == "e-1"
        assert "operation" not in outside

    def test_context_wins_over_extra(self, stream):
        with LogContext.bind(operation="mark_complete"):
            get_logger("test").info("clash", extra={"operation": "other"})

        [record] = _records(stream)
        assert record["operation"] == "mark_complete"

    def test_plain_exception(self, stream):
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").exception("failed")

        [record] = _records(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "Traceback" in record["traceback"]
        assert "exc_code" not in record

    def test_kernel_exception_attributes(self, stream):
        try:
            raise InvalidStatusTransitionError("c-1", "COMPLETED", "PENDING_REVIEW")
        except InvalidStatusTransitionError:
            get_logger("test").error("transition_refused", exc_info=True)

        [record] = _records(stream)
        assert record["exc_code"] == "INVALID_STATUS_TRANSITION"
        assert record["exc_kind"] == "invalid_state"
        assert record["exc_from_status"] == "COMPLETED"
        assert record["exc_to_status"] == "PENDING_REVIEW"

    def test_formatter_standalone(self):
        record = logging.LogRecord("contravention_kernel.x", logging.WARNING, "", 0, "hi %s", ("there",), None)
        payload = json.loads(StructuredFormatter().format(record))
        assert payload["message"] == "hi there"
        assert payload["level"] == "WARNING"


class TestLogContext:

    def test_known_fields(self):
        assert CONTEXT_FIELDS == (
            "correlation_id",
            "operation",
            "actor_id",
            "contravention_id",
            "employee_id",
        )

    def test_set_stringifies_and_skips_none(self):
        actor = uuid4()
        LogContext.set(actor_id=actor, operation=None)
        assert LogContext.get_all() == {"actor_id": str(actor)}

    def test_set_rejects_unknown_field(self):
        with pytest.raises(ValueError, match="vendor"):
            LogContext.set(vendor="Acme")

    def test_nested_bind_restores_outer(self):
        with LogContext.bind(correlation_id="outer", operation="review_approval"):
            with LogContext.bind(correlation_id="inner"):
                assert LogContext.get_all() == {
                    "correlation_id": "inner",
                    "operation": "review_approval",
                }
            assert LogContext.get_all()["correlation_id"] == "outer"
        assert LogContext.get_all() == {}

    def test_bind_restores_after_exception(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(operation="delete_contravention"):
                raise RuntimeError
        assert LogContext.get_all() == {}

    def test_bind_drops_unknown_keys(self):
        with LogContext.bind(contravention_id="c", history_limit=50):
            assert LogContext.get_all() == {"contravention_id": "c"}


class TestConfigureLogging:

    def test_second_call_is_ignored(self, stream):
        root = logging.getLogger("contravention_kernel")
        before = list(root.handlers)
        ignored = logging.StreamHandler(StringIO())

        configure_logging(handler=ignored)

        assert root.handlers == before
        assert ignored not in root.handlers
        assert root.level == logging.DEBUG

    def test_level_filters(self):
        buf = StringIO()
        configure_logging(handler=logging.StreamHandler(buf), level=logging.INFO)
        logger = get_logger("services.training")
        logger.debug("hidden")
        logger.info("shown")

        assert [r["message"] for r in _records(buf)] == ["shown"]

    def test_does_not_propagate(self, stream):
        assert logging.getLogger("contravention_kernel").propagate is False

    def test_reset_detaches_handlers(self, stream):
        reset_logging()
        assert logging.getLogger("contravention_kernel").handlers == []
