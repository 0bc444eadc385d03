"""
Engine boundary: transactional rollback, post-commit notifications,
EngineResult mapping and retry on concurrency conflicts.
"""

from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from contravention_kernel.domain.collaborators import NotificationKind
from contravention_kernel.domain.contravention import ContraventionPatch
from contravention_kernel.exceptions import (
    ErrorKind,
    InvalidPayloadError,
    OptimisticLockError,
)
from contravention_services.engine import ContraventionEngine
from contravention_services.results import EngineResult
from contravention_services.retry import retry_on_conflict


def _fail(*args, **kwargs):
    raise InvalidPayloadError("payload", "rejected by test")


class _DriverError(Exception):
    """Stands in for a psycopg2 error carrying a SQLSTATE."""

    def __init__(self, pgcode: str):
        super().__init__(f"driver error {pgcode}")
        self.pgcode = pgcode


class TestRollback:

    def test_kernel_error_leaves_no_trace(
        self, engine, users, dispatcher, monkeypatch, new_contravention
    ):
        monkeypatch.setattr(engine.auditor, "record", _fail)

        result = engine.file_contravention(new_contravention())

        assert not result.is_success
        assert result.error_kind == ErrorKind.VALIDATION_FAILURE
        assert result.details["field"] == "payload"
        assert engine.contravention_selector.search(employee_id=users.employee.id) == ()
        summary = engine.get_employee_points_summary(users.employee.id).unwrap()
        assert summary.total_points == 0
        assert summary.history == ()

        engine.notifications.drain()
        assert dispatcher.sent == []

    def test_failed_edit_keeps_previous_points(
        self, engine, users, monkeypatch, file_contravention
    ):
        info = file_contravention().contravention
        monkeypatch.setattr(engine.auditor, "record", _fail)

        result = engine.update_contravention(
            info.id, ContraventionPatch(points=9), users.actor(users.admin)
        )
        monkeypatch.undo()

        assert not result.is_success
        assert engine.get_contravention(info.id).unwrap().points == 3
        assert engine.get_employee_points_summary(users.employee.id).unwrap().total_points == 3

    def test_unexpected_error_is_logged_and_raised(
        self, engine, users, monkeypatch, captured_logs, new_contravention
    ):
        def boom(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(engine.ledger, "add_points", boom)

        with pytest.raises(RuntimeError):
            engine.file_contravention(new_contravention())

        failed = [r for r in captured_logs() if r["message"] == "engine_operation_failed"]
        assert len(failed) == 1
        assert failed[0]["operation"] == "file_contravention"
        assert failed[0]["exc_type"] == "RuntimeError"
        assert engine.contravention_selector.search() == ()

    def test_stale_data_maps_to_conflict(self, engine, monkeypatch, new_contravention):
        def stale(*args, **kwargs):
            raise StaleDataError("UPDATE statement expected 1 row, matched 0")

        monkeypatch.setattr(engine.ledger, "add_points", stale)

        result = engine.file_contravention(new_contravention())
        assert result.error_kind == ErrorKind.CONCURRENCY_CONFLICT
        assert result.is_retryable

    @pytest.mark.parametrize("sqlstate", ["40P01", "40001"])
    def test_deadlock_and_serialization_failure_map_to_conflict(
        self, engine, monkeypatch, new_contravention, sqlstate
    ):
        def deadlock(*args, **kwargs):
            raise OperationalError("UPDATE approval_requests", {}, _DriverError(sqlstate))

        monkeypatch.setattr(engine.ledger, "add_points", deadlock)

        result = engine.file_contravention(new_contravention())
        assert result.error_kind == ErrorKind.CONCURRENCY_CONFLICT
        assert result.is_retryable
        assert sqlstate in result.message
        assert engine.contravention_selector.search() == ()

    def test_other_database_errors_are_raised(
        self, engine, monkeypatch, captured_logs, new_contravention
    ):
        def duplicate(*args, **kwargs):
            raise IntegrityError("INSERT INTO point_events", {}, _DriverError("23505"))

        monkeypatch.setattr(engine.ledger, "add_points", duplicate)

        with pytest.raises(IntegrityError):
            engine.file_contravention(new_contravention())
        failed = [r for r in captured_logs() if r["message"] == "engine_operation_failed"]
        assert [r["exc_type"] for r in failed] == ["IntegrityError"]


class TestNotifications:

    def test_sent_after_commit(self, engine, dispatcher, file_contravention):
        file_contravention()
        engine.notifications.drain()

        assert dispatcher.kinds() == [NotificationKind.CONTRAVENTION_FILED]
        _, payload = dispatcher.sent[0]
        assert payload["reference_no"] == "CONTRA-2025-001"
        assert payload["status"] == "PENDING_UPLOAD"

    def test_dispatch_failure_does_not_fail_operation(
        self,
        session,
        directory,
        failing_dispatcher,
        policy,
        deterministic_clock,
        captured_logs,
        new_contravention,
    ):
        failing = ContraventionEngine(
            session=session,
            directory=directory,
            dispatcher=failing_dispatcher,
            policy=policy,
            clock=deterministic_clock,
        )
        try:
            failing.seed_catalogs().unwrap()
            result = failing.file_contravention(new_contravention())
            failing.notifications.drain()
        finally:
            failing.close()

        assert result.is_success
        failures = [
            r for r in captured_logs() if r["message"] == "notification_dispatch_failed"
        ]
        assert [r["notification_kind"] for r in failures] == ["contravention_filed"]
        assert failures[0]["error_type"] == "ConnectionError"


class TestLogging:

    def test_operation_lifecycle_logged(self, engine, captured_logs, file_contravention):
        file_contravention()
        records = captured_logs()
        messages = [r["message"] for r in records]

        assert "engine_operation_started" in messages
        assert "contravention_filed" in messages
        completed = [r for r in records if r["message"] == "engine_operation_completed"]
        assert completed[-1]["operation"] == "file_contravention"
        assert completed[-1]["duration_ms"] >= 0

        filed = next(r for r in records if r["message"] == "contravention_filed")
        assert filed["correlation_id"] == completed[-1]["correlation_id"]

    def test_rejection_logged(self, engine, users, captured_logs):
        engine.get_contravention(uuid4())
        rejected = [r for r in captured_logs() if r["message"] == "engine_operation_rejected"]
        assert rejected[0]["error_code"] == "CONTRAVENTION_NOT_FOUND"
        assert rejected[0]["error_kind"] == "not_found"


class TestRetry:

    def test_retries_conflict_then_succeeds(self):
        outcomes = [
            EngineResult.failure("op", OptimisticLockError("EmployeePoints", "e1")),
            EngineResult.ok("op", 42),
        ]
        calls = []

        def operation():
            calls.append(1)
            return outcomes[len(calls) - 1]

        result = retry_on_conflict(operation, backoff_seconds=0)
        assert result.unwrap() == 42
        assert len(calls) == 2

    def test_non_retryable_returned_immediately(self):
        calls = []

        def operation():
            calls.append(1)
            return EngineResult.failure("op", InvalidPayloadError("x", "bad"))

        result = retry_on_conflict(operation, backoff_seconds=0)
        assert result.error_kind == ErrorKind.VALIDATION_FAILURE
        assert len(calls) == 1

    def test_gives_up_after_max_attempts(self, captured_logs):
        calls = []

        def operation():
            calls.append(1)
            return EngineResult.failure("op", OptimisticLockError("EmployeePoints", "e1"))

        result = retry_on_conflict(operation, max_attempts=3, backoff_seconds=0)
        assert result.error_kind == ErrorKind.CONCURRENCY_CONFLICT
        assert len(calls) == 3
        assert any(
            r["message"] == "engine_operation_retries_exhausted" for r in captured_logs()
        )

    def test_unwrap_raises_on_failure(self):
        result = EngineResult.failure("op", InvalidPayloadError("x", "bad"))
        with pytest.raises(RuntimeError, match="INVALID_PAYLOAD"):
            result.unwrap()
