"""
contravention_services.engine -- composition root and public engine API.

Responsibility:
    Constructs every kernel service exactly once, wires them together and
    exposes the engine operations.  Each operation runs inside one
    transactional unit: success commits and releases staged
    notifications; any failure rolls the unit back, discards the
    notifications and returns an EngineResult naming the error kind.

Architecture position:
    Services -- orchestration over the kernel.  The only place kernel
    services are constructed.  Nothing in the kernel imports from here.

Invariants enforced:
    - Side-effect free on failure: every operation runs inside a SAVEPOINT
      that is rolled back on any exception.
    - Notifications leave only after commit, at most once, and never
      affect the operation's result.
    - ``StaleDataError`` and PostgreSQL deadlock or serialization failures
      surface as CONCURRENCY_CONFLICT.
    - Every operation logs ``engine_operation_started`` and either
      ``engine_operation_completed`` or ``engine_operation_rejected`` with
      a duration, under a fresh correlation id.

Failure modes:
    - Kernel errors are returned as EngineResult values.
    - Unexpected exceptions are logged (``engine_operation_failed``),
      rolled back and re-raised.

Usage:
    engine = ContraventionEngine(
        session=session,
        directory=directory,
        dispatcher=dispatcher,
        policy=build_contravention_policy(get_active_policy()),
    )
    result = engine.file_contravention(new)
    if result.is_success:
        result.value.contravention.reference_no
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import date
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from contravention_kernel.domain.approval import (
    ApprovalDecision,
    ApprovalRequestInfo,
    ApprovalRequestOutcome,
)
from contravention_kernel.domain.clock import Clock, SystemClock
from contravention_kernel.domain.collaborators import (
    Actor,
    DirectoryLookup,
    NotificationDispatcher,
    NotificationKind,
)
from contravention_kernel.domain.contravention import (
    ContraventionInfo,
    ContraventionPatch,
    ContraventionStatus,
    FilingOutcome,
    NewContravention,
)
from contravention_kernel.domain.points import (
    EmployeePointsSummary,
    EscalationInfo,
    RecalculationSummary,
    ResetSummary,
    SyncSummary,
)
from contravention_kernel.domain.policy import ContraventionPolicy
from contravention_kernel.domain.training import TrainingCreditOutcome, TrainingRecordInfo
from contravention_kernel.exceptions import (
    ContraventionKernelError,
    EmployeeNotFoundError,
    ErrorKind,
    OptimisticLockError,
    PointsDriftError,
)
from contravention_kernel.logging_config import LogContext, get_logger
from contravention_kernel.models.audit_event import AuditAction
from contravention_kernel.selectors.contravention_selector import ContraventionSelector
from contravention_kernel.selectors.points_selector import PointsSelector
from contravention_kernel.services.approval_service import ApprovalWorkflowService
from contravention_kernel.services.auditor_service import AuditorService
from contravention_kernel.services.catalog_service import CatalogService
from contravention_kernel.services.contravention_service import ContraventionService
from contravention_kernel.services.maintenance_service import PointsMaintenanceService
from contravention_kernel.services.points_ledger import PointLedgerService
from contravention_kernel.services.sequence_service import (
    ReferenceNumberService,
    SequenceService,
)
from contravention_kernel.services.training_service import TrainingService
from contravention_services.notifications import NotificationOutbox
from contravention_services.results import EngineResult

logger = get_logger("services.engine")

T = TypeVar("T")

# Actor recorded for batch maintenance runs.
SYSTEM_ACTOR_ID = UUID(int=0)

# PostgreSQL deadlock_detected and serialization_failure.
_LOCK_CONFLICT_SQLSTATES = frozenset({"40P01", "40001"})


def _lock_conflict_sqlstate(exc: DBAPIError) -> str | None:
    sqlstate = getattr(exc.orig, "pgcode", None)
    return sqlstate if sqlstate in _LOCK_CONFLICT_SQLSTATES else None


class ContraventionEngine:
    """Central factory for kernel services and the engine's public API.

    Contract:
        Receives a Session, the collaborators (directory, dispatcher), a
        ContraventionPolicy and an optional Clock.  Every public operation
        returns an EngineResult.

    Guarantees:
        - All services share the same Session and Clock.
        - With ``auto_commit=True`` (default) each successful operation is
          committed; with ``auto_commit=False`` the caller owns the outer
          transaction and only the operation's SAVEPOINT is released.

    Non-goals:
        - Does NOT authenticate callers; ``Actor`` is trusted input.
    """

    def __init__(
        self,
        session: Session,
        directory: DirectoryLookup,
        dispatcher: NotificationDispatcher,
        policy: ContraventionPolicy,
        clock: Clock | None = None,
        auto_commit: bool = True,
        outbox: NotificationOutbox | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._directory = directory
        self._auto_commit = auto_commit
        self.policy = policy
        self.notifications = outbox or NotificationOutbox(dispatcher)

        self.auditor = AuditorService(session, self._clock)
        self.sequences = SequenceService(session)
        self.references = ReferenceNumberService(
            self.sequences,
            prefix=policy.reference_prefix,
            width=policy.reference_width,
        )
        self.ledger = PointLedgerService(session, policy, self._clock)
        self.contraventions = ContraventionService(
            session, self.ledger, self.references, self.auditor, self._clock
        )
        self.approvals = ApprovalWorkflowService(
            session, self.contraventions, directory, self.auditor, self._clock
        )
        self.training = TrainingService(session, self.ledger, policy, self._clock)
        self.maintenance = PointsMaintenanceService(session, self.ledger, self._clock)
        self.catalog = CatalogService(session, self._clock)
        self.contravention_selector = ContraventionSelector(session)
        self.points_selector = PointsSelector(session)

        self.ledger.add_escalation_listener(self._on_escalation)

        self._warnings: list[str] = []
        self._actor_id: UUID = SYSTEM_ACTOR_ID

    @property
    def session(self) -> Session:
        return self._session

    # ------------------------------------------------------------------
    # Operation runner
    # ------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        actor_id: UUID | None,
        fn: Callable[[], T],
        **context: Any,
    ) -> EngineResult[T]:
        self._warnings = []
        self._actor_id = actor_id or SYSTEM_ACTOR_ID
        with LogContext.bind(
            correlation_id=str(uuid4()),
            operation=operation,
            actor_id=self._actor_id,
            **context,
        ):
            start = time.monotonic()
            logger.info("engine_operation_started")
            savepoint = self._session.begin_nested()
            try:
                value = fn()
                savepoint.commit()
            except StaleDataError as exc:
                self._abort(savepoint)
                error = OptimisticLockError(type(exc).__name__, str(exc))
                return self._rejected(operation, error, start)
            except ContraventionKernelError as exc:
                self._abort(savepoint)
                return self._rejected(operation, exc, start)
            except DBAPIError as exc:
                self._abort(savepoint)
                sqlstate = _lock_conflict_sqlstate(exc)
                if sqlstate is None:
                    self._failed(start)
                    raise
                error = OptimisticLockError("transaction", sqlstate)
                return self._rejected(operation, error, start)
            except Exception:
                self._abort(savepoint)
                self._failed(start)
                raise

            if self._auto_commit:
                try:
                    self._session.commit()
                except Exception:
                    self._session.rollback()
                    self.notifications.discard()
                    logger.exception("engine_commit_failed")
                    raise
            dispatched = self.notifications.flush()
            logger.info(
                "engine_operation_completed",
                extra={
                    "duration_ms": self._elapsed_ms(start),
                    "notifications": dispatched,
                    "warning_count": len(self._warnings),
                },
            )
            return EngineResult.ok(operation, value, tuple(self._warnings))

    def _abort(self, savepoint) -> None:
        if savepoint.is_active:
            savepoint.rollback()
        self.notifications.discard()

    def _failed(self, start: float) -> None:
        logger.exception(
            "engine_operation_failed",
            extra={"duration_ms": self._elapsed_ms(start)},
        )

    def _rejected(
        self, operation: str, error: ContraventionKernelError, start: float
    ) -> EngineResult:
        logger.warning(
            "engine_operation_rejected",
            extra={
                "error_code": error.code,
                "error_kind": error.kind.value,
                "error": str(error),
                "duration_ms": self._elapsed_ms(start),
            },
        )
        return EngineResult.failure(operation, error)

    @staticmethod
    def _elapsed_ms(start: float) -> float:
        return round((time.monotonic() - start) * 1000, 2)

    def _require_employee(self, employee_id: UUID) -> None:
        if self._directory.find_by_id(employee_id) is None:
            raise EmployeeNotFoundError(str(employee_id))

    # ------------------------------------------------------------------
    # Escalation hook
    # ------------------------------------------------------------------

    def _on_escalation(self, escalation: EscalationInfo) -> None:
        self.auditor.record(
            "Escalation",
            escalation.id,
            AuditAction.ESCALATION_TRIGGERED,
            self._actor_id,
            {
                "employee_id": escalation.employee_id,
                "tier": escalation.tier.value,
                "trigger_points": escalation.trigger_points,
                "required_actions": list(escalation.required_actions),
            },
        )
        self.notifications.stage(
            NotificationKind.ESCALATION_TRIGGERED,
            {
                "employee_id": escalation.employee_id,
                "escalation_id": escalation.id,
                "tier": escalation.tier,
                "required_actions": escalation.required_actions,
                "due_date": escalation.due_date,
            },
        )
        record = self.training.assign_for_escalation(escalation)
        if record is not None:
            self._record_training_assigned(record.to_dto())

    def _record_training_assigned(self, record: TrainingRecordInfo) -> None:
        self.auditor.record(
            "TrainingRecord",
            record.id,
            AuditAction.TRAINING_ASSIGNED,
            self._actor_id,
            {
                "employee_id": record.employee_id,
                "course_id": record.course_id,
                "due_date": record.due_date,
            },
        )
        self.notifications.stage(
            NotificationKind.TRAINING_ASSIGNED,
            {
                "employee_id": record.employee_id,
                "training_record_id": record.id,
                "course_id": record.course_id,
                "due_date": record.due_date,
            },
        )

    # ------------------------------------------------------------------
    # Contravention lifecycle
    # ------------------------------------------------------------------

    def file_contravention(self, new: NewContravention) -> EngineResult[FilingOutcome]:
        def _do() -> FilingOutcome:
            self._require_employee(new.employee_id)
            model = self.contraventions.file(new)
            request_id = None
            if model.status_enum == ContraventionStatus.PENDING_APPROVAL:
                outcome = self.approvals.request_approval(
                    model.id, new.approver_email, new.logged_by_id
                )
                self._warnings.extend(outcome.warnings)
                if outcome.request is not None:
                    request_id = outcome.request.id
                    self._stage_approval_requested(outcome.request, model.reference_no)

            info = model.to_dto()
            self.notifications.stage(
                NotificationKind.CONTRAVENTION_FILED,
                {
                    "contravention_id": info.id,
                    "reference_no": info.reference_no,
                    "employee_id": info.employee_id,
                    "points": info.points,
                    "status": info.status,
                },
            )
            return FilingOutcome(
                contravention=info,
                approval_request_id=request_id,
                warnings=tuple(self._warnings),
            )

        return self._run(
            "file_contravention",
            new.logged_by_id,
            _do,
            employee_id=new.employee_id,
        )

    def update_contravention(
        self, contravention_id: UUID, patch: ContraventionPatch, actor: Actor
    ) -> EngineResult[ContraventionInfo]:
        def _do() -> ContraventionInfo:
            if patch.employee_id is not None:
                self._require_employee(patch.employee_id)
            return self.contraventions.update(contravention_id, patch, actor).to_dto()

        return self._run(
            "update_contravention",
            actor.actor_id,
            _do,
            contravention_id=contravention_id,
        )

    def reassign_employee(
        self, contravention_id: UUID, new_employee_id: UUID, actor: Actor
    ) -> EngineResult[ContraventionInfo]:
        def _do() -> ContraventionInfo:
            self._require_employee(new_employee_id)
            return self.contraventions.reassign(
                contravention_id, new_employee_id, actor
            ).to_dto()

        return self._run(
            "reassign_employee",
            actor.actor_id,
            _do,
            contravention_id=contravention_id,
            employee_id=new_employee_id,
        )

    def filer_update(
        self, contravention_id: UUID, patch: ContraventionPatch, actor: Actor
    ) -> EngineResult[ContraventionInfo]:
        return self._run(
            "filer_update",
            actor.actor_id,
            lambda: self.contraventions.filer_update(contravention_id, patch, actor).to_dto(),
            contravention_id=contravention_id,
        )

    def delete_contravention(
        self, contravention_id: UUID, actor: Actor
    ) -> EngineResult[dict]:
        return self._run(
            "delete_contravention",
            actor.actor_id,
            lambda: self.contraventions.delete(contravention_id, actor),
            contravention_id=contravention_id,
        )

    def upload_approval_document(
        self, contravention_id: UUID, document_ref: str, actor: Actor
    ) -> EngineResult[ContraventionInfo]:
        def _do() -> ContraventionInfo:
            model = self.contraventions.upload_approval_document(
                contravention_id, document_ref, actor
            )
            superseded = self.approvals.supersede_pending(contravention_id, actor.actor_id)
            if superseded is not None:
                self._warnings.append(
                    f"Pending approval request {superseded.id} closed by document upload"
                )
            return model.to_dto()

        return self._run(
            "upload_approval_document",
            actor.actor_id,
            _do,
            contravention_id=contravention_id,
        )

    def mark_complete(
        self, contravention_id: UUID, actor: Actor, notes: str | None = None
    ) -> EngineResult[ContraventionInfo]:
        def _do() -> ContraventionInfo:
            info = self.contraventions.mark_complete(contravention_id, actor, notes).to_dto()
            self._stage_completed(info)
            return info

        return self._run(
            "mark_complete",
            actor.actor_id,
            _do,
            contravention_id=contravention_id,
        )

    def _stage_completed(self, info: ContraventionInfo) -> None:
        self.notifications.stage(
            NotificationKind.CONTRAVENTION_COMPLETED,
            {
                "contravention_id": info.id,
                "reference_no": info.reference_no,
                "logged_by_id": info.logged_by_id,
                "employee_id": info.employee_id,
            },
        )

    # ------------------------------------------------------------------
    # Approval workflow
    # ------------------------------------------------------------------

    def _stage_approval_requested(
        self, request: ApprovalRequestInfo, reference_no: str
    ) -> None:
        self.notifications.stage(
            NotificationKind.APPROVAL_REQUESTED,
            {
                "approval_id": request.id,
                "approver_id": request.approver_id,
                "contravention_id": request.contravention_id,
                "reference_no": reference_no,
            },
        )

    def request_approval(
        self, contravention_id: UUID, approver_email: str, actor: Actor
    ) -> EngineResult[ApprovalRequestOutcome]:
        def _do() -> ApprovalRequestOutcome:
            outcome = self.approvals.request_approval(
                contravention_id, approver_email, actor.actor_id
            )
            self._warnings.extend(outcome.warnings)
            if outcome.request is not None:
                reference_no = self.contraventions.load(contravention_id).reference_no
                self._stage_approval_requested(outcome.request, reference_no)
            return outcome

        return self._run(
            "request_approval",
            actor.actor_id,
            _do,
            contravention_id=contravention_id,
        )

    def review_approval(
        self,
        approval_id: UUID,
        actor: Actor,
        decision: ApprovalDecision,
        notes: str | None = None,
    ) -> EngineResult[ApprovalRequestInfo]:
        def _do() -> ApprovalRequestInfo:
            request = self.approvals.review(approval_id, actor, decision, notes)
            info = self.contraventions.load(request.contravention_id).to_dto()
            kind = (
                NotificationKind.APPROVAL_APPROVED
                if decision == ApprovalDecision.APPROVED
                else NotificationKind.APPROVAL_REJECTED
            )
            self.notifications.stage(
                kind,
                {
                    "approval_id": request.id,
                    "contravention_id": info.id,
                    "reference_no": info.reference_no,
                    "logged_by_id": info.logged_by_id,
                    "notes": notes,
                },
            )
            if info.is_completed:
                self._stage_completed(info)
            return request.to_dto()

        return self._run("review_approval", actor.actor_id, _do)

    def resubmit_contravention(
        self,
        contravention_id: UUID,
        actor: Actor,
        approver_email: str,
        patch: ContraventionPatch | None = None,
    ) -> EngineResult[ApprovalRequestInfo]:
        def _do() -> ApprovalRequestInfo:
            request = self.approvals.resubmit(contravention_id, actor, patch, approver_email)
            info = request.to_dto()
            reference_no = self.contraventions.load(contravention_id).reference_no
            self._stage_approval_requested(info, reference_no)
            return info

        return self._run(
            "resubmit_contravention",
            actor.actor_id,
            _do,
            contravention_id=contravention_id,
        )

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def assign_training(
        self,
        employee_id: UUID,
        course_id: UUID,
        actor: Actor,
        due_date: date | None = None,
    ) -> EngineResult[TrainingRecordInfo]:
        def _do() -> TrainingRecordInfo:
            self._require_employee(employee_id)
            record, created = self.training.assign(employee_id, course_id, due_date=due_date)
            info = record.to_dto()
            if created:
                self._record_training_assigned(info)
            else:
                self._warnings.append("Employee is already enrolled in this course")
            return info

        return self._run("assign_training", actor.actor_id, _do, employee_id=employee_id)

    def _credit(self, employee_id: UUID, training_record_id: UUID) -> TrainingCreditOutcome:
        outcome = self.training.apply_training_credit(employee_id, training_record_id)
        if outcome.applied:
            self.auditor.record(
                "TrainingRecord",
                training_record_id,
                AuditAction.TRAINING_CREDIT_APPLIED,
                self._actor_id,
                {
                    "employee_id": employee_id,
                    "points_removed": outcome.points_removed,
                    "new_total": outcome.new_total,
                },
            )
        else:
            self._warnings.append("Training credit already applied")
        return outcome

    def apply_training_credit(
        self,
        employee_id: UUID,
        training_record_id: UUID,
        actor_id: UUID | None = None,
    ) -> EngineResult[TrainingCreditOutcome]:
        return self._run(
            "apply_training_credit",
            actor_id,
            lambda: self._credit(employee_id, training_record_id),
            employee_id=employee_id,
        )

    def complete_training(
        self, training_record_id: UUID, actor: Actor
    ) -> EngineResult[TrainingCreditOutcome]:
        """Mark the training completed and apply its credit in the same unit."""

        def _do() -> TrainingCreditOutcome:
            record = self.training.complete(training_record_id)
            self.auditor.record(
                "TrainingRecord",
                record.id,
                AuditAction.TRAINING_COMPLETED,
                actor.actor_id,
                {"employee_id": record.employee_id},
            )
            return self._credit(record.employee_id, record.id)

        return self._run("complete_training", actor.actor_id, _do)

    def _record_training_status(
        self, record: TrainingRecordInfo, action: AuditAction, actor_id: UUID
    ) -> None:
        self.auditor.record(
            "TrainingRecord",
            record.id,
            action,
            actor_id,
            {"employee_id": record.employee_id, "status": record.status},
        )

    def start_training(
        self, training_record_id: UUID, actor: Actor
    ) -> EngineResult[TrainingRecordInfo]:
        def _do() -> TrainingRecordInfo:
            info = self.training.start(training_record_id, actor).to_dto()
            self._record_training_status(info, AuditAction.TRAINING_STARTED, actor.actor_id)
            return info

        return self._run("start_training", actor.actor_id, _do)

    def waive_training(
        self, training_record_id: UUID, actor: Actor
    ) -> EngineResult[TrainingRecordInfo]:
        def _do() -> TrainingRecordInfo:
            info = self.training.waive(training_record_id, actor).to_dto()
            self._record_training_status(info, AuditAction.TRAINING_WAIVED, actor.actor_id)
            return info

        return self._run("waive_training", actor.actor_id, _do)

    def mark_overdue_training(
        self, actor_id: UUID | None = None
    ) -> EngineResult[tuple[TrainingRecordInfo, ...]]:
        """Batch: flag every open assignment whose due date has passed."""

        def _do() -> tuple[TrainingRecordInfo, ...]:
            overdue = tuple(record.to_dto() for record in self.training.mark_overdue())
            for info in overdue:
                self._record_training_status(info, AuditAction.TRAINING_OVERDUE, self._actor_id)
            return overdue

        return self._run("mark_overdue_training", actor_id, _do)

    # ------------------------------------------------------------------
    # Escalations
    # ------------------------------------------------------------------

    def complete_escalation_action(
        self, escalation_id: UUID, action: str, actor: Actor
    ) -> EngineResult[EscalationInfo]:
        def _do() -> EscalationInfo:
            info = self.ledger.complete_escalation_action(escalation_id, action)
            self.auditor.record(
                "Escalation",
                escalation_id,
                AuditAction.ESCALATION_ACTION_COMPLETED,
                actor.actor_id,
                {"action": action, "complete": info.is_complete},
            )
            return info

        return self._run("complete_escalation_action", actor.actor_id, _do)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def reset_fiscal_year(self, actor_id: UUID | None = None) -> EngineResult[ResetSummary]:
        def _do() -> ResetSummary:
            summary = self.maintenance.reset_points_for_new_fiscal_year()
            self.auditor.record(
                "FiscalYear",
                SYSTEM_ACTOR_ID,
                AuditAction.FISCAL_YEAR_RESET,
                self._actor_id,
                {
                    "fiscal_year": summary.fiscal_year,
                    "employees_reset": summary.employees_reset,
                    "employees_skipped": summary.employees_skipped,
                    "points_cleared": summary.points_cleared,
                },
            )
            return summary

        return self._run("reset_fiscal_year", actor_id, _do)

    def recalculate_escalations(
        self, actor_id: UUID | None = None
    ) -> EngineResult[RecalculationSummary]:
        def _do() -> RecalculationSummary:
            summary = self.maintenance.recalculate_all_escalations()
            self.auditor.record(
                "EscalationPolicy",
                SYSTEM_ACTOR_ID,
                AuditAction.ESCALATIONS_RECALCULATED,
                self._actor_id,
                {
                    "policy_version": self.policy.version,
                    "employees_checked": summary.employees_checked,
                    "tiers_changed": summary.tiers_changed,
                    "escalations_created": summary.escalations_created,
                },
            )
            return summary

        return self._run("recalculate_escalations", actor_id, _do)

    def sync_points_from_contraventions(
        self, actor_id: UUID | None = None
    ) -> EngineResult[SyncSummary]:
        """
        Reconcile ledger totals with the contraventions on file.

        Corrected drift is reported on the result as RECONCILIATION_DRIFT;
        the result still counts as a success.
        """

        def _do() -> SyncSummary:
            summary = self.maintenance.sync_points_from_contraventions()
            self.auditor.record(
                "PointsLedger",
                SYSTEM_ACTOR_ID,
                AuditAction.POINTS_SYNCED,
                self._actor_id,
                {
                    "employees_checked": summary.employees_checked,
                    "drifts": [
                        {
                            "employee_id": d.employee_id,
                            "cached_total": d.cached_total,
                            "expected_total": d.expected_total,
                        }
                        for d in summary.drifts
                    ],
                },
            )
            return summary

        result = self._run("sync_points_from_contraventions", actor_id, _do)
        if not result.is_success or not result.value.has_drift:
            return result
        return EngineResult(
            operation=result.operation,
            value=result.value,
            error_kind=ErrorKind.RECONCILIATION_DRIFT,
            error_code=PointsDriftError.code,
            message=f"Corrected {len(result.value.drifts)} drifted point total(s)",
            warnings=tuple(
                str(PointsDriftError(str(d.employee_id), d.cached_total, d.expected_total))
                for d in result.value.drifts
            ),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _summary(self, employee_id: UUID, history_limit: int) -> EmployeePointsSummary:
        self._require_employee(employee_id)
        return self.points_selector.summary(
            employee_id,
            self.policy.escalation,
            self.ledger.current_fiscal_year_label(),
            history_limit=history_limit,
        )

    def get_employee_points_summary(
        self, employee_id: UUID, history_limit: int = 50
    ) -> EngineResult[EmployeePointsSummary]:
        return self._run(
            "get_employee_points_summary",
            None,
            lambda: self._summary(employee_id, history_limit),
            employee_id=employee_id,
        )

    def get_contravention(self, contravention_id: UUID) -> EngineResult[ContraventionInfo]:
        return self._run(
            "get_contravention",
            None,
            lambda: self.contravention_selector.get(contravention_id),
            contravention_id=contravention_id,
        )

    def get_approval_history(
        self, contravention_id: UUID
    ) -> EngineResult[tuple[ApprovalRequestInfo, ...]]:
        def _do() -> tuple[ApprovalRequestInfo, ...]:
            self.contravention_selector.get(contravention_id)
            return self.contravention_selector.approval_history(contravention_id)

        return self._run(
            "get_approval_history",
            None,
            _do,
            contravention_id=contravention_id,
        )

    def seed_catalogs(self, actor_id: UUID | None = None) -> EngineResult[tuple[int, int]]:
        return self._run(
            "seed_catalogs",
            actor_id,
            lambda: self.catalog.seed_from_policy(self.policy),
        )

    def close(self) -> None:
        self.notifications.drain()
        self.notifications.shutdown()
