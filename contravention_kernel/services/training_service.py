"""
TrainingService -- remedial course assignments and training credits.

Responsibility:
    Assigns courses to employees (explicitly or when an escalation tier
    requires training), tracks assignment status, and applies the
    completed course's point credit exactly once.

Architecture position:
    Kernel > Services.  Credits go through PointLedgerService.reverse with
    a ``credit`` event.

Invariants enforced:
    - One training record per (employee, course).
    - ``points_credited`` flips false -> true at most once.  The flip is a
      conditional UPDATE in the same transaction as the ledger reversal,
      so two concurrent callers cannot both apply the credit.
    - Only COMPLETED records earn credit.

Failure modes:
    - TrainingRecordNotFoundError, CourseNotFoundError.
    - TrainingNotCompletedError when crediting an unfinished record.
    - NotTrainingAssigneeError / AdminRequiredError when starting someone
      else's course or waiving without administrator rights.
"""

from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from contravention_kernel.domain.clock import Clock
from contravention_kernel.domain.collaborators import Actor
from contravention_kernel.domain.points import EscalationInfo, PointEventType
from contravention_kernel.domain.policy import ContraventionPolicy
from contravention_kernel.domain.training import (
    TRAINING_TRANSITIONS,
    TrainingCreditOutcome,
    TrainingStatus,
)
from contravention_kernel.exceptions import (
    AdminRequiredError,
    CourseNotFoundError,
    InvalidPayloadError,
    NotTrainingAssigneeError,
    TrainingNotCompletedError,
    TrainingRecordNotFoundError,
)
from contravention_kernel.logging_config import get_logger
from contravention_kernel.models.points import EmployeePointsModel
from contravention_kernel.models.training import CourseModel, TrainingRecordModel
from contravention_kernel.services.base import BaseService
from contravention_kernel.services.points_ledger import PointLedgerService

logger = get_logger("services.training")


class TrainingService(BaseService):
    """
    Course assignment and credit application.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT deliver training content or reminders.
    """

    def __init__(
        self,
        session: Session,
        ledger: PointLedgerService,
        policy: ContraventionPolicy,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._ledger = ledger
        self._policy = policy

    def _load(self, training_record_id: UUID) -> TrainingRecordModel:
        record = self.session.get(TrainingRecordModel, training_record_id)
        if record is None:
            raise TrainingRecordNotFoundError(str(training_record_id))
        return record

    def default_course(self) -> CourseModel | None:
        """The active course assigned when an escalation requires training."""
        return self.session.execute(
            select(CourseModel)
            .where(CourseModel.is_active.is_(True))
            .order_by(CourseModel.name)
            .limit(1)
        ).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    def assign(
        self,
        employee_id: UUID,
        course_id: UUID,
        due_date: date | None = None,
        escalation_id: UUID | None = None,
    ) -> tuple[TrainingRecordModel, bool]:
        """
        Enrol *employee_id* in the course.

        Returns (record, created).  An existing enrolment is returned
        unchanged with ``created=False``.
        """
        course = self.session.get(CourseModel, course_id)
        if course is None:
            raise CourseNotFoundError(str(course_id))
        if not course.is_active:
            raise InvalidPayloadError("course_id", f"course {course.name} is inactive")

        existing = self.session.execute(
            select(TrainingRecordModel).where(
                TrainingRecordModel.employee_id == employee_id,
                TrainingRecordModel.course_id == course_id,
            )
        ).scalar_one_or_none()
        if existing is not None:
            return existing, False

        now = self.clock.now()
        if due_date is None:
            due_date = (now + timedelta(days=self._policy.training_due_days)).date()
        record = TrainingRecordModel(
            employee_id=employee_id,
            course_id=course_id,
            escalation_id=escalation_id,
            status=TrainingStatus.ASSIGNED.value,
            assigned_at=now,
            due_date=due_date,
            points_credited=False,
        )
        self.session.add(record)
        self.session.flush()
        logger.info(
            "training_assigned",
            extra={
                "training_record_id": str(record.id),
                "employee_id": str(employee_id),
                "course": course.name,
                "due_date": due_date.isoformat(),
            },
        )
        return record, True

    def assign_for_escalation(
        self, escalation: EscalationInfo
    ) -> TrainingRecordModel | None:
        """
        Assign the default course when the escalated tier requires training.

        Returns the new record, or None when the tier needs no training, no
        active course exists, or the employee is already enrolled.
        """
        rule = self._policy.escalation.rule_for(escalation.tier)
        if rule is None or not rule.assigns_training:
            return None
        course = self.default_course()
        if course is None:
            logger.warning(
                "training_course_unavailable",
                extra={
                    "employee_id": str(escalation.employee_id),
                    "escalation_id": str(escalation.id),
                },
            )
            return None
        record, created = self.assign(
            escalation.employee_id,
            course.id,
            due_date=escalation.due_date,
            escalation_id=escalation.id,
        )
        return record if created else None

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def _transition(self, record: TrainingRecordModel, to_status: TrainingStatus) -> None:
        from_status = TrainingStatus(record.status)
        if to_status not in TRAINING_TRANSITIONS[from_status]:
            raise InvalidPayloadError(
                "status", f"training cannot move from {from_status.value} to {to_status.value}"
            )
        record.status = to_status.value

    def start(self, training_record_id: UUID, actor: Actor) -> TrainingRecordModel:
        """The enrolled employee (or an administrator) begins the course."""
        record = self._load(training_record_id)
        if record.employee_id != actor.actor_id and not actor.is_admin:
            raise NotTrainingAssigneeError(str(training_record_id), str(actor.actor_id))
        self._transition(record, TrainingStatus.IN_PROGRESS)
        self.session.flush()
        logger.info(
            "training_started",
            extra={"training_record_id": str(record.id), "employee_id": str(record.employee_id)},
        )
        return record

    def complete(self, training_record_id: UUID) -> TrainingRecordModel:
        record = self._load(training_record_id)
        if record.status == TrainingStatus.COMPLETED.value:
            return record
        self._transition(record, TrainingStatus.COMPLETED)
        record.completed_at = self.clock.now()
        self.session.flush()
        logger.info(
            "training_completed",
            extra={
                "training_record_id": str(record.id),
                "employee_id": str(record.employee_id),
            },
        )
        return record

    def waive(self, training_record_id: UUID, actor: Actor) -> TrainingRecordModel:
        """Excuse an open assignment.  A waived course earns no credit."""
        if not actor.is_admin:
            raise AdminRequiredError("waive_training", str(actor.actor_id))
        record = self._load(training_record_id)
        self._transition(record, TrainingStatus.WAIVED)
        self.session.flush()
        logger.info(
            "training_waived",
            extra={"training_record_id": str(record.id), "employee_id": str(record.employee_id)},
        )
        return record

    def mark_overdue(self, today: date | None = None) -> list[TrainingRecordModel]:
        """Flag open assignments past their due date and return them."""
        today = today or self.clock.today()
        records = list(
            self.session.execute(
                select(TrainingRecordModel)
                .where(
                    TrainingRecordModel.status.in_(
                        [TrainingStatus.ASSIGNED.value, TrainingStatus.IN_PROGRESS.value]
                    ),
                    TrainingRecordModel.due_date.is_not(None),
                    TrainingRecordModel.due_date < today,
                )
                .order_by(TrainingRecordModel.due_date, TrainingRecordModel.assigned_at)
            ).scalars()
        )
        for record in records:
            self._transition(record, TrainingStatus.OVERDUE)
        if records:
            self.session.flush()
        logger.info("training_marked_overdue", extra={"count": len(records), "as_of": today})
        return records

    # ------------------------------------------------------------------
    # Credit
    # ------------------------------------------------------------------

    def _current_total(self, employee_id: UUID) -> int:
        total = self.session.execute(
            select(EmployeePointsModel.total_points).where(
                EmployeePointsModel.employee_id == employee_id
            )
        ).scalar_one_or_none()
        return total or 0

    def apply_training_credit(
        self, employee_id: UUID, training_record_id: UUID
    ) -> TrainingCreditOutcome:
        """
        Remove the course's credit from the employee's total, once.

        A record that is already credited (including one credited by a
        concurrent caller that won the conditional update) is a no-op.
        """
        record = self._load(training_record_id)
        if record.employee_id != employee_id:
            raise TrainingRecordNotFoundError(str(training_record_id))
        if record.status != TrainingStatus.COMPLETED.value:
            raise TrainingNotCompletedError(str(training_record_id), record.status)

        if record.points_credited:
            return self._already_credited(record)

        course = self.session.get(CourseModel, record.course_id)
        credit = course.points_credit if course is not None else self._policy.training_credit_points
        now = self.clock.now()

        swapped = self.session.execute(
            update(TrainingRecordModel)
            .where(
                TrainingRecordModel.id == training_record_id,
                TrainingRecordModel.points_credited.is_(False),
            )
            .values(
                points_credited=True,
                credited_points=credit,
                credited_at=now,
                version=TrainingRecordModel.version + 1,
            )
            .execution_options(synchronize_session=False)
        ).rowcount
        if swapped == 0:
            self.session.refresh(record)
            return self._already_credited(record)

        result = self._ledger.reverse(
            employee_id,
            credit,
            f"Training credit: {course.name if course is not None else training_record_id}",
            training_record_id=training_record_id,
            event_type=PointEventType.CREDIT,
        )
        self.session.refresh(record)
        logger.info(
            "training_credit_applied",
            extra={
                "training_record_id": str(training_record_id),
                "employee_id": str(employee_id),
                "credit": credit,
                "points_removed": -result.event.applied_delta,
                "new_total": result.new_total,
            },
        )
        return TrainingCreditOutcome(
            training_record_id=training_record_id,
            employee_id=employee_id,
            applied=True,
            points_removed=-result.event.applied_delta,
            new_total=result.new_total,
        )

    def _already_credited(self, record: TrainingRecordModel) -> TrainingCreditOutcome:
        logger.info(
            "training_credit_already_applied",
            extra={"training_record_id": str(record.id)},
        )
        return TrainingCreditOutcome(
            training_record_id=record.id,
            employee_id=record.employee_id,
            applied=False,
            points_removed=0,
            new_total=self._current_total(record.employee_id),
        )
