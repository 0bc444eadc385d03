"""
PointLedgerService -- the sole writer of point totals, tiers, point events
and escalation records.

Responsibility:
    Applies additive and subtractive adjustments to an employee's running
    total, appends the matching point event, recomputes the cached tier
    through the EscalationPolicy and opens an escalation when the tier
    rises.

Architecture position:
    Kernel > Services.  Called by ContraventionService (filing, edits,
    reassignment, deletion), TrainingService (credits) and
    PointsMaintenanceService (reset, recalculation, sync).

Invariants enforced:
    - total_points >= 0.  A negative delta larger than the total is
      clamped; the event records both requested and applied deltas and
      ``points_reversal_clamped`` is logged.
    - total_points == SUM(point_events.applied_delta) for the employee,
      and therefore also the sum since the last RESET event.
    - current_tier == policy.tier_for(total_points), written in the same
      flush as the total.
    - Per-employee serialization: the record row is read with
      ``SELECT ... FOR UPDATE``; the version column turns any lost update
      into OptimisticLockError.  Multi-employee operations lock rows in
      ascending id order.
    - A tier decrease never touches existing escalation rows.

Failure modes:
    - OptimisticLockError (CONCURRENCY_CONFLICT) on a stale record.
    - InvalidPayloadError for a negative reversal/transfer amount.
"""

from collections.abc import Callable
from datetime import timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from contravention_kernel.domain.clock import Clock
from contravention_kernel.domain.escalation import EscalationTier
from contravention_kernel.domain.fiscal_year import fiscal_year_for
from contravention_kernel.domain.points import (
    EscalationInfo,
    LedgerResult,
    PointEventType,
)
from contravention_kernel.domain.policy import ContraventionPolicy
from contravention_kernel.exceptions import (
    EscalationNotFoundError,
    InvalidPayloadError,
    OptimisticLockError,
    UnknownEscalationActionError,
)
from contravention_kernel.logging_config import get_logger
from contravention_kernel.models.points import (
    EmployeePointsModel,
    EscalationModel,
    PointEventModel,
    PointsArchiveModel,
)
from contravention_kernel.services.base import BaseService

logger = get_logger("services.points_ledger")

EscalationListener = Callable[[EscalationInfo], None]


class PointLedgerService(BaseService):
    """
    Serialized, clamped point adjustments.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT deliver notifications; escalation listeners registered
          by the composition root decide what happens next.
    """

    def __init__(
        self,
        session: Session,
        policy: ContraventionPolicy,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._policy = policy
        self._escalation_listeners: list[EscalationListener] = []

    def add_escalation_listener(self, listener: EscalationListener) -> None:
        self._escalation_listeners.append(listener)

    # ------------------------------------------------------------------
    # Record access
    # ------------------------------------------------------------------

    def current_fiscal_year_label(self) -> str:
        return fiscal_year_for(
            self.clock.today(), self._policy.fiscal_year_start_month
        ).label

    def _select_locked(self, employee_id: UUID) -> EmployeePointsModel | None:
        return self.session.execute(
            select(EmployeePointsModel)
            .where(EmployeePointsModel.employee_id == employee_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def lock_record(self, employee_id: UUID) -> EmployeePointsModel:
        """Lock the employee's record, creating it at zero on first use."""
        record = self._select_locked(employee_id)
        if record is not None:
            return record

        savepoint = self.session.begin_nested()
        try:
            record = EmployeePointsModel(
                employee_id=employee_id,
                total_points=0,
                current_tier=EscalationTier.NONE.value,
                fiscal_year=self.current_fiscal_year_label(),
                event_seq=0,
                escalation_seq=0,
                updated_at=self.clock.now(),
            )
            self.session.add(record)
            self.session.flush()
            savepoint.commit()
            logger.debug("points_record_created", extra={"employee_id": str(employee_id)})
            return record
        except IntegrityError:
            savepoint.rollback()
            logger.debug(
                "points_record_race_retry", extra={"employee_id": str(employee_id)}
            )
            record = self._select_locked(employee_id)
            if record is None:
                raise
            return record

    def _flush(self, employee_id: UUID) -> None:
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning(
                "points_record_stale", extra={"employee_id": str(employee_id)}
            )
            raise OptimisticLockError("EmployeePoints", str(employee_id)) from exc

    # ------------------------------------------------------------------
    # Core adjustment
    # ------------------------------------------------------------------

    def _apply(
        self,
        record: EmployeePointsModel,
        delta: int,
        event_type: PointEventType,
        reason: str,
        contravention_id: UUID | None = None,
        training_record_id: UUID | None = None,
    ) -> LedgerResult:
        now = self.clock.now()
        previous_total = record.total_points
        previous_tier = record.tier

        new_total = max(0, previous_total + delta)
        applied = new_total - previous_total
        if applied != delta:
            logger.warning(
                "points_reversal_clamped",
                extra={
                    "employee_id": str(record.employee_id),
                    "requested_delta": delta,
                    "applied_delta": applied,
                    "previous_total": previous_total,
                    "event_type": event_type.value,
                },
            )

        new_tier = self._policy.escalation.tier_for(new_total)

        record.event_seq += 1
        event = PointEventModel(
            employee_id=record.employee_id,
            seq=record.event_seq,
            event_type=event_type.value,
            requested_delta=delta,
            applied_delta=applied,
            balance_after=new_total,
            reason=reason[:500],
            contravention_id=contravention_id,
            training_record_id=training_record_id,
            occurred_at=now,
        )
        self.session.add(event)
        record.total_points = new_total
        record.current_tier = new_tier.value
        record.updated_at = now
        self._flush(record.employee_id)

        logger.info(
            "points_applied",
            extra={
                "employee_id": str(record.employee_id),
                "event_type": event_type.value,
                "applied_delta": applied,
                "new_total": new_total,
                "new_tier": new_tier.value,
            },
        )

        escalation_id = None
        if new_tier > previous_tier:
            escalation_id = self._open_escalation(record, new_tier).id

        return LedgerResult(
            employee_id=record.employee_id,
            previous_total=previous_total,
            new_total=new_total,
            previous_tier=previous_tier,
            new_tier=new_tier,
            event=event.to_dto(),
            escalation_id=escalation_id,
        )

    def _open_escalation(
        self, record: EmployeePointsModel, tier: EscalationTier
    ) -> EscalationInfo:
        rule = self._policy.escalation.rule_for(tier)
        now = self.clock.now()
        due_date = None
        if rule.due_days is not None:
            due_date = (now + timedelta(days=rule.due_days)).date()

        record.escalation_seq += 1
        escalation = EscalationModel(
            employee_id=record.employee_id,
            seq=record.escalation_seq,
            tier=tier.value,
            tier_name=rule.name,
            required_actions=list(rule.actions),
            completed_actions=[],
            trigger_points=record.total_points,
            triggered_at=now,
            due_date=due_date,
        )
        self.session.add(escalation)
        self._flush(record.employee_id)

        info = escalation.to_dto()
        logger.info(
            "escalation_triggered",
            extra={
                "employee_id": str(record.employee_id),
                "escalation_id": str(escalation.id),
                "tier": tier.value,
                "trigger_points": record.total_points,
                "required_actions": list(rule.actions),
            },
        )
        for listener in self._escalation_listeners:
            listener(info)
        return info

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def add_points(
        self,
        employee_id: UUID,
        delta: int,
        reason: str,
        contravention_id: UUID | None = None,
    ) -> LedgerResult:
        """
        Apply *delta* (positive or negative) to the employee's total.

        Positive deltas are recorded as ``add``; negative ones as ``adjust``.
        """
        event_type = PointEventType.ADD if delta >= 0 else PointEventType.ADJUST
        record = self.lock_record(employee_id)
        return self._apply(record, delta, event_type, reason, contravention_id)

    def reverse(
        self,
        employee_id: UUID,
        amount: int,
        reason: str,
        contravention_id: UUID | None = None,
        training_record_id: UUID | None = None,
        event_type: PointEventType = PointEventType.REVERSE,
    ) -> LedgerResult:
        """Remove *amount* points, clamping at zero."""
        if amount < 0:
            raise InvalidPayloadError("amount", f"reversal amount must be >= 0, got {amount}")
        record = self.lock_record(employee_id)
        return self._apply(
            record, -amount, event_type, reason, contravention_id, training_record_id,
        )

    def transfer(
        self,
        from_employee_id: UUID,
        to_employee_id: UUID,
        remove_amount: int,
        add_amount: int,
        reason: str,
        contravention_id: UUID | None = None,
    ) -> tuple[LedgerResult, LedgerResult]:
        """
        Move a contravention's points between employees.

        The old owner loses *remove_amount* (clamped) and the new owner
        gains *add_amount*.  Both rows are locked in ascending id order
        before either is written.
        """
        if remove_amount < 0 or add_amount < 0:
            raise InvalidPayloadError("amount", "transfer amounts must be >= 0")
        if from_employee_id == to_employee_id:
            raise InvalidPayloadError("to_employee_id", "must differ from from_employee_id")

        locked = {
            emp_id: self.lock_record(emp_id)
            for emp_id in sorted((from_employee_id, to_employee_id), key=str)
        }
        out_result = self._apply(
            locked[from_employee_id],
            -remove_amount,
            PointEventType.TRANSFER_OUT,
            reason,
            contravention_id,
        )
        in_result = self._apply(
            locked[to_employee_id],
            add_amount,
            PointEventType.TRANSFER_IN,
            reason,
            contravention_id,
        )
        return out_result, in_result

    def adjust_to(
        self,
        employee_id: UUID,
        expected_total: int,
        reason: str,
    ) -> LedgerResult | None:
        """Bring the total to *expected_total* with a ``sync`` event.

        Returns None when the total already matches.
        """
        if expected_total < 0:
            raise InvalidPayloadError("expected_total", "must be >= 0")
        record = self.lock_record(employee_id)
        if record.total_points == expected_total:
            return None
        return self._apply(
            record, expected_total - record.total_points, PointEventType.SYNC, reason,
        )

    def last_reset_seq(self, employee_id: UUID) -> int:
        """Seq of the employee's latest ``reset`` event, or 0."""
        return self.session.execute(
            select(func.coalesce(func.max(PointEventModel.seq), 0)).where(
                PointEventModel.employee_id == employee_id,
                PointEventModel.event_type == PointEventType.RESET.value,
            )
        ).scalar_one()

    def reset_for_fiscal_year(self, employee_id: UUID) -> PointsArchiveModel | None:
        """
        Archive the employee's standing and zero the total.

        Idempotent per fiscal year: an employee who already has an archive
        for the current fiscal year is skipped (returns None).  Otherwise
        the snapshot is archived under the record's accrual label, a
        ``reset`` event is appended, and the record is relabelled.  The
        record's own label plays no part in the decision, so a record
        created after the year turned is cleared like any other.
        """
        record = self.lock_record(employee_id)
        current_label = self.current_fiscal_year_label()
        already_archived = self.session.execute(
            select(PointsArchiveModel.id).where(
                PointsArchiveModel.employee_id == employee_id,
                PointsArchiveModel.reset_for == current_label,
            )
        ).first()
        if already_archived is not None:
            return None

        event_count = self.session.execute(
            select(func.count(PointEventModel.id)).where(
                PointEventModel.employee_id == employee_id,
                PointEventModel.seq > self.last_reset_seq(employee_id),
            )
        ).scalar_one()

        now = self.clock.now()
        archive = PointsArchiveModel(
            employee_id=employee_id,
            fiscal_year=record.fiscal_year,
            reset_for=current_label,
            archived_total=record.total_points,
            archived_tier=record.current_tier,
            event_count=event_count,
            archived_at=now,
        )
        self.session.add(archive)

        archived_total = record.total_points
        self._apply(
            record,
            -archived_total,
            PointEventType.RESET,
            f"Fiscal year reset: {record.fiscal_year} -> {current_label}",
        )
        record.fiscal_year = current_label
        record.last_reset_at = now
        self._flush(employee_id)

        logger.info(
            "points_reset",
            extra={
                "employee_id": str(employee_id),
                "archived_fiscal_year": archive.fiscal_year,
                "archived_total": archived_total,
                "new_fiscal_year": current_label,
            },
        )
        return archive

    def recalculate_tier(self, employee_id: UUID) -> tuple[bool, EscalationInfo | None]:
        """
        Rewrite the cached tier from the current total.

        Returns (changed, escalation opened by an upward change).  The total
        and the point history are untouched.
        """
        record = self.lock_record(employee_id)
        previous_tier = record.tier
        new_tier = self._policy.escalation.tier_for(record.total_points)
        if new_tier == previous_tier:
            return False, None

        record.current_tier = new_tier.value
        record.updated_at = self.clock.now()
        self._flush(employee_id)
        logger.info(
            "tier_recalculated",
            extra={
                "employee_id": str(employee_id),
                "previous_tier": previous_tier.value,
                "new_tier": new_tier.value,
            },
        )
        escalation = None
        if new_tier > previous_tier:
            escalation = self._open_escalation(record, new_tier)
        return True, escalation

    def complete_escalation_action(self, escalation_id: UUID, action: str) -> EscalationInfo:
        """
        Mark one required action done.  Completing the last one stamps
        ``completed_at``.  Re-completing an action is a no-op.
        """
        escalation = self.session.execute(
            select(EscalationModel)
            .where(EscalationModel.id == escalation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if escalation is None:
            raise EscalationNotFoundError(str(escalation_id))
        if action not in escalation.required_actions:
            raise UnknownEscalationActionError(str(escalation_id), action)

        done = list(escalation.completed_actions or [])
        if action not in done:
            done.append(action)
            escalation.completed_actions = done
            if set(done) >= set(escalation.required_actions):
                escalation.completed_at = self.clock.now()
            self.session.flush()
            logger.info(
                "escalation_action_completed",
                extra={
                    "escalation_id": str(escalation_id),
                    "action": action,
                    "escalation_complete": escalation.completed_at is not None,
                },
            )
        return escalation.to_dto()
