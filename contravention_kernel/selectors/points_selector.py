"""
Module: contravention_kernel.selectors.points_selector
Responsibility: Read model for an employee's points standing: total, tier,
    distance to the next tier, escalation history, point history and open
    training.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - An employee with no ledger record reads as 0 points, tier NONE.
    - ``ledger_sum`` recomputes the total from point events, which must
      equal the cached total.
"""

from uuid import UUID

from sqlalchemy import func, select

from contravention_kernel.domain.escalation import EscalationPolicy, EscalationTier
from contravention_kernel.domain.points import EmployeePointsSummary, EscalationInfo, PointEventInfo
from contravention_kernel.domain.training import OPEN_TRAINING_STATUSES
from contravention_kernel.models.points import (
    EmployeePointsModel,
    EscalationModel,
    PointEventModel,
    PointsArchiveModel,
)
from contravention_kernel.models.training import TrainingRecordModel
from contravention_kernel.selectors.base import BaseSelector


class PointsSelector(BaseSelector[EmployeePointsModel]):
    """Queries over point records, events, escalations and archives."""

    def record(self, employee_id: UUID) -> EmployeePointsModel | None:
        return self.session.execute(
            select(EmployeePointsModel).where(EmployeePointsModel.employee_id == employee_id)
        ).scalar_one_or_none()

    def history(self, employee_id: UUID, limit: int | None = None) -> tuple[PointEventInfo, ...]:
        """Point events, newest first."""
        stmt = (
            select(PointEventModel)
            .where(PointEventModel.employee_id == employee_id)
            .order_by(PointEventModel.seq.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return tuple(event.to_dto() for event in self.session.execute(stmt).scalars())

    def escalations(self, employee_id: UUID) -> tuple[EscalationInfo, ...]:
        rows = self.session.execute(
            select(EscalationModel)
            .where(EscalationModel.employee_id == employee_id)
            .order_by(EscalationModel.seq)
        ).scalars()
        return tuple(row.to_dto() for row in rows)

    def ledger_sum(self, employee_id: UUID) -> int:
        return self.session.execute(
            select(func.coalesce(func.sum(PointEventModel.applied_delta), 0)).where(
                PointEventModel.employee_id == employee_id
            )
        ).scalar_one()

    def archives(self, employee_id: UUID) -> list[PointsArchiveModel]:
        return list(
            self.session.execute(
                select(PointsArchiveModel)
                .where(PointsArchiveModel.employee_id == employee_id)
                .order_by(PointsArchiveModel.archived_at)
            ).scalars()
        )

    def pending_training_ids(self, employee_id: UUID) -> tuple[UUID, ...]:
        return tuple(
            self.session.execute(
                select(TrainingRecordModel.id)
                .where(
                    TrainingRecordModel.employee_id == employee_id,
                    TrainingRecordModel.status.in_([s.value for s in OPEN_TRAINING_STATUSES]),
                )
                .order_by(TrainingRecordModel.assigned_at)
            ).scalars()
        )

    def summary(
        self,
        employee_id: UUID,
        policy: EscalationPolicy,
        fiscal_year_label: str,
        history_limit: int = 50,
    ) -> EmployeePointsSummary:
        """
        Standing for one employee.

        ``fiscal_year_label`` is used only when the employee has no record
        yet; otherwise the record's own label is reported.
        """
        record = self.record(employee_id)
        total = record.total_points if record is not None else 0
        tier = record.tier if record is not None else EscalationTier.NONE
        rule = policy.rule_for(tier)
        next_rule = policy.next_rule(total)

        return EmployeePointsSummary(
            employee_id=employee_id,
            total_points=total,
            current_tier=tier,
            fiscal_year=record.fiscal_year if record is not None else fiscal_year_label,
            tier_name=rule.name if rule is not None else None,
            required_actions=policy.required_actions(tier),
            next_tier=next_rule.tier if next_rule is not None else None,
            next_threshold=next_rule.min_points if next_rule is not None else None,
            points_to_next_tier=policy.points_to_next_tier(total),
            last_reset_at=record.last_reset_at if record is not None else None,
            escalations=self.escalations(employee_id),
            history=self.history(employee_id, limit=history_limit),
            pending_training_ids=self.pending_training_ids(employee_id),
        )
