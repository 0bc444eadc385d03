"""
Module: contravention_kernel.models.points
Responsibility: ORM persistence for the per-employee point ledger:
    the cached point record, the append-only point events, fiscal-year
    archives and escalation records.
Architecture position: Kernel > Models.

Invariants enforced:
    - employee_points.total_points >= 0 (check constraint).
    - total_points == SUM(point_events.applied_delta) since last_reset_at;
      maintained by PointLedgerService under a row lock.
    - point_events are append-only; (employee_id, seq) is unique.
    - points_archives are append-only; one per (employee_id, reset_for), so a
      reset targets each fiscal year at most once per employee.
    - escalations are never deleted; seq, tier, required_actions,
      trigger_points and triggered_at are write-once (db/immutability.py).
    - (employee_id, seq) is unique for escalations; seq follows the order in
      which the ledger opened them.

Failure modes:
    - StaleDataError on a concurrent write to the same employee record.
    - ImmutabilityViolationError on UPDATE/DELETE of append-only rows.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from contravention_kernel.db.base import Base, UUIDString
from contravention_kernel.domain.escalation import EscalationTier
from contravention_kernel.domain.points import (
    EscalationInfo,
    PointEventInfo,
    PointEventType,
)


class EmployeePointsModel(Base):
    """Cached running total and tier for one employee."""

    __tablename__ = "employee_points"

    __table_args__ = (
        CheckConstraint("total_points >= 0", name="ck_employee_points_non_negative"),
        CheckConstraint(
            "current_tier IN ('NONE', 'TIER_1', 'TIER_2', 'TIER_3')",
            name="ck_employee_points_valid_tier",
        ),
    )

    employee_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, unique=True)
    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_tier: Mapped[str] = mapped_column(String(16), nullable=False, default="NONE")
    fiscal_year: Mapped[str] = mapped_column(String(16), nullable=False)
    last_reset_at: Mapped[datetime | None] = mapped_column(nullable=True)
    # Last allocated point_events.seq for this employee; guarded by the row lock.
    event_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Last allocated escalations.seq for this employee.
    escalation_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<EmployeePoints {self.employee_id} total={self.total_points} "
            f"tier={self.current_tier}>"
        )

    @property
    def tier(self) -> EscalationTier:
        return EscalationTier(self.current_tier)


class PointEventModel(Base):
    """One append-only adjustment to an employee's total."""

    __tablename__ = "point_events"

    __table_args__ = (
        UniqueConstraint("employee_id", "seq", name="uq_point_events_employee_seq"),
        Index("ix_point_events_employee_occurred", "employee_id", "occurred_at"),
        Index("ix_point_events_contravention", "contravention_id"),
    )

    employee_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    event_type: Mapped[str] = mapped_column(String(20), nullable=False)
    requested_delta: Mapped[int] = mapped_column(Integer, nullable=False)
    applied_delta: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(500), nullable=False)
    # No foreign key: the contravention may later be deleted, the event stays.
    contravention_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    training_record_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<PointEvent {self.employee_id}#{self.seq} {self.event_type} "
            f"{self.applied_delta:+d}>"
        )

    def to_dto(self) -> PointEventInfo:
        return PointEventInfo(
            id=self.id,
            employee_id=self.employee_id,
            seq=self.seq,
            event_type=PointEventType(self.event_type),
            requested_delta=self.requested_delta,
            applied_delta=self.applied_delta,
            reason=self.reason,
            occurred_at=self.occurred_at,
            contravention_id=self.contravention_id,
            training_record_id=self.training_record_id,
        )


class PointsArchiveModel(Base):
    """
    Snapshot of an employee's standing taken by the fiscal-year reset.

    ``fiscal_year`` is the label the cleared points accrued under;
    ``reset_for`` is the fiscal year the reset was run for.
    """

    __tablename__ = "points_archives"

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "reset_for", name="uq_points_archives_employee_reset_for",
        ),
    )

    employee_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    fiscal_year: Mapped[str] = mapped_column(String(16), nullable=False)
    reset_for: Mapped[str] = mapped_column(String(16), nullable=False)
    archived_total: Mapped[int] = mapped_column(Integer, nullable=False)
    archived_tier: Mapped[str] = mapped_column(String(16), nullable=False)
    event_count: Mapped[int] = mapped_column(Integer, nullable=False)
    archived_at: Mapped[datetime] = mapped_column(nullable=False)


class EscalationModel(Base):
    """Escalation triggered by an upward tier change."""

    __tablename__ = "escalations"

    __table_args__ = (
        UniqueConstraint("employee_id", "seq", name="uq_escalations_employee_seq"),
        Index("ix_escalations_employee", "employee_id", "triggered_at"),
    )

    employee_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    tier: Mapped[str] = mapped_column(String(16), nullable=False)
    tier_name: Mapped[str] = mapped_column(String(100), nullable=False)
    required_actions: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    completed_actions: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list,
    )
    trigger_points: Mapped[int] = mapped_column(Integer, nullable=False)
    triggered_at: Mapped[datetime] = mapped_column(nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Escalation {self.employee_id} {self.tier} at {self.triggered_at}>"

    def to_dto(self) -> EscalationInfo:
        return EscalationInfo(
            id=self.id,
            employee_id=self.employee_id,
            seq=self.seq,
            tier=EscalationTier(self.tier),
            required_actions=tuple(self.required_actions),
            completed_actions=tuple(self.completed_actions or ()),
            triggered_at=self.triggered_at,
            trigger_points=self.trigger_points,
            due_date=self.due_date,
            completed_at=self.completed_at,
        )
