"""
Module: contravention_kernel.models.training
Responsibility: ORM persistence for training courses and per-employee
    training records.

Invariants enforced:
    - One training record per (employee_id, course_id).
    - points_credited flips false -> true at most once; TrainingService does
      it with a conditional UPDATE in the same transaction as the ledger
      reversal.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from contravention_kernel.db.base import Base, UUIDString
from contravention_kernel.domain.training import (
    CourseInfo,
    TrainingRecordInfo,
    TrainingStatus,
)


class CourseModel(Base):
    __tablename__ = "courses"

    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    points_credit: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("points_credit >= 0", name="ck_courses_points_credit"),
    )

    def to_dto(self) -> CourseInfo:
        return CourseInfo(
            id=self.id,
            name=self.name,
            points_credit=self.points_credit,
            is_active=self.is_active,
        )


class TrainingRecordModel(Base):
    """An employee's enrolment in one course."""

    __tablename__ = "training_records"

    __table_args__ = (
        UniqueConstraint("employee_id", "course_id", name="uq_training_employee_course"),
        CheckConstraint(
            "status IN ('assigned', 'in_progress', 'completed', 'overdue', 'waived')",
            name="ck_training_records_valid_status",
        ),
    )

    employee_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    course_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("courses.id"), nullable=False,
    )
    escalation_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="assigned")
    assigned_at: Mapped[datetime] = mapped_column(nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    points_credited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    credited_points: Mapped[int | None] = mapped_column(Integer, nullable=True)
    credited_at: Mapped[datetime | None] = mapped_column(nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<TrainingRecord {self.employee_id}/{self.course_id} "
            f"status={self.status} credited={self.points_credited}>"
        )

    def to_dto(self) -> TrainingRecordInfo:
        return TrainingRecordInfo(
            id=self.id,
            employee_id=self.employee_id,
            course_id=self.course_id,
            status=TrainingStatus(self.status),
            assigned_at=self.assigned_at,
            due_date=self.due_date,
            completed_at=self.completed_at,
            points_credited=self.points_credited,
            credited_points=self.credited_points,
            credited_at=self.credited_at,
        )
