"""Training record domain types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from uuid import UUID


class TrainingStatus(str, Enum):
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    OVERDUE = "overdue"
    WAIVED = "waived"


TRAINING_TRANSITIONS: dict[TrainingStatus, frozenset[TrainingStatus]] = {
    TrainingStatus.ASSIGNED: frozenset({
        TrainingStatus.IN_PROGRESS,
        TrainingStatus.COMPLETED,
        TrainingStatus.OVERDUE,
        TrainingStatus.WAIVED,
    }),
    TrainingStatus.IN_PROGRESS: frozenset({
        TrainingStatus.COMPLETED,
        TrainingStatus.OVERDUE,
        TrainingStatus.WAIVED,
    }),
    TrainingStatus.OVERDUE: frozenset({
        TrainingStatus.COMPLETED,
        TrainingStatus.WAIVED,
    }),
    TrainingStatus.COMPLETED: frozenset(),
    TrainingStatus.WAIVED: frozenset(),
}

OPEN_TRAINING_STATUSES: frozenset[TrainingStatus] = frozenset({
    TrainingStatus.ASSIGNED,
    TrainingStatus.IN_PROGRESS,
    TrainingStatus.OVERDUE,
})


@dataclass(frozen=True)
class CourseInfo:
    id: UUID
    name: str
    points_credit: int
    is_active: bool


@dataclass(frozen=True)
class TrainingRecordInfo:
    id: UUID
    employee_id: UUID
    course_id: UUID
    status: TrainingStatus
    assigned_at: datetime
    due_date: date | None
    completed_at: datetime | None
    points_credited: bool
    credited_points: int | None = None
    credited_at: datetime | None = None


@dataclass(frozen=True)
class TrainingCreditOutcome:
    """Result of ``apply_training_credit``.

    ``applied`` is False when the record had already been credited; the
    call is then a no-op and ``points_removed`` is 0.
    """

    training_record_id: UUID
    employee_id: UUID
    applied: bool
    points_removed: int
    new_total: int
