"""ORM models for the contravention kernel."""

from contravention_kernel.models.approval import ApprovalRequestModel
from contravention_kernel.models.audit_event import AuditAction, AuditEvent
from contravention_kernel.models.contravention import (
    ContraventionModel,
    ContraventionTypeModel,
)
from contravention_kernel.models.points import (
    EmployeePointsModel,
    EscalationModel,
    PointEventModel,
    PointsArchiveModel,
)
from contravention_kernel.models.sequence_counter import SequenceCounter
from contravention_kernel.models.training import CourseModel, TrainingRecordModel

__all__ = [
    "ApprovalRequestModel",
    "AuditAction",
    "AuditEvent",
    "ContraventionModel",
    "ContraventionTypeModel",
    "CourseModel",
    "EmployeePointsModel",
    "EscalationModel",
    "PointEventModel",
    "PointsArchiveModel",
    "SequenceCounter",
    "TrainingRecordModel",
]
