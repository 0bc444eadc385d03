"""
Pure domain layer.

Value objects, enums and rules with no dependency on the ORM, the
database or wall-clock time.  Everything here is immutable and
deterministic.
"""

from contravention_kernel.domain.approval import (
    ApprovalDecision,
    ApprovalRequestInfo,
    ApprovalStatus,
)
from contravention_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from contravention_kernel.domain.collaborators import (
    Actor,
    DirectoryLookup,
    DirectoryUser,
    NotificationDispatcher,
    NotificationKind,
    UserRole,
)
from contravention_kernel.domain.contravention import (
    ContraventionInfo,
    ContraventionPatch,
    ContraventionStatus,
    NewContravention,
    Severity,
)
from contravention_kernel.domain.escalation import (
    EscalationPolicy,
    EscalationTier,
    TierRule,
)
from contravention_kernel.domain.fiscal_year import FiscalYear, fiscal_year_for
from contravention_kernel.domain.points import (
    EmployeePointsSummary,
    LedgerResult,
    PointEventType,
    ReconciliationDrift,
)
from contravention_kernel.domain.policy import ContraventionPolicy
from contravention_kernel.domain.training import TrainingStatus

__all__ = [
    "Actor",
    "ApprovalDecision",
    "ApprovalRequestInfo",
    "ApprovalStatus",
    "Clock",
    "ContraventionInfo",
    "ContraventionPatch",
    "ContraventionPolicy",
    "ContraventionStatus",
    "DeterministicClock",
    "DirectoryLookup",
    "DirectoryUser",
    "EmployeePointsSummary",
    "EscalationPolicy",
    "EscalationTier",
    "FiscalYear",
    "LedgerResult",
    "NewContravention",
    "NotificationDispatcher",
    "NotificationKind",
    "PointEventType",
    "ReconciliationDrift",
    "Severity",
    "SystemClock",
    "TierRule",
    "TrainingStatus",
    "UserRole",
    "fiscal_year_for",
]
