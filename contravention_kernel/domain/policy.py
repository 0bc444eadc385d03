"""
Runtime policy bundle handed to the kernel services.

Built from configuration by ``contravention_config.bridges``; the kernel
itself never reads configuration files.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from contravention_kernel.domain.contravention import Severity
from contravention_kernel.domain.escalation import EscalationPolicy


@dataclass(frozen=True)
class ContraventionTypeSeed:
    name: str
    category: str
    severity: Severity
    default_points: int


@dataclass(frozen=True)
class CourseSeed:
    name: str
    points_credit: int
    is_active: bool = True


@dataclass(frozen=True)
class ContraventionPolicy:
    """Everything the engine needs to know that is not code.

    Attributes:
        escalation: Tier thresholds and actions.
        training_credit_points: Credit applied when a course carries none.
        training_due_days: Days between assignment and training due date.
        fiscal_year_start_month: 1..12; April by default.
        reference_prefix / reference_width: ``CONTRA-2026-007`` style.
    """

    escalation: EscalationPolicy
    training_credit_points: int = 1
    training_due_days: int = 30
    fiscal_year_start_month: int = 4
    reference_prefix: str = "CONTRA"
    reference_width: int = 3
    contravention_types: tuple[ContraventionTypeSeed, ...] = field(default=())
    courses: tuple[CourseSeed, ...] = field(default=())
    version: str = "unversioned"

    def __post_init__(self) -> None:
        if self.training_credit_points < 0:
            raise ValueError("training_credit_points must be >= 0")
        if self.training_due_days < 0:
            raise ValueError("training_due_days must be >= 0")
        if not 1 <= self.fiscal_year_start_month <= 12:
            raise ValueError("fiscal_year_start_month must be 1..12")
        if self.reference_width < 1:
            raise ValueError("reference_width must be >= 1")
