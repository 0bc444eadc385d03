"""
Point ledger domain types.

Every change to an employee's running total is an append-only point
event.  ``requested_delta`` is what the caller asked for;
``applied_delta`` is what actually moved the total after clamping at
zero.  The cached total is always the sum of applied deltas since the
last reset.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from uuid import UUID

from contravention_kernel.domain.escalation import EscalationTier


class PointEventType(str, Enum):
    ADD = "add"
    REVERSE = "reverse"
    CREDIT = "credit"
    TRANSFER_OUT = "transfer_out"
    TRANSFER_IN = "transfer_in"
    ADJUST = "adjust"
    RESET = "reset"
    SYNC = "sync"


@dataclass(frozen=True)
class PointEventInfo:
    id: UUID
    employee_id: UUID
    seq: int
    event_type: PointEventType
    requested_delta: int
    applied_delta: int
    reason: str
    occurred_at: datetime
    contravention_id: UUID | None = None
    training_record_id: UUID | None = None

    @property
    def was_clamped(self) -> bool:
        return self.requested_delta != self.applied_delta


@dataclass(frozen=True)
class LedgerResult:
    """Outcome of a single ledger adjustment."""

    employee_id: UUID
    previous_total: int
    new_total: int
    previous_tier: EscalationTier
    new_tier: EscalationTier
    event: PointEventInfo
    escalation_id: UUID | None = None

    @property
    def tier_increased(self) -> bool:
        return self.new_tier > self.previous_tier

    @property
    def was_clamped(self) -> bool:
        return self.event.was_clamped


@dataclass(frozen=True)
class EscalationInfo:
    id: UUID
    employee_id: UUID
    seq: int
    tier: EscalationTier
    required_actions: tuple[str, ...]
    completed_actions: tuple[str, ...]
    triggered_at: datetime
    trigger_points: int
    due_date: date | None = None
    completed_at: datetime | None = None

    @property
    def outstanding_actions(self) -> tuple[str, ...]:
        done = set(self.completed_actions)
        return tuple(a for a in self.required_actions if a not in done)

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None


@dataclass(frozen=True)
class ReconciliationDrift:
    """One employee whose cached total disagreed with the rebuilt total."""

    employee_id: UUID
    cached_total: int
    expected_total: int

    @property
    def delta(self) -> int:
        return self.expected_total - self.cached_total


@dataclass(frozen=True)
class ResetSummary:
    fiscal_year: str
    employees_reset: int
    employees_skipped: int
    points_cleared: int


@dataclass(frozen=True)
class RecalculationSummary:
    employees_checked: int
    tiers_changed: int
    escalations_created: int


@dataclass(frozen=True)
class SyncSummary:
    employees_checked: int
    drifts: tuple[ReconciliationDrift, ...] = ()

    @property
    def has_drift(self) -> bool:
        return bool(self.drifts)


@dataclass(frozen=True)
class EmployeePointsSummary:
    """Read model for ``get_employee_points_summary``."""

    employee_id: UUID
    total_points: int
    current_tier: EscalationTier
    fiscal_year: str
    tier_name: str | None
    required_actions: tuple[str, ...]
    next_tier: EscalationTier | None
    next_threshold: int | None
    points_to_next_tier: int | None
    last_reset_at: datetime | None = None
    escalations: tuple[EscalationInfo, ...] = field(default=())
    history: tuple[PointEventInfo, ...] = field(default=())
    pending_training_ids: tuple[UUID, ...] = field(default=())
