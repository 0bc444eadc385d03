"""
Module: contravention_kernel.models.audit_event
Responsibility: ORM persistence for the tamper-evident audit hash chain.
Architecture position: Kernel > Models.

Invariants enforced:
    - Audit records are append-only (ORM listeners in db/immutability.py).
    - hash = H(seq | entity_type | entity_id | action | actor_id | payload_hash | prev_hash),
      validated by AuditorService.validate_chain().
    - seq is strictly increasing, allocated by SequenceService.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from contravention_kernel.db.base import Base, UUIDString


class AuditAction(str, Enum):
    """Auditable state changes."""

    CONTRAVENTION_FILED = "contravention_filed"
    CONTRAVENTION_UPDATED = "contravention_updated"
    CONTRAVENTION_REASSIGNED = "contravention_reassigned"
    CONTRAVENTION_DELETED = "contravention_deleted"
    APPROVAL_DOCUMENT_UPLOADED = "approval_document_uploaded"
    CONTRAVENTION_COMPLETED = "contravention_completed"
    APPROVAL_REQUESTED = "approval_requested"
    APPROVAL_GRANTED = "approval_granted"
    APPROVAL_REJECTED = "approval_rejected"
    CONTRAVENTION_RESUBMITTED = "contravention_resubmitted"
    ESCALATION_TRIGGERED = "escalation_triggered"
    ESCALATION_ACTION_COMPLETED = "escalation_action_completed"
    TRAINING_ASSIGNED = "training_assigned"
    TRAINING_STARTED = "training_started"
    TRAINING_COMPLETED = "training_completed"
    TRAINING_WAIVED = "training_waived"
    TRAINING_OVERDUE = "training_overdue"
    TRAINING_CREDIT_APPLIED = "training_credit_applied"
    FISCAL_YEAR_RESET = "fiscal_year_reset"
    ESCALATIONS_RECALCULATED = "escalations_recalculated"
    POINTS_SYNCED = "points_synced"


class AuditEvent(Base):
    """Audit event with hash chain linkage.  Never updated or deleted."""

    __tablename__ = "audit_events"
    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_action", "action"),
    )

    seq: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEvent #{self.seq} {self.action} {self.entity_type}:{self.entity_id}>"
