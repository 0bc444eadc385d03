"""
Module: contravention_kernel.models.approval
Responsibility: ORM persistence for approval requests.
Architecture position: Kernel > Models.

Invariants enforced:
    - At most one ``pending`` request per contravention: partial unique
      index on both PostgreSQL and SQLite, backed by a service-level check.
    - Rejected and approved requests stay in place as history.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from contravention_kernel.db.base import Base, UUIDString
from contravention_kernel.domain.approval import ApprovalRequestInfo, ApprovalStatus


class ApprovalRequestModel(Base):
    """Persistent approval request."""

    __tablename__ = "approval_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_approval_requests_valid_status",
        ),
        Index(
            "ix_approval_requests_one_pending",
            "contravention_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("ix_approval_requests_approver", "approver_id", "status"),
        Index("ix_approval_requests_contravention", "contravention_id", "created_at"),
    )

    contravention_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("contraventions.id"), nullable=False,
    )
    approver_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ApprovalRequest {self.id} contravention={self.contravention_id} "
            f"status={self.status}>"
        )

    def to_dto(self) -> ApprovalRequestInfo:
        return ApprovalRequestInfo(
            id=self.id,
            contravention_id=self.contravention_id,
            approver_id=self.approver_id,
            status=ApprovalStatus(self.status),
            created_at=self.created_at,
            review_notes=self.review_notes,
            reviewed_by_id=self.reviewed_by_id,
            reviewed_at=self.reviewed_at,
        )
