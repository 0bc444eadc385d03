"""
Approval workflow domain types.

An approval request is a single human decision layered on top of the
contravention status machine: ``pending`` moves to ``approved`` or
``rejected`` exactly once.  Resubmission creates a new request and leaves
the rejected one in place as history.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalDecision(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def resulting_status(self) -> ApprovalStatus:
        return ApprovalStatus(self.value)


APPROVAL_TRANSITIONS: dict[ApprovalStatus, frozenset[ApprovalStatus]] = {
    ApprovalStatus.PENDING: frozenset({ApprovalStatus.APPROVED, ApprovalStatus.REJECTED}),
    ApprovalStatus.APPROVED: frozenset(),
    ApprovalStatus.REJECTED: frozenset(),
}


@dataclass(frozen=True)
class ApprovalRequestInfo:
    id: UUID
    contravention_id: UUID
    approver_id: UUID
    status: ApprovalStatus
    created_at: datetime
    review_notes: str | None = None
    reviewed_by_id: UUID | None = None
    reviewed_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == ApprovalStatus.PENDING


@dataclass(frozen=True)
class ApprovalRequestOutcome:
    """Result of ``request_approval``.

    ``request`` is None when the approver could not be resolved; the
    reason is carried in ``warnings`` and the contravention has fallen
    back to document upload.
    """

    request: ApprovalRequestInfo | None
    warnings: tuple[str, ...] = ()
