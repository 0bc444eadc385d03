"""
Contravention domain types (``contravention_kernel.domain.contravention``).

Responsibility
--------------
Pure value objects for the contravention lifecycle: the status enum, the
transition table, the initial-status rule, and the frozen DTOs that cross
the service boundary.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  No imports from ``db/``,
``models/``, ``services/`` or ``selectors/``.

Invariants enforced
-------------------
* ``CONTRAVENTION_TRANSITIONS`` is the only source of legal status moves.
  ``COMPLETED`` has no outgoing edges.
* ``initial_status_for`` decides the creation-time status from the
  presence of an approver email and an approval document.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from contravention_kernel.exceptions import InvalidPayloadError


class ContraventionStatus(str, Enum):
    """Contravention workflow states."""

    PENDING_APPROVAL = "PENDING_APPROVAL"
    PENDING_UPLOAD = "PENDING_UPLOAD"
    PENDING_REVIEW = "PENDING_REVIEW"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


CONTRAVENTION_TRANSITIONS: dict[ContraventionStatus, frozenset[ContraventionStatus]] = {
    ContraventionStatus.PENDING_APPROVAL: frozenset({
        ContraventionStatus.PENDING_UPLOAD,
        ContraventionStatus.PENDING_REVIEW,
        ContraventionStatus.REJECTED,
    }),
    ContraventionStatus.PENDING_UPLOAD: frozenset({
        ContraventionStatus.PENDING_REVIEW,
    }),
    ContraventionStatus.PENDING_REVIEW: frozenset({
        ContraventionStatus.COMPLETED,
    }),
    ContraventionStatus.REJECTED: frozenset({
        ContraventionStatus.PENDING_APPROVAL,
    }),
    ContraventionStatus.COMPLETED: frozenset(),
}

# States from which the filer may still edit the record's narrative fields.
FILER_EDITABLE_STATUSES: frozenset[ContraventionStatus] = frozenset({
    ContraventionStatus.PENDING_APPROVAL,
    ContraventionStatus.REJECTED,
})


def can_transition(
    from_status: ContraventionStatus, to_status: ContraventionStatus
) -> bool:
    return to_status in CONTRAVENTION_TRANSITIONS.get(from_status, frozenset())


def initial_status_for(
    approver_email: str | None, approval_document_ref: str | None
) -> ContraventionStatus:
    """Creation-time status.

    An approver routes the record through the approval workflow; an
    uploaded approval document goes straight to admin review; otherwise
    the filer still owes the document.
    """
    if approver_email:
        return ContraventionStatus.PENDING_APPROVAL
    if approval_document_ref:
        return ContraventionStatus.PENDING_REVIEW
    return ContraventionStatus.PENDING_UPLOAD


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


# =========================================================================
# Inputs
# =========================================================================


@dataclass(frozen=True)
class NewContravention:
    """Validated input for filing a contravention.

    ``points`` overrides the type's default when given.
    """

    employee_id: UUID
    logged_by_id: UUID
    type_id: UUID
    description: str
    incident_date: date
    value: Decimal | None = None
    vendor: str | None = None
    custom_type_name: str | None = None
    justification: str | None = None
    mitigation: str | None = None
    summary: str | None = None
    points: int | None = None
    evidence_refs: tuple[str, ...] = ()
    supporting_doc_refs: tuple[str, ...] = ()
    approver_email: str | None = None
    approval_document_ref: str | None = None

    def __post_init__(self) -> None:
        if not self.description or not self.description.strip():
            raise InvalidPayloadError("description", "must not be empty")
        if self.points is not None and self.points < 0:
            raise InvalidPayloadError("points", f"must be >= 0, got {self.points}")
        if self.value is not None and self.value < 0:
            raise InvalidPayloadError("value", f"must be >= 0, got {self.value}")


@dataclass(frozen=True)
class ContraventionPatch:
    """Partial update.  ``None`` means "leave unchanged"."""

    employee_id: UUID | None = None
    type_id: UUID | None = None
    custom_type_name: str | None = None
    description: str | None = None
    justification: str | None = None
    mitigation: str | None = None
    summary: str | None = None
    vendor: str | None = None
    value: Decimal | None = None
    incident_date: date | None = None
    points: int | None = None
    evidence_refs: tuple[str, ...] | None = None
    supporting_doc_refs: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        if self.points is not None and self.points < 0:
            raise InvalidPayloadError("points", f"must be >= 0, got {self.points}")
        if self.description is not None and not self.description.strip():
            raise InvalidPayloadError("description", "must not be empty")
        if self.value is not None and self.value < 0:
            raise InvalidPayloadError("value", f"must be >= 0, got {self.value}")

    def changed_fields(self) -> dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in self.__dataclass_fields__
            if getattr(self, name) is not None
        }


# Fields a filer may touch on their own record; everything else is admin-only.
FILER_EDITABLE_FIELDS: frozenset[str] = frozenset({
    "description",
    "justification",
    "mitigation",
    "summary",
    "vendor",
    "value",
    "incident_date",
    "evidence_refs",
    "supporting_doc_refs",
})


# =========================================================================
# Outputs
# =========================================================================


@dataclass(frozen=True)
class ContraventionTypeInfo:
    id: UUID
    name: str
    category: str
    severity: Severity
    default_points: int
    is_active: bool = True


@dataclass(frozen=True)
class ContraventionInfo:
    """Read-only snapshot of a contravention."""

    id: UUID
    reference_no: str
    employee_id: UUID
    logged_by_id: UUID
    type_id: UUID
    status: ContraventionStatus
    points: int
    severity: Severity
    description: str
    incident_date: date
    created_at: datetime
    updated_at: datetime
    value: Decimal | None = None
    vendor: str | None = None
    custom_type_name: str | None = None
    justification: str | None = None
    mitigation: str | None = None
    summary: str | None = None
    evidence_refs: tuple[str, ...] = ()
    supporting_doc_refs: tuple[str, ...] = ()
    approver_email: str | None = None
    approval_document_ref: str | None = None
    resolved_at: datetime | None = None
    resolved_by_id: UUID | None = None
    acknowledged_at: datetime | None = None
    acknowledged_by_id: UUID | None = None

    @property
    def is_completed(self) -> bool:
        return self.status == ContraventionStatus.COMPLETED


@dataclass(frozen=True)
class FilingOutcome:
    """Result of filing: the record plus non-fatal warnings."""

    contravention: ContraventionInfo
    approval_request_id: UUID | None = None
    warnings: tuple[str, ...] = field(default=())
