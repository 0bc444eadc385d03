"""
Module: contravention_kernel.models.contravention
Responsibility: ORM persistence for contravention types and contraventions.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ (for DTO conversion) only.

Invariants enforced:
    - reference_no is unique and written once at creation.
    - status is one of the five workflow states (check constraint); the
      transition rules live in ContraventionService.
    - version_id_col turns lost updates into StaleDataError.

Failure modes:
    - IntegrityError on duplicate reference_no.
    - StaleDataError when another transaction updated the row first.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from contravention_kernel.db.base import Base, UUIDString
from contravention_kernel.domain.contravention import (
    ContraventionInfo,
    ContraventionStatus,
    ContraventionTypeInfo,
    Severity,
)


class ContraventionTypeModel(Base):
    """Catalog entry: a kind of contravention and its default points."""

    __tablename__ = "contravention_types"

    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    default_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("default_points >= 0", name="ck_contravention_types_points"),
    )

    def __repr__(self) -> str:
        return f"<ContraventionType {self.name} points={self.default_points}>"

    def to_dto(self) -> ContraventionTypeInfo:
        return ContraventionTypeInfo(
            id=self.id,
            name=self.name,
            category=self.category,
            severity=Severity(self.severity),
            default_points=self.default_points,
            is_active=self.is_active,
        )


class ContraventionModel(Base):
    """
    A single reported violation.

    Contract:
        ``points`` starts at the type's default (or an override) and every
        later change is mirrored in the owning employee's point ledger by
        ContraventionService.  Rows are deleted only after their points
        have been reversed.
    """

    __tablename__ = "contraventions"

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING_APPROVAL', 'PENDING_UPLOAD', 'PENDING_REVIEW', "
            "'COMPLETED', 'REJECTED')",
            name="ck_contraventions_valid_status",
        ),
        CheckConstraint("points >= 0", name="ck_contraventions_points"),
        Index("ix_contraventions_employee", "employee_id", "created_at"),
        Index("ix_contraventions_status", "status"),
        Index("ix_contraventions_logged_by", "logged_by_id"),
    )

    reference_no: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    employee_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    logged_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    type_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("contravention_types.id"), nullable=False,
    )
    custom_type_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    justification: Mapped[str | None] = mapped_column(Text, nullable=True)
    mitigation: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    vendor: Mapped[str | None] = mapped_column(String(200), nullable=True)
    value: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    incident_date: Mapped[date] = mapped_column(Date, nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    evidence_refs: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    supporting_doc_refs: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list,
    )
    approver_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    approval_document_ref: Mapped[str | None] = mapped_column(
        String(1000), nullable=True,
    )
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    resolved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    acknowledged_at: Mapped[datetime | None] = mapped_column(nullable=True)
    acknowledged_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    contravention_type: Mapped[ContraventionTypeModel] = relationship()

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<Contravention {self.reference_no} employee={self.employee_id} "
            f"status={self.status} points={self.points}>"
        )

    @property
    def status_enum(self) -> ContraventionStatus:
        return ContraventionStatus(self.status)

    def to_dto(self) -> ContraventionInfo:
        """Convert ORM model to frozen domain DTO."""
        return ContraventionInfo(
            id=self.id,
            reference_no=self.reference_no,
            employee_id=self.employee_id,
            logged_by_id=self.logged_by_id,
            type_id=self.type_id,
            status=ContraventionStatus(self.status),
            points=self.points,
            severity=Severity(self.severity),
            description=self.description,
            incident_date=self.incident_date,
            created_at=self.created_at,
            updated_at=self.updated_at,
            value=self.value,
            vendor=self.vendor,
            custom_type_name=self.custom_type_name,
            justification=self.justification,
            mitigation=self.mitigation,
            summary=self.summary,
            evidence_refs=tuple(self.evidence_refs or ()),
            supporting_doc_refs=tuple(self.supporting_doc_refs or ()),
            approver_email=self.approver_email,
            approval_document_ref=self.approval_document_ref,
            resolved_at=self.resolved_at,
            resolved_by_id=self.resolved_by_id,
            acknowledged_at=self.acknowledged_at,
            acknowledged_by_id=self.acknowledged_by_id,
        )
