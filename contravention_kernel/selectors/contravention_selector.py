"""
Module: contravention_kernel.selectors.contravention_selector
Responsibility: Read-only lookups of contraventions and their approval
    history.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select

from contravention_kernel.domain.approval import ApprovalRequestInfo
from contravention_kernel.domain.contravention import ContraventionInfo, ContraventionStatus
from contravention_kernel.exceptions import ContraventionNotFoundError
from contravention_kernel.models.approval import ApprovalRequestModel
from contravention_kernel.models.contravention import ContraventionModel
from contravention_kernel.selectors.base import BaseSelector


class ContraventionSelector(BaseSelector[ContraventionModel]):

    def get(self, contravention_id: UUID) -> ContraventionInfo:
        model = self.session.get(ContraventionModel, contravention_id)
        if model is None:
            raise ContraventionNotFoundError(str(contravention_id))
        return model.to_dto()

    def by_reference(self, reference_no: str) -> ContraventionInfo | None:
        model = self.session.execute(
            select(ContraventionModel).where(ContraventionModel.reference_no == reference_no)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def search(
        self,
        employee_id: UUID | None = None,
        status: ContraventionStatus | None = None,
        logged_by_id: UUID | None = None,
    ) -> tuple[ContraventionInfo, ...]:
        """Newest first, optionally filtered."""
        stmt = select(ContraventionModel).order_by(
            ContraventionModel.created_at.desc(), ContraventionModel.reference_no.desc()
        )
        if employee_id is not None:
            stmt = stmt.where(ContraventionModel.employee_id == employee_id)
        if status is not None:
            stmt = stmt.where(ContraventionModel.status == status.value)
        if logged_by_id is not None:
            stmt = stmt.where(ContraventionModel.logged_by_id == logged_by_id)
        return tuple(model.to_dto() for model in self.session.execute(stmt).scalars())

    def approval_history(self, contravention_id: UUID) -> tuple[ApprovalRequestInfo, ...]:
        """All approval requests for the contravention, oldest first."""
        rows = self.session.execute(
            select(ApprovalRequestModel)
            .where(ApprovalRequestModel.contravention_id == contravention_id)
            .order_by(ApprovalRequestModel.created_at, ApprovalRequestModel.id)
        ).scalars()
        return tuple(row.to_dto() for row in rows)

    def pending_for_approver(self, approver_id: UUID) -> tuple[ApprovalRequestInfo, ...]:
        rows = self.session.execute(
            select(ApprovalRequestModel)
            .where(
                ApprovalRequestModel.approver_id == approver_id,
                ApprovalRequestModel.status == "pending",
            )
            .order_by(ApprovalRequestModel.created_at)
        ).scalars()
        return tuple(row.to_dto() for row in rows)
