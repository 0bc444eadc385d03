"""
ApprovalWorkflowService -- approval requests and reviewer decisions.

Responsibility:
    Resolves approvers through the directory, writes approval-request
    rows and asks ContraventionService to move the owning contravention.

Architecture position:
    Kernel > Services.  Depends on ContraventionService (status machine),
    AuditorService and a DirectoryLookup collaborator.

Invariants enforced:
    - At most one pending request per contravention (partial unique index
      plus an explicit check).
    - Reviewed requests are never reopened; a resubmission creates a new
      request and keeps the rejected one for history.
    - Approval and contravention completion happen in the same flush.

Failure modes:
    - ApprovalRequestNotFoundError, UnauthorizedReviewerError,
      ApprovalAlreadyReviewedError, RejectionNotesRequiredError (review).
    - ApproverNotFoundError / ApproverRoleError (resubmission only).
    - PendingApprovalExistsError when a pending request already exists.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from contravention_kernel.domain.approval import (
    ApprovalDecision,
    ApprovalRequestOutcome,
    ApprovalStatus,
)
from contravention_kernel.domain.clock import Clock
from contravention_kernel.domain.collaborators import Actor, DirectoryLookup, DirectoryUser
from contravention_kernel.domain.contravention import (
    ContraventionPatch,
    ContraventionStatus,
)
from contravention_kernel.exceptions import (
    ApprovalAlreadyReviewedError,
    ApprovalRequestNotFoundError,
    ApproverNotFoundError,
    ApproverRoleError,
    InvalidStatusTransitionError,
    NotContraventionFilerError,
    PendingApprovalExistsError,
    RejectionNotesRequiredError,
    UnauthorizedReviewerError,
)
from contravention_kernel.logging_config import get_logger
from contravention_kernel.models.approval import ApprovalRequestModel
from contravention_kernel.models.audit_event import AuditAction
from contravention_kernel.models.contravention import ContraventionModel
from contravention_kernel.services.auditor_service import AuditorService
from contravention_kernel.services.base import BaseService
from contravention_kernel.services.contravention_service import ContraventionService

logger = get_logger("services.approval")

ENTITY_TYPE = "ApprovalRequest"

SUPERSEDED_NOTE = "Superseded by uploaded approval document"


class ApprovalWorkflowService(BaseService):
    """
    Approval requests for contraventions routed to a named approver.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT write ``contraventions.status`` directly.
    """

    def __init__(
        self,
        session: Session,
        contraventions: ContraventionService,
        directory: DirectoryLookup,
        auditor: AuditorService,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._contraventions = contraventions
        self._directory = directory
        self._auditor = auditor

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def pending_for(self, contravention_id: UUID) -> ApprovalRequestModel | None:
        return self.session.execute(
            select(ApprovalRequestModel).where(
                ApprovalRequestModel.contravention_id == contravention_id,
                ApprovalRequestModel.status == ApprovalStatus.PENDING.value,
            )
        ).scalar_one_or_none()

    def _resolve(self, approver_email: str | None) -> DirectoryUser | None:
        if not approver_email or not approver_email.strip():
            return None
        return self._directory.find_by_email(approver_email.strip())

    # ------------------------------------------------------------------
    # Request
    # ------------------------------------------------------------------

    def _create_request(
        self, contravention: ContraventionModel, approver: DirectoryUser, actor_id: UUID
    ) -> ApprovalRequestModel:
        existing = self.pending_for(contravention.id)
        if existing is not None:
            raise PendingApprovalExistsError(str(contravention.id), str(existing.id))

        request = ApprovalRequestModel(
            contravention_id=contravention.id,
            approver_id=approver.id,
            status=ApprovalStatus.PENDING.value,
            created_at=self.clock.now(),
        )
        self.session.add(request)
        self.session.flush()

        self._auditor.record(
            ENTITY_TYPE,
            request.id,
            AuditAction.APPROVAL_REQUESTED,
            actor_id,
            {
                "contravention_id": contravention.id,
                "reference_no": contravention.reference_no,
                "approver_id": approver.id,
            },
        )
        logger.info(
            "approval_requested",
            extra={
                "approval_id": str(request.id),
                "contravention_id": str(contravention.id),
                "approver_id": str(approver.id),
            },
        )
        return request

    def request_approval(
        self, contravention_id: UUID, approver_email: str | None, actor_id: UUID
    ) -> ApprovalRequestOutcome:
        """
        Route a PENDING_APPROVAL contravention to *approver_email*.

        An approver missing from the directory is reported, not raised: the
        contravention falls back to PENDING_UPLOAD and the outcome carries
        a warning instead of a request.
        """
        contravention = self._contraventions.load(contravention_id, for_update=True)
        if contravention.status_enum != ContraventionStatus.PENDING_APPROVAL:
            raise InvalidStatusTransitionError(
                str(contravention_id),
                contravention.status,
                ContraventionStatus.PENDING_APPROVAL.value,
            )

        approver = self._resolve(approver_email)
        if approver is None:
            warning = (
                f"Approver {approver_email!r} not found in directory; "
                "approval document upload required"
            )
            logger.warning(
                "approver_not_resolved",
                extra={
                    "contravention_id": str(contravention_id),
                    "approver_email": approver_email,
                },
            )
            self._contraventions.fall_back_to_upload(contravention_id)
            return ApprovalRequestOutcome(request=None, warnings=(warning,))

        if contravention.approver_email != approver_email:
            contravention.approver_email = approver_email
        request = self._create_request(contravention, approver, actor_id)
        return ApprovalRequestOutcome(request=request.to_dto())

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    def _load(self, approval_id: UUID, for_update: bool = False) -> ApprovalRequestModel:
        stmt = select(ApprovalRequestModel).where(ApprovalRequestModel.id == approval_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        request = self.session.execute(stmt).scalar_one_or_none()
        if request is None:
            raise ApprovalRequestNotFoundError(str(approval_id))
        return request

    def review(
        self,
        approval_id: UUID,
        actor: Actor,
        decision: ApprovalDecision,
        notes: str | None = None,
    ) -> ApprovalRequestModel:
        """
        Record the approver's decision.

        Approved: request approved, contravention completed.
        Rejected: notes required, request rejected, contravention rejected.

        Locks the contravention before the request, the same order an
        administrator upload takes them in.
        """
        contravention_id = self._load(approval_id).contravention_id
        self._contraventions.load(contravention_id, for_update=True)
        request = self._load(approval_id, for_update=True)
        if request.approver_id != actor.actor_id and not actor.is_admin:
            raise UnauthorizedReviewerError(str(approval_id), str(actor.actor_id))
        if request.status != ApprovalStatus.PENDING.value:
            raise ApprovalAlreadyReviewedError(str(approval_id), request.status)
        if decision == ApprovalDecision.REJECTED and not (notes and notes.strip()):
            raise RejectionNotesRequiredError(str(approval_id))

        if decision == ApprovalDecision.APPROVED:
            contravention = self._contraventions.complete_via_approval(
                request.contravention_id, actor.actor_id
            )
            action = AuditAction.APPROVAL_GRANTED
        else:
            contravention = self._contraventions.reject_via_approval(
                request.contravention_id
            )
            action = AuditAction.APPROVAL_REJECTED

        request.status = decision.resulting_status.value
        request.review_notes = notes
        request.reviewed_by_id = actor.actor_id
        request.reviewed_at = self.clock.now()
        self.session.flush()

        self._auditor.record(
            ENTITY_TYPE,
            request.id,
            action,
            actor.actor_id,
            {
                "contravention_id": request.contravention_id,
                "decision": decision.value,
                "notes": notes,
                "contravention_status": contravention.status,
            },
        )
        logger.info(
            "approval_reviewed",
            extra={
                "approval_id": str(request.id),
                "contravention_id": str(request.contravention_id),
                "decision": decision.value,
                "contravention_status": contravention.status,
            },
        )
        return request

    def supersede_pending(self, contravention_id: UUID, actor_id: UUID) -> ApprovalRequestModel | None:
        """Close an open request when an administrator uploads the document instead."""
        request = self.pending_for(contravention_id)
        if request is None:
            return None
        request.status = ApprovalStatus.REJECTED.value
        request.review_notes = SUPERSEDED_NOTE
        request.reviewed_by_id = actor_id
        request.reviewed_at = self.clock.now()
        self.session.flush()
        logger.info(
            "approval_superseded",
            extra={"approval_id": str(request.id), "contravention_id": str(contravention_id)},
        )
        return request

    # ------------------------------------------------------------------
    # Resubmission
    # ------------------------------------------------------------------

    def resubmit(
        self,
        contravention_id: UUID,
        actor: Actor,
        patch: ContraventionPatch | None,
        approver_email: str,
    ) -> ApprovalRequestModel:
        """
        REJECTED -> PENDING_APPROVAL with a new pending request.

        Unlike filing, an unresolvable approver is a hard failure.
        """
        contravention = self._contraventions.load(contravention_id)
        if contravention.logged_by_id != actor.actor_id:
            # Checked again under lock by the status machine.
            raise NotContraventionFilerError(str(contravention_id), str(actor.actor_id))

        approver = self._resolve(approver_email)
        if approver is None:
            raise ApproverNotFoundError(approver_email)
        if not approver.role.can_approve:
            raise ApproverRoleError(str(approver.id), approver.role.value)

        contravention = self._contraventions.resubmit(
            contravention_id, actor, patch, approver_email
        )
        request = self._create_request(contravention, approver, actor.actor_id)
        self._auditor.record(
            "Contravention",
            contravention.id,
            AuditAction.CONTRAVENTION_RESUBMITTED,
            actor.actor_id,
            {"approval_id": request.id, "approver_id": approver.id},
        )
        return request
