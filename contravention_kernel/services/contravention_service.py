"""
ContraventionService -- the contravention status machine.

Responsibility:
    Files contraventions, edits them, moves them between workflow states
    and deletes them.  It is the only writer of ``contraventions.status``.
    Every change to a record's point value or owner is mirrored in the
    PointLedgerService inside the same transaction.

Architecture position:
    Kernel > Services.  Uses PointLedgerService, ReferenceNumberService and
    AuditorService.  ApprovalWorkflowService drives the approval-related
    transitions through the public transition methods here.

Invariants enforced:
    - Only moves listed in CONTRAVENTION_TRANSITIONS are made, except the
      administrator's approval-document override (any non-completed state
      to PENDING_REVIEW).
    - Point override: new_points - old_points is applied to the owner.
    - Reassignment: old owner loses the pre-edit points, new owner gains
      the post-edit points, in one transaction.
    - Deletion reverses the full point value before the row is removed.

Failure modes:
    - ContraventionNotFoundError, ContraventionTypeNotFoundError.
    - InvalidStatusTransitionError for moves outside the table.
    - NotContraventionFilerError / AdminRequiredError for wrong actors.
    - OptimisticLockError when the row changed underneath us.
"""

from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from contravention_kernel.domain.clock import Clock
from contravention_kernel.domain.collaborators import Actor
from contravention_kernel.domain.contravention import (
    FILER_EDITABLE_FIELDS,
    FILER_EDITABLE_STATUSES,
    ContraventionPatch,
    ContraventionStatus,
    NewContravention,
    can_transition,
    initial_status_for,
)
from contravention_kernel.exceptions import (
    AdminRequiredError,
    ContraventionNotFoundError,
    ContraventionTypeNotFoundError,
    InvalidPayloadError,
    InvalidStatusTransitionError,
    NotContraventionFilerError,
    OptimisticLockError,
)
from contravention_kernel.logging_config import get_logger
from contravention_kernel.models.approval import ApprovalRequestModel
from contravention_kernel.models.audit_event import AuditAction
from contravention_kernel.models.contravention import (
    ContraventionModel,
    ContraventionTypeModel,
)
from contravention_kernel.services.auditor_service import AuditorService
from contravention_kernel.services.base import BaseService
from contravention_kernel.services.points_ledger import PointLedgerService
from contravention_kernel.services.sequence_service import ReferenceNumberService

logger = get_logger("services.contravention")

ENTITY_TYPE = "Contravention"


class ContraventionService(BaseService):
    """
    Status machine and point-mirroring edits for contraventions.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT resolve approvers or write approval requests (other than
          removing them on deletion).
    """

    def __init__(
        self,
        session: Session,
        ledger: PointLedgerService,
        references: ReferenceNumberService,
        auditor: AuditorService,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._ledger = ledger
        self._references = references
        self._auditor = auditor

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self, contravention_id: UUID, for_update: bool = False) -> ContraventionModel:
        stmt = select(ContraventionModel).where(ContraventionModel.id == contravention_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        model = self.session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise ContraventionNotFoundError(str(contravention_id))
        return model

    def _load_type(self, type_id: UUID) -> ContraventionTypeModel:
        type_model = self.session.get(ContraventionTypeModel, type_id)
        if type_model is None:
            raise ContraventionTypeNotFoundError(str(type_id))
        return type_model

    def _flush(self, model: ContraventionModel) -> None:
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning("contravention_stale", extra={"contravention_id": str(model.id)})
            raise OptimisticLockError(ENTITY_TYPE, str(model.id)) from exc

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(
        self,
        model: ContraventionModel,
        to_status: ContraventionStatus,
        admin_override: bool = False,
    ) -> None:
        from_status = model.status_enum
        if not admin_override and not can_transition(from_status, to_status):
            logger.warning(
                "contravention_transition_rejected",
                extra={
                    "contravention_id": str(model.id),
                    "from_status": from_status.value,
                    "to_status": to_status.value,
                },
            )
            raise InvalidStatusTransitionError(
                str(model.id), from_status.value, to_status.value
            )
        model.status = to_status.value
        model.updated_at = self.clock.now()
        logger.info(
            "contravention_status_changed",
            extra={
                "contravention_id": str(model.id),
                "from_status": from_status.value,
                "to_status": to_status.value,
                "admin_override": admin_override,
            },
        )

    def fall_back_to_upload(self, contravention_id: UUID) -> ContraventionModel:
        """PENDING_APPROVAL -> PENDING_UPLOAD when no approver can be routed to."""
        model = self.load(contravention_id, for_update=True)
        self._transition(model, ContraventionStatus.PENDING_UPLOAD)
        model.approver_email = None
        self._flush(model)
        return model

    def complete_via_approval(
        self, contravention_id: UUID, reviewer_id: UUID
    ) -> ContraventionModel:
        """
        Approval granted: PENDING_APPROVAL -> PENDING_REVIEW -> COMPLETED.

        The system approval stands in for the approval document, so the
        record passes through review and is resolved in one step.
        """
        model = self.load(contravention_id, for_update=True)
        self._transition(model, ContraventionStatus.PENDING_REVIEW)
        self._transition(model, ContraventionStatus.COMPLETED)
        now = self.clock.now()
        model.resolved_at = now
        model.resolved_by_id = reviewer_id
        self._flush(model)
        return model

    def reject_via_approval(self, contravention_id: UUID) -> ContraventionModel:
        model = self.load(contravention_id, for_update=True)
        self._transition(model, ContraventionStatus.REJECTED)
        self._flush(model)
        return model

    # ------------------------------------------------------------------
    # Filing
    # ------------------------------------------------------------------

    def file(self, new: NewContravention) -> ContraventionModel:
        """
        Create the record, issue its reference and add its points.

        Postconditions:
            - status follows ``initial_status_for``.
            - the owner's ledger gained ``points`` in the same flush.
        """
        type_model = self._load_type(new.type_id)
        if not type_model.is_active:
            raise InvalidPayloadError("type_id", f"contravention type {type_model.name} is inactive")

        points = new.points if new.points is not None else type_model.default_points
        status = initial_status_for(new.approver_email, new.approval_document_ref)
        now = self.clock.now()

        model = ContraventionModel(
            reference_no=self._references.next_reference(self.clock.today()),
            employee_id=new.employee_id,
            logged_by_id=new.logged_by_id,
            type_id=type_model.id,
            custom_type_name=new.custom_type_name,
            description=new.description,
            justification=new.justification,
            mitigation=new.mitigation,
            summary=new.summary,
            vendor=new.vendor,
            value=new.value,
            incident_date=new.incident_date,
            points=points,
            severity=type_model.severity,
            evidence_refs=list(new.evidence_refs),
            supporting_doc_refs=list(new.supporting_doc_refs),
            approver_email=new.approver_email,
            approval_document_ref=new.approval_document_ref,
            status=status.value,
            created_at=now,
            updated_at=now,
        )
        self.session.add(model)
        self.session.flush()

        self._ledger.add_points(
            new.employee_id,
            points,
            f"Contravention {model.reference_no} filed ({type_model.name})",
            contravention_id=model.id,
        )
        self._auditor.record(
            ENTITY_TYPE,
            model.id,
            AuditAction.CONTRAVENTION_FILED,
            new.logged_by_id,
            {
                "reference_no": model.reference_no,
                "employee_id": new.employee_id,
                "points": points,
                "status": status.value,
            },
        )
        logger.info(
            "contravention_filed",
            extra={
                "contravention_id": str(model.id),
                "reference_no": model.reference_no,
                "employee_id": str(new.employee_id),
                "points": points,
                "status": status.value,
            },
        )
        return model

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def update(
        self, contravention_id: UUID, patch: ContraventionPatch, actor: Actor
    ) -> ContraventionModel:
        """
        Administrative edit.  Point and owner changes go through the ledger
        before the new values are stored.
        """
        if not actor.is_admin:
            raise AdminRequiredError("update_contravention", str(actor.actor_id))
        model = self.load(contravention_id, for_update=True)
        changes = patch.changed_fields()

        if "type_id" in changes:
            type_model = self._load_type(patch.type_id)
            model.type_id = type_model.id
            model.severity = type_model.severity

        old_employee, old_points = model.employee_id, model.points
        new_employee = patch.employee_id or old_employee
        new_points = patch.points if patch.points is not None else old_points

        if new_employee != old_employee:
            self._ledger.transfer(
                old_employee,
                new_employee,
                remove_amount=old_points,
                add_amount=new_points,
                reason=f"Contravention {model.reference_no} reassigned",
                contravention_id=model.id,
            )
        elif new_points != old_points:
            self._ledger.add_points(
                old_employee,
                new_points - old_points,
                f"Contravention {model.reference_no} points changed "
                f"{old_points} -> {new_points}",
                contravention_id=model.id,
            )

        self._apply_fields(model, changes)
        model.employee_id = new_employee
        model.points = new_points
        model.updated_at = self.clock.now()
        self._flush(model)

        action = (
            AuditAction.CONTRAVENTION_REASSIGNED
            if new_employee != old_employee
            else AuditAction.CONTRAVENTION_UPDATED
        )
        self._auditor.record(
            ENTITY_TYPE,
            model.id,
            action,
            actor.actor_id,
            {
                "changed_fields": sorted(changes),
                "old_employee_id": old_employee,
                "new_employee_id": new_employee,
                "old_points": old_points,
                "new_points": new_points,
            },
        )
        logger.info(
            "contravention_updated",
            extra={
                "contravention_id": str(model.id),
                "changed_fields": sorted(changes),
            },
        )
        return model

    def reassign(
        self, contravention_id: UUID, new_employee_id: UUID, actor: Actor
    ) -> ContraventionModel:
        return self.update(
            contravention_id, ContraventionPatch(employee_id=new_employee_id), actor
        )

    def filer_update(
        self, contravention_id: UUID, patch: ContraventionPatch, actor: Actor
    ) -> ContraventionModel:
        """
        Narrative edits by the filer while the record awaits approval or
        after a rejection.  Points, type and owner stay admin-only.
        """
        model = self.load(contravention_id, for_update=True)
        if model.logged_by_id != actor.actor_id:
            raise NotContraventionFilerError(str(contravention_id), str(actor.actor_id))
        if model.status_enum not in FILER_EDITABLE_STATUSES:
            raise InvalidStatusTransitionError(
                str(contravention_id), model.status, "edit"
            )
        changes = patch.changed_fields()
        forbidden = sorted(set(changes) - FILER_EDITABLE_FIELDS)
        if forbidden:
            raise InvalidPayloadError(
                ",".join(forbidden), "only an administrator may change these fields"
            )
        self._apply_fields(model, changes)
        model.updated_at = self.clock.now()
        self._flush(model)
        self._auditor.record(
            ENTITY_TYPE,
            model.id,
            AuditAction.CONTRAVENTION_UPDATED,
            actor.actor_id,
            {"changed_fields": sorted(changes), "by_filer": True},
        )
        return model

    @staticmethod
    def _apply_fields(model: ContraventionModel, changes: dict) -> None:
        for name in FILER_EDITABLE_FIELDS | {"custom_type_name"}:
            if name not in changes:
                continue
            value = changes[name]
            if name in ("evidence_refs", "supporting_doc_refs"):
                value = list(value)
            setattr(model, name, value)

    def resubmit(
        self,
        contravention_id: UUID,
        actor: Actor,
        patch: ContraventionPatch | None,
        approver_email: str,
    ) -> ContraventionModel:
        """REJECTED -> PENDING_APPROVAL, applying the filer's corrections."""
        model = self.load(contravention_id, for_update=True)
        if model.logged_by_id != actor.actor_id:
            raise NotContraventionFilerError(str(contravention_id), str(actor.actor_id))
        if model.status_enum != ContraventionStatus.REJECTED:
            raise InvalidStatusTransitionError(
                str(contravention_id),
                model.status,
                ContraventionStatus.PENDING_APPROVAL.value,
            )
        if patch is not None:
            changes = patch.changed_fields()
            forbidden = sorted(set(changes) - FILER_EDITABLE_FIELDS)
            if forbidden:
                raise InvalidPayloadError(
                    ",".join(forbidden), "only an administrator may change these fields"
                )
            self._apply_fields(model, changes)
        model.approver_email = approver_email
        self._transition(model, ContraventionStatus.PENDING_APPROVAL)
        self._flush(model)
        return model

    # ------------------------------------------------------------------
    # Document upload and completion
    # ------------------------------------------------------------------

    def upload_approval_document(
        self, contravention_id: UUID, document_ref: str, actor: Actor
    ) -> ContraventionModel:
        """
        Attach the external approval document.

        Filer: only from PENDING_UPLOAD, moving to PENDING_REVIEW.
        Administrator: any state.  PENDING_REVIEW and COMPLETED keep their
        status (document replacement); every other state moves to
        PENDING_REVIEW.
        """
        if not document_ref or not document_ref.strip():
            raise InvalidPayloadError("document_ref", "must not be empty")
        model = self.load(contravention_id, for_update=True)
        status = model.status_enum

        if not actor.is_admin:
            if model.logged_by_id != actor.actor_id:
                raise NotContraventionFilerError(str(contravention_id), str(actor.actor_id))
            if status != ContraventionStatus.PENDING_UPLOAD:
                raise InvalidStatusTransitionError(
                    str(contravention_id),
                    status.value,
                    ContraventionStatus.PENDING_REVIEW.value,
                )

        if status == ContraventionStatus.PENDING_UPLOAD:
            self._transition(model, ContraventionStatus.PENDING_REVIEW)
        elif status in (ContraventionStatus.PENDING_APPROVAL, ContraventionStatus.REJECTED):
            self._transition(model, ContraventionStatus.PENDING_REVIEW, admin_override=True)

        now = self.clock.now()
        model.approval_document_ref = document_ref
        model.acknowledged_at = now
        model.acknowledged_by_id = actor.actor_id
        model.updated_at = now
        self._flush(model)

        self._auditor.record(
            ENTITY_TYPE,
            model.id,
            AuditAction.APPROVAL_DOCUMENT_UPLOADED,
            actor.actor_id,
            {
                "document_ref": document_ref,
                "from_status": status.value,
                "to_status": model.status,
                "by_admin": actor.is_admin,
            },
        )
        return model

    def mark_complete(
        self, contravention_id: UUID, actor: Actor, notes: str | None = None
    ) -> ContraventionModel:
        """Admin review: PENDING_REVIEW -> COMPLETED, stamping the resolution."""
        if not actor.is_admin:
            raise AdminRequiredError("mark_complete", str(actor.actor_id))
        model = self.load(contravention_id, for_update=True)
        self._transition(model, ContraventionStatus.COMPLETED)
        now = self.clock.now()
        model.resolved_at = now
        model.resolved_by_id = actor.actor_id
        if model.acknowledged_by_id is None:
            model.acknowledged_at = now
            model.acknowledged_by_id = actor.actor_id
        if notes:
            model.summary = f"{model.summary}\n\n{notes}" if model.summary else notes
        self._flush(model)

        self._auditor.record(
            ENTITY_TYPE,
            model.id,
            AuditAction.CONTRAVENTION_COMPLETED,
            actor.actor_id,
            {"reference_no": model.reference_no},
        )
        return model

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete(self, contravention_id: UUID, actor: Actor) -> dict:
        """
        Reverse the record's points, remove its approval requests, then the
        record.  A failed reversal raises before anything is removed.

        Returns a snapshot of what was deleted.
        """
        if not actor.is_admin:
            raise AdminRequiredError("delete_contravention", str(actor.actor_id))
        model = self.load(contravention_id, for_update=True)
        snapshot = {
            "reference_no": model.reference_no,
            "employee_id": model.employee_id,
            "points": model.points,
            "status": model.status,
        }

        self._ledger.reverse(
            model.employee_id,
            model.points,
            f"Contravention {model.reference_no} deleted",
            contravention_id=model.id,
        )
        removed = self.session.execute(
            delete(ApprovalRequestModel)
            .where(ApprovalRequestModel.contravention_id == model.id)
            .execution_options(synchronize_session="fetch")
        ).rowcount
        self.session.delete(model)
        self._flush(model)

        self._auditor.record(
            ENTITY_TYPE,
            contravention_id,
            AuditAction.CONTRAVENTION_DELETED,
            actor.actor_id,
            {**snapshot, "approval_requests_removed": removed},
        )
        logger.info(
            "contravention_deleted",
            extra={
                "contravention_id": str(contravention_id),
                "reference_no": snapshot["reference_no"],
                "points_reversed": snapshot["points"],
                "approval_requests_removed": removed,
            },
        )
        return {**snapshot, "approval_requests_removed": removed}
