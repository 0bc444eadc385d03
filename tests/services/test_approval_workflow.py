"""
Approval workflow: request, approve, reject with notes, resubmission to a
different approver, and the error kinds each guard reports.
"""

from uuid import uuid4

import pytest

from contravention_kernel.domain.approval import ApprovalDecision, ApprovalStatus
from contravention_kernel.domain.collaborators import NotificationKind
from contravention_kernel.domain.contravention import ContraventionPatch, ContraventionStatus
from contravention_kernel.exceptions import ErrorKind
from contravention_kernel.models.audit_event import AuditAction


@pytest.fixture
def pending(users, file_contravention):
    """A contravention waiting on users.approver."""
    return file_contravention(approver_email=users.approver.email)


class TestApprove:

    def test_approval_completes_contravention(self, engine, users, dispatcher, pending):
        result = engine.review_approval(
            pending.approval_request_id,
            users.actor(users.approver),
            ApprovalDecision.APPROVED,
        )

        request = result.unwrap()
        assert request.status == ApprovalStatus.APPROVED
        assert request.reviewed_by_id == users.approver.id

        info = engine.get_contravention(pending.contravention.id).unwrap()
        assert info.status == ContraventionStatus.COMPLETED
        assert info.resolved_by_id == users.approver.id

        engine.notifications.drain()
        kinds = dispatcher.kinds()
        assert NotificationKind.APPROVAL_APPROVED in kinds
        assert NotificationKind.CONTRAVENTION_COMPLETED in kinds

    def test_admin_may_review_any_request(self, engine, users, pending):
        result = engine.review_approval(
            pending.approval_request_id, users.actor(users.admin), ApprovalDecision.APPROVED
        )
        assert result.is_success

    def test_approval_keeps_points(self, engine, users, pending):
        engine.review_approval(
            pending.approval_request_id, users.actor(users.approver), ApprovalDecision.APPROVED
        ).unwrap()
        summary = engine.get_employee_points_summary(users.employee.id).unwrap()
        assert summary.total_points == 3


class TestReject:

    def test_rejection_requires_notes(self, engine, users, pending):
        result = engine.review_approval(
            pending.approval_request_id,
            users.actor(users.approver),
            ApprovalDecision.REJECTED,
            notes="   ",
        )
        assert result.error_kind == ErrorKind.VALIDATION_FAILURE
        assert result.error_code == "REJECTION_NOTES_REQUIRED"

        info = engine.get_contravention(pending.contravention.id).unwrap()
        assert info.status == ContraventionStatus.PENDING_APPROVAL

    def test_rejection_moves_to_rejected(self, engine, users, pending):
        request = engine.review_approval(
            pending.approval_request_id,
            users.actor(users.approver),
            ApprovalDecision.REJECTED,
            notes="missing invoice",
        ).unwrap()

        assert request.status == ApprovalStatus.REJECTED
        assert request.review_notes == "missing invoice"
        info = engine.get_contravention(pending.contravention.id).unwrap()
        assert info.status == ContraventionStatus.REJECTED


class TestReviewGuards:

    def test_unknown_request(self, engine, users):
        result = engine.review_approval(
            uuid4(), users.actor(users.approver), ApprovalDecision.APPROVED
        )
        assert result.error_code == "APPROVAL_REQUEST_NOT_FOUND"

    def test_wrong_reviewer(self, engine, users, pending):
        result = engine.review_approval(
            pending.approval_request_id,
            users.actor(users.second_approver),
            ApprovalDecision.APPROVED,
        )
        assert result.error_kind == ErrorKind.FORBIDDEN
        assert result.error_code == "UNAUTHORIZED_REVIEWER"

    def test_wrong_reviewer_checked_before_notes(self, engine, users, pending):
        result = engine.review_approval(
            pending.approval_request_id,
            users.actor(users.second_approver),
            ApprovalDecision.REJECTED,
        )
        assert result.error_code == "UNAUTHORIZED_REVIEWER"

    def test_second_review_rejected(self, engine, users, pending):
        approver = users.actor(users.approver)
        engine.review_approval(
            pending.approval_request_id, approver, ApprovalDecision.APPROVED
        ).unwrap()

        again = engine.review_approval(
            pending.approval_request_id, approver, ApprovalDecision.REJECTED, notes="late"
        )
        assert again.error_kind == ErrorKind.INVALID_STATE
        assert again.error_code == "APPROVAL_ALREADY_REVIEWED"

    def test_duplicate_pending_request(self, engine, users, pending):
        result = engine.request_approval(
            pending.contravention.id, users.second_approver.email, users.actor(users.filer)
        )
        assert result.error_code == "PENDING_APPROVAL_EXISTS"

    def test_request_outside_pending_approval(self, engine, users, file_contravention):
        info = file_contravention().contravention
        result = engine.request_approval(
            info.id, users.approver.email, users.actor(users.filer)
        )
        assert result.error_kind == ErrorKind.INVALID_STATE


class TestResubmit:

    @pytest.fixture
    def rejected(self, engine, users, pending, deterministic_clock):
        engine.review_approval(
            pending.approval_request_id,
            users.actor(users.approver),
            ApprovalDecision.REJECTED,
            notes="missing invoice",
        ).unwrap()
        deterministic_clock.advance(60)
        return pending

    def test_resubmit_to_second_approver(self, engine, users, dispatcher, rejected):
        contravention_id = rejected.contravention.id
        result = engine.resubmit_contravention(
            contravention_id,
            users.actor(users.filer),
            users.second_approver.email,
            patch=ContraventionPatch(summary="Invoice attached"),
        )

        request = result.unwrap()
        assert request.approver_id == users.second_approver.id
        assert request.is_pending

        info = engine.get_contravention(contravention_id).unwrap()
        assert info.status == ContraventionStatus.PENDING_APPROVAL
        assert info.summary == "Invoice attached"
        assert info.approver_email == users.second_approver.email

        history = engine.get_approval_history(contravention_id).unwrap()
        assert [r.status for r in history] == [ApprovalStatus.REJECTED, ApprovalStatus.PENDING]
        assert history[0].review_notes == "missing invoice"

        trace = engine.auditor.get_trace("Contravention", contravention_id)
        assert AuditAction.CONTRAVENTION_RESUBMITTED.value in [e.action for e in trace]

        engine.notifications.drain()
        assert dispatcher.kinds().count(NotificationKind.APPROVAL_REQUESTED) == 2

    def test_resubmitted_request_can_be_approved(self, engine, users, rejected):
        request = engine.resubmit_contravention(
            rejected.contravention.id, users.actor(users.filer), users.second_approver.email
        ).unwrap()
        engine.review_approval(
            request.id, users.actor(users.second_approver), ApprovalDecision.APPROVED
        ).unwrap()

        info = engine.get_contravention(rejected.contravention.id).unwrap()
        assert info.is_completed

    def test_only_filer_may_resubmit(self, engine, users, rejected):
        result = engine.resubmit_contravention(
            rejected.contravention.id, users.actor(users.employee), users.approver.email
        )
        assert result.error_code == "NOT_CONTRAVENTION_FILER"

    def test_unknown_approver(self, engine, users, rejected):
        result = engine.resubmit_contravention(
            rejected.contravention.id, users.actor(users.filer), "ghost@example.com"
        )
        assert result.error_kind == ErrorKind.NOT_FOUND
        assert result.error_code == "APPROVER_NOT_FOUND"

    def test_approver_without_role(self, engine, users, rejected):
        result = engine.resubmit_contravention(
            rejected.contravention.id, users.actor(users.filer), users.other_employee.email
        )
        assert result.error_kind == ErrorKind.VALIDATION_FAILURE
        assert result.error_code == "APPROVER_ROLE_INVALID"

    def test_resubmit_requires_rejected(self, engine, users, pending):
        result = engine.resubmit_contravention(
            pending.contravention.id, users.actor(users.filer), users.approver.email
        )
        assert result.error_kind == ErrorKind.INVALID_STATE

        history = engine.get_approval_history(pending.contravention.id).unwrap()
        assert len(history) == 1
