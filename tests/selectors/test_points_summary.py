"""Read models: employee points summary and contravention queries."""

from uuid import uuid4

from contravention_kernel.domain.contravention import ContraventionPatch, ContraventionStatus
from contravention_kernel.domain.escalation import EscalationTier
from contravention_kernel.domain.points import PointEventType
from contravention_kernel.exceptions import ErrorKind


class TestPointsSummary:

    def test_unknown_employee_is_not_found(self, engine):
        result = engine.get_employee_points_summary(uuid4())

        assert result.error_kind == ErrorKind.NOT_FOUND
        assert result.error_code == "EMPLOYEE_NOT_FOUND"

    def test_employee_without_record_reads_as_zero(self, engine, users):
        summary = engine.get_employee_points_summary(users.other_employee.id).unwrap()

        assert summary.total_points == 0
        assert summary.current_tier == EscalationTier.NONE
        assert summary.fiscal_year == "FY2025/26"
        assert summary.tier_name is None
        assert summary.required_actions == ()
        assert summary.next_tier == EscalationTier.TIER_1
        assert summary.next_threshold == 5
        assert summary.points_to_next_tier == 5
        assert summary.history == ()

    def test_top_tier_has_no_next(self, engine, users, file_contravention):
        file_contravention(type_name="Multiple Contraventions", points=16)
        summary = engine.get_employee_points_summary(users.employee.id).unwrap()

        assert summary.current_tier == EscalationTier.TIER_3
        assert summary.tier_name == "Stage 3"
        assert len(summary.required_actions) == 4
        assert summary.next_tier is None
        assert summary.points_to_next_tier is None

    def test_history_newest_first_and_limited(self, engine, users, file_contravention):
        for _ in range(3):
            file_contravention(type_name="Late Personal Claims")

        summary = engine.get_employee_points_summary(users.employee.id, history_limit=2).unwrap()
        assert [e.seq for e in summary.history] == [3, 2]
        assert all(e.event_type == PointEventType.ADD for e in summary.history)

    def test_lowered_points_recorded_as_adjust(self, engine, users, file_contravention):
        info = file_contravention().contravention
        engine.update_contravention(
            info.id,
            ContraventionPatch(points=0),
            users.actor(users.admin),
        ).unwrap()
        latest = engine.get_employee_points_summary(users.employee.id).unwrap().history[0]
        assert latest.event_type == PointEventType.ADJUST
        assert latest.applied_delta == -3


class TestContraventionQueries:

    def test_search_filters(self, engine, users, file_contravention):
        file_contravention()
        file_contravention(approval_document_ref="docs/aor.pdf")
        file_contravention(employee_id=users.other_employee.id)

        selector = engine.contravention_selector
        assert len(selector.search(employee_id=users.employee.id)) == 2
        in_review = selector.search(status=ContraventionStatus.PENDING_REVIEW)
        assert [c.approval_document_ref for c in in_review] == ["docs/aor.pdf"]
        assert len(selector.search(logged_by_id=users.filer.id)) == 3
        assert selector.search(logged_by_id=users.admin.id) == ()

    def test_by_reference(self, engine, file_contravention):
        info = file_contravention().contravention
        assert engine.contravention_selector.by_reference(info.reference_no).id == info.id
        assert engine.contravention_selector.by_reference("CONTRA-1999-001") is None

    def test_pending_for_approver(self, engine, users, file_contravention):
        outcome = file_contravention(approver_email=users.approver.email)
        file_contravention(approver_email=users.second_approver.email)

        pending = engine.contravention_selector.pending_for_approver(users.approver.id)
        assert [r.id for r in pending] == [outcome.approval_request_id]
