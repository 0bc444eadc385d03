"""
Audit chain tests.

Verifies:
- Every state change of an engine operation leaves an audit event
- The hash chain links each event to its predecessor
- Tampering with a stored payload is detected by validate_chain
"""

import pytest
from sqlalchemy import select, update

from contravention_kernel.domain.approval import ApprovalDecision
from contravention_kernel.exceptions import AuditChainBrokenError
from contravention_kernel.models.audit_event import AuditAction, AuditEvent


def _events(session) -> list[AuditEvent]:
    return list(session.execute(select(AuditEvent).order_by(AuditEvent.seq)).scalars())


@pytest.fixture
def busy_history(engine, users, file_contravention):
    """Filing, approval and an escalation."""
    outcome = file_contravention(
        type_name="Multiple Contraventions", approver_email=users.approver.email
    )
    engine.review_approval(
        outcome.approval_request_id, users.actor(users.approver), ApprovalDecision.APPROVED
    ).unwrap()
    return outcome


class TestChain:

    def test_chain_is_linked(self, session, busy_history):
        events = _events(session)
        assert len(events) >= 4
        assert events[0].prev_hash is None
        for previous, current in zip(events, events[1:]):
            assert current.prev_hash == previous.hash
            assert current.seq > previous.seq

    def test_validate_chain(self, engine, busy_history):
        assert engine.auditor.validate_chain() is True

    def test_expected_actions_recorded(self, session, busy_history):
        actions = {e.action for e in _events(session)}
        assert {
            AuditAction.CONTRAVENTION_FILED.value,
            AuditAction.APPROVAL_REQUESTED.value,
            AuditAction.ESCALATION_TRIGGERED.value,
            AuditAction.APPROVAL_GRANTED.value,
        } <= actions

    def test_actor_recorded(self, engine, users, busy_history):
        trace = engine.auditor.get_trace("Contravention", busy_history.contravention.id)
        assert trace[0].actor_id == users.filer.id

    def test_rejected_operation_not_audited(self, engine, session, users, busy_history):
        before = len(_events(session))
        engine.mark_complete(busy_history.contravention.id, users.actor(users.admin))
        assert len(_events(session)) == before


class TestTamperDetection:

    def test_payload_change_breaks_chain(self, engine, session, busy_history):
        target = _events(session)[1]
        # Bulk update bypasses the ORM append-only listeners.
        session.execute(
            update(AuditEvent)
            .where(AuditEvent.id == target.id)
            .values(payload={"points": 0})
            .execution_options(synchronize_session=False)
        )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError) as exc_info:
            engine.auditor.validate_chain()
        assert exc_info.value.audit_event_id == str(target.id)

    def test_relinked_event_breaks_chain(self, engine, session, busy_history):
        events = _events(session)
        session.execute(
            update(AuditEvent)
            .where(AuditEvent.id == events[2].id)
            .values(prev_hash=events[0].hash)
            .execution_options(synchronize_session=False)
        )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError):
            engine.auditor.validate_chain()

    def test_actor_change_breaks_chain(self, engine, session, users, busy_history):
        target = _events(session)[0]
        session.execute(
            update(AuditEvent)
            .where(AuditEvent.id == target.id)
            .values(actor_id=users.admin.id)
            .execution_options(synchronize_session=False)
        )
        session.expire_all()

        with pytest.raises(AuditChainBrokenError) as exc_info:
            engine.auditor.validate_chain()
        assert exc_info.value.audit_event_id == str(target.id)
