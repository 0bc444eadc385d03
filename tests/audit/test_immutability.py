"""
Append-only persistence tests.

Verifies:
- Point events, archives and audit events reject ORM UPDATE and DELETE
- Escalation structure is write-once; completed actions may still change
"""

from datetime import UTC, datetime

import pytest
from sqlalchemy import select

from contravention_kernel.exceptions import ImmutabilityViolationError
from contravention_kernel.models.audit_event import AuditEvent
from contravention_kernel.models.points import (
    EscalationModel,
    PointEventModel,
    PointsArchiveModel,
)


def _first(session, model):
    return session.execute(select(model).limit(1)).scalar_one()


class TestPointEvents:

    def test_update_rejected(self, session, file_contravention):
        file_contravention()
        event = _first(session, PointEventModel)
        event.applied_delta = 0

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "PointEventModel"

    def test_delete_rejected(self, session, file_contravention):
        file_contravention()
        session.delete(_first(session, PointEventModel))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestAuditEvents:

    def test_update_rejected(self, session, file_contravention):
        file_contravention()
        event = _first(session, AuditEvent)
        event.payload = {"points": 0}

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_rejected(self, session, file_contravention):
        file_contravention()
        session.delete(_first(session, AuditEvent))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestArchives:

    def test_archive_is_append_only(self, engine, session, deterministic_clock, file_contravention):
        file_contravention()
        deterministic_clock.set_time(datetime(2026, 4, 6, tzinfo=UTC))
        engine.reset_fiscal_year().unwrap()

        archive = _first(session, PointsArchiveModel)
        archive.archived_total = 0
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestEscalations:

    def test_structural_update_rejected(self, session, file_contravention):
        file_contravention(type_name="Multiple Contraventions")
        escalation = _first(session, EscalationModel)
        escalation.tier = "TIER_3"

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert "tier" in exc_info.value.reason

    def test_completed_actions_may_change(self, engine, session, users, file_contravention):
        file_contravention(type_name="Multiple Contraventions")
        escalation = _first(session, EscalationModel)

        info = engine.complete_escalation_action(
            escalation.id, "Notify reporting manager", users.actor(users.admin)
        ).unwrap()
        assert info.is_complete

    def test_unknown_action_rejected(self, engine, session, users, file_contravention):
        file_contravention(type_name="Multiple Contraventions")
        escalation = _first(session, EscalationModel)

        result = engine.complete_escalation_action(
            escalation.id, "Buy the team lunch", users.actor(users.admin)
        )
        assert result.error_code == "UNKNOWN_ESCALATION_ACTION"

    def test_delete_rejected(self, session, file_contravention):
        file_contravention(type_name="Multiple Contraventions")
        session.delete(_first(session, EscalationModel))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
