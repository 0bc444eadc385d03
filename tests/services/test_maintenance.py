"""
Batch maintenance: fiscal-year reset, tier recalculation and points
reconciliation against the contraventions on file.
"""

from datetime import UTC, datetime

import pytest
from sqlalchemy import update

from contravention_kernel.domain.contravention import ContraventionPatch
from contravention_kernel.domain.escalation import EscalationTier
from contravention_kernel.exceptions import ErrorKind
from contravention_kernel.models.points import EmployeePointsModel

NEXT_FISCAL_YEAR = datetime(2026, 4, 6, 9, 0, 0, tzinfo=UTC)


def _corrupt(session, employee_id, **values):
    """Write the cached record behind the ledger's back."""
    session.execute(
        update(EmployeePointsModel)
        .where(EmployeePointsModel.employee_id == employee_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )


class TestFiscalYearReset:

    def test_reset_archives_and_zeroes(self, engine, users, deterministic_clock, file_contravention):
        file_contravention()
        file_contravention(type_name="Multiple Contraventions")
        deterministic_clock.set_time(NEXT_FISCAL_YEAR)

        summary = engine.reset_fiscal_year().unwrap()
        assert summary.fiscal_year == "FY2026/27"
        assert summary.employees_reset == 1
        assert summary.points_cleared == 8

        points = engine.get_employee_points_summary(users.employee.id).unwrap()
        assert points.total_points == 0
        assert points.current_tier == EscalationTier.NONE
        assert points.fiscal_year == "FY2026/27"
        assert points.last_reset_at == NEXT_FISCAL_YEAR

        archives = engine.points_selector.archives(users.employee.id)
        assert [(a.fiscal_year, a.archived_total, a.archived_tier) for a in archives] == [
            ("FY2025/26", 8, "TIER_1")
        ]
        assert archives[0].event_count == 2

    def test_reset_is_idempotent(self, engine, deterministic_clock, file_contravention):
        file_contravention()
        deterministic_clock.set_time(NEXT_FISCAL_YEAR)

        engine.reset_fiscal_year().unwrap()
        second = engine.reset_fiscal_year().unwrap()

        assert second.employees_reset == 0
        assert second.employees_skipped == 1
        assert second.points_cleared == 0

    def test_reset_in_same_year_clears_once(self, engine, users, file_contravention):
        file_contravention(points=5)

        summary = engine.reset_fiscal_year().unwrap()
        assert summary.employees_reset == 1
        assert summary.points_cleared == 5
        assert engine.get_employee_points_summary(users.employee.id).unwrap().total_points == 0

        file_contravention()
        again = engine.reset_fiscal_year().unwrap()
        assert again.employees_reset == 0
        assert again.employees_skipped == 1
        assert engine.get_employee_points_summary(users.employee.id).unwrap().total_points == 3

    def test_records_created_in_new_year_are_cleared(
        self, engine, users, deterministic_clock, file_contravention
    ):
        file_contravention()
        deterministic_clock.set_time(datetime(2026, 4, 2, 9, 0, 0, tzinfo=UTC))
        file_contravention()
        file_contravention(employee_id=users.other_employee.id)
        deterministic_clock.set_time(datetime(2026, 4, 3, 9, 0, 0, tzinfo=UTC))

        summary = engine.reset_fiscal_year().unwrap()

        assert summary.employees_reset == 2
        assert summary.employees_skipped == 0
        assert summary.points_cleared == 9
        for employee in (users.employee, users.other_employee):
            points = engine.get_employee_points_summary(employee.id).unwrap()
            assert points.total_points == 0
            assert points.fiscal_year == "FY2026/27"

        archives = engine.points_selector.archives(users.other_employee.id)
        assert [(a.fiscal_year, a.reset_for, a.archived_total) for a in archives] == [
            ("FY2026/27", "FY2026/27", 3)
        ]

    def test_escalations_survive_reset(self, engine, users, deterministic_clock, file_contravention):
        file_contravention(type_name="Multiple Contraventions")
        deterministic_clock.set_time(NEXT_FISCAL_YEAR)
        engine.reset_fiscal_year().unwrap()

        points = engine.get_employee_points_summary(users.employee.id).unwrap()
        assert [e.tier for e in points.escalations] == [EscalationTier.TIER_1]


class TestRecalculate:

    def test_consistent_tiers_unchanged(self, engine, file_contravention):
        file_contravention(type_name="Multiple Contraventions")
        summary = engine.recalculate_escalations().unwrap()
        assert summary.employees_checked == 1
        assert summary.tiers_changed == 0
        assert summary.escalations_created == 0

    def test_stale_tier_is_rewritten(self, engine, session, users, file_contravention):
        file_contravention()
        file_contravention(type_name="Multiple Contraventions")
        _corrupt(session, users.employee.id, current_tier="NONE")

        summary = engine.recalculate_escalations().unwrap()
        assert summary.tiers_changed == 1
        assert summary.escalations_created == 1

        points = engine.get_employee_points_summary(users.employee.id).unwrap()
        assert points.current_tier == EscalationTier.TIER_1
        assert points.total_points == 8


class TestSync:

    def test_drift_corrected_and_reported(self, engine, session, users, file_contravention):
        file_contravention()
        file_contravention(type_name="Different vendor on AOR versus purchase", points=4)
        _corrupt(session, users.employee.id, total_points=10, current_tier="TIER_2")

        result = engine.sync_points_from_contraventions()

        assert result.is_success
        assert result.error_kind == ErrorKind.RECONCILIATION_DRIFT
        assert result.error_code == "POINTS_DRIFT"
        drift = result.value.drifts[0]
        assert (drift.employee_id, drift.cached_total, drift.expected_total) == (
            users.employee.id,
            10,
            7,
        )

        points = engine.get_employee_points_summary(users.employee.id).unwrap()
        assert points.total_points == 7
        assert points.current_tier == EscalationTier.TIER_1

        again = engine.sync_points_from_contraventions()
        assert again.error_kind is None
        assert not again.value.has_drift

    def test_training_credit_is_not_drift(self, engine, users, file_contravention):
        file_contravention(type_name="Multiple Contraventions")
        file_contravention(type_name="No approval before purchase")
        summary = engine.get_employee_points_summary(users.employee.id).unwrap()
        engine.complete_training(summary.pending_training_ids[0], users.actor(users.admin)).unwrap()

        result = engine.sync_points_from_contraventions()
        assert result.error_kind is None
        assert result.value.employees_checked == 1

    def test_only_counts_since_reset(self, engine, users, deterministic_clock, file_contravention):
        file_contravention()
        deterministic_clock.set_time(NEXT_FISCAL_YEAR)
        engine.reset_fiscal_year().unwrap()
        deterministic_clock.advance(60)
        file_contravention(type_name="Ownership Lapse")

        result = engine.sync_points_from_contraventions()
        assert result.error_kind is None
        points = engine.get_employee_points_summary(users.employee.id).unwrap()
        assert points.total_points == 2

    def test_zeroed_total_is_rebuilt(self, engine, session, users, file_contravention):
        file_contravention()
        _corrupt(session, users.employee.id, total_points=0, current_tier="NONE")

        result = engine.sync_points_from_contraventions()
        assert result.error_kind == ErrorKind.RECONCILIATION_DRIFT
        assert engine.get_employee_points_summary(users.employee.id).unwrap().total_points == 3

    def test_override_after_reset_is_not_drift(
        self, engine, users, deterministic_clock, file_contravention
    ):
        info = file_contravention().contravention
        deterministic_clock.set_time(NEXT_FISCAL_YEAR)
        engine.reset_fiscal_year().unwrap()
        engine.update_contravention(
            info.id, ContraventionPatch(points=5), users.actor(users.admin)
        ).unwrap()
        assert engine.get_employee_points_summary(users.employee.id).unwrap().total_points == 2

        result = engine.sync_points_from_contraventions()

        assert result.error_kind is None
        assert not result.value.has_drift
        assert engine.get_employee_points_summary(users.employee.id).unwrap().total_points == 2

    def test_prior_year_reassign_and_delete_are_not_drift(
        self, engine, users, deterministic_clock, file_contravention
    ):
        moved = file_contravention().contravention
        removed = file_contravention(type_name="Ownership Lapse").contravention
        deterministic_clock.set_time(NEXT_FISCAL_YEAR)
        engine.reset_fiscal_year().unwrap()
        deterministic_clock.advance(60)
        file_contravention(points=6)

        admin = users.actor(users.admin)
        engine.reassign_employee(moved.id, users.other_employee.id, admin).unwrap()
        engine.delete_contravention(removed.id, admin).unwrap()

        result = engine.sync_points_from_contraventions()

        assert result.error_kind is None
        assert engine.get_employee_points_summary(users.employee.id).unwrap().total_points == 1
        assert engine.get_employee_points_summary(users.other_employee.id).unwrap().total_points == 3
