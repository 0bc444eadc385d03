"""
PointsMaintenanceService -- fiscal-year reset, tier recalculation and
ledger reconciliation.

Responsibility:
    Batch operations over every employee point record.  Each runs inside
    the caller's transaction, so the whole set is applied or nothing is.

Architecture position:
    Kernel > Services.  All writes go through PointLedgerService.

Invariants enforced:
    - Reset is idempotent per fiscal year; a rerun skips employees who
      already have an archive for the current fiscal year.  Every other
      record is cleared, whenever it was created.
    - Recalculation never changes totals.
    - Sync rebuilds each total as ``max(0, sum of source events since the
      last reset)``, where sources are contravention-linked point changes
      and training credits.  Only differing totals are written, and a
      second run finds no drift.
"""

from uuid import UUID

from sqlalchemy import and_, func, or_, select

from contravention_kernel.domain.points import (
    PointEventType,
    ReconciliationDrift,
    RecalculationSummary,
    ResetSummary,
    SyncSummary,
)
from contravention_kernel.logging_config import get_logger
from contravention_kernel.models.contravention import ContraventionModel
from contravention_kernel.models.points import EmployeePointsModel, PointEventModel
from contravention_kernel.services.base import BaseService
from contravention_kernel.services.points_ledger import PointLedgerService

logger = get_logger("services.maintenance")

_CONTRAVENTION_EVENT_TYPES = tuple(
    t.value
    for t in (
        PointEventType.ADD,
        PointEventType.ADJUST,
        PointEventType.REVERSE,
        PointEventType.TRANSFER_IN,
        PointEventType.TRANSFER_OUT,
    )
)


class PointsMaintenanceService(BaseService):
    """Whole-population ledger maintenance."""

    def __init__(self, session, ledger: PointLedgerService, clock=None):
        super().__init__(session, clock)
        self._ledger = ledger

    def _employee_ids(self) -> list[UUID]:
        return list(
            self.session.execute(
                select(EmployeePointsModel.employee_id).order_by(
                    EmployeePointsModel.employee_id
                )
            ).scalars()
        )

    def reset_points_for_new_fiscal_year(self) -> ResetSummary:
        label = self._ledger.current_fiscal_year_label()
        reset = skipped = cleared = 0
        for employee_id in self._employee_ids():
            archive = self._ledger.reset_for_fiscal_year(employee_id)
            if archive is None:
                skipped += 1
                continue
            reset += 1
            cleared += archive.archived_total

        logger.info(
            "fiscal_year_reset_completed",
            extra={
                "fiscal_year": label,
                "employees_reset": reset,
                "employees_skipped": skipped,
                "points_cleared": cleared,
            },
        )
        return ResetSummary(
            fiscal_year=label,
            employees_reset=reset,
            employees_skipped=skipped,
            points_cleared=cleared,
        )

    def recalculate_all_escalations(self) -> RecalculationSummary:
        checked = changed = created = 0
        for employee_id in self._employee_ids():
            checked += 1
            tier_changed, escalation = self._ledger.recalculate_tier(employee_id)
            if tier_changed:
                changed += 1
            if escalation is not None:
                created += 1

        logger.info(
            "escalations_recalculated",
            extra={
                "employees_checked": checked,
                "tiers_changed": changed,
                "escalations_created": created,
            },
        )
        return RecalculationSummary(
            employees_checked=checked,
            tiers_changed=changed,
            escalations_created=created,
        )

    def expected_total(self, employee_id: UUID) -> int:
        """
        Total implied by the source events since the employee's last reset.

        Sources are the contravention-linked point changes (filing, points
        edits, reassignment, deletion) and training credits.  Older
        contraventions edited or moved after a reset count from the moment
        of the change, exactly as the ledger applied them.  ``sync`` and
        ``reset`` events are corrections, not sources.
        """
        self._ledger.lock_record(employee_id)
        since_seq = self._ledger.last_reset_seq(employee_id)

        total = self.session.execute(
            select(func.coalesce(func.sum(PointEventModel.applied_delta), 0)).where(
                PointEventModel.employee_id == employee_id,
                PointEventModel.seq > since_seq,
                or_(
                    and_(
                        PointEventModel.event_type.in_(_CONTRAVENTION_EVENT_TYPES),
                        PointEventModel.contravention_id.is_not(None),
                    ),
                    and_(
                        PointEventModel.event_type == PointEventType.CREDIT.value,
                        PointEventModel.training_record_id.is_not(None),
                    ),
                ),
            )
        ).scalar_one()
        return max(0, int(total))

    def sync_points_from_contraventions(self) -> SyncSummary:
        employee_ids = set(self._employee_ids())
        employee_ids.update(
            self.session.execute(select(ContraventionModel.employee_id).distinct()).scalars()
        )

        drifts: list[ReconciliationDrift] = []
        for employee_id in sorted(employee_ids, key=str):
            expected = self.expected_total(employee_id)
            record = self._ledger.lock_record(employee_id)
            cached = record.total_points
            if cached == expected:
                continue
            self._ledger.adjust_to(
                employee_id,
                expected,
                f"Reconciliation: ledger {cached} -> contraventions {expected}",
            )
            drift = ReconciliationDrift(
                employee_id=employee_id, cached_total=cached, expected_total=expected
            )
            drifts.append(drift)
            logger.warning(
                "points_drift_corrected",
                extra={
                    "employee_id": str(employee_id),
                    "cached_total": cached,
                    "expected_total": expected,
                    "delta": drift.delta,
                },
            )

        logger.info(
            "points_sync_completed",
            extra={"employees_checked": len(employee_ids), "drifts": len(drifts)},
        )
        return SyncSummary(employees_checked=len(employee_ids), drifts=tuple(drifts))
