"""
ORM-level append-only enforcement.

SQLAlchemy fires ``before_update`` / ``before_delete`` mapper events before
SQL reaches the database.  The listeners below reject changes to records
that are history once written:

Entity              | When Immutable                 | Scope
--------------------|--------------------------------|------------------------------
PointEventModel     | Always                         | UPDATE and DELETE
PointsArchiveModel  | Always                         | UPDATE and DELETE
AuditEvent          | Always                         | UPDATE and DELETE
EscalationModel     | Always (structural fields)     | tier, required_actions,
                    |                                | trigger_points, triggered_at,
                    |                                | employee_id, seq; DELETE

Escalations may still record completed actions and their completion time.

Bulk ``session.execute(update(...))`` statements bypass mapper events;
the kernel never issues them against these tables.
"""

from sqlalchemy import event, inspect

from contravention_kernel.exceptions import ImmutabilityViolationError
from contravention_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

ESCALATION_STRUCTURAL_FIELDS = frozenset({
    "employee_id",
    "seq",
    "tier",
    "required_actions",
    "trigger_points",
    "triggered_at",
})


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _reject_update(mapper, connection, target):
    name = type(target).__name__
    _block(name, target, "UPDATE", f"{name} rows are append-only")


def _reject_delete(mapper, connection, target):
    name = type(target).__name__
    _block(name, target, "DELETE", f"{name} rows cannot be deleted")


def _check_escalation_update(mapper, connection, target):
    state = inspect(target)
    changed = sorted(
        field
        for field in ESCALATION_STRUCTURAL_FIELDS
        if state.attrs[field].history.has_changes()
    )
    if changed:
        _block(
            "EscalationModel",
            target,
            "UPDATE",
            f"Escalation history is immutable; attempted to change {', '.join(changed)}",
        )


def _listeners():
    from contravention_kernel.models.audit_event import AuditEvent
    from contravention_kernel.models.points import (
        EscalationModel,
        PointEventModel,
        PointsArchiveModel,
    )

    return [
        (PointEventModel, "before_update", _reject_update),
        (PointEventModel, "before_delete", _reject_delete),
        (PointsArchiveModel, "before_update", _reject_update),
        (PointsArchiveModel, "before_delete", _reject_delete),
        (AuditEvent, "before_update", _reject_update),
        (AuditEvent, "before_delete", _reject_delete),
        (EscalationModel, "before_update", _check_escalation_update),
        (EscalationModel, "before_delete", _reject_delete),
    ]


def register_immutability_listeners() -> None:
    """Register all append-only listeners (idempotent)."""
    for target, event_name, fn in _listeners():
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)


def unregister_immutability_listeners() -> None:
    """Remove the listeners.  Only for tests that must write history directly."""
    for target, event_name, fn in _listeners():
        if event.contains(target, event_name, fn):
            event.remove(target, event_name, fn)
