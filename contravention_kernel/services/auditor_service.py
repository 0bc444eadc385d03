"""
AuditorService -- hash-chained trail of engine state changes.

Responsibility:
    Appends one ``AuditEvent`` per state change an engine operation makes
    (filing, status moves, approvals, point changes, escalations, training,
    maintenance batches) and re-verifies the chain on demand.

Invariants enforced:
    - Each link digests seq, entity, action, actor, the payload digest and
      the previous link's hash (utils/hashing.link_digest).
    - seq comes from the locked ``audit_event`` counter, which also
      serializes writers so the previous hash is read consistently.
    - Rows are append-only (db/immutability.py).

Failure modes:
    - AuditChainBrokenError from ``validate_chain`` at the first event whose
      stored payload digest, link or hash does not recompute.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from contravention_kernel.domain.clock import Clock
from contravention_kernel.exceptions import AuditChainBrokenError
from contravention_kernel.logging_config import get_logger
from contravention_kernel.models.audit_event import AuditAction, AuditEvent
from contravention_kernel.services.base import BaseService
from contravention_kernel.services.sequence_service import SequenceService
from contravention_kernel.utils.hashing import (
    GENESIS,
    json_column_value,
    link_digest,
    payload_digest,
)

logger = get_logger("services.auditor")


@dataclass(frozen=True)
class AuditTraceEntry:
    seq: int
    action: str
    occurred_at: datetime
    actor_id: UUID
    payload: dict[str, Any]
    hash: str


def _link_of(event: AuditEvent, payload_hash: str) -> str:
    return link_digest(
        seq=event.seq,
        entity_type=event.entity_type,
        entity_id=event.entity_id,
        action=event.action,
        actor_id=event.actor_id,
        payload_hash=payload_hash,
        prev_hash=event.prev_hash,
    )


class AuditorService(BaseService):
    """Writes and verifies audit links.  Never commits."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._sequences = SequenceService(session)

    def record(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        seq = self._sequences.next_value(SequenceService.AUDIT_EVENT)
        head = self.session.execute(
            select(AuditEvent.hash).order_by(AuditEvent.seq.desc()).limit(1)
        ).scalar_one_or_none()

        stored = json_column_value(payload or {})
        event = AuditEvent(
            seq=seq,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action.value,
            actor_id=actor_id,
            occurred_at=self.clock.now(),
            payload=stored,
            payload_hash=payload_digest(stored),
            prev_hash=head,
        )
        event.hash = _link_of(event, event.payload_hash)
        self.session.add(event)
        self.session.flush()

        logger.debug(
            "audit_event_recorded",
            extra={"entity_type": entity_type, "action": action.value, "seq": seq},
        )
        return event

    def _verify(self, event: AuditEvent, expected_prev: str | None) -> None:
        recomputed_payload = payload_digest(event.payload or {})
        checks = (
            (expected_prev or GENESIS, event.prev_hash or GENESIS),
            (recomputed_payload, event.payload_hash),
            (_link_of(event, recomputed_payload), event.hash),
        )
        for expected, actual in checks:
            if expected != actual:
                logger.critical(
                    "audit_chain_broken",
                    extra={"audit_event_id": str(event.id), "seq": event.seq},
                )
                raise AuditChainBrokenError(str(event.id), expected, actual)

    def validate_chain(self) -> bool:
        """Walk the chain in seq order; raises AuditChainBrokenError on the first bad link."""
        count = 0
        expected_prev: str | None = None
        for event in self.session.execute(
            select(AuditEvent).order_by(AuditEvent.seq)
        ).scalars():
            self._verify(event, expected_prev)
            expected_prev = event.hash
            count += 1

        logger.info("audit_chain_valid", extra={"event_count": count})
        return True

    def get_trace(self, entity_type: str, entity_id: UUID) -> tuple[AuditTraceEntry, ...]:
        rows = self.session.execute(
            select(AuditEvent)
            .where(AuditEvent.entity_type == entity_type, AuditEvent.entity_id == entity_id)
            .order_by(AuditEvent.seq)
        ).scalars()
        return tuple(
            AuditTraceEntry(e.seq, e.action, e.occurred_at, e.actor_id, e.payload or {}, e.hash)
            for e in rows
        )
