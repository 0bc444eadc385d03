"""
SequenceService -- gap-tolerant counters backed by locked rows.

Responsibility:
    Hands out increasing integers per named sequence: the audit chain
    sequence and one reference counter per filing year.  The counter row is
    read with ``SELECT ... FOR UPDATE``; MAX()+1 over the data table is
    never used.

Invariants enforced:
    - Values for one name start at 1 and only increase.
    - The increment belongs to the caller's transaction, so a rolled back
      operation hands its value back.

Failure modes:
    - Two first-time callers racing to create the same counter: the loser's
      IntegrityError is confined to a SAVEPOINT and it re-reads the winner's
      row under lock.
"""

from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from contravention_kernel.logging_config import get_logger
from contravention_kernel.models.sequence_counter import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """Never commits; counters move with the surrounding transaction."""

    AUDIT_EVENT = "audit_event"
    CONTRAVENTION_REF = "contravention_ref"

    def __init__(self, session: Session):
        self._session = session

    def _lock(self, name: str) -> SequenceCounter | None:
        stmt = (
            select(SequenceCounter)
            .where(SequenceCounter.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._session.scalars(stmt).one_or_none()

    def _create(self, name: str) -> SequenceCounter | None:
        """Insert the counter at 0.  None when another transaction won the insert."""
        with self._session.begin_nested() as savepoint:
            counter = SequenceCounter(name=name, current_value=0)
            self._session.add(counter)
            try:
                self._session.flush()
            except IntegrityError:
                savepoint.rollback()
                logger.info("sequence_create_raced", extra={"sequence_name": name})
                return None
        return counter

    def next_value(self, sequence_name: str) -> int:
        counter = self._lock(sequence_name) or self._create(sequence_name)
        if counter is None:
            counter = self._lock(sequence_name)
        if counter is None:
            raise RuntimeError(f"Sequence counter {sequence_name!r} vanished after a create race")

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Last value handed out, or None for an unused sequence."""
        return self._session.scalars(
            select(SequenceCounter.current_value).where(SequenceCounter.name == sequence_name)
        ).one_or_none()


class ReferenceNumberService:
    """
    Human-readable contravention references: ``CONTRA-2026-001``.

    The counter restarts every calendar year of the incident filing date
    and is zero-padded to ``width`` digits (wider numbers are not
    truncated).
    """

    def __init__(
        self,
        sequence_service: SequenceService,
        prefix: str = "CONTRA",
        width: int = 3,
    ):
        self._sequences = sequence_service
        self._prefix = prefix
        self._width = width

    def next_reference(self, on: date) -> str:
        value = self._sequences.next_value(
            f"{SequenceService.CONTRAVENTION_REF}:{on.year}"
        )
        return f"{self._prefix}-{on.year}-{value:0{self._width}d}"
