"""
Module: contravention_kernel.models.sequence_counter
Responsibility: Named counter rows used by SequenceService.  Each row is
    locked with SELECT ... FOR UPDATE while it is incremented.
"""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from contravention_kernel.db.base import Base


class SequenceCounter(Base):
    """One named, monotonically increasing counter."""

    __tablename__ = "sequence_counters"

    # e.g. "audit_event", "contravention_ref:2026"
    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
