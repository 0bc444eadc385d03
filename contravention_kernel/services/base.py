"""
BaseService -- common constructor for kernel write services.

Services receive the caller's ``Session`` and persist with
``session.flush()`` only.  The engine (or ``session_scope``) owns commit
and rollback so that a multi-step operation is all-or-nothing.
"""

from abc import ABC

from sqlalchemy.orm import Session

from contravention_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Guarantees:
        - Never calls ``session.commit()`` or ``session.rollback()``.
        - Every timestamp comes from the injected clock.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
