"""
Module: contravention_kernel.selectors.base
Responsibility: Base class for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/ (for DTO types).  MUST NOT import from services/.

Invariants enforced:
    - Selectors never add, delete, flush or commit.
    - Selectors return frozen DTOs, not ORM instances.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from contravention_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Holds the caller's session; subclasses add the queries."""

    def __init__(self, session: Session):
        self.session = session
