"""
Interfaces of the engine's external collaborators.

The engine does not own user accounts or message delivery.  It looks
users up through ``DirectoryLookup`` and hands notifications to a
``NotificationDispatcher`` after the authoritative state change commits.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable
from uuid import UUID


class UserRole(str, Enum):
    EMPLOYEE = "EMPLOYEE"
    APPROVER = "APPROVER"
    ADMIN = "ADMIN"

    @property
    def can_approve(self) -> bool:
        return self in (UserRole.APPROVER, UserRole.ADMIN)


@dataclass(frozen=True)
class DirectoryUser:
    id: UUID
    email: str
    name: str
    role: UserRole = UserRole.EMPLOYEE


@runtime_checkable
class DirectoryLookup(Protocol):
    """User directory.  Email matching is case-insensitive."""

    def find_by_email(self, email: str) -> DirectoryUser | None: ...

    def find_by_id(self, user_id: UUID) -> DirectoryUser | None: ...


class NotificationKind(str, Enum):
    APPROVAL_REQUESTED = "approval_requested"
    APPROVAL_APPROVED = "approval_approved"
    APPROVAL_REJECTED = "approval_rejected"
    CONTRAVENTION_FILED = "contravention_filed"
    CONTRAVENTION_COMPLETED = "contravention_completed"
    ESCALATION_TRIGGERED = "escalation_triggered"
    TRAINING_ASSIGNED = "training_assigned"


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    payload: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class NotificationDispatcher(Protocol):
    """Best-effort delivery.  Exceptions are logged by the caller and dropped."""

    def notify(self, kind: NotificationKind, payload: dict[str, Any]) -> None: ...


@dataclass(frozen=True)
class Actor:
    """Who is invoking an engine operation."""

    actor_id: UUID
    is_admin: bool = False
