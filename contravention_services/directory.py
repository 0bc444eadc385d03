"""In-memory DirectoryLookup for local runs, scripts and tests."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from contravention_kernel.domain.collaborators import DirectoryUser


class InMemoryDirectory:
    """Users keyed by id and by lower-cased email."""

    def __init__(self, users: Iterable[DirectoryUser] = ()):
        self._by_id: dict[UUID, DirectoryUser] = {}
        self._by_email: dict[str, DirectoryUser] = {}
        for user in users:
            self.add(user)

    def add(self, user: DirectoryUser) -> DirectoryUser:
        self._by_id[user.id] = user
        self._by_email[user.email.strip().lower()] = user
        return user

    def find_by_email(self, email: str) -> DirectoryUser | None:
        return self._by_email.get(email.strip().lower())

    def find_by_id(self, user_id: UUID) -> DirectoryUser | None:
        return self._by_id.get(user_id)

    def __len__(self) -> int:
        return len(self._by_id)
