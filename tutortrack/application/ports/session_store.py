from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Awaitable, Callable

from tutortrack.domain.entities.session import Session, SessionDraft

ChangeListener = Callable[[str], Awaitable[None] | None]
Unsubscribe = Callable[[], None]


class SessionStorePort(ABC):
    """
    Persistence boundary for sessions.

    Adapters normalize every raw row into a canonical ``Session`` before
    returning it and raise ``StoreError`` when the backend fails.
    """

    @abstractmethod
    async def query(
        self,
        tutor_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Session]:
        """Sessions of a tutor intersecting [start, end); all sessions when no range is given."""
        raise NotImplementedError

    @abstractmethod
    async def get(self, session_id: str) -> Session | None:
        raise NotImplementedError

    @abstractmethod
    async def insert(self, drafts: list[SessionDraft]) -> list[Session]:
        """Insert all drafts in one call; returns the stored sessions in the same order."""
        raise NotImplementedError

    @abstractmethod
    async def update(self, session_id: str, patch: dict[str, Any]) -> Session:
        raise NotImplementedError

    @abstractmethod
    async def update_series(
        self,
        recurrence_id: str,
        patch: dict[str, Any],
        from_instant: datetime | None = None,
    ) -> int:
        """Patch every session of a series starting at or after ``from_instant``. Returns the row count."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, session_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def subscribe(self, tutor_id: str, on_change: ChangeListener) -> Unsubscribe:
        """Register a change-feed listener; returns a callable that removes it."""
        raise NotImplementedError
