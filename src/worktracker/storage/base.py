"""Abstract storage collaborator for sessions, samples and analyses.

The capture engine reaches persistence only through this contract.
Every operation may fail with :class:`StorageError`; the core
propagates such failures and leaves retry policy to the backend.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime

from worktracker.domain.errors import WorktrackerError
from worktracker.domain.models import Analysis, Sample, Session, SessionStatus

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Persistence for sessions, samples and their analyses."""

    @abstractmethod
    async def create_session(self, owner: str) -> Session:
        """Create a new ``active`` session for an owner."""
        ...

    @abstractmethod
    async def update_session_status(self, session_id: str, status: SessionStatus) -> Session:
        """Set a session's status.

        Moving to ``completed`` stamps ``ended_at`` (never earlier than
        ``started_at``). Raises StorageError for an unknown session.
        """
        ...

    @abstractmethod
    async def get_session(self, session_id: str) -> Session | None:
        ...

    @abstractmethod
    async def get_active_session(self, owner: str) -> Session | None:
        """Most recently started ``active`` session of an owner, if any."""
        ...

    @abstractmethod
    async def list_sessions(self, owner: str | None = None, limit: int = 10) -> list[Session]:
        """Sessions ordered by ``started_at`` descending."""
        ...

    @abstractmethod
    async def save_sample(
        self,
        session_id: str,
        locator: str,
        fingerprint: str | None,
        captured_at: datetime | None = None,
    ) -> Sample:
        """Persist a sample and count it against its session."""
        ...

    @abstractmethod
    async def save_analysis(self, sample_id: str, analysis: Analysis) -> Analysis:
        """Attach an analysis to a sample. Raises StorageError if one exists."""
        ...

    @abstractmethod
    async def list_samples(self, session_id: str) -> list[Sample]:
        """Samples of a session with their analyses, in capture order."""
        ...

    async def close(self) -> None:
        """Release backend resources. Safe to call multiple times."""


class StorageError(WorktrackerError):
    """Raised when a storage operation fails."""


def completion_time(session: Session) -> datetime:
    """Timestamp for ``ended_at``, clamped so it is never before ``started_at``."""
    now = datetime.now(session.started_at.tzinfo)
    return max(now, session.started_at)
