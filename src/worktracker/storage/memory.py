"""In-process storage backend.

Keeps everything in dictionaries. Used for tests and for ad-hoc runs
where nothing needs to survive the process.
"""

from __future__ import annotations

import itertools
import logging
import uuid
from datetime import datetime

from worktracker.domain.models import Analysis, Sample, Session, SessionStatus
from worktracker.storage.base import StorageBackend, StorageError, completion_time

logger = logging.getLogger(__name__)


class InMemoryStorage(StorageBackend):
    """Dictionary-backed storage."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._samples: dict[str, Sample] = {}
        self._by_session: dict[str, list[str]] = {}
        self._seq = itertools.count()

    async def create_session(self, owner: str) -> Session:
        session = Session(id=uuid.uuid4().hex, owner=owner, started_at=datetime.now())
        self._sessions[session.id] = session
        self._by_session[session.id] = []
        logger.debug("Created session %s for %s", session.id, owner)
        return session.model_copy()

    async def update_session_status(self, session_id: str, status: SessionStatus) -> Session:
        session = self._require_session(session_id)
        session.status = status
        if status is SessionStatus.COMPLETED and session.ended_at is None:
            session.ended_at = completion_time(session)
        return session.model_copy()

    async def get_session(self, session_id: str) -> Session | None:
        session = self._sessions.get(session_id)
        return session.model_copy() if session else None

    async def get_active_session(self, owner: str) -> Session | None:
        active = [
            s for s in reversed(list(self._sessions.values()))
            if s.owner == owner and s.status is SessionStatus.ACTIVE
        ]
        if not active:
            return None
        return max(active, key=lambda s: s.started_at).model_copy()

    async def list_sessions(self, owner: str | None = None, limit: int = 10) -> list[Session]:
        # Newest first, ties broken by creation order
        sessions = [
            s for s in reversed(list(self._sessions.values()))
            if owner is None or s.owner == owner
        ]
        sessions.sort(key=lambda s: s.started_at, reverse=True)
        return [s.model_copy() for s in sessions[:limit]]

    async def save_sample(
        self,
        session_id: str,
        locator: str,
        fingerprint: str | None,
        captured_at: datetime | None = None,
    ) -> Sample:
        session = self._require_session(session_id)
        sample = Sample(
            id=f"{next(self._seq):08d}-{uuid.uuid4().hex[:8]}",
            session_id=session_id,
            captured_at=captured_at or datetime.now(),
            locator=locator,
            fingerprint=fingerprint,
        )
        self._samples[sample.id] = sample
        self._by_session[session_id].append(sample.id)
        session.sample_count += 1
        return sample.model_copy()

    async def save_analysis(self, sample_id: str, analysis: Analysis) -> Analysis:
        sample = self._samples.get(sample_id)
        if sample is None:
            raise StorageError(f"Unknown sample {sample_id}")
        if sample.analysis is not None:
            raise StorageError(f"Sample {sample_id} already has an analysis")
        sample.analysis = analysis
        return analysis

    async def list_samples(self, session_id: str) -> list[Sample]:
        # Insertion order is the scheduler's emission order
        ids = self._by_session.get(session_id, [])
        return [self._samples[i].model_copy(deep=True) for i in ids]

    def _require_session(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise StorageError(f"Unknown session {session_id}")
        return session
