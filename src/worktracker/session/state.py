"""Session lifecycle state machine.

The single authority on whether sampling may proceed. Owns the current
session of one owner, persists every transition through the storage
collaborator, and stops the attached capture scheduler synchronously
whenever the session leaves ``active``.

Transitions::

    start()    -> active            (ConflictError if owner has an active session)
    pause()    active  -> paused
    resume()   paused  -> active
    complete() active | paused -> completed   (terminal)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from worktracker.domain.errors import AlreadyRunningError, ConflictError, InvalidStateError
from worktracker.domain.models import Session, SessionStatus, StateChanged
from worktracker.events import EventBus
from worktracker.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class AttachedScheduler(Protocol):
    @property
    def is_running(self) -> bool: ...

    def stop(self) -> None: ...


# transition name -> (allowed source states, target state)
TRANSITIONS: dict[str, tuple[frozenset[SessionStatus], SessionStatus]] = {
    "pause": (frozenset({SessionStatus.ACTIVE}), SessionStatus.PAUSED),
    "resume": (frozenset({SessionStatus.PAUSED}), SessionStatus.ACTIVE),
    "complete": (
        frozenset({SessionStatus.ACTIVE, SessionStatus.PAUSED}),
        SessionStatus.COMPLETED,
    ),
}


class SessionStateMachine:
    """Lifecycle of the current work session of one owner."""

    def __init__(
        self,
        storage: StorageBackend,
        owner: str = "local",
        events: EventBus | None = None,
    ) -> None:
        self._storage = storage
        self._owner = owner
        self._events = events
        self._session: Session | None = None
        self._schedulers: dict[str, AttachedScheduler] = {}
        self._lock = asyncio.Lock()

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def session(self) -> Session | None:
        """A copy of the current session, if any."""
        return self._session.model_copy() if self._session else None

    @property
    def status(self) -> SessionStatus | None:
        return self._session.status if self._session else None

    def is_active(self, session_id: str | None = None) -> bool:
        """Whether sampling may proceed (for the given session, if named)."""
        if self._session is None or self._session.status is not SessionStatus.ACTIVE:
            return False
        return session_id is None or self._session.id == session_id

    # -- transitions ------------------------------------------------------

    async def start(self) -> Session:
        """Create a new ``active`` session.

        A paused current session is completed first.

        Raises:
            ConflictError: If the owner already has an active session.
            StorageError: If the session cannot be created.
        """
        async with self._lock:
            if self.is_active():
                raise ConflictError(
                    f"Session {self._session.id} is already active for {self._owner}"
                )
            existing = await self._storage.get_active_session(self._owner)
            if existing is not None:
                raise ConflictError(
                    f"Session {existing.id} is already active for {self._owner}"
                )
            if self._session is not None and self._session.status is SessionStatus.PAUSED:
                logger.info("Completing paused session %s before starting a new one", self._session.id)
                await self._apply("complete")

            session = await self._storage.create_session(self._owner)
            self._session = session
            logger.info("Session %s started for %s", session.id, self._owner)
            self._publish(session)
            return session.model_copy()

    async def pause(self) -> Session:
        async with self._lock:
            return await self._apply("pause")

    async def resume(self) -> Session:
        async with self._lock:
            return await self._apply("resume")

    async def complete(self) -> Session:
        async with self._lock:
            return await self._apply("complete")

    async def recover(self) -> Session | None:
        """Adopt an ``active`` session left in storage by a previous process.

        No scheduler survives a process exit, so the adopted session is
        moved to ``paused``; the host can then resume or complete it.
        """
        async with self._lock:
            if self._session is not None:
                return self._session.model_copy()
            stale = await self._storage.get_active_session(self._owner)
            if stale is None:
                return None
            logger.warning("Recovering session %s left active by a previous run", stale.id)
            self._session = stale
            return await self._apply("pause")

    async def _apply(self, name: str) -> Session:
        """Validate and persist a transition; state is unchanged on failure."""
        allowed, target = TRANSITIONS[name]
        session = self._session
        if session is None:
            raise InvalidStateError(f"Cannot {name}: no session", current=None)
        if session.status not in allowed:
            raise InvalidStateError(
                f"Cannot {name} session {session.id} in state {session.status.value}",
                current=session.status,
            )

        if target is not SessionStatus.ACTIVE:
            self._stop_scheduler(session.id)

        updated = await self._storage.update_session_status(session.id, target)
        session.status = target
        if target is SessionStatus.COMPLETED and session.ended_at is None:
            session.ended_at = max(updated.ended_at or session.started_at, session.started_at)
        logger.info("Session %s -> %s", session.id, target.value)
        self._publish(session)
        return session.model_copy()

    def _publish(self, session: Session) -> None:
        if self._events is not None:
            self._events.publish(StateChanged(session_id=session.id, status=session.status))

    # -- scheduler bookkeeping ---------------------------------------------

    def attach_scheduler(self, session_id: str, scheduler: AttachedScheduler) -> None:
        """Register the scheduler sampling a session.

        Raises:
            InvalidStateError: If the session is not the active one.
            AlreadyRunningError: If a running scheduler is already attached.
        """
        if not self.is_active(session_id):
            raise InvalidStateError(
                f"Cannot attach scheduler: session {session_id} is not active",
                current=self.status,
            )
        current = self._schedulers.get(session_id)
        if current is not None and current.is_running:
            raise AlreadyRunningError(f"A scheduler is already attached to session {session_id}")
        self._schedulers[session_id] = scheduler

    def detach_scheduler(self, session_id: str, scheduler: AttachedScheduler) -> None:
        if self._schedulers.get(session_id) is scheduler:
            del self._schedulers[session_id]

    def _stop_scheduler(self, session_id: str) -> None:
        scheduler = self._schedulers.pop(session_id, None)
        if scheduler is not None:
            scheduler.stop()

    def record_sample(self, session_id: str) -> int:
        """Count a persisted sample against the current session."""
        if self._session is not None and self._session.id == session_id:
            self._session.sample_count += 1
            return self._session.sample_count
        return 0
