"""Tracker service: the surface exposed to the host/UI layer.

Wires the session state machine, capture scheduler, dedup gate,
analysis dispatcher and timeline aggregator together for one owner,
and publishes notifications on an :class:`EventBus`.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from worktracker.capture.base import CaptureUnavailableError, FrameSource
from worktracker.classifier.base import Classifier
from worktracker.domain.errors import WorktrackerError
from worktracker.domain.models import (
    ActivityShare,
    Session,
    SessionStatus,
    TimelineBucket,
    TrackerStatus,
)
from worktracker.events import EventBus
from worktracker.session.state import SessionStateMachine
from worktracker.storage.base import StorageBackend, StorageError
from worktracker.storage.images import LocalImageStore
from worktracker.timeline.aggregator import TimelineAggregator
from worktracker.timeline.breakdown import compute_breakdown
from worktracker.watcher.dedup import DedupGate
from worktracker.watcher.dispatcher import AnalysisDispatcher
from worktracker.watcher.scheduler import CaptureScheduler

logger = logging.getLogger(__name__)

ReportHook = Callable[[Session, list[TimelineBucket]], Awaitable[None]]


async def log_report(session: Session, timeline: list[TimelineBucket]) -> None:
    """Default end-of-session hook: log a one-line summary per bucket."""
    logger.info("Session %s completed: %d samples over %.1f minutes",
                session.id, session.sample_count, session.duration_minutes())
    for bucket in timeline:
        logger.info("  %s  %-14s %s (%d samples)", bucket.label,
                    bucket.dominant_activity.value, bucket.dominant_app or "-",
                    len(bucket.samples))


class TrackerService:
    """Start/pause/resume/end work sessions and query their timelines."""

    def __init__(
        self,
        storage: StorageBackend,
        source: FrameSource,
        images: LocalImageStore,
        classifier: Classifier | None = None,
        owner: str = "local",
        interval_ms: int = 5000,
        bucket_minutes: int = 60,
        max_samples: int | None = None,
        events: EventBus | None = None,
        report_hook: ReportHook | None = log_report,
    ) -> None:
        self._storage = storage
        self._source = source
        self._images = images
        self._interval_ms = interval_ms
        self._max_samples = max_samples
        self._report_hook = report_hook

        self.events = events or EventBus()
        self.state = SessionStateMachine(storage, owner=owner, events=self.events)
        self.gate = DedupGate()
        self.dispatcher = AnalysisDispatcher(storage, classifier, self.state, self.events)
        self.aggregator = TimelineAggregator(storage, bucket_minutes=bucket_minutes)
        self._scheduler: CaptureScheduler | None = None

    @property
    def source(self) -> FrameSource:
        return self._source

    @property
    def storage(self) -> StorageBackend:
        return self._storage

    @property
    def scheduler(self) -> CaptureScheduler | None:
        return self._scheduler

    async def open(self) -> Session | None:
        """Adopt a session a previous process left active (as paused)."""
        return await self.state.recover()

    async def close(self) -> None:
        """Stop capture, wait for the in-flight tick and release resources."""
        if self._scheduler is not None:
            self._scheduler.stop()
            await self._scheduler.drain()
        self._source.release()
        await self._storage.close()

    # -- lifecycle --------------------------------------------------------

    async def start_session(self) -> Session:
        """Start a new session and begin capturing immediately.

        Raises:
            ConflictError: If the owner already has an active session.
            CaptureUnavailableError: If the frame source cannot be acquired;
                the new session is left paused.
        """
        self._source.reclaim_if_orphaned(self.state.is_active)
        previous = self.state.session
        session = await self.state.start()
        if previous is not None:
            # A paused predecessor was completed by start()
            self.gate.forget(previous.id)
        await self._start_capture(session.id)
        return self.state.session

    async def pause_session(self) -> Session:
        return await self._leave_active(self.state.pause)

    async def resume_session(self) -> Session:
        session = await self.state.resume()
        await self._start_capture(session.id)
        return self.state.session

    async def end_session(self) -> Session:
        """Complete the session, then hand its timeline to the report hook."""
        session = await self._leave_active(self.state.complete)
        if self._scheduler is not None:
            await self._scheduler.drain()
        self.gate.forget(session.id)
        session = self.state.session
        if self._report_hook is not None:
            try:
                timeline = await self.aggregator.aggregate(session.id)
                await self._report_hook(session, timeline)
            except Exception as e:
                logger.error("Report generation for session %s failed: %s", session.id, e)
        return session

    def get_status(self) -> TrackerStatus:
        session = self.state.session
        if session is None:
            return TrackerStatus()
        return TrackerStatus(
            is_active=session.status is SessionStatus.ACTIVE,
            sample_count=session.sample_count,
            session_id=session.id,
            status=session.status,
            duration_minutes=round(session.duration_minutes(), 2),
        )

    # -- queries ----------------------------------------------------------

    async def timeline(self, session_id: str | None = None) -> list[TimelineBucket]:
        return await self.aggregator.aggregate(self._resolve(session_id))

    async def breakdown(self, session_id: str | None = None) -> list[ActivityShare]:
        samples = await self._storage.list_samples(self._resolve(session_id))
        return compute_breakdown(samples, self._interval_ms)

    async def list_sessions(self, limit: int = 10) -> list[Session]:
        return await self._storage.list_sessions(self.state.owner, limit)

    def _resolve(self, session_id: str | None) -> str:
        if session_id is not None:
            return session_id
        session = self.state.session
        if session is None:
            raise WorktrackerError("No current session")
        return session.id

    # -- capture ----------------------------------------------------------

    async def _leave_active(self, transition: Callable[[], Awaitable[Session]]) -> Session:
        """Run a transition that stops capture, restarting it if not persisted."""
        session_id = self.state.session.id if self.state.session else None
        try:
            return await transition()
        except StorageError:
            # Transition not persisted: the session is still active
            if session_id is not None and self.state.is_active(session_id):
                await self._start_capture(session_id)
            raise

    async def _start_capture(self, session_id: str) -> None:
        if self._scheduler is None or self._scheduler.session_id != session_id:
            self._scheduler = CaptureScheduler(
                state=self.state,
                source=self._source,
                gate=self.gate,
                dispatcher=self.dispatcher,
                storage=self._storage,
                images=self._images,
                events=self.events,
                max_samples=self._max_samples,
                on_failure=self._on_capture_stopped,
            )
        try:
            await self._scheduler.start(session_id, self._interval_ms)
        except CaptureUnavailableError:
            logger.error("Capture unavailable, pausing session %s", session_id)
            await self.state.pause()
            raise

    async def _on_capture_stopped(self, session_id: str, error: Exception) -> None:
        if not self.state.is_active(session_id):
            return
        logger.warning("Pausing session %s: %s", session_id, error)
        try:
            await self.state.pause()
        except WorktrackerError as e:
            logger.error("Could not pause session %s after capture stopped: %s", session_id, e)
