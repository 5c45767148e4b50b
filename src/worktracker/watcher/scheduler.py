"""Capture scheduler: the periodic sampling loop of an active session.

A single timer task per session fires every ``interval_ms``; the first
tick fires immediately on start. Each tick runs the pipeline
frame -> fingerprint -> persist -> dedup gate -> analysis dispatch.

Ticks never overlap. A timer firing while the previous tick is still
outstanding, or while the session is not active, is ignored so a slow
classifier cannot build up a backlog. Stopping is cooperative: it
cancels the timer but lets an in-flight tick finish on its own path,
and the frame source is released as soon as nothing uses it anymore.
A restart that finds that tick still running fires its first tick as
soon as the old one settles.

Capture loss and the per-session sample cap both stop the scheduler and
are reported through ``on_failure``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from worktracker.capture.base import CaptureUnavailableError, FrameSource
from worktracker.domain.errors import AlreadyRunningError, SampleLimitError
from worktracker.domain.models import CapturedFrame, PipelineError, Sample, SampleCaptured
from worktracker.events import EventBus
from worktracker.session.state import SessionStateMachine
from worktracker.storage.base import StorageBackend, StorageError
from worktracker.storage.images import LocalImageStore
from worktracker.watcher.dedup import DedupGate
from worktracker.watcher.dispatcher import AnalysisDispatcher
from worktracker.watcher.fingerprint import fingerprint

logger = logging.getLogger(__name__)

FailureCallback = Callable[[str, Exception], Awaitable[None]]


class CaptureScheduler:
    """Drives periodic sampling for one session at a time."""

    def __init__(
        self,
        state: SessionStateMachine,
        source: FrameSource,
        gate: DedupGate,
        dispatcher: AnalysisDispatcher,
        storage: StorageBackend,
        images: LocalImageStore,
        events: EventBus | None = None,
        max_samples: int | None = None,
        on_failure: FailureCallback | None = None,
    ) -> None:
        self._state = state
        self._source = source
        self._gate = gate
        self._dispatcher = dispatcher
        self._storage = storage
        self._images = images
        self._events = events
        self._max_samples = max_samples
        self._on_failure = on_failure

        self._session_id: str | None = None
        self._interval: float = 0.0
        self._timer: asyncio.Task | None = None
        self._inflight: asyncio.Task | None = None
        self._stopped = True
        self._ticks_fired = 0
        self._ticks_skipped = 0

    @property
    def is_running(self) -> bool:
        return not self._stopped and self._timer is not None

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def ticks_fired(self) -> int:
        return self._ticks_fired

    @property
    def ticks_skipped(self) -> int:
        return self._ticks_skipped

    async def start(self, session_id: str, interval_ms: int) -> None:
        """Begin periodic sampling of a session; the first tick fires now.

        Raises:
            AlreadyRunningError: If this scheduler, or another one, is
                already attached to the session.
            InvalidStateError: If the session is not active.
            CaptureUnavailableError: If the frame source cannot be acquired.
        """
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        if self.is_running:
            raise AlreadyRunningError(
                f"Scheduler already running for session {self._session_id}"
            )
        self._state.attach_scheduler(session_id, self)
        try:
            self._source.acquire(session_id)
        except CaptureUnavailableError:
            self._state.detach_scheduler(session_id, self)
            raise

        self._session_id = session_id
        self._interval = interval_ms / 1000.0
        self._stopped = False
        if self._inflight is not None and not self._inflight.done():
            # Tick from before the last stop still running: fire once it settles
            self._inflight.add_done_callback(self._fire_deferred)
        else:
            self._fire()
        self._timer = asyncio.create_task(self._run(), name=f"capture-timer-{session_id}")
        logger.info("Capture started for session %s every %dms", session_id, interval_ms)

    def stop(self) -> None:
        """Stop future ticks. Idempotent; never interrupts an in-flight tick."""
        if self._stopped:
            return
        self._stopped = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._session_id is not None:
            self._state.detach_scheduler(self._session_id, self)
        self._release()
        logger.info("Capture stopped for session %s", self._session_id)

    async def drain(self) -> None:
        """Wait for the in-flight tick, if any, to settle."""
        if self._inflight is not None:
            await asyncio.gather(self._inflight, return_exceptions=True)

    # -- timer ------------------------------------------------------------

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_fire = loop.time()
        try:
            while not self._stopped:
                next_fire += self._interval
                now = loop.time()
                if next_fire < now - self._interval:
                    # Host was suspended; resume the cadence from now
                    next_fire = now
                await asyncio.sleep(max(0.0, next_fire - now))
                if self._stopped:
                    break
                self._fire()
        finally:
            self._release()

    def _fire_deferred(self, _task: asyncio.Task) -> None:
        if not self._stopped:
            self._fire()

    def _fire(self) -> None:
        session_id = self._session_id
        if session_id is None or not self._state.is_active(session_id):
            self._ticks_skipped += 1
            logger.debug("Tick ignored: session %s not active", session_id)
            return
        if self._inflight is not None and not self._inflight.done():
            self._ticks_skipped += 1
            logger.debug("Tick ignored: previous tick still outstanding")
            return
        self._ticks_fired += 1
        self._inflight = asyncio.create_task(
            self._run_tick(session_id), name=f"capture-tick-{session_id}"
        )

    async def _run_tick(self, session_id: str) -> None:
        try:
            await self._tick(session_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Unexpected error in capture tick: %s", e)
            self._publish_error(session_id, "scheduler", str(e))
        finally:
            self._release(from_tick=True)

    # -- pipeline ---------------------------------------------------------

    async def _tick(self, session_id: str) -> None:
        try:
            frame = await self._source.capture_frame()
        except CaptureUnavailableError as e:
            await self._fail(session_id, e)
            return

        fp = fingerprint(frame.data)
        sample = await self._persist(session_id, frame, fp)
        if sample is None:
            return

        decision = self._gate.check(session_id, fp)
        count = self._state.record_sample(session_id)
        if self._events is not None:
            self._events.publish(SampleCaptured(
                session_id=session_id,
                locator=sample.locator,
                timestamp=sample.captured_at,
            ))

        try:
            await self._dispatcher.dispatch(sample, frame, decision)
        except StorageError as e:
            logger.error("Failed to save analysis for sample %s: %s", sample.id, e)
            self._publish_error(session_id, "storage", str(e))

        if self._max_samples is not None and count >= self._max_samples:
            logger.warning("Session %s reached %d samples, stopping capture",
                           session_id, self._max_samples)
            error = SampleLimitError(f"sample limit of {self._max_samples} reached")
            await self._fail(session_id, error, source="scheduler")

    async def _persist(
        self, session_id: str, frame: CapturedFrame, fp: str | None
    ) -> Sample | None:
        """Write the image and save the sample, retrying the save once."""
        try:
            locator = await self._images.write(frame.data, frame.captured_at, frame.mime_type)
        except StorageError as e:
            logger.error("Dropping frame %d of session %s: %s",
                         frame.frame_number, session_id, e)
            self._publish_error(session_id, "storage", str(e))
            return None

        last_error: StorageError | None = None
        for attempt in (1, 2):
            try:
                return await self._storage.save_sample(
                    session_id, locator, fp, frame.captured_at
                )
            except StorageError as e:
                last_error = e
                logger.warning("save_sample attempt %d failed for %s: %s", attempt, locator, e)

        logger.error("Sample %s not recorded, image kept on disk", locator)
        self._publish_error(session_id, "storage", f"sample not recorded ({locator}): {last_error}")
        return None

    async def _fail(self, session_id: str, error: Exception, source: str = "capture") -> None:
        """Stop sampling and let the owner of the session react."""
        logger.error("Capture stopped for session %s: %s", session_id, error)
        self._publish_error(session_id, source, str(error))
        self.stop()
        if self._on_failure is not None:
            try:
                await self._on_failure(session_id, error)
            except Exception as e:
                logger.error("Capture failure handler raised: %s", e)

    def _publish_error(self, session_id: str, source: str, message: str) -> None:
        if self._events is not None:
            self._events.publish(
                PipelineError(session_id=session_id, source=source, message=message)
            )

    def _release(self, from_tick: bool = False) -> None:
        """Release the frame source once stopped and no tick uses it."""
        if not self._stopped:
            return
        if not from_tick and self._inflight is not None and not self._inflight.done():
            return
        if self._session_id is not None and self._source.holder == self._session_id:
            self._source.release()
