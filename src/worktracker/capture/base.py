"""Abstract base class for screen frame sources.

All frame sources conform to this interface, so the capture scheduler
works the same whether frames come from native display capture or are
pushed by an in-browser media stream.

A frame source is an exclusive resource: at most one session may hold
it at a time. The holder is recorded so an orphaned hold (left by a
session that is no longer active, e.g. after a crash) can be reclaimed
at the next session start.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable

from worktracker.domain.errors import WorktrackerError
from worktracker.domain.models import CapturedFrame

logger = logging.getLogger(__name__)


class FrameSource(ABC):
    """Abstract interface for acquiring screen frames on demand.

    Example usage::

        source = DisplayCapture(monitor=1)
        source.acquire(session.id)
        try:
            frame = await source.capture_frame()
        finally:
            source.release()
    """

    name: str = "frame-source"

    def __init__(self) -> None:
        self._holder: str | None = None
        self._frame_counter: int = 0

    @property
    def holder(self) -> str | None:
        """ID of the session currently holding this source, if any."""
        return self._holder

    @property
    def is_open(self) -> bool:
        return self._holder is not None

    def acquire(self, holder: str) -> None:
        """Take exclusive hold of the source for a session.

        Re-acquiring by the current holder is a no-op.

        Raises:
            CaptureUnavailableError: If another session holds the source,
                or the underlying device cannot be opened.
        """
        if self._holder == holder:
            return
        if self._holder is not None:
            raise CaptureUnavailableError(
                f"{self.name} is held by session {self._holder}"
            )
        self._open()
        self._holder = holder
        logger.info("%s acquired by session %s", self.name, holder)

    def release(self) -> None:
        """Release the source. Safe to call multiple times."""
        if self._holder is None:
            return
        holder, self._holder = self._holder, None
        try:
            self._close()
        finally:
            logger.info("%s released by session %s", self.name, holder)

    def reclaim_if_orphaned(self, is_active: Callable[[str], bool]) -> bool:
        """Release a hold left by a session that is no longer active.

        Returns:
            True if an orphaned hold was reclaimed.
        """
        holder = self._holder
        if holder is None or is_active(holder):
            return False
        logger.warning("Reclaiming %s from inactive session %s", self.name, holder)
        self.release()
        return True

    async def capture_frame(self) -> CapturedFrame:
        """Capture a single frame.

        Raises:
            CaptureUnavailableError: If the source is not held, permission
                was revoked, or the source is exhausted.
        """
        if self._holder is None:
            raise CaptureUnavailableError(f"{self.name} is not acquired")
        data, mime_type = await self._grab()
        self._frame_counter += 1
        return CapturedFrame(
            data=data,
            frame_number=self._frame_counter,
            source=self.name,
            mime_type=mime_type,
        )

    @abstractmethod
    def _open(self) -> None:
        """Initialize the underlying device or stream."""
        ...

    @abstractmethod
    def _close(self) -> None:
        """Free the underlying device or stream."""
        ...

    @abstractmethod
    async def _grab(self) -> tuple[bytes, str]:
        """Return (encoded image bytes, mime type) for one frame."""
        ...


class CaptureUnavailableError(WorktrackerError):
    """Raised when a frame cannot be acquired (permission revoked, source
    exhausted, or the source is held by another session)."""
