"""Frame source fed by an in-browser media stream.

The browser owns the screen-share permission (``getDisplayMedia``) and
pushes encoded frames to the tracker, typically through the HTTP
endpoint. The scheduler polls this source like any other: each capture
returns the most recent pushed frame. When the user stops sharing, the
client calls :meth:`StreamCapture.end` and further captures fail with
:class:`CaptureUnavailableError`.
"""

from __future__ import annotations

import asyncio
import logging

from worktracker.capture.base import CaptureUnavailableError, FrameSource
from worktracker.utils.imaging import decode_base64_image, sniff_mime_type

logger = logging.getLogger(__name__)


class StreamCapture(FrameSource):
    """Frame source backed by frames pushed from a remote media stream."""

    name = "stream"

    def __init__(self, frame_timeout: float = 30.0) -> None:
        super().__init__()
        self._frame_timeout = frame_timeout
        self._latest: tuple[bytes, str] | None = None
        self._available = asyncio.Event()
        self._ended = False

    @property
    def has_frame(self) -> bool:
        return self._latest is not None

    def push(self, data: bytes, mime_type: str | None = None) -> None:
        """Offer a new frame; replaces any frame not yet consumed.

        Raises:
            CaptureUnavailableError: If no session holds the stream.
        """
        if self._holder is None:
            raise CaptureUnavailableError("No session is capturing from the stream")
        if not data:
            raise ValueError("Empty frame")
        self._latest = (data, mime_type or sniff_mime_type(data))
        self._available.set()

    def push_base64(self, payload: str) -> None:
        """Offer a base64 (optionally data-URL prefixed) frame."""
        data, mime_type = decode_base64_image(payload)
        self.push(data, mime_type)

    def end(self) -> None:
        """Mark the stream as ended (user stopped sharing)."""
        self._ended = True
        self._available.set()
        logger.info("Media stream ended")

    def _open(self) -> None:
        self._latest = None
        self._ended = False
        self._available = asyncio.Event()

    def _close(self) -> None:
        self._latest = None
        self._ended = True
        self._available.set()

    async def _grab(self) -> tuple[bytes, str]:
        if self._latest is None and not self._ended:
            try:
                await asyncio.wait_for(self._available.wait(), self._frame_timeout)
            except asyncio.TimeoutError as e:
                raise CaptureUnavailableError(
                    f"No frame pushed within {self._frame_timeout:.0f}s"
                ) from e
        if self._ended or self._latest is None:
            raise CaptureUnavailableError("Media stream has ended")
        return self._latest
