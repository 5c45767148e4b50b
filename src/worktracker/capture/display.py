"""Native display capture using mss.

Grabs one monitor, downscales it to the configured bounds and encodes
it with OpenCV. The blocking grab runs in a worker thread so the event
loop stays responsive.
"""

from __future__ import annotations

import asyncio
import logging

import cv2
import mss
import mss.exception
import numpy as np

from worktracker.capture.base import CaptureUnavailableError, FrameSource
from worktracker.utils.imaging import encode_image, fit_within, mime_type_for

logger = logging.getLogger(__name__)


class DisplayCapture(FrameSource):
    """Captures frames from a local display."""

    def __init__(
        self,
        monitor: int = 1,
        max_width: int = 1920,
        max_height: int = 1080,
        image_format: str = "png",
        jpeg_quality: int = 80,
    ) -> None:
        super().__init__()
        self._monitor = monitor
        self._max_width = max_width
        self._max_height = max_height
        self._image_format = image_format
        self._jpeg_quality = jpeg_quality
        self.name = f"display:{monitor}"

    def _open(self) -> None:
        """Check that the configured monitor exists and is readable."""
        try:
            with mss.mss() as sct:
                monitors = sct.monitors
        except mss.exception.ScreenShotError as e:
            raise CaptureUnavailableError(f"Display capture not permitted: {e}") from e
        if self._monitor >= len(monitors):
            raise CaptureUnavailableError(
                f"Monitor {self._monitor} not found ({len(monitors) - 1} available)"
            )
        mon = monitors[self._monitor]
        logger.info(
            "Opened display %d (%dx%d)", self._monitor, mon["width"], mon["height"]
        )

    def _close(self) -> None:
        # mss contexts are per-grab; nothing is kept open between frames
        logger.debug("Closed display %d", self._monitor)

    async def _grab(self) -> tuple[bytes, str]:
        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(None, self._grab_sync)
        return data, mime_type_for(self._image_format)

    def _grab_sync(self) -> bytes:
        """Synchronous grab + encode (runs in thread pool)."""
        try:
            with mss.mss() as sct:
                shot = sct.grab(sct.monitors[self._monitor])
        except (mss.exception.ScreenShotError, IndexError) as e:
            raise CaptureUnavailableError(f"Screen grab failed: {e}") from e
        image = cv2.cvtColor(np.asarray(shot), cv2.COLOR_BGRA2BGR)
        image = fit_within(image, self._max_width, self._max_height)
        return encode_image(image, self._image_format, self._jpeg_quality)
