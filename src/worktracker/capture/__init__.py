"""Frame sources for worktracker.

Provides an abstract frame source with exclusive-hold bookkeeping and two
interchangeable implementations: native display capture and frames
pushed from an in-browser media stream.

Public API:
    FrameSource -- Abstract base class
    CaptureUnavailableError -- Frame acquisition failed
    StreamCapture -- Frames pushed by a browser client
    DisplayCapture -- mss-based display capture
"""

from worktracker.capture.base import CaptureUnavailableError, FrameSource
from worktracker.capture.stream import StreamCapture

__all__ = ["FrameSource", "CaptureUnavailableError", "StreamCapture", "DisplayCapture"]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "DisplayCapture":
        from worktracker.capture.display import DisplayCapture
        return DisplayCapture
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
