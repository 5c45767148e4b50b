"""Test doubles and builders shared by the unit tests."""

from __future__ import annotations

from datetime import datetime

from worktracker.capture.base import FrameSource
from worktracker.domain.models import ActivityType, Analysis, Sample

PNG_A = b"\x89PNG\r\n\x1a\n" + b"A" * 32
PNG_B = b"\x89PNG\r\n\x1a\n" + b"B" * 32
PNG_C = b"\x89PNG\r\n\x1a\n" + b"C" * 32


class ScriptedSource(FrameSource):
    """Frame source returning a scripted sequence of frames.

    After the script runs out the last frame repeats. An entry that is
    an exception instance is raised instead of returned.
    """

    name = "scripted"

    def __init__(self, frames: list | None = None, open_error: Exception | None = None) -> None:
        super().__init__()
        self.frames = list(frames or [PNG_A])
        self.open_error = open_error
        self.grabs = 0
        self.opened = 0
        self.closed = 0

    def _open(self) -> None:
        if self.open_error is not None:
            raise self.open_error
        self.opened += 1

    def _close(self) -> None:
        self.closed += 1

    async def _grab(self) -> tuple[bytes, str]:
        index = min(self.grabs, len(self.frames) - 1)
        self.grabs += 1
        item = self.frames[index]
        if isinstance(item, Exception):
            raise item
        return item, "image/png"


def make_analysis(
    activity: ActivityType | str = ActivityType.CODING,
    app: str = "VS Code",
    **kwargs,
) -> Analysis:
    kwargs.setdefault("confidence", 0.9)
    return Analysis(app_name=app, activity_type=activity, description="working", **kwargs)


def make_sample(
    minute: int = 0,
    hour: int = 9,
    analysis: Analysis | None = None,
    session_id: str = "s1",
    index: int = 0,
    day: int = 1,
) -> Sample:
    return Sample(
        id=f"sample-{index}",
        session_id=session_id,
        captured_at=datetime(2025, 1, day, hour, minute, 0),
        locator=f"/tmp/shot-{index}.png",
        fingerprint=f"fp-{index}",
        analysis=analysis,
    )

