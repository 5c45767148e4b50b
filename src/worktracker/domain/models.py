"""Core domain models for the worktracker system.

These models represent the data flowing through the capture pipeline:
frames grabbed from a frame source, work sessions and their samples,
classifier analyses, derived timeline buckets, and the notifications
emitted to the host layer.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class SessionStatus(str, enum.Enum):
    """Lifecycle state of a work session."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"  # Terminal


class ActivityType(str, enum.Enum):
    """Closed set of activity labels a classifier may assign."""

    CODING = "coding"
    BROWSING = "browsing"
    DOCUMENTATION = "documentation"
    COMMUNICATION = "communication"
    MEETING = "meeting"
    DESIGN = "design"
    ENTERTAINMENT = "entertainment"
    OTHER = "other"

    @classmethod
    def parse(cls, value: object) -> ActivityType:
        """Map a free-form label onto the enumeration, defaulting to OTHER."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


class DedupDecision(str, enum.Enum):
    """Outcome of comparing a fingerprint with the previous one."""

    DUPLICATE = "duplicate"
    DISTINCT = "distinct"


# ---------------------------------------------------------------------------
# Capture Models
# ---------------------------------------------------------------------------


class CapturedFrame(BaseModel):
    """A single encoded screen image grabbed from a frame source."""

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(description="Encoded image bytes (PNG or JPEG)")
    captured_at: datetime = Field(default_factory=datetime.now)
    frame_number: int = Field(ge=0, description="Sequential frame counter")
    source: str = Field(default="display", description="Identifier of the frame source")
    mime_type: str = Field(default="image/png")


# ---------------------------------------------------------------------------
# Session / Sample / Analysis
# ---------------------------------------------------------------------------


class Analysis(BaseModel):
    """Structured classification of one sample's screen content."""

    model_config = ConfigDict(frozen=True)

    app_name: str = Field(default="", description="Application in the foreground")
    activity_type: ActivityType = Field(default=ActivityType.OTHER)
    description: str = Field(default="", description="Short description of the activity")
    detailed_content: str | None = Field(
        default=None, description="Optional long-form record of what is on screen"
    )
    tags: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    raw_response: str | None = Field(
        default=None, description="Raw provider payload kept for audit"
    )

    @field_validator("activity_type", mode="before")
    @classmethod
    def _coerce_activity(cls, value: object) -> ActivityType:
        return ActivityType.parse(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _dedupe_tags(cls, value: object) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        seen: list[str] = []
        for tag in value:
            tag = str(tag).strip()
            if tag and tag not in seen:
                seen.append(tag)
        return seen


UNCHANGED_DESCRIPTION = "unchanged since previous sample"

UNCHANGED_ANALYSIS = Analysis(
    app_name="",
    activity_type=ActivityType.OTHER,
    description=UNCHANGED_DESCRIPTION,
    tags=[],
    confidence=1.0,
)


class Session(BaseModel):
    """One bounded period of observation."""

    id: str
    owner: str = Field(default="local")
    status: SessionStatus = Field(default=SessionStatus.ACTIVE)
    started_at: datetime = Field(default_factory=datetime.now)
    ended_at: datetime | None = None
    sample_count: int = Field(default=0, ge=0)

    @property
    def is_active(self) -> bool:
        return self.status is SessionStatus.ACTIVE

    def duration_minutes(self, now: datetime | None = None) -> float:
        """Elapsed minutes, up to ``ended_at`` or ``now`` for a running session."""
        end = self.ended_at or now or datetime.now(self.started_at.tzinfo)
        return max(0.0, (end - self.started_at).total_seconds() / 60.0)


class Sample(BaseModel):
    """One captured screen image plus metadata."""

    id: str
    session_id: str
    captured_at: datetime
    locator: str = Field(description="Opaque storage locator of the image")
    fingerprint: str | None = Field(
        default=None, description="Content hash; None when no dedup check was possible"
    )
    analysis: Analysis | None = None


class TimelineBucket(BaseModel):
    """A fixed time window summarized into one dominant activity/app pair."""

    model_config = ConfigDict(frozen=True)

    label: str
    samples: list[Sample] = Field(default_factory=list)
    dominant_activity: ActivityType = Field(default=ActivityType.OTHER)
    dominant_app: str = ""


class ActivityShare(BaseModel):
    """Estimated time spent on one activity type within a session."""

    model_config = ConfigDict(frozen=True)

    activity_type: ActivityType
    samples: int = Field(ge=0)
    duration_minutes: float = Field(ge=0.0)
    percentage: float = Field(ge=0.0, le=100.0)


class TrackerStatus(BaseModel):
    """Snapshot of the tracker exposed to the host layer."""

    is_active: bool = False
    sample_count: int = 0
    session_id: str | None = None
    status: SessionStatus | None = None
    duration_minutes: float = 0.0


# ---------------------------------------------------------------------------
# Events (discriminated union)
# ---------------------------------------------------------------------------


class SampleCaptured(BaseModel):
    """A sample was persisted for the current session."""

    model_config = ConfigDict(frozen=True)

    event_type: Literal["sample_captured"] = "sample_captured"
    session_id: str
    locator: str
    timestamp: datetime


class StateChanged(BaseModel):
    """The session moved to a new lifecycle state."""

    model_config = ConfigDict(frozen=True)

    event_type: Literal["state_changed"] = "state_changed"
    session_id: str
    status: SessionStatus


class PipelineError(BaseModel):
    """A non-fatal degradation (classifier, storage) or a stopped scheduler."""

    model_config = ConfigDict(frozen=True)

    event_type: Literal["error"] = "error"
    session_id: str | None = None
    source: str = Field(description="Component that reported the error")
    message: str


TrackerEvent = Annotated[
    Union[SampleCaptured, StateChanged, PipelineError],
    Field(discriminator="event_type"),
]
