"""Domain models and shared errors for worktracker."""

from worktracker.domain.errors import (
    AlreadyRunningError,
    ConflictError,
    InvalidStateError,
    WorktrackerError,
)
from worktracker.domain.models import (
    UNCHANGED_ANALYSIS,
    ActivityShare,
    ActivityType,
    Analysis,
    CapturedFrame,
    DedupDecision,
    PipelineError,
    Sample,
    SampleCaptured,
    Session,
    SessionStatus,
    StateChanged,
    TimelineBucket,
    TrackerEvent,
    TrackerStatus,
)

__all__ = [
    "UNCHANGED_ANALYSIS",
    "ActivityShare",
    "ActivityType",
    "AlreadyRunningError",
    "Analysis",
    "CapturedFrame",
    "ConflictError",
    "DedupDecision",
    "InvalidStateError",
    "PipelineError",
    "Sample",
    "SampleCaptured",
    "Session",
    "SessionStatus",
    "StateChanged",
    "TimelineBucket",
    "TrackerEvent",
    "TrackerStatus",
    "WorktrackerError",
]
