"""Exception hierarchy shared by the session and capture layers."""

from __future__ import annotations


class WorktrackerError(Exception):
    """Base class for all worktracker errors."""


class ConflictError(WorktrackerError):
    """Raised when a second active session is requested for the same owner."""


class InvalidStateError(WorktrackerError):
    """Raised on an illegal session lifecycle transition."""

    def __init__(self, message: str, current: object = None) -> None:
        super().__init__(message)
        self.current = current


class AlreadyRunningError(WorktrackerError):
    """Raised when a scheduler is attached to a session that already has one."""


class SampleLimitError(WorktrackerError):
    """Raised when a session reaches its per-session sample cap."""
