"""Session lifecycle management."""

from worktracker.session.state import SessionStateMachine

__all__ = ["SessionStateMachine"]
