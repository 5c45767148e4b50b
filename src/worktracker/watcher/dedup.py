"""Dedup gate: skip analysis of a screen identical to the previous sample.

Only the immediately preceding fingerprint of each session is kept, so
the number of classifier calls is bounded by the number of screen
changes rather than the number of ticks.
"""

from __future__ import annotations

import logging

from worktracker.domain.models import DedupDecision

logger = logging.getLogger(__name__)


class DedupGate:
    """Tracks the last-seen fingerprint per session."""

    def __init__(self) -> None:
        self._last_seen: dict[str, str | None] = {}

    def last_seen(self, session_id: str) -> str | None:
        return self._last_seen.get(session_id)

    def check(self, session_id: str, fingerprint: str | None) -> DedupDecision:
        """Compare with the previous fingerprint of the session.

        DUPLICATE only if both fingerprints are present and equal;
        otherwise DISTINCT, and the new value becomes the last-seen one.
        """
        previous = self._last_seen.get(session_id)
        if fingerprint is not None and previous is not None and fingerprint == previous:
            logger.debug("Session %s: unchanged screen %s", session_id, fingerprint[:8])
            return DedupDecision.DUPLICATE
        self._last_seen[session_id] = fingerprint
        return DedupDecision.DISTINCT

    def forget(self, session_id: str) -> None:
        """Drop a session's state (e.g. once it is completed)."""
        self._last_seen.pop(session_id, None)
