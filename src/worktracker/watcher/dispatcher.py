"""Analysis dispatcher: decide how a persisted sample gets its analysis."""

from __future__ import annotations

import asyncio
import logging

from worktracker.classifier.base import Classifier
from worktracker.domain.models import (
    UNCHANGED_ANALYSIS,
    Analysis,
    CapturedFrame,
    DedupDecision,
    PipelineError,
    Sample,
)
from worktracker.events import EventBus
from worktracker.session.state import SessionStateMachine
from worktracker.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class AnalysisDispatcher:
    """Attaches an analysis to each sample.

    Duplicates get the fixed "unchanged" analysis without touching the
    classifier. Distinct frames are classified; a classifier failure
    leaves the sample unanalyzed and never fails the capture pipeline.
    """

    def __init__(
        self,
        storage: StorageBackend,
        classifier: Classifier | None,
        state: SessionStateMachine,
        events: EventBus | None = None,
    ) -> None:
        self._storage = storage
        self._classifier = classifier
        self._state = state
        self._events = events

    async def dispatch(
        self, sample: Sample, frame: CapturedFrame, decision: DedupDecision
    ) -> Analysis | None:
        """Attach and return the sample's analysis, or None if it has none.

        Raises:
            StorageError: If the analysis cannot be saved.
        """
        if decision is DedupDecision.DUPLICATE:
            await self._storage.save_analysis(sample.id, UNCHANGED_ANALYSIS)
            return UNCHANGED_ANALYSIS

        if self._classifier is None:
            return None
        if not self._state.is_active(sample.session_id):
            logger.info("Session %s no longer active, sample %s left unanalyzed",
                        sample.session_id, sample.id)
            return None

        try:
            analysis = await self._classifier.classify(frame.data, frame.mime_type)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Classification failed for sample %s: %s", sample.id, e)
            if self._events is not None:
                self._events.publish(PipelineError(
                    session_id=sample.session_id,
                    source="classifier",
                    message=str(e),
                ))
            return None

        await self._storage.save_analysis(sample.id, analysis)
        logger.debug("Sample %s: %s (%s)", sample.id,
                     analysis.activity_type.value, analysis.app_name or "unknown app")
        return analysis
