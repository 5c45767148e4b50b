"""Abstract base class for screen content classifiers.

A classifier turns one encoded screenshot into an :class:`Analysis`.
Implementations call out to a vision model; the capture pipeline treats
any failure as "no analysis for this sample" and never retries.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod

from worktracker.domain.errors import WorktrackerError
from worktracker.domain.models import ActivityType, Analysis

logger = logging.getLogger(__name__)


ACTIVITY_CHOICES = "|".join(a.value for a in ActivityType)

DEFAULT_SYSTEM_PROMPT = f"""You are a work activity analyst. You are given a screenshot of a user's computer screen.

Identify what the user is working on:
1. The application in the foreground (e.g. VS Code, Chrome, Slack, Zoom)
2. The kind of activity, chosen from: {ACTIVITY_CHOICES}
3. A one-sentence description of the task
4. A more detailed record of the visible content (file names, page titles, topics)
5. A few short tags
6. Your confidence in this classification

Respond ONLY with valid JSON in the following format (no markdown, no explanation):
{{
    "app_name": "...",
    "activity_type": "{ACTIVITY_CHOICES}",
    "description": "...",
    "detailed_content": "..." or null,
    "tags": ["..."],
    "confidence": 0.0 to 1.0
}}
"""


class Classifier(ABC):
    """Abstract interface for screenshot classifiers."""

    def __init__(self, model: str, system_prompt: str | None = None) -> None:
        self._model = model
        self._system_prompt = system_prompt or DEFAULT_SYSTEM_PROMPT

    @property
    def model(self) -> str:
        return self._model

    @abstractmethod
    async def classify(self, image: bytes, mime_type: str = "image/png") -> Analysis:
        """Classify one encoded screenshot.

        Raises:
            ClassifierError: If the provider call or response parsing fails.
        """
        ...

    async def health_check(self) -> bool:
        """Check if the provider is reachable and authenticated."""
        return True

    def _parse_response(self, raw_response: str) -> Analysis:
        """Parse a raw model response string into an Analysis."""
        json_str = raw_response.strip()

        # Remove markdown code block if present
        match = re.search(r"```(?:json)?\s*(.*?)```", json_str, re.DOTALL)
        if match:
            json_str = match.group(1).strip()

        # Try to find JSON object in the text
        brace_match = re.search(r"\{.*\}", json_str, re.DOTALL)
        if brace_match:
            json_str = brace_match.group(0)

        data = None
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError:
            try:
                # Fix invalid escape sequences by replacing lone backslashes
                fixed = re.sub(r'\\(?!["\\/bfnrtu])', r"\\\\", json_str)
                data = json.loads(fixed)
            except json.JSONDecodeError:
                pass

        if not isinstance(data, dict):
            raise ClassifierError(
                "Failed to parse classifier response as JSON",
                provider=type(self).__name__,
                raw_response=raw_response,
            )

        try:
            confidence = float(data.get("confidence", 0.5))
        except (TypeError, ValueError):
            confidence = 0.5
        confidence = max(0.0, min(1.0, confidence))

        tags = data.get("tags") or []
        if not isinstance(tags, (list, tuple)):
            tags = [tags]

        return Analysis(
            app_name=str(data.get("app_name") or ""),
            activity_type=ActivityType.parse(data.get("activity_type", "other")),
            description=str(data.get("description") or ""),
            detailed_content=data.get("detailed_content") or None,
            tags=[str(t) for t in tags],
            confidence=confidence,
            raw_response=raw_response,
        )


class ClassifierError(WorktrackerError):
    """Raised when screenshot classification fails."""

    def __init__(
        self,
        message: str,
        provider: str = "",
        raw_response: str | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.raw_response = raw_response
