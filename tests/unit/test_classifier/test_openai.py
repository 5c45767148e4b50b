"""Tests for the OpenAI-compatible classifier (API client is mocked)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from helpers import PNG_A

from worktracker.classifier.base import ClassifierError
from worktracker.classifier.openai import OpenAIClassifier
from worktracker.domain.models import ActivityType


def _client(content: str | None = None, error: Exception | None = None) -> MagicMock:
    client = MagicMock()
    if error is not None:
        client.chat.completions.create = AsyncMock(side_effect=error)
    else:
        message = MagicMock()
        message.content = content
        response = MagicMock()
        response.choices = [MagicMock(message=message)]
        client.chat.completions.create = AsyncMock(return_value=response)
    return client


class TestOpenAIClassifier:
    @pytest.mark.asyncio
    async def test_classify_sends_data_url(self) -> None:
        classifier = OpenAIClassifier(api_key="sk-test", model="gpt-4o-mini")
        classifier._client = _client('{"app_name": "Chrome", "activity_type": "browsing"}')

        analysis = await classifier.classify(PNG_A, "image/png")

        assert analysis.activity_type is ActivityType.BROWSING
        kwargs = classifier._client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        image_part = kwargs["messages"][1]["content"][0]
        assert image_part["image_url"]["url"].startswith("data:image/png;base64,")

    @pytest.mark.asyncio
    async def test_api_failure_wrapped(self) -> None:
        classifier = OpenAIClassifier(api_key="sk-test")
        classifier._client = _client(error=RuntimeError("401 unauthorized"))
        with pytest.raises(ClassifierError) as exc_info:
            await classifier.classify(PNG_A)
        assert exc_info.value.provider == "openai"

    @pytest.mark.asyncio
    async def test_empty_content_is_parse_error(self) -> None:
        classifier = OpenAIClassifier(api_key="sk-test")
        classifier._client = _client(None)
        with pytest.raises(ClassifierError):
            await classifier.classify(PNG_A)

    @pytest.mark.asyncio
    async def test_health_check_failure(self) -> None:
        classifier = OpenAIClassifier(api_key="sk-test")
        classifier._client = MagicMock()
        classifier._client.models.list = AsyncMock(side_effect=RuntimeError("offline"))
        assert await classifier.health_check() is False
