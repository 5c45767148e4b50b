"""Shared test fixtures for the worktracker test suite.

Provides common fixtures used across unit tests: a scripted frame
source, in-memory storage, a local image store rooted in tmp_path and
a mock classifier.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from helpers import PNG_A, PNG_B, ScriptedSource, make_analysis

from worktracker.capture.base import CaptureUnavailableError
from worktracker.events import EventBus
from worktracker.storage.images import LocalImageStore
from worktracker.storage.memory import InMemoryStorage


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def images(tmp_path) -> LocalImageStore:
    return LocalImageStore(tmp_path / "screenshots")


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def source() -> ScriptedSource:
    return ScriptedSource([PNG_A, PNG_B])


@pytest.fixture
def unavailable_source() -> ScriptedSource:
    return ScriptedSource(open_error=CaptureUnavailableError("permission denied"))


@pytest.fixture
def mock_classifier() -> AsyncMock:
    """A mock Classifier returning a fixed coding analysis."""
    mock = AsyncMock()
    mock.model = "mock-model"
    mock.classify.return_value = make_analysis()
    return mock
