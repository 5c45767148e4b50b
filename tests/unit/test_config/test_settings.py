"""Tests for configuration loading."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from worktracker.config.settings import (
    OPENROUTER_BASE_URL,
    Settings,
    TimelineConfig,
    load_settings,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate tests from the developer's environment and .env file."""
    for var in ("OPENAI_API_KEY", "OPENROUTER_API_KEY", "VISION_MODEL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


class TestDefaults:
    def test_default_values(self) -> None:
        settings = Settings()
        assert settings.owner == "local"
        assert settings.capture.interval_ms == 5000
        assert settings.capture.source == "display"
        assert settings.classifier.model == "gpt-4o-mini"
        assert settings.storage.backend == "sqlite"
        assert settings.timeline.bucket_minutes == 60
        assert settings.server.port == 8765

    def test_interval_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            Settings(capture={"interval_ms": 0})

    def test_bucket_must_divide_a_day(self) -> None:
        assert TimelineConfig(bucket_minutes=15).bucket_minutes == 15
        with pytest.raises(ValidationError):
            TimelineConfig(bucket_minutes=7)


class TestLoadSettings:
    def test_missing_file_uses_defaults(self, tmp_path) -> None:
        settings = load_settings(tmp_path / "missing.yaml")
        assert settings.capture.interval_ms == 5000

    def test_yaml_values_are_applied(self, tmp_path) -> None:
        path = tmp_path / "worktracker.yaml"
        path.write_text(
            "owner: alice\n"
            "capture:\n  interval_ms: 2000\n  source: stream\n"
            "storage:\n  backend: memory\n"
            "timeline:\n  bucket_minutes: 30\n"
        )
        settings = load_settings(path)
        assert settings.owner == "alice"
        assert settings.capture.interval_ms == 2000
        assert settings.capture.source == "stream"
        assert settings.storage.backend == "memory"
        assert settings.timeline.bucket_minutes == 30

    def test_env_api_key_and_model(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("VISION_MODEL", "gpt-4o")
        settings = load_settings(tmp_path / "missing.yaml")
        assert settings.openai_api_key.get_secret_value() == "sk-test"
        assert settings.classifier.model == "gpt-4o"

    def test_prefixed_env_overrides_nested(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("WORKTRACKER_CAPTURE__INTERVAL_MS", "750")
        settings = load_settings(tmp_path / "missing.yaml")
        assert settings.capture.interval_ms == 750

    def test_dotenv_is_read(self, tmp_path, monkeypatch) -> None:
        # Empty value counts as unset; monkeypatch restores it afterwards
        monkeypatch.setenv("OPENAI_API_KEY", "")
        (tmp_path / ".env").write_text("# keys\nOPENAI_API_KEY='sk-dotenv'\n")
        settings = load_settings(tmp_path / "missing.yaml")
        assert settings.openai_api_key.get_secret_value() == "sk-dotenv"

class TestClassifierCredentials:
    def test_openai_key(self) -> None:
        settings = Settings(openai_api_key="sk-openai")
        assert settings.classifier_credentials() == ("sk-openai", None)

    def test_openrouter_takes_precedence(self) -> None:
        settings = Settings(openai_api_key="sk-openai", openrouter_api_key="sk-or")
        assert settings.classifier_credentials() == ("sk-or", OPENROUTER_BASE_URL)

    def test_explicit_base_url_wins(self) -> None:
        settings = Settings(
            openrouter_api_key="sk-or", classifier={"base_url": "http://localhost:1234/v1"}
        )
        assert settings.classifier_credentials() == ("sk-or", "http://localhost:1234/v1")
