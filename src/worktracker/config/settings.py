"""Configuration management for worktracker.

Loads settings from a YAML configuration file with environment variable
overrides for sensitive values (API keys). Supports .env files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/worktracker.yaml")
DEFAULT_DATA_DIR = Path.home() / ".worktracker"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class CaptureConfig(BaseModel):
    source: Literal["display", "stream"] = Field(default="display")
    interval_ms: int = Field(default=5000, gt=0)
    monitor: int = Field(default=1, ge=0, description="mss monitor index (0 = all monitors)")
    max_width: int = Field(default=1920, gt=0)
    max_height: int = Field(default=1080, gt=0)
    image_format: Literal["png", "jpeg"] = Field(default="png")
    jpeg_quality: int = Field(default=80, ge=1, le=100)
    frame_timeout: float = Field(default=30.0, gt=0)
    max_samples_per_session: int = Field(default=10000, gt=0)


class ClassifierConfig(BaseModel):
    provider: Literal["openai", "none"] = Field(default="openai")
    model: str = Field(default="gpt-4o-mini")
    base_url: str | None = Field(default=None)
    max_tokens: int = Field(default=1024, gt=0)


class StorageConfig(BaseModel):
    backend: Literal["memory", "sqlite"] = Field(default="sqlite")
    database: Path = Field(default=DEFAULT_DATA_DIR / "worktracker.db")
    screenshots_dir: Path = Field(default=DEFAULT_DATA_DIR / "screenshots")


class TimelineConfig(BaseModel):
    bucket_minutes: int = Field(default=60, gt=0)

    @field_validator("bucket_minutes")
    @classmethod
    def _divides_day(cls, value: int) -> int:
        if (24 * 60) % value:
            raise ValueError("bucket_minutes must evenly divide a day")
        return value


class ServerConfig(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8765, ge=1, le=65535)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for the worktracker system.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "WORKTRACKER_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    owner: str = Field(default="local", description="Owner the sessions are recorded for")

    # API Keys
    openai_api_key: SecretStr = Field(default=SecretStr(""))
    openrouter_api_key: SecretStr = Field(default=SecretStr(""))

    # Configuration sections
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    timeline: TimelineConfig = Field(default_factory=TimelineConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def classifier_credentials(self) -> tuple[str, str | None]:
        """Return the (api_key, base_url) pair for the classifier.

        An OpenRouter key takes precedence and implies the OpenRouter
        base URL unless one is configured explicitly.
        """
        base_url = self.classifier.base_url
        or_key = self.openrouter_api_key.get_secret_value()
        if or_key:
            return or_key, base_url or OPENROUTER_BASE_URL
        return self.openai_api_key.get_secret_value(), base_url


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    # Load .env file manually for non-prefixed vars
    _load_dotenv()

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _load_dotenv() -> None:
    """Load .env file into os.environ if it exists."""
    env_path = Path(".env")
    if not env_path.exists():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip().strip("'\"")
                if not os.environ.get(key):
                    os.environ[key] = value


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply environment variable overrides for non-prefixed vars."""
    openai_key = os.environ.get("OPENAI_API_KEY", "")
    or_key = os.environ.get("OPENROUTER_API_KEY", "")
    vision_model = os.environ.get("VISION_MODEL", "")

    if openai_key and not yaml_data.get("openai_api_key"):
        yaml_data["openai_api_key"] = openai_key
    if or_key:
        yaml_data["openrouter_api_key"] = or_key

    if vision_model:
        classifier = yaml_data.setdefault("classifier", {})
        if not classifier.get("model"):
            classifier["model"] = vision_model
