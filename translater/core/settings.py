"""Settings snapshot for the translator.

Values come from ``TRANSLATER_*`` environment variables (``load_dotenv()``
runs in the FastAPI entry point) and are normalized the same way the
endpoint resolver normalizes them. Nothing is written back to disk.
"""

import os
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog
from dotenv import dotenv_values
from pydantic import BaseModel, Field, ValidationError, model_validator

from translater.agent.models import Options
from translater.agent.prompts import (
    DEFAULT_EXTRACT_PROMPT,
    DEFAULT_TRANSLATE_PROMPT,
    normalize_prompt,
)
from translater.core.endpoints import (
    DEFAULT_BASE_URL,
    DEFAULT_TIMEOUT,
    DEFAULT_TRANSLATE_MODEL,
    DEFAULT_VISION_MODEL,
    ClientConfig,
    normalize_base_url,
    normalize_model,
)
from translater.core.errors import ConfigError

logger = structlog.get_logger(__name__)

ENV_PREFIX = "TRANSLATER_"
DEFAULT_ENV_FILES = (".env", "env", "../.env", "../env")
_KEY_FILE_NAMES = ("API-KEY", "API_KEY", "TRANSLATER_API_KEY")
_TRUE_VALUES = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """User-configurable values, normalized on construction."""
    api_key: str = ""
    api_base_url: str = DEFAULT_BASE_URL
    translate_model: str = DEFAULT_TRANSLATE_MODEL
    vision_model: str = DEFAULT_VISION_MODEL
    vision_api_key: str = ""
    vision_api_base_url: str = ""
    extract_prompt: str = DEFAULT_EXTRACT_PROMPT
    translate_prompt: str = DEFAULT_TRANSLATE_PROMPT
    enable_stream_output: bool = True
    use_vision_for_translation: bool = True
    source_language: str = "auto"
    target_language: str = "zh-CN"
    request_timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)

    @model_validator(mode="after")
    def _apply_defaults(self) -> "Settings":
        self.api_key = self.api_key.strip()
        self.vision_api_key = self.vision_api_key.strip()
        self.api_base_url = normalize_base_url(self.api_base_url)
        if self.vision_api_base_url.strip():
            self.vision_api_base_url = normalize_base_url(self.vision_api_base_url)
        else:
            self.vision_api_base_url = self.api_base_url
        self.translate_model = normalize_model(self.translate_model, DEFAULT_TRANSLATE_MODEL)
        self.vision_model = normalize_model(self.vision_model, DEFAULT_VISION_MODEL)
        self.extract_prompt = normalize_prompt(self.extract_prompt, DEFAULT_EXTRACT_PROMPT)
        self.translate_prompt = normalize_prompt(self.translate_prompt, DEFAULT_TRANSLATE_PROMPT)
        self.source_language = self.source_language.strip() or "auto"
        self.target_language = self.target_language.strip() or "zh-CN"
        return self

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``TRANSLATER_*`` environment variables.

        Raises:
            ConfigError: If a variable holds an unusable value (e.g. a zero timeout).
        """
        env = os.environ
        values: dict[str, Any] = {}
        for name in cls.model_fields:
            raw = env.get(ENV_PREFIX + name.upper())
            if raw is None:
                continue
            if cls.model_fields[name].annotation is bool:
                values[name] = raw.strip().lower() in _TRUE_VALUES
            else:
                values[name] = raw
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise ConfigError(f"invalid {ENV_PREFIX}* environment settings: {e}", stage="init") from e

    def merged(self, update: dict[str, Any]) -> "Settings":
        """Return a new, re-normalized snapshot with ``update`` applied."""
        data = self.model_dump()
        data.update({k: v for k, v in update.items() if v is not None})
        return Settings.model_validate(data)

    def client_config(self, api_key: str | None = None) -> ClientConfig:
        return ClientConfig(
            api_key=api_key if api_key is not None else self.api_key,
            base_url=self.api_base_url,
            translate_model=self.translate_model,
            vision_model=self.vision_model,
            vision_api_key=self.vision_api_key,
            vision_base_url=self.vision_api_base_url,
            timeout=self.request_timeout,
        )

    def options(self) -> Options:
        return Options(
            stream_enabled=self.enable_stream_output,
            use_vision_for_translation=self.use_vision_for_translation,
            source_language=self.source_language,
            target_language=self.target_language,
        )


def read_api_key_from_file(path: str | Path) -> str | None:
    """Read an ``API-KEY=...`` style entry from a dotenv file, if present."""
    path = Path(path)
    if not path.is_file():
        return None
    values = dotenv_values(path)
    for name in _KEY_FILE_NAMES:
        key = (values.get(name) or "").strip()
        if key:
            return key
    return None


def resolve_api_key(settings: Settings, env_files: Iterable[str | Path] = DEFAULT_ENV_FILES) -> str:
    """Resolve the API key: explicit setting first, then key files.

    Raises:
        ConfigError: If no key can be found.
    """
    if settings.api_key:
        return settings.api_key

    for path in env_files:
        key = read_api_key_from_file(path)
        if key:
            logger.info("settings.key_from_file", path=str(path))
            return key

    raise ConfigError("could not load API key from any source", stage="init")
