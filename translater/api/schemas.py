"""Pydantic models for the API layer.

Defines request/response schemas for all endpoints.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class TextTranslationRequest(BaseModel):
    """Text typed by the user."""
    text: str = Field(..., min_length=1, max_length=10000, description="Text to translate")


class ScreenshotRequest(BaseModel):
    """Two corners of the screen region to translate, in any order."""
    start_x: int
    start_y: int
    end_x: int
    end_y: int


class TranslationResponse(BaseModel):
    """Outgoing translation result."""
    original_text: str
    translated_text: str
    source: Literal["manual", "screenshot"]
    timestamp: datetime
    duration_ms: int
    text_detected: bool = True


class NoTextResponse(BaseModel):
    """Screenshot contained no recognizable text."""
    source: Literal["screenshot"] = "screenshot"
    text_detected: bool = False


class SettingsUpdate(BaseModel):
    """Partial settings update; omitted fields keep their current value."""
    api_key: str | None = None
    api_base_url: str | None = None
    translate_model: str | None = None
    vision_model: str | None = None
    vision_api_key: str | None = None
    vision_api_base_url: str | None = None
    extract_prompt: str | None = None
    translate_prompt: str | None = None
    enable_stream_output: bool | None = None
    use_vision_for_translation: bool | None = None
    source_language: str | None = None
    target_language: str | None = None
    request_timeout: float | None = Field(default=None, gt=0)


class SettingsResponse(BaseModel):
    """Current settings; API keys are reported as set/unset only."""
    api_key_set: bool
    vision_api_key_set: bool
    api_base_url: str
    translate_model: str
    vision_model: str
    vision_api_base_url: str
    extract_prompt: str
    translate_prompt: str
    enable_stream_output: bool
    use_vision_for_translation: bool
    source_language: str
    target_language: str
    request_timeout: float


class CancelResponse(BaseModel):
    """Number of running translations that were asked to stop."""
    cancelled: int
