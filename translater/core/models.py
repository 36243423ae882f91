"""Pydantic models for the OpenAI Chat Completions wire format.

Message content is a tagged union: either a plain string or a list of
typed content parts (text / image_url). Stream chunks keep their delta
content loosely typed because providers emit part types we do not model.
"""

import base64
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from translater.core.errors import ProtocolError


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageURL(BaseModel):
    url: str


class ImageURLPart(BaseModel):
    type: Literal["image_url"] = "image_url"
    image_url: ImageURL

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str) -> "ImageURLPart":
        """Embed raw image bytes as a base64 data URL."""
        encoded = base64.b64encode(data).decode("ascii")
        return cls(image_url=ImageURL(url=f"data:{mime_type};base64,{encoded}"))


ContentPart = Annotated[TextPart | ImageURLPart, Field(discriminator="type")]


class Message(BaseModel):
    """Single chat message. Content is a string or a list of parts, never both."""
    role: Literal["system", "user", "assistant"]
    content: str | list[ContentPart] | None = None


class ChatCompletionRequest(BaseModel):
    model: str
    messages: list[Message]
    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    stream: bool = False

    def to_payload(self) -> dict[str, Any]:
        """JSON body as sent on the wire (unset optionals dropped)."""
        return self.model_dump(mode="json", exclude_none=True)


def _default_if_null(model: type[BaseModel], value: Any, info: ValidationInfo) -> Any:
    """Providers may send JSON null for optional fields; treat it as absent."""
    if value is None:
        return model.model_fields[info.field_name].get_default(call_default_factory=True)
    return value


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @field_validator("prompt_tokens", "completion_tokens", "total_tokens", mode="before")
    @classmethod
    def _null_counts(cls, value: Any, info: ValidationInfo) -> Any:
        return _default_if_null(cls, value, info)


class APIErrorBody(BaseModel):
    code: str | int | None = None
    message: str = ""
    type: str | None = None

    @field_validator("message", mode="before")
    @classmethod
    def _null_message(cls, value: Any, info: ValidationInfo) -> Any:
        return _default_if_null(cls, value, info)


class Choice(BaseModel):
    index: int = 0
    message: Message
    finish_reason: str | None = None

    @field_validator("index", mode="before")
    @classmethod
    def _null_index(cls, value: Any, info: ValidationInfo) -> Any:
        return _default_if_null(cls, value, info)


class ChatCompletionResponse(BaseModel):
    id: str = ""
    object: str = ""
    created: int = 0
    choices: list[Choice] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)
    error: APIErrorBody | None = None

    @field_validator("id", "object", "created", "choices", "usage", mode="before")
    @classmethod
    def _null_fields(cls, value: Any, info: ValidationInfo) -> Any:
        return _default_if_null(cls, value, info)


class StreamDelta(BaseModel):
    role: str | None = None
    content: str | list[Any] | None = None


class StreamChoice(BaseModel):
    index: int = 0
    delta: StreamDelta = Field(default_factory=StreamDelta)
    finish_reason: str | None = None

    @field_validator("index", "delta", mode="before")
    @classmethod
    def _null_fields(cls, value: Any, info: ValidationInfo) -> Any:
        return _default_if_null(cls, value, info)


class StreamChunk(BaseModel):
    """One decoded SSE payload. Never exposed outside the transport."""
    id: str = ""
    object: str = ""
    created: int = 0
    model: str = ""
    choices: list[StreamChoice] = Field(default_factory=list)
    usage: Usage | None = None
    error: APIErrorBody | None = None

    @field_validator("id", "object", "created", "model", "choices", mode="before")
    @classmethod
    def _null_fields(cls, value: Any, info: ValidationInfo) -> Any:
        return _default_if_null(cls, value, info)


def delta_text(content: Any) -> str:
    """Extract the incremental text of one stream delta.

    Strings are used verbatim; for a list of parts the ``text`` of every
    ``type == "text"`` part is concatenated and other part types are skipped.
    Anything else yields an empty string.
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        pieces = []
        for part in content:
            if isinstance(part, dict) and part.get("type") == "text":
                text = part.get("text")
                if isinstance(text, str):
                    pieces.append(text)
        return "".join(pieces)
    return ""


def message_text(content: str | list | None) -> str:
    """Coerce a response message's content to plain text.

    Raises:
        ProtocolError: If the content is null or not a recognised shape.
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        pieces = []
        for part in content:
            if isinstance(part, TextPart):
                pieces.append(part.text)
            elif isinstance(part, ImageURLPart):
                continue
            else:
                raise ProtocolError(f"unsupported content part: {type(part).__name__}")
        return "".join(pieces)
    raise ProtocolError(f"unsupported message content type: {type(content).__name__}")
