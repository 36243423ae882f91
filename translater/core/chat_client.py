"""Chat completion client for the translate and vision endpoints.

Builds request bodies for text translation and vision OCR/translation and
sends them through ``ChatTransport`` in blocking or streaming mode.
"""

import threading
from collections.abc import Callable

import structlog

from translater.core.endpoints import ClientConfig, EndpointConfig, resolve_endpoints
from translater.core.models import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    ContentPart,
    ImageURLPart,
    Message,
    TextPart,
)
from translater.core.transport import ChatTransport

logger = structlog.get_logger(__name__)

TRANSLATE_TEMPERATURE = 1.0
VISION_TEMPERATURE = 0.7
TOP_P = 0.9

DeltaCallback = Callable[[str], None]


class ChatCompletionClient:
    """OpenAI-compatible client bound to a translate and a vision endpoint."""

    def __init__(self, translate: EndpointConfig, vision: EndpointConfig,
                 transport: ChatTransport | None = None):
        self.translate_endpoint = translate
        self.vision_endpoint = vision
        self._transport = transport or ChatTransport()

    @classmethod
    def from_config(cls, config: ClientConfig, transport: ChatTransport | None = None) -> "ChatCompletionClient":
        """Resolve both endpoints from a raw config and build a client."""
        translate, vision = resolve_endpoints(config)
        logger.info("client.built", base_url=translate.base_url, translate_model=translate.model,
                    vision_base_url=vision.base_url, vision_model=vision.model)
        return cls(translate, vision, transport or ChatTransport(timeout=config.timeout))

    def close(self) -> None:
        self._transport.close()

    def translate(self, user_message: str, system_prompt: str = "") -> ChatCompletionResponse:
        return self._transport.post(self._translate_request(user_message, system_prompt),
                                    self.translate_endpoint)

    def translate_stream(self, user_message: str, system_prompt: str = "",
                         on_delta: DeltaCallback | None = None,
                         cancel: threading.Event | None = None) -> ChatCompletionResponse:
        return self._transport.stream(self._translate_request(user_message, system_prompt),
                                      self.translate_endpoint, on_delta, cancel)

    def image_to_words(self, user_message: str, image: bytes, mime_type: str = "image/png",
                       system_prompt: str = "") -> ChatCompletionResponse:
        """OCR: ask the vision model for the text in an image."""
        return self._transport.post(self._vision_request(user_message, image, mime_type, system_prompt),
                                    self.vision_endpoint)

    def image_to_translation(self, user_message: str, image: bytes, mime_type: str = "image/png",
                             system_prompt: str = "") -> ChatCompletionResponse:
        """Vision-direct: ask the vision model for the translated text in one call."""
        return self._transport.post(self._vision_request(user_message, image, mime_type, system_prompt),
                                    self.vision_endpoint)

    def image_to_translation_stream(self, user_message: str, image: bytes, mime_type: str = "image/png",
                                    system_prompt: str = "", on_delta: DeltaCallback | None = None,
                                    cancel: threading.Event | None = None) -> ChatCompletionResponse:
        return self._transport.stream(self._vision_request(user_message, image, mime_type, system_prompt),
                                      self.vision_endpoint, on_delta, cancel)

    def _translate_request(self, user_message: str, system_prompt: str) -> ChatCompletionRequest:
        messages = []
        if system_prompt:
            messages.append(Message(role="system", content=system_prompt))
        messages.append(Message(role="user", content=user_message))

        return ChatCompletionRequest(
            model=self.translate_endpoint.model,
            messages=messages,
            temperature=TRANSLATE_TEMPERATURE,
            top_p=TOP_P,
        )

    def _vision_request(self, user_message: str, image: bytes, mime_type: str,
                        system_prompt: str) -> ChatCompletionRequest:
        return ChatCompletionRequest(
            model=self.vision_endpoint.model,
            messages=build_vision_messages(user_message, image, mime_type, system_prompt),
            temperature=VISION_TEMPERATURE,
            top_p=TOP_P,
        )


def build_vision_messages(user_message: str, image: bytes, mime_type: str,
                          system_prompt: str = "") -> list[Message]:
    """Build a multimodal conversation: optional system prompt, then text + image parts.

    A blank user message is left out so the image is the only part.
    """
    messages = []
    if system_prompt:
        messages.append(Message(role="system", content=system_prompt))

    parts: list[ContentPart] = []
    if user_message.strip():
        parts.append(TextPart(text=user_message))
    parts.append(ImageURLPart.from_bytes(image, mime_type))

    messages.append(Message(role="user", content=parts))
    return messages
