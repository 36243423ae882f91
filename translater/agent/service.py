"""Translation orchestrator.

Sequences capture -> extract -> translate (relay mode) or capture -> direct
vision translation (vision-direct mode), each either synchronously or
streamed to a registered handler. The two axes are combined into a
``PipelineState`` and dispatched through ``SCREENSHOT_PIPELINES``.

Calls run on the caller's thread. Mutable state (prompts, options, client
config, stream handler) is guarded by one lock; each call takes a snapshot
before doing any I/O.
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

import structlog

from translater.agent.models import (
    Options,
    ScreenshotTranslationResult,
    TextTranslationResult,
    new_bounds,
)
from translater.agent.prompts import (
    DEFAULT_EXTRACT_PROMPT,
    DEFAULT_TRANSLATE_PROMPT,
    PromptVariables,
    build_vision_direct_translation_prompt,
    normalize_prompt,
    process_extract_prompt,
    process_translate_prompt,
)
from translater.core.capture import CaptureService
from translater.core.chat_client import ChatCompletionClient
from translater.core.endpoints import ClientConfig
from translater.core.errors import (
    CaptureError,
    EmptyResultError,
    StreamCancelledError,
    TranslaterError,
)
from translater.core.models import ChatCompletionResponse, message_text

logger = structlog.get_logger(__name__)

IMAGE_MIME = "image/png"
STAGE_CAPTURE = "capture"
STAGE_EXTRACT = "extract"
STAGE_TRANSLATE = "translate"

StreamHandler = Callable[[str, str], None]
ClientFactory = Callable[[ClientConfig], ChatCompletionClient]


class Mode(str, Enum):
    RELAY = "relay"
    VISION_DIRECT = "vision_direct"


class Delivery(str, Enum):
    SYNC = "sync"
    STREAM = "stream"


@dataclass(frozen=True)
class PipelineState:
    mode: Mode
    delivery: Delivery


@dataclass(frozen=True)
class _Snapshot:
    """Consistent view of the service state for one call."""
    client: ChatCompletionClient
    options: Options
    extract_prompt: str
    translate_prompt: str
    state: PipelineState

    @property
    def variables(self) -> PromptVariables:
        return PromptVariables(
            source_language=self.options.source_language,
            target_language=self.options.target_language,
            use_vision_for_translation=self.options.use_vision_for_translation,
        )


class TranslationService:
    """Runs screenshot and text translations against a chat completion client."""

    def __init__(
        self,
        client_config: ClientConfig,
        capture: CaptureService,
        extract_prompt: str = "",
        translate_prompt: str = "",
        options: Options | None = None,
        client_factory: ClientFactory = ChatCompletionClient.from_config,
    ):
        self._lock = threading.Lock()
        self._capture = capture
        self._client_factory = client_factory
        self._client_config = client_config
        self._client: ChatCompletionClient | None = None
        self._client_key: tuple | None = None
        self._extract_prompt = normalize_prompt(extract_prompt, DEFAULT_EXTRACT_PROMPT)
        self._translate_prompt = normalize_prompt(translate_prompt, DEFAULT_TRANSLATE_PROMPT)
        self._options = options or Options()
        self._stream_handler: StreamHandler | None = None

    # Reconfiguration

    def update_prompts(self, extract: str, translate: str) -> None:
        with self._lock:
            self._extract_prompt = normalize_prompt(extract, DEFAULT_EXTRACT_PROMPT)
            self._translate_prompt = normalize_prompt(translate, DEFAULT_TRANSLATE_PROMPT)

    def update_options(self, options: Options) -> None:
        with self._lock:
            self._options = options

    def update_client_config(self, config: ClientConfig) -> None:
        """Swap endpoint settings; the client is rebuilt lazily if they changed."""
        with self._lock:
            self._client_config = config

    def set_stream_handler(self, handler: StreamHandler | None) -> None:
        with self._lock:
            self._stream_handler = handler

    @property
    def options(self) -> Options:
        with self._lock:
            return self._options

    # Operations

    def process_screenshot_detailed(self, start_x: int, start_y: int, end_x: int, end_y: int,
                                    cancel: threading.Event | None = None
                                    ) -> ScreenshotTranslationResult:
        """Capture a region and translate its text.

        Args:
            start_x, start_y, end_x, end_y: Two corners of the region, in any order.
            cancel: Optional event; setting it aborts a streamed request and
                skips any stage not yet started.

        Returns:
            Result with extracted/translated text, the processed prompts,
            normalized bounds and elapsed time.

        Raises:
            TranslaterError: Stage-tagged failure (capture, extract or translate).
        """
        started = time.monotonic()
        snapshot = self._snapshot()
        result = ScreenshotTranslationResult(bounds=new_bounds(start_x, start_y, end_x, end_y))

        try:
            image = self._capture_region(start_x, start_y, end_x, end_y)

            variables = snapshot.variables
            result.extract_prompt = process_extract_prompt(snapshot.extract_prompt, variables)
            result.translate_prompt = process_translate_prompt(snapshot.translate_prompt, variables)

            logger.info("service.screenshot", mode=snapshot.state.mode.value,
                        delivery=snapshot.state.delivery.value, bounds=result.bounds.to_dict())
            pipeline = SCREENSHOT_PIPELINES[snapshot.state]
            pipeline(self, snapshot, image, result, cancel)
        except TranslaterError as e:
            result.elapsed = timedelta(seconds=time.monotonic() - started)
            e.partial_result = result
            raise
        result.elapsed = timedelta(seconds=time.monotonic() - started)

        logger.info("service.screenshot_done", elapsed_ms=int(result.elapsed.total_seconds() * 1000),
                    extracted_chars=len(result.extracted_text),
                    translated_chars=len(result.translated_text))
        return result

    def translate_text(self, text: str, cancel: threading.Event | None = None) -> TextTranslationResult:
        """Translate plain text with the translate endpoint.

        Raises:
            EmptyResultError: If the input is blank.
            TranslaterError: Stage-tagged transport/API failure.
        """
        if not text.strip():
            raise EmptyResultError("text to translate must not be empty", stage=STAGE_TRANSLATE)

        started = time.monotonic()
        snapshot = self._snapshot()
        prompt = process_translate_prompt(snapshot.translate_prompt, snapshot.variables)

        logger.info("service.text", delivery=snapshot.state.delivery.value, chars=len(text))
        translate = TEXT_TRANSLATORS[snapshot.state.delivery]
        translated = translate(self, snapshot, text, prompt, cancel)
        elapsed = timedelta(seconds=time.monotonic() - started)

        return TextTranslationResult(
            original_text=text,
            translated_text=translated,
            translate_prompt=prompt,
            elapsed=elapsed,
        )

    # Stages

    def _capture_region(self, start_x: int, start_y: int, end_x: int, end_y: int) -> bytes:
        try:
            return self._capture.capture_to_bytes(start_x, start_y, end_x, end_y)
        except Exception as e:
            logger.error("service.capture_failed", error=str(e))
            raise CaptureError(f"screenshot failed: {e}", stage=STAGE_CAPTURE) from e

    def _extract(self, snapshot: _Snapshot, image: bytes, prompt: str) -> str:
        with _stage(STAGE_EXTRACT):
            response = snapshot.client.image_to_words(prompt, image, IMAGE_MIME)
            return _first_text(response, "text extraction returned no choices")

    def _forward_delta(self, text: str) -> None:
        with self._lock:
            handler = self._stream_handler if self._options.stream_enabled else None
        if handler is not None:
            handler(STAGE_TRANSLATE, text)

    # Internals

    def _snapshot(self) -> _Snapshot:
        with self._lock:
            client = self._ensure_client()
            options = self._options
            streaming = options.stream_enabled and self._stream_handler is not None
            state = PipelineState(
                mode=Mode.VISION_DIRECT if options.use_vision_for_translation else Mode.RELAY,
                delivery=Delivery.STREAM if streaming else Delivery.SYNC,
            )
            return _Snapshot(
                client=client,
                options=options,
                extract_prompt=self._extract_prompt,
                translate_prompt=self._translate_prompt,
                state=state,
            )

    def _ensure_client(self) -> ChatCompletionClient:
        # Caller holds self._lock
        key = self._client_config.cache_key()
        if self._client is None or key != self._client_key:
            logger.info("service.client_rebuild", first=self._client is None)
            self._client = self._client_factory(self._client_config)
            self._client_key = key
        return self._client


class _stage:
    """Tags any TranslaterError raised inside the block with a stage name."""

    def __init__(self, stage: str):
        self.stage = stage

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if isinstance(exc, TranslaterError):
            exc.at_stage(self.stage)
            logger.error("service.stage_failed", stage=exc.stage, error=exc.message,
                         error_type=exc_type.__name__)
        return False


def _first_text(response: ChatCompletionResponse, empty_message: str) -> str:
    if not response.choices:
        raise EmptyResultError(empty_message)
    return message_text(response.choices[0].message.content)


def _check_cancelled(cancel: threading.Event | None, stage: str) -> None:
    if cancel is not None and cancel.is_set():
        logger.info("service.cancelled", stage=stage)
        raise StreamCancelledError("translation cancelled", stage=stage)


# Text translators, one per delivery

def _translate_sync(service: TranslationService, snapshot: _Snapshot, text: str, prompt: str,
                    cancel: threading.Event | None) -> str:
    _check_cancelled(cancel, STAGE_TRANSLATE)
    with _stage(STAGE_TRANSLATE):
        response = snapshot.client.translate(text, prompt)
        return _first_text(response, "translation returned no choices")


def _translate_stream(service: TranslationService, snapshot: _Snapshot, text: str, prompt: str,
                      cancel: threading.Event | None) -> str:
    _check_cancelled(cancel, STAGE_TRANSLATE)
    with _stage(STAGE_TRANSLATE):
        response = snapshot.client.translate_stream(text, prompt, on_delta=service._forward_delta,
                                                    cancel=cancel)
        return _first_text(response, "translation returned no choices")


TextTranslator = Callable[[TranslationService, _Snapshot, str, str, threading.Event | None], str]

TEXT_TRANSLATORS: dict[Delivery, TextTranslator] = {
    Delivery.SYNC: _translate_sync,
    Delivery.STREAM: _translate_stream,
}


# Screenshot pipelines, one per (mode, delivery) combination

def _vision_direct_sync(service: TranslationService, snapshot: _Snapshot, image: bytes,
                        result: ScreenshotTranslationResult, cancel: threading.Event | None) -> None:
    prompt = build_vision_direct_translation_prompt(snapshot.variables)
    _check_cancelled(cancel, STAGE_TRANSLATE)
    with _stage(STAGE_TRANSLATE):
        response = snapshot.client.image_to_translation(prompt, image, IMAGE_MIME)
        result.translated_text = _first_text(response, "vision translation returned no choices")


def _vision_direct_stream(service: TranslationService, snapshot: _Snapshot, image: bytes,
                          result: ScreenshotTranslationResult, cancel: threading.Event | None) -> None:
    prompt = build_vision_direct_translation_prompt(snapshot.variables)
    _check_cancelled(cancel, STAGE_TRANSLATE)
    with _stage(STAGE_TRANSLATE):
        response = snapshot.client.image_to_translation_stream(
            prompt, image, IMAGE_MIME, on_delta=service._forward_delta, cancel=cancel)
        result.translated_text = _first_text(response, "vision translation returned no choices")


def _relay(translate: TextTranslator) -> "Pipeline":
    """Build an OCR-then-translate pipeline around one text translator."""

    def pipeline(service: TranslationService, snapshot: _Snapshot, image: bytes,
                 result: ScreenshotTranslationResult, cancel: threading.Event | None) -> None:
        _check_cancelled(cancel, STAGE_EXTRACT)
        result.extracted_text = service._extract(snapshot, image, result.extract_prompt)
        if not result.extracted_text.strip():
            logger.info("service.ocr_empty")
            return
        result.translated_text = translate(service, snapshot, result.extracted_text,
                                           result.translate_prompt, cancel)

    return pipeline


Pipeline = Callable[[TranslationService, _Snapshot, bytes, ScreenshotTranslationResult,
                     threading.Event | None], None]

SCREENSHOT_PIPELINES: dict[PipelineState, Pipeline] = {
    PipelineState(Mode.VISION_DIRECT, Delivery.SYNC): _vision_direct_sync,
    PipelineState(Mode.VISION_DIRECT, Delivery.STREAM): _vision_direct_stream,
    PipelineState(Mode.RELAY, Delivery.SYNC): _relay(_translate_sync),
    PipelineState(Mode.RELAY, Delivery.STREAM): _relay(_translate_stream),
}
