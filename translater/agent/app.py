"""Application facade: settings + translation service + event sink.

Owns the current settings snapshot, lazily (re)configures the translation
service, and reports every step to the event sink so a frontend can follow
progress and streamed partial translations.
"""

import threading
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

import structlog

from translater.agent.service import TranslationService
from translater.core import events
from translater.core.capture import CaptureService
from translater.core.errors import ConfigError, EmptyResultError, TranslaterError
from translater.core.events import EventSink
from translater.core.settings import DEFAULT_ENV_FILES, Settings, resolve_api_key

logger = structlog.get_logger(__name__)


class TranslationBusyError(TranslaterError):
    """A screenshot translation is already running."""
    pass


@dataclass
class UITranslationResult:
    original_text: str
    translated_text: str
    source: str
    timestamp: datetime
    duration_ms: int

    def to_dict(self) -> dict:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


class TranslaterApp:
    """Wires settings, the translation service and the event sink together.

    Settings swaps and service reconfiguration happen under one lock, so
    concurrent updates are applied one at a time against the latest snapshot.
    """

    def __init__(self, settings: Settings, capture: CaptureService, sink: EventSink,
                 env_files=DEFAULT_ENV_FILES, service_factory=TranslationService):
        self._settings = settings
        self._capture = capture
        self._sink = sink
        self._env_files = env_files
        self._service_factory = service_factory
        self._service: TranslationService | None = None
        self._lock = threading.Lock()
        self._screenshot_active = False
        self._active_cancels: set[threading.Event] = set()

    @property
    def settings(self) -> Settings:
        with self._lock:
            return self._settings

    @property
    def ready(self) -> bool:
        return self._service is not None

    def start(self) -> None:
        """Build the service at startup and report whether a key is configured."""
        try:
            self.ensure_service()
        except ConfigError as e:
            self._sink.emit(events.CONFIG_MISSING_KEY, {"message": str(e)})
            logger.warning("app.missing_api_key")
        else:
            self._sink.emit(events.CONFIG_READY, {"message": "translation service ready"})

    def ensure_service(self) -> TranslationService:
        """Return the service, configured from the current settings.

        Raises:
            ConfigError: If no API key can be resolved.
        """
        with self._lock:
            settings = self._settings
            api_key = resolve_api_key(settings, self._env_files)

            if self._service is None:
                self._service = self._service_factory(
                    settings.client_config(api_key),
                    self._capture,
                    extract_prompt=settings.extract_prompt,
                    translate_prompt=settings.translate_prompt,
                    options=settings.options(),
                )
                self._service.set_stream_handler(self._on_stream)
                logger.info("app.service_created")
            else:
                self._service.update_client_config(settings.client_config(api_key))
                self._service.update_prompts(settings.extract_prompt, settings.translate_prompt)
                self._service.update_options(settings.options())
            return self._service

    def apply_settings(self, update: dict) -> Settings:
        """Merge a partial settings update and reconfigure the service."""
        with self._lock:
            self._settings = self._settings.merged(update)
            settings = self._settings
        logger.info("app.settings_updated", fields=sorted(k for k, v in update.items() if v is not None))
        self._sink.emit(events.SETTINGS_UPDATED, public_settings(settings))

        try:
            self.ensure_service()
        except ConfigError as e:
            self._sink.emit(events.CONFIG_MISSING_KEY, {"message": str(e)})
        else:
            self._sink.emit(events.CONFIG_READY, {"message": "translation service updated"})
        return settings

    def cancel_active(self) -> int:
        """Cancel every running translation; returns how many were signalled."""
        with self._lock:
            pending = list(self._active_cancels)
        for cancel in pending:
            cancel.set()
        logger.info("app.cancel_requested", running=len(pending))
        return len(pending)

    def translate_text(self, text: str, cancel: threading.Event | None = None) -> UITranslationResult:
        trimmed = text.strip()
        if not trimmed:
            raise EmptyResultError("please enter text to translate", stage="translate")

        service = self._service_or_report()
        self._sink.emit(events.TRANSLATION_STARTED, {"source": "manual"})
        with self._tracked(cancel) as cancel:
            try:
                result = service.translate_text(trimmed, cancel=cancel)
            except TranslaterError as e:
                self._report_error(e, "translate")
                raise

        ui_result = UITranslationResult(
            original_text=result.original_text,
            translated_text=result.translated_text,
            source="manual",
            timestamp=datetime.now(timezone.utc),
            duration_ms=int(result.elapsed.total_seconds() * 1000),
        )
        self._sink.emit(events.TRANSLATION_RESULT, ui_result.to_dict())
        return ui_result

    def translate_screenshot(self, start_x: int, start_y: int, end_x: int, end_y: int,
                             cancel: threading.Event | None = None) -> UITranslationResult | None:
        """Translate a screen region.

        Returns:
            The result, or None when no text was detected.
        """
        service = self._service_or_report()

        with self._lock:
            if self._screenshot_active:
                raise TranslationBusyError("a screenshot translation is already running",
                                           stage="capture")
            self._screenshot_active = True

        try:
            with self._tracked(cancel) as cancel:
                return self._run_screenshot(service, start_x, start_y, end_x, end_y, cancel)
        finally:
            with self._lock:
                self._screenshot_active = False
            self._sink.emit(events.TRANSLATION_IDLE)

    def _run_screenshot(self, service: TranslationService, start_x: int, start_y: int,
                        end_x: int, end_y: int, cancel: threading.Event
                        ) -> UITranslationResult | None:
        vision_direct = service.options.use_vision_for_translation
        self._sink.emit(events.TRANSLATION_STARTED, {"source": "screenshot"})
        if vision_direct:
            self._sink.emit(events.TRANSLATION_PROGRESS, {"stage": "translate", "message": "translating image..."})
        else:
            self._sink.emit(events.TRANSLATION_PROGRESS, {"stage": "ocr", "message": "recognizing text..."})

        try:
            result = service.process_screenshot_detailed(start_x, start_y, end_x, end_y, cancel=cancel)
        except TranslaterError as e:
            self._report_error(e, "screenshot")
            raise

        if not vision_direct and not result.extracted_text.strip():
            self._sink.emit(events.TRANSLATION_PROGRESS, {"stage": "ocr", "message": "no text detected"})
            return None

        if not result.translated_text.strip():
            error = EmptyResultError("translation result is empty", stage="translate")
            self._report_error(error, "translate")
            raise error

        ui_result = UITranslationResult(
            original_text=result.extracted_text,
            translated_text=result.translated_text,
            source="screenshot",
            timestamp=datetime.now(timezone.utc),
            duration_ms=int(result.elapsed.total_seconds() * 1000),
        )
        self._sink.emit(events.TRANSLATION_RESULT, ui_result.to_dict())
        return ui_result

    @contextmanager
    def _tracked(self, cancel: threading.Event | None):
        """Register a cancel event for the duration of one translation."""
        if cancel is None:
            cancel = threading.Event()
        with self._lock:
            self._active_cancels.add(cancel)
        try:
            yield cancel
        finally:
            with self._lock:
                self._active_cancels.discard(cancel)

    def _service_or_report(self) -> TranslationService:
        try:
            return self.ensure_service()
        except ConfigError as e:
            self._report_error(e, "init")
            raise

    def _report_error(self, error: TranslaterError, fallback_stage: str) -> None:
        stage = error.stage or fallback_stage
        logger.error("app.translation_failed", stage=stage, error=error.message)
        self._sink.emit(events.TRANSLATION_ERROR, {"stage": stage, "message": str(error)})

    def _on_stream(self, stage: str, text: str) -> None:
        self._sink.emit(events.TRANSLATION_STREAM, {"stage": stage, "content": text})


def public_settings(settings: Settings) -> dict:
    """Settings as shown to clients: keys are reported as set/unset only."""
    data = settings.model_dump(exclude={"api_key", "vision_api_key"})
    data["api_key_set"] = bool(settings.api_key)
    data["vision_api_key_set"] = bool(settings.vision_api_key)
    return data
