"""FastAPI endpoints for the Translater API.

POST /translate/text - translate typed text
POST /translate/screenshot - capture a screen region and translate it
POST /translate/cancel - abort running translations
GET /events - SSE stream of progress, partial and final translation events
GET /settings, PUT /settings - inspect and update runtime settings
GET /health - component health check
"""

import json
import queue

import structlog
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from translater.agent.app import TranslationBusyError, public_settings
from translater.api.schemas import (
    CancelResponse,
    NoTextResponse,
    ScreenshotRequest,
    SettingsResponse,
    SettingsUpdate,
    TextTranslationRequest,
    TranslationResponse,
)
from translater.core.errors import (
    APIError,
    CaptureError,
    ConfigError,
    EmptyResultError,
    ProtocolError,
    StreamCancelledError,
    TranslaterError,
    TransportError,
)

logger = structlog.get_logger(__name__)

router = APIRouter()

KEEPALIVE_SECONDS = 15.0

_ERROR_STATUS = [
    (TranslationBusyError, 409),
    (ConfigError, 503),
    (EmptyResultError, 422),
    (CaptureError, 500),
    (StreamCancelledError, 503),
    (TransportError, 502),
    (APIError, 502),
    (ProtocolError, 502),
]


@router.post("/translate/text", response_model=TranslationResponse)
def translate_text(request: TextTranslationRequest, req: Request):
    """Translate text typed by the user."""
    logger.info("translate_text.request", chars=len(request.text))
    try:
        result = req.app.state.translater.translate_text(request.text)
    except TranslaterError as e:
        raise _http_error(e)
    return TranslationResponse(**result.to_dict())


@router.post("/translate/screenshot", response_model=TranslationResponse | NoTextResponse)
def translate_screenshot(request: ScreenshotRequest, req: Request):
    """Capture a screen region and translate its text."""
    logger.info("translate_screenshot.request", start=(request.start_x, request.start_y),
                end=(request.end_x, request.end_y))
    try:
        result = req.app.state.translater.translate_screenshot(
            request.start_x, request.start_y, request.end_x, request.end_y)
    except TranslaterError as e:
        raise _http_error(e)
    if result is None:
        return NoTextResponse()
    return TranslationResponse(**result.to_dict())


@router.post("/translate/cancel", response_model=CancelResponse)
def cancel_translations(req: Request):
    """Abort every running translation; streamed reads stop at once."""
    return CancelResponse(cancelled=req.app.state.translater.cancel_active())


@router.get("/events")
def events(req: Request):
    """Stream translation events as SSE frames until the client disconnects."""
    sink = req.app.state.events
    subscription = sink.subscribe()

    def generate():
        try:
            yield ": connected\n\n"
            while True:
                try:
                    event, payload = subscription.get(timeout=KEEPALIVE_SECONDS)
                except queue.Empty:
                    yield ": ping\n\n"
                    continue
                yield format_event(event, payload)
        finally:
            sink.unsubscribe(subscription)

    return StreamingResponse(generate(), media_type="text/event-stream")


@router.get("/settings", response_model=SettingsResponse)
def get_settings(req: Request):
    return public_settings(req.app.state.translater.settings)


@router.put("/settings", response_model=SettingsResponse)
def update_settings(update: SettingsUpdate, req: Request):
    """Apply a partial settings update; the API client is rebuilt on next use if needed."""
    settings = req.app.state.translater.apply_settings(update.model_dump(exclude_none=True))
    return public_settings(settings)


@router.get("/health")
def health(req: Request):
    """Check whether the translation service is configured."""
    translater = req.app.state.translater
    components = {
        "translation_service": "ok" if translater.ready else "error",
        "events": "ok" if req.app.state.events is not None else "error",
    }
    errors = [k for k, v in components.items() if v == "error"]
    if not errors:
        status = "healthy"
    elif len(errors) == len(components):
        status = "unhealthy"
    else:
        status = "degraded"
    return {"status": status, "components": components}


@router.get("/")
@router.head("/")
def root_health():
    return {"status": "ok", "service": "translater-api"}


def format_event(event: str, payload) -> str:
    """Encode one sink event as an SSE frame."""
    return f"data: {json.dumps({'event': event, 'payload': payload}, ensure_ascii=False)}\n\n"


def _http_error(error: TranslaterError) -> HTTPException:
    status = 500
    for error_type, code in _ERROR_STATUS:
        if isinstance(error, error_type):
            status = code
            break
    logger.error("api.translation_failed", status=status, stage=error.stage, error=error.message)
    return HTTPException(status_code=status, detail={"stage": error.stage, "message": str(error)})
