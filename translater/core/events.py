"""Progress / stream event sinks.

Sinks are fire-and-forget: ``emit`` must never block the translation
pipeline, so the broadcast sink drops events for subscribers whose
queue is full.
"""

import queue
import threading
from typing import Any, Protocol

import structlog

logger = structlog.get_logger(__name__)

TRANSLATION_STARTED = "translation:started"
TRANSLATION_PROGRESS = "translation:progress"
TRANSLATION_STREAM = "translation:stream"
TRANSLATION_RESULT = "translation:result"
TRANSLATION_ERROR = "translation:error"
TRANSLATION_IDLE = "translation:idle"
CONFIG_MISSING_KEY = "config:missing_api_key"
CONFIG_READY = "config:api_key_ready"
SETTINGS_UPDATED = "settings:updated"


class EventSink(Protocol):
    def emit(self, event: str, payload: Any = None) -> None: ...


class LogEventSink:
    """Writes events to the structured log only."""

    def emit(self, event: str, payload: Any = None) -> None:
        if event == TRANSLATION_STREAM:
            return
        logger.info("event.emit", name=event, payload=payload)


class BroadcastEventSink:
    """Fans events out to per-subscriber queues."""

    def __init__(self, max_queue: int = 256):
        self._max_queue = max_queue
        self._subscribers: list[queue.Queue] = []
        self._lock = threading.Lock()

    def subscribe(self) -> queue.Queue:
        q: queue.Queue = queue.Queue(maxsize=self._max_queue)
        with self._lock:
            self._subscribers.append(q)
        logger.debug("events.subscribed", subscribers=len(self._subscribers))
        return q

    def unsubscribe(self, q: queue.Queue) -> None:
        with self._lock:
            if q in self._subscribers:
                self._subscribers.remove(q)
        logger.debug("events.unsubscribed", subscribers=len(self._subscribers))

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def emit(self, event: str, payload: Any = None) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for q in subscribers:
            try:
                q.put_nowait((event, payload))
            except queue.Full:
                logger.warning("events.dropped", name=event)


class MultiEventSink:
    """Forwards every event to each wrapped sink in order."""

    def __init__(self, *sinks: EventSink):
        self._sinks = sinks

    def emit(self, event: str, payload: Any = None) -> None:
        for sink in self._sinks:
            sink.emit(event, payload)
