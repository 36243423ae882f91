"""HTTP transport for ``{base}/chat/completions``.

Two modes: a blocking POST that buffers one JSON response, and a streaming
POST that reads a ``text/event-stream`` body line by line. No retries;
every failure is terminal for the call that produced it.
"""

import queue
import threading
from collections.abc import Callable, Iterator

import httpx
import structlog
from pydantic import ValidationError

from translater.core.endpoints import DEFAULT_TIMEOUT, EndpointConfig
from translater.core.errors import (
    APIError,
    ProtocolError,
    StreamCancelledError,
    TransportError,
)
from translater.core.models import ChatCompletionRequest, ChatCompletionResponse
from translater.core.sse import DeltaAccumulator, iter_sse_payloads

logger = structlog.get_logger(__name__)

CANCEL_POLL_SECONDS = 0.05

_PENDING = object()
_EOF = object()


class ChatTransport:
    """Sends chat completion requests over a shared httpx client."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, client: httpx.Client | None = None):
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def post(self, request: ChatCompletionRequest, endpoint: EndpointConfig) -> ChatCompletionResponse:
        """Send one blocking request and decode the full response.

        Args:
            request: Chat completion request; sent with ``stream`` false.
            endpoint: Target endpoint (base URL, key, model already resolved).

        Returns:
            Decoded response.

        Raises:
            TransportError: On network failure or non-2xx status.
            ProtocolError: If the body is not a valid completion response.
            APIError: If the body carries a provider error, even on HTTP 200.
        """
        url = endpoint.chat_completions_url
        request = request.model_copy(update={"stream": False})
        logger.debug("transport.post", url=url, model=request.model)

        try:
            response = self._client.post(url, json=request.to_payload(), headers=endpoint.headers())
        except httpx.HTTPError as e:
            logger.error("transport.request_failed", url=url, error=str(e))
            raise TransportError(f"failed to send request: {e}") from e

        if not response.is_success:
            raise _status_error(response.status_code, response.text)

        try:
            parsed = ChatCompletionResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise ProtocolError(f"failed to decode response: {e}") from e

        if parsed.error is not None:
            raise _api_error(parsed.error)

        logger.debug("transport.post_ok", id=parsed.id, choices=len(parsed.choices),
                     total_tokens=parsed.usage.total_tokens)
        return parsed

    def stream(
        self,
        request: ChatCompletionRequest,
        endpoint: EndpointConfig,
        on_delta: Callable[[str], None] | None = None,
        cancel: threading.Event | None = None,
    ) -> ChatCompletionResponse:
        """Send a streaming request, pushing cumulative text to ``on_delta``.

        Args:
            request: Chat completion request; ``stream`` is forced on.
            endpoint: Target endpoint.
            on_delta: Called with the full text accumulated so far, in frame order.
            cancel: Optional event; once set the read stops with StreamCancelledError.

        Returns:
            Single-choice response synthesized from the accumulated deltas.
        """
        accumulator = DeltaAccumulator()
        for text in self.iter_deltas(request, endpoint, accumulator=accumulator, cancel=cancel):
            if on_delta is not None:
                on_delta(text)
        response = accumulator.finish()
        logger.debug("stream.done", id=response.id, chunks=accumulator.chunks,
                     finish_reason=accumulator.finish_reason, chars=len(accumulator.text))
        return response

    def iter_deltas(
        self,
        request: ChatCompletionRequest,
        endpoint: EndpointConfig,
        accumulator: DeltaAccumulator | None = None,
        cancel: threading.Event | None = None,
    ) -> Iterator[str]:
        """Generator form of ``stream``: yields cumulative text snapshots.

        Pass an ``accumulator`` to read the final response via ``finish()``
        once the generator is exhausted.
        """
        if accumulator is None:
            accumulator = DeltaAccumulator()
        url = endpoint.chat_completions_url
        request = request.model_copy(update={"stream": True})
        logger.debug("transport.stream", url=url, model=request.model)

        try:
            with self._client.stream(
                "POST", url, json=request.to_payload(), headers=endpoint.headers()
            ) as response:
                if not response.is_success:
                    body = response.read().decode("utf-8", errors="replace")
                    raise _status_error(response.status_code, body)

                for payload in iter_sse_payloads(_read_lines(response, cancel)):
                    yield from accumulator.feed(payload)

        except httpx.HTTPError as e:
            if cancel is not None and cancel.is_set():
                logger.info("stream.cancelled", error=str(e))
                raise StreamCancelledError("stream cancelled") from e
            logger.error("transport.stream_failed", url=url, error=str(e))
            raise TransportError(f"failed to read stream: {e}") from e


def _read_lines(response: httpx.Response, cancel: threading.Event | None) -> Iterator[str]:
    """Yield body lines; with a cancel event the read runs on a helper thread.

    The consumer polls the event while waiting for the next line, so a
    cancel lands within ``CANCEL_POLL_SECONDS`` even if the body read is stalled.
    """
    if cancel is None:
        yield from response.iter_lines()
        return

    lines: queue.Queue = queue.Queue()
    reader = threading.Thread(target=_pump_lines, args=(response, lines), daemon=True)
    reader.start()

    while True:
        try:
            item = lines.get(timeout=CANCEL_POLL_SECONDS)
        except queue.Empty:
            item = _PENDING
        if cancel.is_set():
            logger.info("stream.cancelled")
            response.close()
            raise StreamCancelledError("stream cancelled")
        if item is _PENDING:
            continue
        if item is _EOF:
            return
        if isinstance(item, Exception):
            raise item
        yield item


def _pump_lines(response: httpx.Response, lines: queue.Queue) -> None:
    try:
        for line in response.iter_lines():
            lines.put(line)
    except Exception as e:
        # re-raised on the consuming thread
        lines.put(e)
    lines.put(_EOF)


def _status_error(status_code: int, body: str) -> TransportError:
    logger.error("transport.status_error", status=status_code, body=body[:200])
    return TransportError(
        f"API request failed with status {status_code}: {body}",
        status_code=status_code,
        body=body,
    )


def _api_error(error) -> APIError:
    logger.error("transport.api_error", code=error.code, type=error.type)
    return APIError(code=str(error.code or ""), message=error.message, type=error.type or "")
