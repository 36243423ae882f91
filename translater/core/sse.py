"""Server-Sent Events frame reassembly and delta accumulation.

``iter_sse_payloads`` turns decoded response lines into logical ``data``
payloads; ``DeltaAccumulator`` decodes each payload into a stream chunk
and keeps the running assistant text. Both are transport-agnostic so the
same logic holds whatever the read chunking of the HTTP body is.
"""

from collections.abc import Iterable, Iterator

import structlog
from pydantic import ValidationError

from translater.core.errors import APIError, EmptyResultError, ProtocolError
from translater.core.models import (
    ChatCompletionResponse,
    Choice,
    Message,
    StreamChunk,
    Usage,
    delta_text,
)

logger = structlog.get_logger(__name__)

DONE_SENTINEL = "[DONE]"


def iter_sse_payloads(lines: Iterable[str]) -> Iterator[str]:
    """Reassemble SSE ``data:`` lines into complete payloads.

    A payload may span several ``data:`` lines (joined with newlines) and
    is flushed on a blank line or at EOF. ``data: [DONE]`` stops reading
    at once; anything still buffered at that point is discarded.

    Args:
        lines: Response body lines with line terminators removed.

    Yields:
        One payload string per logical frame.
    """
    buffer = ""
    for line in lines:
        line = line.rstrip("\r")

        if line.startswith(":"):
            continue

        if line.startswith("data:"):
            segment = line[len("data:"):].strip()
            if segment == DONE_SENTINEL:
                # buffered partial frame is discarded
                if buffer:
                    logger.debug("sse.done_discarded_buffer", size=len(buffer))
                return
            if buffer:
                buffer += "\n"
            buffer += segment
            continue

        if not line.strip():
            if buffer:
                yield buffer
                buffer = ""
            continue

        # anything else (event:, id:, retry:) is ignored

    if buffer:
        yield buffer


class DeltaAccumulator:
    """Running state of one streaming completion.

    Attributes:
        text: Cumulative assistant text received so far.
        finish_reason: Last non-empty finish reason seen.
        chunks: Number of decoded chunks.
    """

    def __init__(self):
        self.text = ""
        self.finish_reason: str | None = None
        self.chunks = 0
        self._id = ""
        self._object = ""
        self._created = 0
        self._usage: Usage | None = None

    def feed(self, payload: str) -> list[str]:
        """Decode one payload and return the cumulative text after each increment.

        Raises:
            ProtocolError: If the payload is not a valid stream chunk.
            APIError: If the chunk carries a provider error.
        """
        if not payload.strip():
            return []

        try:
            chunk = StreamChunk.model_validate_json(payload)
        except ValidationError as e:
            raise ProtocolError(f"failed to decode stream chunk: {e} (raw: {payload[:200]})") from e

        if chunk.error is not None:
            err = chunk.error
            raise APIError(code=str(err.code or ""), message=err.message, type=err.type or "")

        if chunk.id and not self._id:
            self._id = chunk.id
        if chunk.object and not self._object:
            self._object = chunk.object
        if chunk.created and not self._created:
            self._created = chunk.created
        if chunk.usage is not None:
            self._usage = chunk.usage

        snapshots = []
        for choice in chunk.choices:
            piece = delta_text(choice.delta.content)
            if piece:
                self.text += piece
                snapshots.append(self.text)
            if choice.finish_reason:
                self.finish_reason = choice.finish_reason

        self.chunks += 1
        return snapshots

    def finish(self) -> ChatCompletionResponse:
        """Synthesize the final single-choice response.

        Raises:
            EmptyResultError: If no chunk was ever decoded.
        """
        if self.chunks == 0:
            raise EmptyResultError("empty stream response")

        return ChatCompletionResponse(
            id=self._id,
            object=self._object,
            created=self._created,
            usage=self._usage or Usage(),
            choices=[
                Choice(
                    index=0,
                    message=Message(role="assistant", content=self.text),
                    finish_reason=self.finish_reason,
                )
            ],
        )
