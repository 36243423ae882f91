"""Test doubles and wire-format builders shared by the test suites."""

import json
import threading

import httpx

from translater.core.models import ChatCompletionResponse, Choice, Message

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


def completion(text, finish_reason="stop") -> ChatCompletionResponse:
    return ChatCompletionResponse(
        id="chatcmpl-1",
        created=1700000000,
        choices=[Choice(index=0, message=Message(role="assistant", content=text),
                        finish_reason=finish_reason)],
    )


def chunk_json(content=None, finish_reason=None, **extra) -> str:
    chunk = {
        "id": extra.pop("id", "chunk-1"),
        "object": "chat.completion.chunk",
        "created": extra.pop("created", 1700000000),
        "model": "glm-4.5-flash",
        "choices": [{"index": 0, "delta": {"content": content}, "finish_reason": finish_reason}],
    }
    chunk.update(extra)
    return json.dumps(chunk)


def sse_body(*payloads, done=True) -> bytes:
    """Encode payloads as `data:` frames, optionally ending with [DONE]."""
    body = "".join(f"data: {p}\n\n" for p in payloads)
    if done:
        body += "data: [DONE]\n\n"
    return body.encode("utf-8")


class OneByteStream(httpx.SyncByteStream):
    """Response body delivered one byte per read."""

    def __init__(self, data: bytes):
        self._data = data

    def __iter__(self):
        for i in range(len(self._data)):
            yield self._data[i:i + 1]


class FakeCapture:
    def __init__(self, data=PNG_BYTES, error=None):
        self.data = data
        self.error = error
        self.calls = []

    def capture_to_bytes(self, left, top, right, bottom):
        self.calls.append((left, top, right, bottom))
        if self.error:
            raise self.error
        return self.data


class FakeChatClient:
    """Records calls; returns canned responses and replays canned deltas."""

    def __init__(self, ocr="Hello", translation="Bonjour", vision="Salut", deltas=None):
        self.ocr = ocr
        self.translation = translation
        self.vision = vision
        self.deltas = deltas or []
        self.calls = []
        self.cancels = []

    def _reply(self, value):
        if isinstance(value, Exception):
            raise value
        if isinstance(value, ChatCompletionResponse):
            return value
        return completion(value)

    def translate(self, user_message, system_prompt=""):
        self.calls.append(("translate", user_message, system_prompt))
        return self._reply(self.translation)

    def translate_stream(self, user_message, system_prompt="", on_delta=None, cancel=None):
        self.calls.append(("translate_stream", user_message, system_prompt))
        self.cancels.append(cancel)
        for text in self.deltas:
            on_delta(text)
        return self._reply(self.translation)

    def image_to_words(self, user_message, image, mime_type="image/png", system_prompt=""):
        self.calls.append(("image_to_words", user_message, image))
        return self._reply(self.ocr)

    def image_to_translation(self, user_message, image, mime_type="image/png", system_prompt=""):
        self.calls.append(("image_to_translation", user_message, image))
        return self._reply(self.vision)

    def image_to_translation_stream(self, user_message, image, mime_type="image/png",
                                    system_prompt="", on_delta=None, cancel=None):
        self.calls.append(("image_to_translation_stream", user_message, image))
        self.cancels.append(cancel)
        for text in self.deltas:
            on_delta(text)
        return self._reply(self.vision)

    @property
    def call_names(self):
        return [c[0] for c in self.calls]


class RecordingSink:
    def __init__(self):
        self.events = []

    def emit(self, event, payload=None):
        self.events.append((event, payload))


class StallingStream(httpx.SyncByteStream):
    """Sends ``head`` and then stalls until ``release`` is set (or ``stall`` seconds pass)."""

    def __init__(self, head: bytes, tail: bytes = b"", stall: float = 5.0):
        self.head = head
        self.tail = tail
        self.stall = stall
        self.release = threading.Event()

    def __iter__(self):
        yield self.head
        self.release.wait(self.stall)
        yield self.tail
