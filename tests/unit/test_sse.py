"""Unit tests for SSE frame reassembly and delta accumulation."""

import json

import pytest

from tests.helpers import chunk_json
from translater.core.errors import APIError, EmptyResultError, ProtocolError
from translater.core.sse import DeltaAccumulator, iter_sse_payloads


class TestFrameReassembly:

    def test_one_payload_per_frame(self):
        lines = ["data: {\"a\": 1}", "", "data: {\"b\": 2}", ""]
        assert list(iter_sse_payloads(lines)) == ['{"a": 1}', '{"b": 2}']

    def test_multiline_payload_joined_with_newlines(self):
        lines = ["data: {", "data:   \"a\": 1", "data: }", ""]
        assert list(iter_sse_payloads(lines)) == ['{\n"a": 1\n}']

    def test_comments_ignored(self):
        lines = [": keep-alive", "data: x", ": another", "", ":"]
        assert list(iter_sse_payloads(lines)) == ["x"]

    def test_done_stops_immediately(self):
        lines = ["data: first", "", "data: [DONE]", "", "data: after", ""]
        assert list(iter_sse_payloads(lines)) == ["first"]

    def test_done_discards_unflushed_buffer(self):
        lines = ["data: first", "", "data: partial", "data: [DONE]"]
        assert list(iter_sse_payloads(lines)) == ["first"]

    def test_done_without_space(self):
        assert list(iter_sse_payloads(["data:[DONE]", "data: x", ""])) == []

    def test_trailing_buffer_flushed_once_at_eof(self):
        assert list(iter_sse_payloads(["data: a", "", "data: tail"])) == ["a", "tail"]

    def test_blank_line_with_empty_buffer_is_noop(self):
        assert list(iter_sse_payloads(["", "", "   ", "data: x", "", ""])) == ["x"]

    def test_unknown_fields_ignored(self):
        lines = ["event: message", "id: 7", "retry: 100", "data: x", ""]
        assert list(iter_sse_payloads(lines)) == ["x"]

    def test_carriage_returns_stripped(self):
        assert list(iter_sse_payloads(["data: x\r", "\r"])) == ["x"]

    def test_empty_first_segment_adds_no_separator(self):
        assert list(iter_sse_payloads(["data:", "data: x", ""])) == ["x"]

    def test_no_lines(self):
        assert list(iter_sse_payloads([])) == []


class TestDeltaAccumulator:

    def test_cumulative_snapshots(self):
        acc = DeltaAccumulator()
        seen = []
        for piece in ["Hello", ", ", "world"]:
            seen.extend(acc.feed(chunk_json(piece)))

        assert seen == ["Hello", "Hello, ", "Hello, world"]
        response = acc.finish()
        assert response.choices[0].message.content == "Hello, world"
        assert response.choices[0].message.role == "assistant"

    def test_content_parts_only_text_used(self):
        acc = DeltaAccumulator()
        parts = [
            {"type": "text", "text": "Hi"},
            {"type": "image_url", "image_url": {"url": "data:x"}},
            {"type": "text", "text": " there"},
        ]
        assert acc.feed(chunk_json(parts)) == ["Hi there"]

    def test_role_only_chunk_counts_but_emits_nothing(self):
        acc = DeltaAccumulator()
        payload = json.dumps({"id": "c1", "choices": [{"index": 0, "delta": {"role": "assistant"}}]})
        assert acc.feed(payload) == []
        assert acc.chunks == 1
        assert acc.finish().choices[0].message.content == ""

    def test_first_id_and_created_kept(self):
        acc = DeltaAccumulator()
        acc.feed(chunk_json("a", id="first", created=111))
        acc.feed(chunk_json("b", id="second", created=222))
        response = acc.finish()
        assert response.id == "first"
        assert response.created == 111
        assert response.object == "chat.completion.chunk"

    def test_latest_usage_wins(self):
        acc = DeltaAccumulator()
        acc.feed(chunk_json("a", usage={"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2}))
        acc.feed(chunk_json("b"))
        acc.feed(chunk_json("", usage={"prompt_tokens": 1, "completion_tokens": 5, "total_tokens": 6}))
        assert acc.finish().usage.total_tokens == 6

    def test_last_finish_reason_wins(self):
        acc = DeltaAccumulator()
        acc.feed(chunk_json("a", finish_reason="length"))
        acc.feed(chunk_json("b", finish_reason="stop"))
        acc.feed(chunk_json("c"))
        assert acc.finish().choices[0].finish_reason == "stop"

    def test_error_chunk_raises_api_error(self):
        acc = DeltaAccumulator()
        payload = json.dumps({"error": {"code": "1301", "message": "content filtered", "type": "policy"}})
        with pytest.raises(APIError) as exc:
            acc.feed(payload)
        assert exc.value.code == "1301"
        assert "content filtered" in str(exc.value)

    def test_malformed_json_raises_protocol_error(self):
        with pytest.raises(ProtocolError, match="failed to decode stream chunk"):
            DeltaAccumulator().feed("{not json")

    def test_whitespace_payload_skipped(self):
        acc = DeltaAccumulator()
        assert acc.feed("  \n ") == []
        assert acc.chunks == 0

    def test_no_chunks_is_empty_stream(self):
        with pytest.raises(EmptyResultError, match="empty stream response"):
            DeltaAccumulator().finish()
