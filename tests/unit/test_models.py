"""Tests for the wire models and result types."""

import base64

import pytest
from pydantic import ValidationError

from translater.agent.models import new_bounds
from translater.core.errors import ProtocolError
from translater.core.models import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    ImageURLPart,
    Message,
    TextPart,
    delta_text,
    message_text,
)


class TestMessageContent:

    def test_string_content(self):
        message = Message.model_validate({"role": "user", "content": "hi"})
        assert message.content == "hi"

    def test_part_list_discriminated(self):
        message = Message.model_validate({"role": "user", "content": [
            {"type": "text", "text": "read this"},
            {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}},
        ]})
        assert isinstance(message.content[0], TextPart)
        assert isinstance(message.content[1], ImageURLPart)

    def test_unknown_part_type_rejected(self):
        with pytest.raises(ValidationError):
            Message.model_validate({"role": "user", "content": [{"type": "audio", "data": "x"}]})

    def test_image_data_url(self):
        part = ImageURLPart.from_bytes(b"abc", "image/jpeg")
        assert part.image_url.url == "data:image/jpeg;base64," + base64.b64encode(b"abc").decode()

    def test_payload_drops_unset_optionals(self):
        request = ChatCompletionRequest(model="m", messages=[Message(role="user", content="x")])
        payload = request.to_payload()
        assert "temperature" not in payload
        assert "max_tokens" not in payload
        assert payload["stream"] is False


class TestMessageText:

    def test_string(self):
        assert message_text("hello") == "hello"

    def test_parts_join_text_and_skip_images(self):
        parts = [TextPart(text="a"), ImageURLPart.from_bytes(b"x", "image/png"), TextPart(text="b")]
        assert message_text(parts) == "ab"

    def test_none_rejected(self):
        with pytest.raises(ProtocolError):
            message_text(None)

    def test_response_error_field_decoded(self):
        response = ChatCompletionResponse.model_validate_json(
            '{"error": {"code": 1113, "message": "quota", "type": "billing"}}')
        assert response.error.code == 1113
        assert response.choices == []


class TestDeltaText:

    @pytest.mark.parametrize("content, expected", [
        ("abc", "abc"),
        (None, ""),
        ([{"type": "text", "text": "a"}, {"type": "text", "text": "b"}], "ab"),
        ([{"type": "image_url", "image_url": {}}, "stray", {"type": "text"}], ""),
        (42, ""),
    ])
    def test_shapes(self, content, expected):
        assert delta_text(content) == expected


class TestBounds:

    def test_reversed_corners(self):
        bounds = new_bounds(50, 50, 10, 10)
        assert (bounds.left, bounds.top, bounds.width, bounds.height) == (10, 10, 40, 40)
        assert (bounds.start_x, bounds.end_x) == (50, 10)

    def test_degenerate_region_is_one_pixel(self):
        bounds = new_bounds(5, 5, 5, 5)
        assert (bounds.left, bounds.top, bounds.width, bounds.height) == (5, 5, 1, 1)

    def test_to_dict(self):
        assert new_bounds(0, 0, 3, 4).to_dict()["height"] == 4
