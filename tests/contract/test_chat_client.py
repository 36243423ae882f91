"""Contract tests for the chat completion client request bodies (mocked HTTP)."""

import base64
import json

import httpx
import pytest

from tests.helpers import PNG_BYTES, chunk_json, sse_body
from translater.core.chat_client import ChatCompletionClient, build_vision_messages
from translater.core.endpoints import ClientConfig

COMPLETION = {"id": "c", "choices": [{"index": 0, "message": {"role": "assistant", "content": "ok"}}]}


@pytest.fixture
def client(make_transport):
    transport = make_transport(lambda request: httpx.Response(200, json=COMPLETION))
    config = ClientConfig(api_key="main-key", base_url="https://api.test/v1/",
                          translate_model="text-model", vision_model="vision-model")
    return ChatCompletionClient.from_config(config, transport=transport), transport


def sent_body(transport, index=-1):
    return json.loads(transport.requests[index].content)


class TestTranslate:

    def test_body(self, client):
        chat, transport = client
        chat.translate("Hello", system_prompt="Translate to French")

        body = sent_body(transport)
        assert body["model"] == "text-model"
        assert body["temperature"] == 1.0
        assert body["top_p"] == 0.9
        assert body["messages"] == [
            {"role": "system", "content": "Translate to French"},
            {"role": "user", "content": "Hello"},
        ]

    def test_no_system_prompt(self, client):
        chat, transport = client
        chat.translate("Hello")
        assert [m["role"] for m in sent_body(transport)["messages"]] == ["user"]

    def test_stream(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(
            200, content=sse_body(chunk_json("Bon"), chunk_json("jour"))))
        chat = ChatCompletionClient.from_config(ClientConfig(api_key="k"), transport=transport)
        seen = []
        response = chat.translate_stream("Hello", on_delta=seen.append)

        assert sent_body(transport)["stream"] is True
        assert seen == ["Bon", "Bonjour"]
        assert response.choices[0].message.content == "Bonjour"


class TestVision:

    def test_body(self, client):
        chat, transport = client
        chat.image_to_words("Read the text", PNG_BYTES, system_prompt="sys")

        body = sent_body(transport)
        assert str(transport.requests[-1].url) == "https://api.test/v1/chat/completions"
        assert body["model"] == "vision-model"
        assert body["temperature"] == 0.7
        assert body["top_p"] == 0.9
        system, user = body["messages"]
        assert system == {"role": "system", "content": "sys"}
        assert user["content"][0] == {"type": "text", "text": "Read the text"}
        url = user["content"][1]["image_url"]["url"]
        assert url == "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()

    def test_image_to_translation_same_shape(self, client):
        chat, transport = client
        chat.image_to_translation("Translate this", PNG_BYTES, mime_type="image/jpeg")
        user = sent_body(transport)["messages"][0]
        assert user["content"][1]["image_url"]["url"].startswith("data:image/jpeg;base64,")

    def test_blank_message_sends_image_only(self):
        messages = build_vision_messages("  ", PNG_BYTES, "image/png")
        assert len(messages) == 1
        assert [p.type for p in messages[0].content] == ["image_url"]

    def test_vision_endpoint_inherits_key_and_base(self, client):
        chat, transport = client
        chat.image_to_words("x", PNG_BYTES)
        assert transport.requests[-1].headers["Authorization"] == "Bearer main-key"

    def test_vision_overrides(self, make_transport):
        transport = make_transport(lambda request: httpx.Response(200, json=COMPLETION))
        config = ClientConfig(api_key="main-key", vision_api_key="vision-key",
                              vision_base_url="https://vision.test/api")
        chat = ChatCompletionClient.from_config(config, transport=transport)

        chat.image_to_words("x", PNG_BYTES)
        chat.translate("y")

        vision_req, text_req = transport.requests
        assert str(vision_req.url) == "https://vision.test/api/chat/completions"
        assert vision_req.headers["Authorization"] == "Bearer vision-key"
        assert text_req.headers["Authorization"] == "Bearer main-key"
