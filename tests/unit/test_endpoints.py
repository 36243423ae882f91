"""Tests for endpoint normalization and resolution."""

import pytest

from translater.core.endpoints import (
    DEFAULT_BASE_URL,
    DEFAULT_TRANSLATE_MODEL,
    DEFAULT_VISION_MODEL,
    ClientConfig,
    EndpointConfig,
    normalize_base_url,
    normalize_model,
    resolve_endpoints,
)


class TestNormalization:

    @pytest.mark.parametrize("raw, expected", [
        ("", DEFAULT_BASE_URL),
        ("   ", DEFAULT_BASE_URL),
        (None, DEFAULT_BASE_URL),
        ("https://api.example.com/v1/", "https://api.example.com/v1"),
        ("  https://api.example.com/v1//  ", "https://api.example.com/v1"),
        ("not a url", "not a url"),
    ])
    def test_base_url(self, raw, expected):
        assert normalize_base_url(raw) == expected

    def test_model_fallback(self):
        assert normalize_model("  ", "fallback") == "fallback"
        assert normalize_model(" gpt-4o ", "fallback") == "gpt-4o"


class TestResolveEndpoints:

    def test_defaults(self):
        translate, vision = resolve_endpoints(ClientConfig(api_key="k"))
        assert translate == EndpointConfig("k", DEFAULT_BASE_URL, DEFAULT_TRANSLATE_MODEL)
        assert vision == EndpointConfig("k", DEFAULT_BASE_URL, DEFAULT_VISION_MODEL)

    def test_vision_inherits_key_and_base(self):
        config = ClientConfig(api_key=" main ", base_url="https://a.test/v1/")
        translate, vision = resolve_endpoints(config)
        assert vision.api_key == "main"
        assert vision.base_url == "https://a.test/v1"
        assert translate.base_url == "https://a.test/v1"

    def test_vision_overrides(self):
        config = ClientConfig(api_key="main", base_url="https://a.test",
                              vision_api_key="vkey", vision_base_url="https://b.test/",
                              vision_model="vl-model")
        translate, vision = resolve_endpoints(config)
        assert translate.api_key == "main"
        assert vision == EndpointConfig("vkey", "https://b.test", "vl-model")

    def test_url_and_headers(self):
        endpoint = EndpointConfig("k", "https://a.test/v1", "m")
        assert endpoint.chat_completions_url == "https://a.test/v1/chat/completions"
        assert endpoint.headers() == {"Content-Type": "application/json", "Authorization": "Bearer k"}

    def test_empty_key_omits_authorization(self):
        assert "Authorization" not in EndpointConfig("", "https://a.test", "m").headers()


class TestCacheKey:

    def test_equal_after_normalization(self):
        a = ClientConfig(api_key="k", base_url="https://a.test/")
        b = ClientConfig(api_key=" k ", base_url="https://a.test")
        assert a.cache_key() == b.cache_key()

    def test_changes_with_model(self):
        a = ClientConfig(api_key="k")
        b = ClientConfig(api_key="k", vision_model="other")
        assert a.cache_key() != b.cache_key()
