"""Shared fixtures for all tests."""

import httpx
import pytest

from tests.helpers import FakeCapture, FakeChatClient
from translater.core.endpoints import EndpointConfig
from translater.core.transport import ChatTransport


@pytest.fixture
def endpoint() -> EndpointConfig:
    return EndpointConfig(api_key="test-key", base_url="https://api.test/v1", model="test-model")


@pytest.fixture
def make_transport():
    """Build a ChatTransport whose HTTP calls go to `handler`; requests are recorded."""
    transports = []

    def _make(handler):
        seen = []

        def recording(request: httpx.Request):
            seen.append(request)
            return handler(request)

        transport = ChatTransport(client=httpx.Client(transport=httpx.MockTransport(recording)))
        transport.requests = seen
        transports.append(transport)
        return transport

    yield _make
    for t in transports:
        t.close()


@pytest.fixture
def fake_capture() -> FakeCapture:
    return FakeCapture()


@pytest.fixture
def fake_client() -> FakeChatClient:
    return FakeChatClient()
