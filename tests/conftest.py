import json

import httpx
import pytest
from fastapi.testclient import TestClient

from celebchat import backend_client as bc
from celebchat.personas import get_registry


class ChunkStream(httpx.AsyncByteStream):
    """Upstream body that yields the given chunks; exceptions are raised in place."""

    def __init__(self, chunks):
        self.chunks = list(chunks)
        self.closed = False
        self.read = 0

    async def __aiter__(self):
        for chunk in self.chunks:
            if isinstance(chunk, Exception):
                raise chunk
            self.read += 1
            yield chunk

    async def aclose(self):
        self.closed = True


class FakeOllama:
    """Minimal stand-in for the Ollama HTTP API."""

    def __init__(self):
        self.models = ["llama3:8b"]
        self.chunks = []
        self.tags_down = False
        self.tags_status = 200
        self.generate_down = False
        self.generate_status = 200
        self.requests: list[httpx.Request] = []
        self.streams: list[ChunkStream] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/api/tags":
            if self.tags_down:
                raise httpx.ConnectError("Connection refused", request=request)
            if self.tags_status != 200:
                return httpx.Response(self.tags_status, text="boom")
            return httpx.Response(200, json={"models": [{"name": n} for n in self.models]})
        if request.url.path == "/api/generate":
            if self.generate_down:
                raise httpx.ConnectError("Connection refused", request=request)
            if self.generate_status != 200:
                return httpx.Response(self.generate_status, json={"error": "model 'nope' not found"})
            stream = ChunkStream(self.chunks)
            self.streams.append(stream)
            return httpx.Response(200, stream=stream)
        return httpx.Response(404)

    @property
    def generate_payloads(self) -> list[dict]:
        return [
            json.loads(r.content)
            for r in self.requests
            if r.url.path == "/api/generate"
        ]


@pytest.fixture(autouse=True)
def _fresh_registry():
    get_registry.cache_clear()
    yield
    get_registry.cache_clear()


@pytest.fixture(autouse=True)
def _no_retry_delay(monkeypatch):
    monkeypatch.setattr(bc, "RETRY_DELAYS", (0.0,))


@pytest.fixture
def ollama(monkeypatch):
    fake = FakeOllama()
    monkeypatch.setattr(bc.client, "transport", httpx.MockTransport(fake.handler))
    return fake


@pytest.fixture
def api(ollama):
    from celebchat.main import app

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
