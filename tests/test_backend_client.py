import asyncio

import httpx
import pytest

from celebchat.backend_client import (
    BackendClient,
    BackendError,
    BackendUnreachable,
    GenerationFailed,
)
from celebchat.config import settings


def _run(ollama, coro_fn):
    async def run():
        backend = BackendClient()
        backend.transport = httpx.MockTransport(ollama.handler)
        async with backend:
            return await coro_fn(backend)

    return asyncio.run(run())


def test_list_models_returns_names(ollama):
    ollama.models = ["llama3:8b", "mistral:latest"]
    assert _run(ollama, lambda b: b.list_model_names()) == ["llama3:8b", "mistral:latest"]
    assert str(ollama.requests[0].url) == f"{settings.ollama_api}/api/tags"


def test_list_models_swallows_connection_errors(ollama):
    ollama.tags_down = True
    assert _run(ollama, lambda b: b.list_models()) == []


def test_list_models_swallows_bad_status(ollama):
    ollama.tags_status = 500
    assert _run(ollama, lambda b: b.list_models()) == []


def test_fetch_models_raises_when_unreachable(ollama):
    ollama.tags_down = True
    with pytest.raises(BackendUnreachable):
        _run(ollama, lambda b: b.fetch_models(max_retries=3))
    assert len(ollama.requests) == 3


def test_fetch_models_rejects_invalid_payload():
    def handler(request):
        return httpx.Response(200, json={"data": []})

    async def run():
        backend = BackendClient()
        backend.transport = httpx.MockTransport(handler)
        async with backend:
            await backend.fetch_models()

    with pytest.raises(BackendError):
        asyncio.run(run())


def test_generate_posts_model_and_prompt(ollama):
    ollama.chunks = [b'{"response":"A"}\n', b'{"response":"B"}\n']

    async def call(backend):
        resp = await backend.generate("llama3", "hello")
        try:
            return [chunk async for chunk in resp.aiter_bytes()]
        finally:
            await resp.aclose()

    assert _run(ollama, call) == ollama.chunks
    assert ollama.generate_payloads == [{"model": "llama3", "prompt": "hello"}]
    assert ollama.streams[0].closed


def test_generate_unreachable(ollama):
    ollama.generate_down = True
    with pytest.raises(BackendUnreachable):
        _run(ollama, lambda b: b.generate("llama3", "hello"))


def test_generate_error_status(ollama):
    ollama.generate_status = 404
    with pytest.raises(GenerationFailed) as excinfo:
        _run(ollama, lambda b: b.generate("nope", "hello"))
    assert excinfo.value.status_code == 404
    assert "not found" in excinfo.value.detail


def test_generate_requires_started_client():
    with pytest.raises(RuntimeError):
        asyncio.run(BackendClient().generate("llama3", "hello"))


def test_health_check(ollama):
    assert _run(ollama, lambda b: b.health_check()) == {"status": "healthy", "models": 1}
    ollama.tags_down = True
    assert _run(ollama, lambda b: b.health_check())["status"] == "unreachable"
