import asyncio
import logging

import httpx
import pytest

import celebchat.__main__ as entrypoint
from celebchat.backend_client import BackendClient, BackendUnreachable
from celebchat.preflight import check_available


def _check(ollama, **kwargs):
    async def run():
        backend = BackendClient()
        backend.transport = httpx.MockTransport(ollama.handler)
        async with backend:
            return await check_available(backend, **kwargs)

    return asyncio.run(run())


def test_returns_model_names(ollama, caplog):
    ollama.models = ["llama3:8b", "gemma:2b"]
    with caplog.at_level(logging.INFO, logger="celebchat.preflight"):
        assert _check(ollama) == ["llama3:8b", "gemma:2b"]
    assert any("gemma:2b" in r.getMessage() for r in caplog.records)


def test_empty_catalog_is_a_warning(ollama, caplog):
    ollama.models = []
    with caplog.at_level(logging.WARNING, logger="celebchat.preflight"):
        assert _check(ollama) == []
    assert any(r.levelno == logging.WARNING for r in caplog.records)


def test_unreachable_backend_raises_after_retries(ollama):
    ollama.tags_down = True
    with pytest.raises(BackendUnreachable):
        _check(ollama, max_retries=2)
    assert len(ollama.requests) == 2


def test_bad_status_counts_as_unreachable(ollama):
    ollama.tags_status = 503
    with pytest.raises(BackendUnreachable):
        _check(ollama)


def test_main_exits_1_when_backend_is_down(monkeypatch):
    served = []

    async def down(backend):
        raise BackendUnreachable("connection refused")

    monkeypatch.setattr(entrypoint, "check_available", down)
    monkeypatch.setattr(entrypoint.uvicorn, "run", lambda *a, **k: served.append(a))

    assert entrypoint.main() == 1
    assert served == []


def test_main_serves_after_successful_preflight(monkeypatch):
    served = []

    async def up(backend):
        return []

    monkeypatch.setattr(entrypoint, "check_available", up)
    monkeypatch.setattr(entrypoint.uvicorn, "run", lambda app, **kw: served.append(kw))

    assert entrypoint.main() == 0
    assert served and "port" in served[0]
