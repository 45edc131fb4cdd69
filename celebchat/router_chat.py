"""Chat routes: persona listing, chat context and the streaming relay.

Endpoints:
  GET  /                          Personas and the model each one resolves to
  GET  /chat/{persona_id}         Chat context for one persona
  POST /chat/{persona_id}/stream  Plain-text stream of the persona's reply
"""

import asyncio
import logging
import secrets
import time
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from .auth import require_identity
from .backend_client import BackendError, client
from .config import settings
from .http_utils import STREAM_HEADERS, plain_error
from .model_catalog import resolve_models
from .models import ChatContext, Identity, IndexContext, PersonaInfo
from .ndjson import iter_fragments
from .personas import Persona, get_registry
from .prompts import PromptParts, build_prompt, shorten

router = APIRouter(tags=["chat"])
logger = logging.getLogger(__name__)


def _make_req_id() -> str:
    return secrets.token_hex(3)


def _is_debug(request: Request) -> bool:
    return settings.debug_prompts or request.query_params.get("debug") == "1"


def _persona_info(persona: Persona) -> PersonaInfo:
    return PersonaInfo(**persona.as_dict())


async def _resolve_model(persona_id: str) -> str:
    """Resolve against a fresh catalog snapshot; never cached across requests."""
    names = await client.list_model_names()
    return resolve_models(names).get(persona_id) or settings.default_model


async def _read_message(request: Request) -> object:
    """Return the ``message`` field from a JSON or form body, or ``None``."""
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            payload = await request.json()
        except ValueError:
            return None
        return payload.get("message") if isinstance(payload, dict) else None
    form = await request.form()
    return form.get("message")


class ClientDisconnected(Exception):
    pass


async def _chunks_while_connected(request: Request, chunks: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    """Pass upstream chunks through, checking the client once per chunk."""
    async for chunk in chunks:
        if await request.is_disconnected():
            raise ClientDisconnected
        yield chunk


def _log_prompt(req_id: str, persona: Persona, model: str, message: str, parts: PromptParts) -> None:
    limit = settings.prompt_preview_chars
    logger.info(
        "[%s] Debug prompt persona=%s model=%s message=%r",
        req_id, persona.display_name or persona.id, model, shorten(message, limit),
    )
    for label, value in parts.diagnostics():
        logger.info("[%s] --- %s ---\n%s", req_id, label.upper(), shorten(value, limit))


async def relay_chat_stream(
    request: Request,
    persona: Persona,
    message: str,
    *,
    req_id: str,
    debug: bool = False,
    started: float | None = None,
) -> AsyncIterator[str]:
    """Drive one generation and yield its text fragments.

    Headers are already committed when this runs, so failures end the
    stream early instead of changing the status code.
    """
    started = time.monotonic() if started is None else started
    upstream = None
    completed = False
    try:
        model = await _resolve_model(persona.id)
        parts = build_prompt(persona.id, persona.display_name, message)
        if debug:
            _log_prompt(req_id, persona, model, message, parts)

        upstream = await client.generate(model, parts.text)
        async for fragment in iter_fragments(
            _chunks_while_connected(request, upstream.aiter_bytes()),
            buffer_partial_lines=settings.buffer_partial_lines,
            req_id=req_id,
        ):
            if debug:
                logger.debug("[%s] fragment %r", req_id, fragment)
            yield fragment
        completed = True
    except ClientDisconnected:
        logger.info("[%s] Client disconnected, dropping upstream stream", req_id)
    except asyncio.CancelledError:
        logger.info("[%s] Stream cancelled", req_id)
        raise
    except BackendError as e:
        logger.error("[%s] Generation failed: %s", req_id, e)
    except Exception:
        logger.exception("[%s] Stream aborted", req_id)
    finally:
        elapsed_ms = (time.monotonic() - started) * 1000
        if completed:
            logger.info("[%s] Response streamed in %.0f ms", req_id, elapsed_ms)
        else:
            logger.warning("[%s] Response ended early after %.0f ms", req_id, elapsed_ms)
        if upstream is not None:
            await asyncio.shield(upstream.aclose())


@router.get("/", response_model=IndexContext)
async def index(identity: Identity | None = Depends(require_identity)):
    """List personas with the model each one currently resolves to."""
    registry = get_registry()
    models = resolve_models(await client.list_model_names())
    return IndexContext(
        title="Available personas",
        personas=[_persona_info(p) for p in registry],
        models=models,
        user=identity,
    )


@router.get("/chat/{persona_id}", response_model=ChatContext)
async def chat_page(persona_id: str, identity: Identity | None = Depends(require_identity)):
    """Context for rendering the chat view of one persona."""
    registry = get_registry()
    persona = registry.get(persona_id)
    if persona is None:
        raise HTTPException(status_code=404, detail=f"Persona '{persona_id}' not found")
    return ChatContext(
        personas=[_persona_info(p) for p in registry],
        selected=_persona_info(persona),
        selected_id=persona_id,
        model=await _resolve_model(persona_id),
        user=identity,
    )


@router.post("/chat/{persona_id}/stream")
async def stream_chat(
    persona_id: str,
    request: Request,
    identity: Identity | None = Depends(require_identity),
):
    """Stream the persona's reply to ``message`` as plain text."""
    started = time.monotonic()
    req_id = _make_req_id()

    persona = get_registry().get(persona_id)
    if persona is None:
        return plain_error(404, "Persona not found")
    message = await _read_message(request)
    if not isinstance(message, str) or not message.strip():
        return plain_error(400, "Invalid message: must be a non-empty string")

    logger.info(
        "[%s] Chat stream persona=%s user=%s",
        req_id, persona_id, identity.sub if identity else "anonymous",
    )
    return StreamingResponse(
        relay_chat_stream(
            request,
            persona,
            message,
            req_id=req_id,
            debug=_is_debug(request),
            started=started,
        ),
        media_type="text/plain; charset=utf-8",
        headers={**STREAM_HEADERS, "X-Request-ID": req_id},
    )
