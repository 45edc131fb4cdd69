"""Celebchat: chat with historical personas backed by a local model server."""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .backend_client import BackendUnreachable, client
from .config import settings
from .models import BackendHealth, HealthStatus
from .personas import get_registry

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: load the persona registry and open the backend pool."""
    configure_logging()

    registry = get_registry()
    logger.info("Serving %d personas, backend %s", len(registry), settings.ollama_api)

    await client.start()
    logger.info("Celebchat started")

    yield

    await client.stop()
    logger.info("Celebchat stopped")


app = FastAPI(title="Celebchat", version="1.0.0", lifespan=lifespan)


# --- Error handling ---


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    if isinstance(exc, (BackendUnreachable, httpx.ConnectError)):
        return JSONResponse(status_code=503, content={"error": "Backend unavailable", "detail": str(exc)})
    if isinstance(exc, (httpx.ReadTimeout, httpx.WriteTimeout)):
        return JSONResponse(status_code=504, content={"error": "Backend timeout", "detail": str(exc)})
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# --- Health endpoint ---


@app.get("/health", response_model=HealthStatus)
async def health():
    """Report whether the model backend is reachable."""
    backend = BackendHealth(**await client.health_check())
    return HealthStatus(
        status="healthy" if backend.status == "healthy" else "degraded",
        backend=backend,
    )


# --- Mount routers ---

from .router_chat import router as chat_router  # noqa: E402

app.include_router(chat_router)
