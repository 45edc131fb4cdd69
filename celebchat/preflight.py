"""Startup check that the model backend is reachable."""

import logging

from .backend_client import BackendClient, BackendError, BackendUnreachable
from .config import settings

logger = logging.getLogger(__name__)


async def check_available(backend: BackendClient, *, max_retries: int | None = None) -> list[str]:
    """Return loaded model names, or raise ``BackendUnreachable``.

    An empty model list is not an error: every persona then resolves to
    the default model.
    """
    retries = settings.preflight_retries if max_retries is None else max_retries
    try:
        models = await backend.fetch_models(max_retries=retries)
    except BackendUnreachable:
        raise
    except BackendError as e:
        raise BackendUnreachable(str(e)) from e

    names = [m["name"] for m in models]
    logger.info("Model backend available at %s", settings.ollama_api)
    if not names:
        logger.warning("No models are currently loaded; personas will use %s", settings.default_model)
    for i, name in enumerate(names, 1):
        logger.info("  %d. %s", i, name)
    return names
