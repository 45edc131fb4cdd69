"""Run the preflight check, then serve the app with uvicorn."""

import asyncio
import logging
import sys

import uvicorn

from .backend_client import BackendClient, BackendUnreachable
from .config import settings
from .main import app, configure_logging
from .preflight import check_available

logger = logging.getLogger("celebchat")


async def _preflight() -> list[str]:
    async with BackendClient() as backend:
        return await check_available(backend)


def main() -> int:
    configure_logging()
    try:
        asyncio.run(_preflight())
    except BackendUnreachable as e:
        logger.error("Startup aborted: model backend unavailable at %s (%s)", settings.ollama_api, e)
        return 1

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
