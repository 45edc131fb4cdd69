import asyncio
import logging

import httpx

from .config import settings

logger = logging.getLogger(__name__)

# Backoff between connect attempts (seconds)
RETRY_DELAYS = (0.5, 1.0, 2.0)


class BackendError(Exception):
    """The model backend answered, but not usefully."""


class BackendUnreachable(BackendError):
    """The request to the model backend could not be made at all."""


class GenerationFailed(BackendError):
    def __init__(self, status_code: int, detail: str = ""):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Generation failed with status {status_code}: {detail}")


def _error_detail(resp: httpx.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return resp.text[:1000]
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        return payload["error"]
    return resp.text[:1000]


class BackendClient:
    """Async client for an Ollama-compatible model server."""

    def __init__(self) -> None:
        self._client: httpx.AsyncClient | None = None
        # Tests swap in an httpx.MockTransport here before start()
        self.transport: httpx.AsyncBaseTransport | None = None

    async def start(self) -> None:
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            transport=self.transport,
            follow_redirects=True,
            limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
        )

    async def stop(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "BackendClient":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    @property
    def base_url(self) -> str:
        return settings.ollama_api.rstrip("/")

    def _require_client(self) -> httpx.AsyncClient:
        """Return initialized client or raise a clear runtime error."""
        if self._client is None:
            raise RuntimeError("Backend client is not started")
        return self._client

    async def request(
        self,
        method: str,
        path: str,
        *,
        timeout: float | httpx.Timeout = 60.0,
        max_retries: int = 1,
        **kwargs,
    ) -> httpx.Response:
        """Send a request, retrying only when the connection cannot be made."""
        url = f"{self.base_url}{path}"
        last_exc: Exception | None = None
        for attempt in range(max(1, max_retries)):
            try:
                return await self._require_client().request(
                    method, url, timeout=timeout, **kwargs
                )
            except (httpx.ConnectError, httpx.ConnectTimeout) as e:
                last_exc = e
                if attempt < max_retries - 1:
                    delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
                    logger.warning(
                        "%s %s attempt %d failed: %s (retry in %.1fs)",
                        method, path, attempt + 1, e, delay,
                    )
                    await asyncio.sleep(delay)
            except httpx.TransportError as e:
                raise BackendUnreachable(f"{method} {url} failed: {e}") from e

        raise BackendUnreachable(f"{method} {url} failed: {last_exc}") from last_exc

    async def fetch_models(self, *, max_retries: int = 1) -> list[dict]:
        """Return ``[{name, ...}]`` from ``/api/tags``; raises on any failure."""
        resp = await self.request(
            "GET",
            "/api/tags",
            timeout=settings.list_models_timeout_seconds,
            max_retries=max_retries,
        )
        if resp.status_code != 200:
            raise BackendError(f"/api/tags failed with status {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise BackendError("/api/tags returned invalid JSON") from e
        models = data.get("models") if isinstance(data, dict) else None
        if not isinstance(models, list):
            raise BackendError("/api/tags returned invalid payload")
        return [
            m for m in models
            if isinstance(m, dict) and isinstance(m.get("name"), str)
        ]

    async def list_models(self) -> list[dict]:
        """Like :meth:`fetch_models`, but an unusable backend yields ``[]``."""
        try:
            return await self.fetch_models()
        except BackendError as e:
            logger.error("Failed to list backend models: %s", e)
            return []

    async def list_model_names(self) -> list[str]:
        return [m["name"] for m in await self.list_models()]

    async def generate(self, model: str, prompt: str) -> httpx.Response:
        """Start a generation and return the open NDJSON response.

        The caller owns the response: iterate ``aiter_bytes()`` and
        ``aclose()`` it when done. Only the connect phase has a timeout.
        """
        client = self._require_client()
        request = client.build_request(
            "POST",
            f"{self.base_url}/api/generate",
            json={"model": model, "prompt": prompt},
            timeout=httpx.Timeout(None, connect=settings.connect_timeout_seconds),
        )
        try:
            resp = await client.send(request, stream=True)
        except httpx.TransportError as e:
            raise BackendUnreachable(f"POST {request.url} failed: {e}") from e

        if resp.status_code >= 400:
            try:
                await resp.aread()
                detail = _error_detail(resp)
            finally:
                await resp.aclose()
            raise GenerationFailed(resp.status_code, detail)
        return resp

    async def health_check(self) -> dict:
        """Check backend reachability. Returns status dict."""
        try:
            models = await self.fetch_models()
        except BackendUnreachable as e:
            return {"status": "unreachable", "error": str(e)}
        except BackendError as e:
            return {"status": "unhealthy", "error": str(e)}
        return {"status": "healthy", "models": len(models)}


# Singleton
client = BackendClient()
