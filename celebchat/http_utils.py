"""HTTP helpers for chat route handlers."""

from fastapi.responses import PlainTextResponse

STREAM_HEADERS = {
    "Transfer-Encoding": "chunked",
    "Cache-Control": "no-cache, no-transform",
    "X-Accel-Buffering": "no",
}


def plain_error(status_code: int, message: str) -> PlainTextResponse:
    """Short human-readable error, sent before any stream is opened."""
    return PlainTextResponse(message, status_code=status_code)
