"""NDJSON parsing for backend generation streams."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

logger = logging.getLogger(__name__)


class LineSplitter:
    """Split upstream chunks into NDJSON lines.

    By default every chunk is split on its own and a record cut across two
    chunks is lost as two malformed lines. With ``buffer_partial_lines`` the
    unterminated tail of a chunk is held back and joined with the next one.
    """

    def __init__(self, *, buffer_partial_lines: bool = False):
        self._buffer_partial_lines = buffer_partial_lines
        self._pending = b""

    def feed(self, chunk: bytes) -> list[str]:
        if not self._buffer_partial_lines:
            return _non_empty(chunk.decode("utf-8", errors="replace").split("\n"))
        data = self._pending + chunk
        *complete, self._pending = data.split(b"\n")
        return _non_empty(line.decode("utf-8", errors="replace") for line in complete)

    def flush(self) -> list[str]:
        pending, self._pending = self._pending, b""
        return _non_empty([pending.decode("utf-8", errors="replace")])


def _non_empty(lines) -> list[str]:
    return [line for line in lines if line.strip()]


def parse_event(line: str) -> dict[str, Any] | None:
    """Parse one NDJSON line; raises ``ValueError`` when it is not JSON."""
    event = json.loads(line)
    return event if isinstance(event, dict) else None


def event_fragment(event: dict[str, Any] | None) -> str | None:
    if not event:
        return None
    fragment = event.get("response")
    if isinstance(fragment, str) and fragment:
        return fragment
    return None


def _fragments_from_lines(lines: list[str], req_id: str) -> list[str]:
    fragments = []
    for line in lines:
        try:
            event = parse_event(line)
        except ValueError as e:
            logger.warning("[%s] Skipping unparseable NDJSON line %r: %s", req_id, line, e)
            continue
        if event and isinstance(event.get("error"), str):
            logger.warning("[%s] Backend reported error: %s", req_id, event["error"])
        fragment = event_fragment(event)
        if fragment:
            fragments.append(fragment)
    return fragments


async def iter_fragments(
    chunks: AsyncIterator[bytes],
    *,
    buffer_partial_lines: bool = False,
    req_id: str = "-",
) -> AsyncIterator[str]:
    """Yield ``response`` text fragments in upstream order.

    Malformed lines are logged and skipped. The ``done`` flag is ignored;
    the end of ``chunks`` ends the iteration.
    """
    splitter = LineSplitter(buffer_partial_lines=buffer_partial_lines)
    async for chunk in chunks:
        for fragment in _fragments_from_lines(splitter.feed(chunk), req_id):
            yield fragment
    for fragment in _fragments_from_lines(splitter.flush(), req_id):
        yield fragment
