"""Keeps stdout a clean JSON-RPC channel.

stdout is shared by the protocol and anything else in the process that
might print.  Every write passes through :class:`OutputGuard`, which drops
anything that is not a protocol frame and shortens frames that exceed the
client's response size limit.
"""

from __future__ import annotations

import io
import json
import logging
from typing import Any, Protocol, TextIO

from apple_mcp.server.profiles import ClientProfile

logger = logging.getLogger(__name__)

#: Characters reserved below the size limit for the notice and JSON framing.
TRUNCATION_MARGIN = 200
TRUNCATION_NOTICE = "\n\n[Response truncated due to size limits ({size} chars)]"


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _first_text_item(frame: Any) -> dict[str, Any] | None:
    """The first ``{"type": "text", "text": ...}`` item of ``result.content``."""
    if not isinstance(frame, dict):
        return None
    result = frame.get("result")
    if not isinstance(result, dict):
        return None
    content = result.get("content")
    if not isinstance(content, list):
        return None
    for item in content:
        if isinstance(item, dict) and item.get("type") == "text" and isinstance(item.get("text"), str):
            return item
    return None


class OutputGuard:
    """Decides what may leave the process on stdout.

    - chunks not starting with ``{`` are suppressed;
    - under ``strict_frames`` chunks that are not one JSON value are suppressed;
    - chunks over ``max_response_size`` have their first text content item
      cut and suffixed with a truncation notice.  Frames of any other shape
      pass unchanged.
    """

    def __init__(self, profile: ClientProfile) -> None:
        self.profile = profile
        self.limit = profile.max_response_size

    def filter(self, chunk: str) -> str | None:
        """Return the text to emit for ``chunk``, or None to drop it."""
        body, newline = (chunk[:-1], "\n") if chunk.endswith("\n") else (chunk, "")
        if not body.startswith("{"):
            if body.strip():
                logger.debug("Suppressed non-protocol output: %.80r", body)
            return None

        if self.profile.strict_frames:
            try:
                json.loads(body)
            except ValueError:
                logger.debug("Suppressed malformed frame (%d chars)", len(body))
                return None

        if len(body) > self.limit:
            body = self._truncate(body)
        return body + newline

    def _truncate(self, body: str) -> str:
        try:
            frame = json.loads(body)
        except ValueError:
            return body
        item = _first_text_item(frame)
        if item is None:
            logger.warning("Oversized frame (%d chars) has no text content to truncate", len(body))
            return body

        text: str = item["text"]
        notice = TRUNCATION_NOTICE.format(size=len(body))
        keep = max(0, min(len(text), self.limit - TRUNCATION_MARGIN))
        while True:
            item["text"] = text[:keep] + notice
            out = _dumps(frame)
            if len(out) <= self.limit or keep == 0:
                break
            keep = max(0, keep - (len(out) - self.limit))
        logger.warning("Response truncated from %d to %d chars", len(body), len(out))
        return out


class AsyncTextStream(Protocol):
    async def write(self, data: str) -> Any: ...

    async def flush(self) -> Any: ...


class GuardedWriter:
    """Async stdout for ``mcp.server.stdio.stdio_server``.

    The transport writes one serialized message plus newline per call.
    """

    def __init__(self, stream: AsyncTextStream, guard: OutputGuard) -> None:
        self._stream = stream
        self._guard = guard

    async def write(self, data: str) -> int:
        passed = self._guard.filter(data)
        if passed is not None:
            await self._stream.write(passed)
        return len(data)

    async def flush(self) -> None:
        await self._stream.flush()


class GuardedStream(io.TextIOBase):
    """Synchronous stand-in for ``sys.stdout`` while the server runs.

    ``print`` issues the text and the newline as separate writes, so input
    is buffered per line and each complete line is filtered on its own.
    """

    def __init__(self, stream: TextIO, guard: OutputGuard) -> None:
        super().__init__()
        self._stream = stream
        self._guard = guard
        self._pending = ""

    def writable(self) -> bool:
        return True

    @property
    def encoding(self) -> str:  # type: ignore[override]
        return getattr(self._stream, "encoding", "utf-8")

    def write(self, data: str) -> int:
        self._pending += data
        *lines, self._pending = self._pending.split("\n")
        for line in lines:
            self._emit(line + "\n")
        return len(data)

    def flush(self) -> None:
        self._stream.flush()

    def close(self) -> None:
        if self.closed:
            return
        if self._pending:
            self._emit(self._pending)
            self._pending = ""
        self.flush()
        super().close()

    def _emit(self, chunk: str) -> None:
        passed = self._guard.filter(chunk)
        if passed is not None:
            self._stream.write(passed)
