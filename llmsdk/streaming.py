"""
llmsdk - SSE streaming support.

Events travel as Server-Sent Events, one JSON object per ``data:`` frame,
and the stream ends with a ``data: [DONE]`` sentinel frame.
"""

import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, Iterator, Optional

from .events import ErrorEvent, MessageDeltaEvent, StreamEvent, event_from_dict

logger = logging.getLogger("llmsdk.streaming")

DONE_SENTINEL = "[DONE]"


def to_json(data: Any) -> str:
    """JSON-encode a wire payload. Values json cannot encode are stringified."""
    return json.dumps(data, default=str)


def event_to_json(event: StreamEvent) -> str:
    return to_json(event.to_dict())


def format_sse(data: str) -> str:
    """Encode one SSE frame."""
    lines = data.split("\n")
    return "".join(f"data: {line}\n" for line in lines) + "\n"


def format_event(event: StreamEvent) -> str:
    return format_sse(event_to_json(event))


async def sse_payloads(events: AsyncIterable[StreamEvent]) -> AsyncIterator[dict[str, str]]:
    """Yield ``{"data": ...}`` payloads for ``sse_starlette.EventSourceResponse``.

    Unexpected failures are reported as a final ``error`` event. The
    ``[DONE]`` sentinel is always sent last.
    """
    try:
        async for event in events:
            yield {"data": event_to_json(event)}
    except Exception as e:
        logger.exception("Event stream failed")
        yield {"data": event_to_json(ErrorEvent(message=str(e) or type(e).__name__, code="STREAM_ERROR"))}
    yield {"data": DONE_SENTINEL}


async def text_chunks(events: AsyncIterable[StreamEvent]) -> AsyncIterator[str]:
    """Yield only the assistant text deltas."""
    async for event in events:
        if isinstance(event, MessageDeltaEvent) and event.content:
            yield event.content


class SSEParser:
    """Incremental parser for ``data:`` frames.

    Feed it lines as they arrive; it returns a decoded event whenever a frame
    completes. ``done`` becomes True after the ``[DONE]`` sentinel.
    """

    def __init__(self) -> None:
        self._data: list[str] = []
        self.done = False

    def feed_line(self, line: str) -> Optional[StreamEvent]:
        line = line.rstrip("\r")

        if line.startswith(":"):
            return None

        if not line:
            return self._flush()

        if ":" in line:
            field, _, value = line.partition(":")
            value = value[1:] if value.startswith(" ") else value
        else:
            field, value = line, ""

        if field == "data":
            self._data.append(value)
        return None

    def _flush(self) -> Optional[StreamEvent]:
        if not self._data:
            return None
        data = "\n".join(self._data)
        self._data = []

        if data.strip() == DONE_SENTINEL:
            self.done = True
            return None
        try:
            payload: Any = json.loads(data)
            return event_from_dict(payload)
        except (json.JSONDecodeError, ValueError, TypeError):
            logger.warning("Skipping malformed SSE frame: %.200s", data)
            return None

    def close(self) -> Optional[StreamEvent]:
        """Flush a trailing frame that was not followed by a blank line."""
        return self._flush()


def parse_sse_lines(lines: Iterator[str]) -> Iterator[StreamEvent]:
    """Decode events from an iterator of SSE lines, stopping at ``[DONE]``."""
    parser = SSEParser()
    for line in lines:
        event = parser.feed_line(line)
        if event is not None:
            yield event
        if parser.done:
            return
    event = parser.close()
    if event is not None:
        yield event
