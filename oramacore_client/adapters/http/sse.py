"""Incremental server-sent-event framing over decoded text lines."""

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator

import httpx

EVENT_MESSAGE = "message"
EVENT_OPEN = "open"


@dataclass(frozen=True, slots=True)
class SseEvent:
    event: str
    data: str


class SseDecoder:
    """Feed lines one at a time; a blank line dispatches the pending event."""

    def __init__(self) -> None:
        self._event = ""
        self._data: list[str] = []
        self._has_data = False

    def feed(self, line: str) -> SseEvent | None:
        line = line.rstrip("\r\n")
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "data":
            self._data.append(value)
            self._has_data = True
        elif name == "event":
            self._event = value
        # id and retry fields carry nothing the session uses
        return None

    def flush(self) -> SseEvent | None:
        """Dispatch an event left unterminated when the stream closed."""
        return self._dispatch()

    def _dispatch(self) -> SseEvent | None:
        if not self._has_data:
            self._event = ""
            return None
        event = SseEvent(event=self._event or EVENT_MESSAGE, data="\n".join(self._data))
        self._event = ""
        self._data = []
        self._has_data = False
        return event


async def iter_events(response: httpx.Response) -> AsyncIterator[SseEvent]:
    """Decode an event-stream response line by line. Transport errors propagate."""
    decoder = SseDecoder()
    async for line in response.aiter_lines():
        event = decoder.feed(line)
        if event is not None:
            yield event
    tail = decoder.flush()
    if tail is not None:
        yield tail
