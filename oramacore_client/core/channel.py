"""
Resilient SSE channel: one event-stream request exposed as decoded chunks.

The channel enforces a connection timeout (on the transport) and a total
elapsed deadline covering connect, retries and every read. Reconnection is
only attempted before the stream has been accepted, so content is never
replayed into a turn.
"""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from typing import Any, AsyncGenerator, Awaitable, TypeVar

from oramacore_client.adapters.http.client import OramaClient
from oramacore_client.adapters.http.sse import SseEvent
from oramacore_client.config.stream_config import StreamConfig
from oramacore_client.core.auth import Target
from oramacore_client.core.chunks import ConnectionOpened, Done, Retry, StreamChunk
from oramacore_client.core.decoder import decode_event
from oramacore_client.core.errors import OramaError, StreamEventError, StreamTimeout, TransportError
from oramacore_client.core.state import ConversationState, TurnHandle
from oramacore_client.observability.logging import log_event
from oramacore_client.util.logger import get_logger

logger = get_logger("channel")

T = TypeVar("T")

_RETRYABLE_STATUS = {429}


def _is_retryable(exc: TransportError) -> bool:
    if exc.status is None:
        return True
    return exc.status in _RETRYABLE_STATUS or exc.status >= 500


class ResilientSseChannel:
    def __init__(self, client: OramaClient, config: StreamConfig) -> None:
        self.client = client
        self.config = config

    async def stream(
        self,
        *,
        path: str,
        body: dict[str, Any],
        state: ConversationState,
        handle: TurnHandle,
        target: Target = Target.READER,
    ) -> AsyncGenerator[StreamChunk, None]:
        deadline = asyncio.get_running_loop().time() + float(self.config.stream_timeout_seconds)
        finished = False
        try:
            events = None
            attempt = 0
            while events is None:
                candidate = self.client.stream_events(
                    path,
                    body,
                    target=target,
                    connect_timeout=float(self.config.connection_timeout_seconds),
                )
                try:
                    # the first event is ``open``: the stream has been accepted
                    await self._within_deadline(candidate.__anext__(), deadline, state, handle)
                    events = candidate
                except TransportError as exc:
                    await candidate.aclose()
                    if attempt >= int(self.config.max_retries) or not _is_retryable(exc):
                        logger.error("stream connection failed interaction_id=%s error=%s", handle.interaction_id, exc)
                        state.mark_error(handle, str(exc))
                        raise
                    attempt += 1
                    delay_ms = self.config.retry_delay_ms(attempt)
                    logger.warning("stream connection retry attempt=%d delay_ms=%d error=%s", attempt, delay_ms, exc)
                    yield Retry(attempt=attempt, delay_ms=delay_ms)
                    await self._within_deadline(asyncio.sleep(delay_ms / 1000.0), deadline, state, handle)
                except BaseException:
                    await candidate.aclose()
                    raise

            async with aclosing(self._read(events, deadline, state, handle)) as chunks:
                async for chunk in chunks:
                    if isinstance(chunk, Done):
                        finished = True
                    yield chunk
                    if finished:
                        return

            finished = True
            state.mark_completed(handle)
            logger.info("stream closed without [DONE] interaction_id=%s", handle.interaction_id)
        except (GeneratorExit, asyncio.CancelledError):
            if not finished and state.mark_aborted(handle):
                log_event("turn_aborted", interaction_id=handle.interaction_id)
            raise
        except OramaError as exc:
            log_event("turn_failed", interaction_id=handle.interaction_id, error=type(exc).__name__)
            raise

    async def _within_deadline(
        self,
        awaitable: Awaitable[T],
        deadline: float,
        state: ConversationState,
        handle: TurnHandle,
    ) -> T:
        remaining = deadline - asyncio.get_running_loop().time()
        try:
            if remaining <= 0:
                raise asyncio.TimeoutError()
            return await asyncio.wait_for(awaitable, timeout=remaining)
        except asyncio.TimeoutError:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            timeout = StreamTimeout(self.config.stream_timeout_seconds)
            logger.error("%s interaction_id=%s", timeout, handle.interaction_id)
            state.mark_error(handle, str(timeout))
            raise timeout from None

    async def _read(
        self,
        events: AsyncGenerator[SseEvent, None],
        deadline: float,
        state: ConversationState,
        handle: TurnHandle,
    ) -> AsyncGenerator[StreamChunk, None]:
        try:
            yield ConnectionOpened()
            while True:
                try:
                    event = await self._within_deadline(events.__anext__(), deadline, state, handle)
                except StopAsyncIteration:
                    break
                except StreamEventError as exc:
                    logger.error("stream event error interaction_id=%s error=%s", handle.interaction_id, exc)
                    state.mark_error(handle, str(exc))
                    raise

                logger.debug("stream event=%s data=%s", event.event, event.data[:200])
                chunk = decode_event(event.data, state, handle)
                yield chunk
                if isinstance(chunk, Done):
                    return
        finally:
            await events.aclose()
