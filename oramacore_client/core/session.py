"""
AI session orchestrator.

A session owns the conversation (messages and interactions), the default LLM
configuration and the last submitted request. Every answer, streamed or not,
is one turn: enrich the request, append the user/assistant pair and the
interaction, then fill them from the remote answer.
"""

from __future__ import annotations

import asyncio
import threading
from contextlib import aclosing
from typing import Any, AsyncGenerator, Optional

from oramacore_client.adapters.http.client import ApiKeyPosition, ClientRequest, OramaClient
from oramacore_client.config.settings import settings
from oramacore_client.config.stream_config import StreamConfig
from oramacore_client.core.auth import Target
from oramacore_client.core.channel import ResilientSseChannel
from oramacore_client.core.chunks import Content, Done, StatusUpdate, StreamChunk
from oramacore_client.core.errors import MissingParameters, OramaError, ParseFailure
from oramacore_client.core.models import (
    AnswerRequest,
    CreateAiSessionConfig,
    Interaction,
    LlmConfig,
    Message,
    SearchParams,
)
from oramacore_client.core.state import ConversationState, TurnHandle
from oramacore_client.observability.logging import log_event
from oramacore_client.util.ids import generate_uuid
from oramacore_client.util.logger import get_logger

logger = get_logger("session")

ANSWER_PATH = "/v1/collections/{collection_id}/ai/answer"
ANSWER_STREAM_PATH = "/v1/collections/{collection_id}/ai/answer/stream"


class AiSession:
    def __init__(
        self,
        collection_id: str,
        client: OramaClient,
        config: Optional[CreateAiSessionConfig] = None,
        stream_config: Optional[StreamConfig] = None,
    ) -> None:
        config = config or CreateAiSessionConfig()
        self.collection_id = collection_id
        self.client = client
        self.llm_config: Optional[LlmConfig] = config.llm_config
        self._session_id = generate_uuid()
        self._state = ConversationState(config.initial_messages)
        self._stream_config = stream_config or StreamConfig()
        self._last_request: Optional[AnswerRequest] = None
        self._params_lock = threading.Lock()

    @property
    def session_id(self) -> str:
        return self._session_id

    def get_stream_config(self) -> StreamConfig:
        return self._stream_config

    def set_stream_config(self, config: StreamConfig) -> None:
        self._stream_config = config

    def get_messages(self) -> list[Message]:
        return self._state.messages()

    def get_state(self) -> list[Interaction]:
        return self._state.interactions()

    def clear_session(self) -> None:
        """Empty the conversation. Streams still in flight stop writing into it."""
        self._state.clear()
        with self._params_lock:
            self._last_request = None
        log_event("session_cleared", session_id=self._session_id)

    def _enrich(self, request: AnswerRequest) -> AnswerRequest:
        update: dict[str, Any] = {}
        if request.visitor_id is None:
            update["visitor_id"] = settings.default_visitor_id
        if request.interaction_id is None:
            update["interaction_id"] = generate_uuid()
        if request.session_id is None:
            update["session_id"] = self._session_id
        if request.llm_config is None and self.llm_config is not None:
            update["llm_config"] = self.llm_config.model_copy()
        return request.model_copy(deep=True, update=update)

    def _begin_turn(self, request: AnswerRequest) -> tuple[AnswerRequest, TurnHandle]:
        enriched = self._enrich(request)
        with self._params_lock:
            self._last_request = enriched.model_copy(deep=True)
        handle = self._state.begin_turn(enriched.query, enriched.interaction_id, enriched.llm_config)
        log_event("turn_started", session_id=self._session_id, interaction_id=handle.interaction_id)
        return enriched, handle

    async def answer(self, request: AnswerRequest) -> str:
        enriched, handle = self._begin_turn(request)
        req = ClientRequest.post(
            ANSWER_PATH.format(collection_id=self.collection_id),
            Target.READER,
            ApiKeyPosition.QUERY_PARAMS,
            enriched.to_wire(),
        )
        try:
            response = await self.client.request(req)
            if not isinstance(response, dict):
                raise ParseFailure(str(response), "expected a JSON object")
        except OramaError as exc:
            logger.error("answer request failed interaction_id=%s error=%s", handle.interaction_id, exc)
            self._state.mark_error(handle, str(exc))
            log_event("turn_failed", interaction_id=handle.interaction_id, error=type(exc).__name__)
            raise
        except asyncio.CancelledError:
            self._state.mark_aborted(handle)
            raise

        answer = response.get("answer")
        answer = answer if isinstance(answer, str) else ""
        related = response.get("related")
        self._state.finish_answer(
            handle,
            answer,
            sources=response.get("sources"),
            related=related if isinstance(related, str) else None,
            optimized_query=_optimized_query(response),
        )
        log_event("turn_completed", interaction_id=handle.interaction_id, length=len(answer))
        return answer

    async def answer_stream(self, request: AnswerRequest) -> AsyncGenerator[StreamChunk, None]:
        """
        Stream one turn as chunks. The turn starts when iteration starts.

        Leaving the iteration early closes the connection and marks the
        interaction aborted; chunks already consumed stay applied.
        """
        enriched, handle = self._begin_turn(request)
        channel = ResilientSseChannel(self.client, self._stream_config)
        stream = channel.stream(
            path=ANSWER_STREAM_PATH.format(collection_id=self.collection_id),
            body=enriched.to_wire(),
            state=self._state,
            handle=handle,
        )
        async with aclosing(stream) as chunks:
            async for chunk in chunks:
                yield chunk
        log_event("turn_completed", interaction_id=handle.interaction_id)

    async def regenerate_last(self, use_streaming: bool = False) -> str:
        logger.info("regenerate_last stream=%s", use_streaming)
        self._state.check_regenerable()
        with self._params_lock:
            last_request = self._last_request.model_copy(deep=True) if self._last_request else None
        if last_request is None:
            logger.warning("no last interaction parameters available")
            raise MissingParameters()

        self._state.pop_last_turn()

        if not use_streaming:
            return await self.answer(last_request)

        parts: list[str] = []
        async with aclosing(self.answer_stream(last_request)) as chunks:
            async for chunk in chunks:
                if isinstance(chunk, Content):
                    parts.append(chunk.text)
                elif isinstance(chunk, StatusUpdate):
                    logger.debug("status update during regeneration: %s", chunk.step)
                elif isinstance(chunk, Done):
                    break
        return "".join(parts)


def _optimized_query(response: dict[str, Any]) -> Optional[SearchParams]:
    raw = response.get("optimized_query")
    if not isinstance(raw, dict):
        return None
    try:
        return SearchParams.model_validate(raw)
    except ValueError:
        logger.debug("ignoring malformed optimized_query")
        return None


def create_session(
    collection_id: str,
    client: Optional[OramaClient] = None,
    *,
    config: Optional[CreateAiSessionConfig] = None,
    stream_config: Optional[StreamConfig] = None,
) -> AiSession:
    return AiSession(
        collection_id,
        client or OramaClient.from_settings(),
        config=config,
        stream_config=stream_config,
    )
