"""
HTTP relay over in-memory AI sessions.

Sessions are kept in a bounded registry keyed by session id; the oldest one is
evicted once ``relay_max_sessions`` is reached. Streamed answers are re-emitted
as ``data:`` lines terminated by ``[DONE]``.
"""

from __future__ import annotations

import json
import threading
from collections import OrderedDict
from contextlib import aclosing
from typing import Any, AsyncGenerator

from fastapi import APIRouter
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from oramacore_client.adapters.http.client import OramaClient
from oramacore_client.config.settings import settings
from oramacore_client.core.chunks import (
    DONE_SENTINEL,
    ConnectionOpened,
    Content,
    Done,
    RawData,
    Retry,
    StatusUpdate,
    StreamChunk,
)
from oramacore_client.core.errors import (
    AuthenticationError,
    InvalidState,
    MissingParameters,
    OramaError,
)
from oramacore_client.core.models import AnswerRequest, CreateAiSessionConfig
from oramacore_client.core.session import AiSession
from oramacore_client.util.logger import logger

router = APIRouter()

_sessions: OrderedDict[str, AiSession] = OrderedDict()
_lock = threading.Lock()
_client: OramaClient | None = None


def configure_client(client: OramaClient | None) -> None:
    global _client
    _client = client


def _get_client() -> OramaClient:
    global _client
    if _client is None:
        _client = OramaClient.from_settings()
    return _client


async def close_relay_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def reset_sessions() -> None:
    with _lock:
        _sessions.clear()


def _register(session: AiSession) -> None:
    limit = max(1, int(settings.relay_max_sessions))
    with _lock:
        _sessions[session.session_id] = session
        while len(_sessions) > limit:
            evicted, _ = _sessions.popitem(last=False)
            logger.info("relay session evicted session_id=%s", evicted)


def _lookup(session_id: str) -> AiSession | None:
    with _lock:
        return _sessions.get(session_id)


def _error_response(status_code: int, reason: str, detail: str) -> JSONResponse:
    detail_str = (detail or "").strip() or reason
    return JSONResponse(status_code=status_code, content={"error": reason, "detail": detail_str})


def _session_not_found(session_id: str) -> JSONResponse:
    return _error_response(404, "session_not_found", f"unknown session {session_id}")


def _status_for(exc: OramaError) -> tuple[int, str]:
    if isinstance(exc, (InvalidState, MissingParameters)):
        return 409, "invalid_state"
    if isinstance(exc, AuthenticationError):
        return 401, "upstream_auth_failed"
    return 502, "upstream_error"


def _chunk_payload(chunk: StreamChunk) -> dict[str, Any]:
    if isinstance(chunk, Content):
        return {"type": "content", "content": chunk.text}
    if isinstance(chunk, StatusUpdate):
        return {"type": "status", "step": chunk.step}
    if isinstance(chunk, RawData):
        return {"type": "raw", "data": chunk.data}
    if isinstance(chunk, Retry):
        return {"type": "retry", "attempt": chunk.attempt, "delay_ms": chunk.delay_ms}
    if isinstance(chunk, ConnectionOpened):
        return {"type": "open"}
    return {"type": "done"}


def _sse_chunk(payload: dict[str, Any]) -> bytes:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


def _sse_error_chunk(exc: OramaError) -> bytes:
    _status, code = _status_for(exc)
    return _sse_chunk({"type": "error", "error": {"message": str(exc), "code": code}})


def _sse_done_chunk() -> bytes:
    return f"data: {DONE_SENTINEL}\n\n".encode("utf-8")


def _build_streaming_response(generator: AsyncGenerator[bytes, None]) -> StreamingResponse:
    return StreamingResponse(
        generator,
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/sessions")
async def create_relay_session(payload: dict):
    collection_id = str(payload.get("collection_id") or "").strip()
    if not collection_id:
        return _error_response(400, "invalid_parameters", "collection_id is required")
    try:
        config = CreateAiSessionConfig.model_validate(
            {key: payload[key] for key in ("llm_config", "initial_messages") if payload.get(key) is not None}
        )
    except ValidationError as exc:
        return _error_response(400, "invalid_parameters", str(exc))

    session = AiSession(collection_id, _get_client(), config=config)
    _register(session)
    logger.info("relay session created session_id=%s collection_id=%s", session.session_id, collection_id)
    return {"session_id": session.session_id, "collection_id": collection_id}


@router.post("/sessions/{session_id}/answer")
async def relay_answer(session_id: str, payload: dict):
    session = _lookup(session_id)
    if session is None:
        return _session_not_found(session_id)
    try:
        request = AnswerRequest.model_validate(payload)
    except ValidationError as exc:
        return _error_response(400, "invalid_parameters", str(exc))
    try:
        answer = await session.answer(request)
    except OramaError as exc:
        status, code = _status_for(exc)
        return _error_response(status, code, str(exc))
    return {"answer": answer}


@router.post("/sessions/{session_id}/answer/stream")
async def relay_answer_stream(session_id: str, payload: dict):
    session = _lookup(session_id)
    if session is None:
        return _session_not_found(session_id)
    try:
        request = AnswerRequest.model_validate(payload)
    except ValidationError as exc:
        return _error_response(400, "invalid_parameters", str(exc))

    async def relay_generator() -> AsyncGenerator[bytes, None]:
        try:
            async with aclosing(session.answer_stream(request)) as chunks:
                async for chunk in chunks:
                    if isinstance(chunk, Done):
                        break
                    yield _sse_chunk(_chunk_payload(chunk))
        except OramaError as exc:
            logger.warning("relay stream failed session_id=%s error=%s", session_id, exc)
            yield _sse_error_chunk(exc)
        yield _sse_done_chunk()

    return _build_streaming_response(relay_generator())


@router.post("/sessions/{session_id}/regenerate")
async def relay_regenerate(session_id: str, payload: dict | None = None):
    session = _lookup(session_id)
    if session is None:
        return _session_not_found(session_id)
    use_streaming = bool((payload or {}).get("stream", False))
    try:
        answer = await session.regenerate_last(use_streaming)
    except OramaError as exc:
        status, code = _status_for(exc)
        return _error_response(status, code, str(exc))
    return {"answer": answer}


@router.delete("/sessions/{session_id}/messages")
async def relay_clear(session_id: str):
    session = _lookup(session_id)
    if session is None:
        return _session_not_found(session_id)
    session.clear_session()
    return {"session_id": session_id, "cleared": True}


@router.get("/sessions/{session_id}/messages")
async def relay_messages(session_id: str):
    session = _lookup(session_id)
    if session is None:
        return _session_not_found(session_id)
    return {"messages": [message.model_dump(mode="json") for message in session.get_messages()]}


@router.get("/sessions/{session_id}/state")
async def relay_state(session_id: str):
    session = _lookup(session_id)
    if session is None:
        return _session_not_found(session_id)
    return {"interactions": [interaction.model_dump(mode="json") for interaction in session.get_state()]}
