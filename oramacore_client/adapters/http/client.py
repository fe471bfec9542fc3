"""
HTTP transport for the remote service: authenticated JSON requests and
long-lived event-stream responses over one shared ``httpx.AsyncClient``.
"""

from __future__ import annotations

import json
import threading
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncGenerator, Optional

import httpx

from oramacore_client.adapters.http.sse import EVENT_OPEN, SseEvent, iter_events
from oramacore_client.config.settings import settings
from oramacore_client.core.auth import ApiKeyAuth, Auth, AuthConfig, AuthRef, Target
from oramacore_client.core.errors import ApiError, AuthenticationError, ParseFailure, StreamEventError, TransportError
from oramacore_client.util.json_parsing import safe_json_parse
from oramacore_client.util.logger import logger

EVENT_STREAM = "text/event-stream"


class ApiKeyPosition(str, Enum):
    HEADER = "header"
    QUERY_PARAMS = "query_params"


@dataclass(slots=True)
class ClientRequest:
    target: Target
    method: str
    path: str
    api_key_position: ApiKeyPosition
    body: Any = None
    params: dict[str, str] = field(default_factory=dict)

    @classmethod
    def post(cls, path: str, target: Target, api_key_position: ApiKeyPosition, body: Any) -> "ClientRequest":
        return cls(target=target, method="POST", path=path, api_key_position=api_key_position, body=body)


def _http_limits() -> httpx.Limits:
    return httpx.Limits(
        max_connections=max(10, int(settings.max_connections)),
        max_keepalive_connections=max(5, int(settings.max_keepalive_connections)),
    )


def _http_timeout() -> httpx.Timeout:
    timeout = float(settings.request_timeout_seconds)
    return httpx.Timeout(connect=timeout, read=timeout, write=timeout, pool=timeout)


def _join_url(base_url: str, path: str) -> str:
    route_path = path if path.startswith("/") else f"/{path}"
    return f"{base_url.strip().rstrip('/')}{route_path}"


def _decode_json_or_text(body: bytes) -> dict[str, Any] | str:
    text = body.decode("utf-8", errors="replace")
    if not text:
        return ""
    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
        return text
    except json.JSONDecodeError:
        return text


def _safe_error_detail(payload: dict[str, Any] | str) -> str:
    if isinstance(payload, str):
        return payload[:600]
    for key in ("message", "error"):
        if isinstance(payload.get(key), str):
            return payload[key][:600]
    return json.dumps(payload, ensure_ascii=False)[:600]


def _status_error(status: int, body: bytes) -> TransportError:
    detail = _safe_error_detail(_decode_json_or_text(body))
    if status == 401:
        return AuthenticationError()
    if status == 400:
        return ApiError(status, f"Bad Request: {detail}")
    return ApiError(status, detail)


class OramaClient:
    """Shared, stateless-per-request transport. Auth is resolved on every call."""

    def __init__(self, auth: Auth | AuthConfig, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self.auth = auth if isinstance(auth, Auth) else Auth(auth)
        self._client = http_client
        self._client_lock = threading.Lock()

    @classmethod
    def from_settings(cls) -> "OramaClient":
        return cls(
            ApiKeyAuth(
                api_key=settings.api_key,
                reader_url=settings.reader_url or None,
                writer_url=settings.writer_url or None,
            )
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    http2=False,
                    timeout=_http_timeout(),
                    limits=_http_limits(),
                    headers={"User-Agent": settings.user_agent},
                )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get_auth_ref(self, target: Target) -> AuthRef:
        return await self.auth.get_ref(target, self._get_client())

    async def get_response(self, req: ClientRequest) -> httpx.Response:
        client = self._get_client()
        auth_ref = await self.get_auth_ref(req.target)
        url = _join_url(auth_ref.base_url, req.path)

        headers = {"Content-Type": "application/json"}
        if req.api_key_position == ApiKeyPosition.HEADER:
            headers["Authorization"] = f"Bearer {auth_ref.bearer}"
        params = dict(req.params)
        if req.api_key_position == ApiKeyPosition.QUERY_PARAMS:
            params["api-key"] = auth_ref.bearer

        content = None
        if req.body is not None:
            content = json.dumps(req.body, ensure_ascii=False).encode("utf-8")
        logger.debug("request start method=%s url=%s payload_bytes=%d", req.method, url, len(content or b""))
        try:
            response = await client.request(req.method, url, params=params or None, headers=headers, content=content)
        except httpx.HTTPError as exc:
            detail = (str(exc) or "").strip() or "connection_failed_or_timeout"
            logger.warning("request http_error url=%s error=%s", url, detail)
            raise TransportError(f"HTTP error: {detail}") from exc
        logger.debug("request done url=%s status=%s", url, response.status_code)
        return response

    async def request(self, req: ClientRequest) -> Any:
        response = await self.get_response(req)
        if not response.is_success:
            raise _status_error(response.status_code, response.content)
        try:
            return safe_json_parse(response.text)
        except ParseFailure as exc:
            logger.warning("response parse failed path=%s error=%s", req.path, exc)
            raise

    async def open_stream(
        self,
        path: str,
        body: Any,
        *,
        target: Target = Target.READER,
        connect_timeout: float | None = None,
    ) -> httpx.Response:
        """Send a POST expecting an event stream. The caller owns the returned response and must ``aclose`` it."""
        client = self._get_client()
        auth_ref = await self.get_auth_ref(target)
        url = _join_url(auth_ref.base_url, path)
        headers = {
            "Accept": EVENT_STREAM,
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {auth_ref.bearer}",
        }
        timeout = _http_timeout()
        if connect_timeout is not None:
            # read stays unbounded: the stream deadline is enforced by the caller
            timeout = httpx.Timeout(connect=connect_timeout, read=None, write=connect_timeout, pool=connect_timeout)

        content = json.dumps(body, ensure_ascii=False).encode("utf-8")
        request = client.build_request("POST", url, headers=headers, content=content, timeout=timeout)
        logger.debug("stream start url=%s payload_bytes=%d", url, len(content))
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as exc:
            detail = (str(exc) or "").strip() or "connection_failed_or_timeout"
            logger.warning("stream http_error url=%s error=%s", url, detail)
            raise TransportError(f"HTTP error: {detail}") from exc

        logger.debug("stream connected url=%s status=%s", url, response.status_code)
        if not response.is_success:
            try:
                body_bytes = await response.aread()
            finally:
                await response.aclose()
            raise _status_error(response.status_code, body_bytes)

        content_type = response.headers.get("content-type", "")
        if not content_type.lower().startswith(EVENT_STREAM):
            await response.aclose()
            raise TransportError(f"Invalid content type for event stream: {content_type or 'none'}")
        return response

    async def stream_events(
        self,
        path: str,
        body: Any,
        *,
        target: Target = Target.READER,
        connect_timeout: float | None = None,
    ) -> AsyncGenerator[SseEvent, None]:
        """
        Yield an ``open`` event once the stream is accepted, then the decoded
        ``message`` events. Connection and status failures raise before the
        ``open`` event; a transport failure afterwards raises ``StreamEventError``.
        """
        response = await self.open_stream(path, body, target=target, connect_timeout=connect_timeout)
        try:
            yield SseEvent(event=EVENT_OPEN, data="")
            try:
                async with aclosing(iter_events(response)) as events:
                    async for event in events:
                        yield event
            except httpx.HTTPError as exc:
                detail = (str(exc) or "").strip() or type(exc).__name__
                logger.warning("stream event error path=%s error=%s", path, detail)
                raise StreamEventError(f"Stream event error: {detail}") from exc
        finally:
            await response.aclose()
