"""Bearer token and base URL resolution per target."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from oramacore_client.core.errors import ApiError, ConfigError, TransportError
from oramacore_client.util.logger import logger


class Target(str, Enum):
    READER = "reader"
    WRITER = "writer"


@dataclass(frozen=True, slots=True)
class AuthRef:
    bearer: str
    base_url: str


@dataclass(slots=True)
class ApiKeyAuth:
    api_key: str
    reader_url: Optional[str] = None
    writer_url: Optional[str] = None


@dataclass(slots=True)
class JwtAuth:
    auth_jwt_url: str
    collection_id: str
    private_api_key: str
    reader_url: Optional[str] = None
    writer_url: Optional[str] = None


AuthConfig = Union[ApiKeyAuth, JwtAuth]


class JwtRequestResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    jwt: str
    writer_url: str = Field(alias="writerURL")
    reader_api_key: str = Field(alias="readerApiKey")
    reader_url: str = Field(alias="readerURL")
    expires_in: int = Field(alias="expiresIn")


class Auth:
    def __init__(self, config: AuthConfig) -> None:
        self.config = config

    async def get_ref(self, target: Target, http_client: httpx.AsyncClient) -> AuthRef:
        config = self.config
        if isinstance(config, ApiKeyAuth):
            base_url = config.writer_url if target == Target.WRITER else config.reader_url
            if not base_url:
                field_name = "writerURL" if target == Target.WRITER else "readerURL"
                raise ConfigError(
                    f"Cannot perform a request to a {target.value} without the {field_name}. "
                    f"Use cluster.{field_name} to configure it"
                )
            return AuthRef(bearer=config.api_key, base_url=base_url)

        jwt_response = await self._fetch_jwt(config, http_client, scope="write")
        if target == Target.READER:
            return AuthRef(
                bearer=jwt_response.reader_api_key,
                base_url=config.reader_url or jwt_response.reader_url,
            )
        return AuthRef(
            bearer=jwt_response.jwt,
            base_url=config.writer_url or jwt_response.writer_url,
        )

    @staticmethod
    async def _fetch_jwt(config: JwtAuth, http_client: httpx.AsyncClient, scope: str) -> JwtRequestResponse:
        payload = {
            "collectionId": config.collection_id,
            "privateApiKey": config.private_api_key,
            "scope": scope,
        }
        try:
            response = await http_client.post(config.auth_jwt_url, json=payload)
        except httpx.HTTPError as exc:
            detail = (str(exc) or "").strip() or "connection_failed_or_timeout"
            logger.warning("jwt request failed url=%s error=%s", config.auth_jwt_url, detail)
            raise TransportError(f"JWT request to {config.auth_jwt_url} failed: {detail}") from exc

        if response.status_code >= 400:
            raise ApiError(
                response.status_code,
                f"JWT request to {config.auth_jwt_url} failed: {response.text[:600]}",
            )
        try:
            return JwtRequestResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise TransportError(f"invalid JWT response from {config.auth_jwt_url}: {exc}") from exc
