"""Session and request models."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class LlmProvider(str, Enum):
    OPENAI = "openai"
    FIREWORKS = "fireworks"
    TOGETHER = "together"
    GOOGLE = "google"
    CLAUDE = "claude"


class Message(BaseModel):
    role: Role
    content: str = ""


class LlmConfig(BaseModel):
    provider: LlmProvider
    model: str


class RelatedQuestionsFormat(str, Enum):
    QUESTION = "question"
    QUERY = "query"


class RelatedQuestionsConfig(BaseModel):
    enabled: Optional[bool] = None
    size: Optional[int] = None
    format: Optional[RelatedQuestionsFormat] = None


class SearchParams(BaseModel):
    """Search query as optimized by the remote service."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    term: str
    mode: Optional[str] = None
    limit: Optional[int] = None
    offset: Optional[int] = None
    properties: Optional[list[str]] = None
    where: Optional[dict[str, Any]] = None
    datasource_ids: Optional[list[str]] = Field(default=None, alias="datasourceIDs")
    threshold: Optional[float] = None
    user_id: Optional[str] = Field(default=None, alias="userID")


class AnswerRequest(BaseModel):
    """Per-call parameters of an AI answer."""

    model_config = ConfigDict(populate_by_name=True)

    query: str
    interaction_id: Optional[str] = None
    visitor_id: Optional[str] = None
    session_id: Optional[str] = None
    messages: Optional[list[Message]] = None
    related: Optional[RelatedQuestionsConfig] = None
    datasource_ids: Optional[list[str]] = Field(default=None, alias="datasourceIDs")
    min_similarity: Optional[float] = None
    max_documents: Optional[int] = None
    ragat_notation: Optional[str] = None
    llm_config: Optional[LlmConfig] = Field(default=None, alias="LLMConfig")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Interaction(BaseModel):
    id: str
    query: str
    response: str = ""
    sources: Optional[Any] = None
    loading: bool = True
    error: bool = False
    error_message: Optional[str] = None
    aborted: bool = False
    related: Optional[str] = None
    current_step: Optional[str] = "starting"
    current_step_verbose: Optional[str] = None
    selected_llm: Optional[LlmConfig] = None
    optimized_query: Optional[SearchParams] = None
    advanced_data: Optional[Any] = None


class CreateAiSessionConfig(BaseModel):
    llm_config: Optional[LlmConfig] = None
    initial_messages: list[Message] = Field(default_factory=list)
