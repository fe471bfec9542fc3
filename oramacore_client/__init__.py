"""Client for the Orama search and AI service, centred on streamed AI sessions."""

from oramacore_client.adapters.http.client import ApiKeyPosition, ClientRequest, OramaClient
from oramacore_client.config.stream_config import StreamConfig
from oramacore_client.core.auth import ApiKeyAuth, AuthRef, JwtAuth, Target
from oramacore_client.core.chunks import ConnectionOpened, Content, Done, RawData, Retry, StatusUpdate, StreamChunk
from oramacore_client.core.errors import (
    ApiError,
    AuthenticationError,
    ConfigError,
    InvalidState,
    MissingParameters,
    NoHistory,
    OramaError,
    ParseFailure,
    StreamError,
    StreamEventError,
    StreamTimeout,
    TransportError,
    UpstreamReportedError,
)
from oramacore_client.core.models import (
    AnswerRequest,
    CreateAiSessionConfig,
    Interaction,
    LlmConfig,
    LlmProvider,
    Message,
    RelatedQuestionsConfig,
    RelatedQuestionsFormat,
    Role,
)
from oramacore_client.core.session import AiSession, create_session

__all__ = [
    "AiSession",
    "AnswerRequest",
    "ApiError",
    "ApiKeyAuth",
    "ApiKeyPosition",
    "AuthRef",
    "AuthenticationError",
    "ClientRequest",
    "ConfigError",
    "ConnectionOpened",
    "Content",
    "CreateAiSessionConfig",
    "Done",
    "Interaction",
    "InvalidState",
    "JwtAuth",
    "LlmConfig",
    "LlmProvider",
    "Message",
    "MissingParameters",
    "NoHistory",
    "OramaClient",
    "OramaError",
    "ParseFailure",
    "RawData",
    "RelatedQuestionsConfig",
    "RelatedQuestionsFormat",
    "Retry",
    "Role",
    "StatusUpdate",
    "StreamChunk",
    "StreamConfig",
    "StreamError",
    "StreamEventError",
    "StreamTimeout",
    "Target",
    "TransportError",
    "UpstreamReportedError",
    "create_session",
]
