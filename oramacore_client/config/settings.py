"""Runtime settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ORAMA_", extra="ignore")

    app_name: str = "oramacore-client"
    env: str = "dev"
    log_level: str = "info"
    # empty string keeps logging on stderr only
    log_file: str = ""

    reader_url: str = "https://collections.orama.com"
    writer_url: str = ""
    api_key: str = ""
    auth_jwt_url: str = "https://app.orama.com/api/user/jwt"
    user_agent: str = "oramacore-client-python/1.2.0"

    request_timeout_seconds: float = 60.0
    max_connections: int = 100
    max_keepalive_connections: int = 20

    default_visitor_id: str = "server-user-default"

    # reconnection before the first event only; 0 disables it
    stream_max_retries: int = Field(default=0, ge=0)
    stream_initial_retry_delay_ms: int = 1000
    stream_max_retry_delay_ms: int = 30000
    stream_connection_timeout_seconds: float = 30.0
    stream_timeout_seconds: float = 300.0

    relay_max_sessions: int = 1000


settings = Settings()
