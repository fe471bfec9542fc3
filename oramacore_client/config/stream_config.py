"""Streaming resilience configuration."""

from __future__ import annotations

from dataclasses import dataclass, field

from oramacore_client.config.settings import settings


@dataclass(slots=True)
class StreamConfig:
    max_retries: int = field(default_factory=lambda: settings.stream_max_retries)
    initial_retry_delay_ms: int = field(default_factory=lambda: settings.stream_initial_retry_delay_ms)
    max_retry_delay_ms: int = field(default_factory=lambda: settings.stream_max_retry_delay_ms)
    connection_timeout_seconds: float = field(default_factory=lambda: settings.stream_connection_timeout_seconds)
    stream_timeout_seconds: float = field(default_factory=lambda: settings.stream_timeout_seconds)

    def retry_delay_ms(self, attempt: int) -> int:
        """Exponential backoff for the given 1-based attempt, capped at max_retry_delay_ms."""
        base = max(0, int(self.initial_retry_delay_ms))
        delay = base * (2 ** max(0, attempt - 1))
        return min(delay, max(base, int(self.max_retry_delay_ms)))
