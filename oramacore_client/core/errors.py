"""Project error hierarchy."""

from __future__ import annotations


class OramaError(Exception):
    """Base error."""


class ConfigError(OramaError):
    """Raised when the client is missing configuration for a request."""


class TransportError(OramaError):
    """Connection failure or non-success HTTP status."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class AuthenticationError(TransportError):
    """HTTP 401 from the remote service."""

    def __init__(self, message: str = "Unauthorized: are you using the correct API Key?") -> None:
        super().__init__(message, status=401)


class ApiError(TransportError):
    """Non-success status other than 401."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"API error (status {status}): {message}", status=status)
        self.detail = message


class ParseFailure(OramaError):
    """Text is not valid JSON even after repair."""

    def __init__(self, text: str, reason: str = "") -> None:
        super().__init__(f"failed to parse JSON: {reason}" if reason else "failed to parse JSON")
        self.text = text


class StreamError(OramaError):
    """Terminal error of a streamed answer."""


class StreamTimeout(StreamError):
    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"Stream timeout after {_format_seconds(timeout_seconds)} seconds")
        self.timeout_seconds = timeout_seconds


class StreamEventError(StreamError):
    """The transport failed after the stream was established."""


class UpstreamReportedError(StreamError):
    """A decoded payload carried an ``error`` field."""


class InvalidState(OramaError):
    """Local precondition failure; no network call was made."""


class NoHistory(InvalidState):
    def __init__(self, message: str = "No messages to regenerate") -> None:
        super().__init__(message)


class MissingParameters(OramaError):
    def __init__(self, message: str = "No last interaction parameters available") -> None:
        super().__init__(message)


def _format_seconds(value: float) -> str:
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return f"{number:g}"
