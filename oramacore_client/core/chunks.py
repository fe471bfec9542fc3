"""
Stream chunks delivered to callers and the wire schema of stream events.

Payload classification keeps a fixed priority: ``content`` first, then
``step``, then ``error``; any other object shape is an unknown event.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError


@dataclass(frozen=True, slots=True)
class ConnectionOpened:
    pass


@dataclass(frozen=True, slots=True)
class Content:
    text: str


@dataclass(frozen=True, slots=True)
class StatusUpdate:
    step: str


@dataclass(frozen=True, slots=True)
class RawData:
    data: str


@dataclass(frozen=True, slots=True)
class Done:
    pass


@dataclass(frozen=True, slots=True)
class Retry:
    attempt: int
    delay_ms: int


StreamChunk = Union[ConnectionOpened, Content, StatusUpdate, RawData, Done, Retry]

DONE_SENTINEL = "[DONE]"


class _WireEvent(BaseModel):
    model_config = ConfigDict(strict=True, extra="ignore")


class ContentEvent(_WireEvent):
    content: str
    # non-string step markers are ignored rather than rejecting the content
    step: Optional[Any] = None
    verbose_step: Optional[Any] = None

    @property
    def step_label(self) -> Optional[str]:
        return self.step if isinstance(self.step, str) else None

    @property
    def verbose_label(self) -> Optional[str]:
        return self.verbose_step if isinstance(self.verbose_step, str) else None


class StepEvent(_WireEvent):
    step: str


class ErrorEvent(_WireEvent):
    error: Union[str, dict[str, Any]]

    @property
    def message(self) -> str:
        if isinstance(self.error, str):
            return self.error
        detail = self.error.get("message")
        if isinstance(detail, str) and detail:
            return detail
        return str(self.error)


@dataclass(frozen=True, slots=True)
class UnknownEvent:
    payload: dict[str, Any]


WireEvent = Union[ContentEvent, StepEvent, ErrorEvent, UnknownEvent]

_PRIORITY: tuple[type[_WireEvent], ...] = (ContentEvent, StepEvent, ErrorEvent)


def classify_event(payload: dict[str, Any]) -> WireEvent:
    for model in _PRIORITY:
        try:
            return model.model_validate(payload)
        except ValidationError:
            continue
    return UnknownEvent(payload=payload)
