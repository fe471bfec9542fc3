"""
Conversation state store.

Messages and interactions live behind one lock so a turn (user message,
assistant placeholder, interaction) is always appended, popped and cleared as a
unit. Every turn is registered under an integer token; writers address their
own turn through a ``TurnHandle`` and silently stop once the turn has been
popped or the session cleared.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Optional

from oramacore_client.core.errors import InvalidState, NoHistory
from oramacore_client.core.models import Interaction, LlmConfig, Message, Role, SearchParams
from oramacore_client.util.logger import get_logger

logger = get_logger("state")

STEP_STARTING = "starting"
STEP_COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class TurnHandle:
    token: int
    interaction_id: str


@dataclass(slots=True)
class _Turn:
    user: Message
    assistant: Message
    interaction: Interaction


class ConversationState:
    def __init__(self, initial_messages: Optional[list[Message]] = None) -> None:
        self._lock = threading.Lock()
        self._messages: list[Message] = [message.model_copy(deep=True) for message in initial_messages or []]
        self._interactions: list[Interaction] = []
        self._tokens: list[int] = []
        self._live: dict[int, _Turn] = {}
        self._next_token = 0

    def begin_turn(
        self,
        query: str,
        interaction_id: str,
        selected_llm: Optional[LlmConfig] = None,
    ) -> TurnHandle:
        user = Message(role=Role.USER, content=query)
        assistant = Message(role=Role.ASSISTANT, content="")
        interaction = Interaction(
            id=interaction_id,
            query=query,
            selected_llm=selected_llm.model_copy() if selected_llm else None,
        )
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._messages.append(user)
            self._messages.append(assistant)
            self._interactions.append(interaction)
            self._tokens.append(token)
            self._live[token] = _Turn(user=user, assistant=assistant, interaction=interaction)
        return TurnHandle(token=token, interaction_id=interaction_id)

    def _turn(self, handle: TurnHandle) -> _Turn | None:
        turn = self._live.get(handle.token)
        if turn is None:
            logger.debug("stale turn write skipped interaction_id=%s", handle.interaction_id)
        return turn

    def append_content(
        self,
        handle: TurnHandle,
        text: str,
        step: Optional[str] = None,
        verbose_step: Optional[str] = None,
    ) -> bool:
        with self._lock:
            turn = self._turn(handle)
            if turn is None:
                return False
            turn.assistant.content += text
            turn.interaction.response += text
            if step is not None:
                turn.interaction.current_step = step
            if verbose_step is not None:
                turn.interaction.current_step_verbose = verbose_step
            return True

    def set_step(self, handle: TurnHandle, step: str) -> bool:
        with self._lock:
            turn = self._turn(handle)
            if turn is None:
                return False
            turn.interaction.current_step = step
            return True

    def mark_completed(self, handle: TurnHandle) -> bool:
        with self._lock:
            turn = self._turn(handle)
            if turn is None:
                return False
            turn.interaction.loading = False
            turn.interaction.current_step = STEP_COMPLETED
            return True

    def finish_answer(
        self,
        handle: TurnHandle,
        answer: str,
        sources: Any = None,
        related: Optional[str] = None,
        optimized_query: Optional[SearchParams] = None,
    ) -> bool:
        with self._lock:
            turn = self._turn(handle)
            if turn is None:
                return False
            turn.assistant.content = answer
            interaction = turn.interaction
            interaction.response = answer
            interaction.loading = False
            interaction.current_step = STEP_COMPLETED
            if sources is not None:
                interaction.sources = sources
            if related is not None:
                interaction.related = related
            if optimized_query is not None:
                interaction.optimized_query = optimized_query
            return True

    def mark_error(self, handle: TurnHandle, message: str) -> bool:
        with self._lock:
            turn = self._turn(handle)
            if turn is None:
                return False
            turn.interaction.error = True
            turn.interaction.error_message = message
            turn.interaction.loading = False
            return True

    def mark_aborted(self, handle: TurnHandle) -> bool:
        """Flag an unfinished turn as aborted. Finished or errored turns are left alone."""
        with self._lock:
            turn = self._turn(handle)
            if turn is None or not turn.interaction.loading:
                return False
            turn.interaction.aborted = True
            turn.interaction.loading = False
            return True

    def _check_regenerable_locked(self) -> None:
        if not self._interactions or not self._messages:
            raise NoHistory()
        if self._messages[-1].role != Role.ASSISTANT:
            raise InvalidState("Last message is not an assistant message")
        if self._interactions[-1].loading:
            raise InvalidState("Last interaction is still in progress")

    def check_regenerable(self) -> None:
        with self._lock:
            self._check_regenerable_locked()

    def pop_last_turn(self) -> Interaction:
        """Remove the most recent turn for regeneration and return its interaction."""
        with self._lock:
            self._check_regenerable_locked()
            interaction = self._interactions.pop()
            token = self._tokens.pop()
            self._live.pop(token, None)
            del self._messages[-2:]
            return interaction

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()
            self._interactions.clear()
            self._tokens.clear()
            self._live.clear()

    def messages(self) -> list[Message]:
        with self._lock:
            return [message.model_copy(deep=True) for message in self._messages]

    def interactions(self) -> list[Interaction]:
        with self._lock:
            return [interaction.model_copy(deep=True) for interaction in self._interactions]
