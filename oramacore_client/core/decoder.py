"""Turn one SSE payload into a stream chunk and apply its state mutation."""

from __future__ import annotations

from oramacore_client.core.chunks import (
    DONE_SENTINEL,
    Content,
    ContentEvent,
    Done,
    ErrorEvent,
    RawData,
    StatusUpdate,
    StepEvent,
    StreamChunk,
    classify_event,
)
from oramacore_client.core.errors import ParseFailure, UpstreamReportedError
from oramacore_client.core.state import ConversationState, TurnHandle
from oramacore_client.util.json_parsing import parse_ai_response
from oramacore_client.util.logger import get_logger

logger = get_logger("decoder")


def decode_event(data: str, state: ConversationState, handle: TurnHandle) -> StreamChunk:
    """
    Mutations happen before the chunk is returned, so a caller that observes a
    chunk also observes its effect through the session snapshots.

    Raises:
        UpstreamReportedError: the payload carried an ``error`` field. The
            interaction is marked errored first.
    """
    if data.strip() == DONE_SENTINEL:
        state.mark_completed(handle)
        logger.info("stream completed interaction_id=%s", handle.interaction_id)
        return Done()

    try:
        parsed = parse_ai_response(data)
    except ParseFailure as exc:
        logger.debug("unparseable stream data (%s): %s", exc, data[:200])
        return RawData(data)

    if not isinstance(parsed, dict):
        return RawData(data)

    event = classify_event(parsed)
    if isinstance(event, ContentEvent):
        state.append_content(handle, event.content, step=event.step_label, verbose_step=event.verbose_label)
        return Content(event.content)
    if isinstance(event, StepEvent):
        state.set_step(handle, event.step)
        return StatusUpdate(event.step)
    if isinstance(event, ErrorEvent):
        message = event.message
        logger.warning("stream error received interaction_id=%s error=%s", handle.interaction_id, message)
        state.mark_error(handle, message)
        raise UpstreamReportedError(message)

    logger.debug("unknown structured stream data: %s", data[:200])
    return RawData(data)
