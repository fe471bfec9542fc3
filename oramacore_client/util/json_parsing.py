"""
Best-effort parsing of JSON emitted by a language model.

A token stream cut at an arbitrary boundary produces text such as
``{"content": "Hello wor``. ``safe_json_parse`` tries a plain parse first and
falls back to ``json_repair`` for truncated or slightly malformed input.
"""

from __future__ import annotations

import json
from typing import Any

from json_repair import repair_json

from oramacore_client.core.errors import ParseFailure


def safe_json_parse(text: str) -> Any:
    """
    Parse ``text``, repairing it once if the plain parse fails.

    Raises:
        ParseFailure: the text holds no JSON value even after repair, or a
            complete value is followed by more data.
    """
    if not isinstance(text, str):
        raise ParseFailure(str(text), "input is not text")
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        # a complete value with more data behind it is not truncation
        if exc.msg == "Extra data":
            raise ParseFailure(text, "unexpected data after JSON value") from exc

    try:
        repaired = repair_json(text, skip_json_loads=True)
    except (ValueError, RecursionError) as exc:
        raise ParseFailure(text, f"repair failed: {exc}") from exc
    if not isinstance(repaired, str) or not repaired.strip():
        raise ParseFailure(text, "no JSON value found")

    try:
        value = json.loads(repaired)
    except json.JSONDecodeError as exc:
        raise ParseFailure(text, str(exc)) from exc
    # json_repair answers "" when it finds nothing to salvage
    if value == "":
        raise ParseFailure(text, "no JSON value found")
    return value


def parse_ai_response(text: str) -> Any:
    return safe_json_parse(text)
