"""
Repair utilities for JSON cut off mid-stream.
"""

from __future__ import annotations

import json
import re
from typing import Any

_TRAILING_JUNK = ", \t\r\n"

_CLOSERS = {"{": "}", "[": "]"}

_LAST_STRING = re.compile(r'"(?:[^"\\]|\\.)*"\s*$')


def _scan_open_structures(text: str, start: int = 0) -> tuple[list[str], bool, bool, bool]:
    """
    Walk `text` from `start` tracking containers opened after that point.

    Returns (open_stack, in_string, escape_pending, closed) where `closed`
    means a closer was found with nothing open, i.e. the enclosing
    container ended.
    """
    stack: list[str] = []
    in_string = False
    escape_next = False

    for i in range(start, len(text)):
        char = text[i]
        if escape_next:
            escape_next = False
            continue
        if in_string:
            if char == "\\":
                escape_next = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in "{[":
            stack.append(char)
        elif char in "}]":
            if not stack:
                return stack, False, False, True
            stack.pop()

    return stack, in_string, escape_next, False


def _drop_dangling_key(text: str) -> str:
    """Remove an object key that was cut off before its colon."""
    match = _LAST_STRING.search(text)
    if not match:
        return text
    before = text[: match.start()].rstrip()
    if before.endswith("{"):
        return before
    if before.endswith(","):
        return before[:-1].rstrip()
    return text


def _close(text: str, stack: list[str], in_string: bool, escape_pending: bool) -> str:
    if in_string:
        if escape_pending:
            text = text[:-1]
        text += '"'
    stripped = text.rstrip(_TRAILING_JUNK)
    if stripped.endswith(":"):
        text = stripped + "null"
    elif stack:
        text = _drop_dangling_key(stripped) if stack[-1] == "{" else stripped
    return text + "".join(_CLOSERS[opener] for opener in reversed(stack))


def fix_incomplete_json(json_str: str, array_field: str | None = None) -> str:
    """
    Best-effort repair of a truncated JSON object.

    Strips trailing commas and whitespace. When `array_field` is given and
    its array is still open, closes whatever was opened inside it, then the
    array, then the root object.

    Args:
        json_str: Candidate text, possibly truncated
        array_field: Name of the array the model is streaming items into

    Returns:
        The repaired text. It is not guaranteed to parse.
    """
    fixed = json_str.rstrip(_TRAILING_JUNK)
    if not array_field:
        return fixed

    marker = re.search(rf'"{re.escape(array_field)}"\s*:\s*\[', fixed)
    if not marker:
        return fixed

    stack, in_string, escape_pending, closed = _scan_open_structures(fixed, marker.end())
    if closed:
        return fixed

    return _close(fixed, stack, in_string, escape_pending) + "]}"


def close_json(partial_json: str) -> str:
    """
    Close every string, array and object still open in `partial_json`.

    Unlike `fix_incomplete_json` this works on the whole text without
    knowing which array is being streamed.
    """
    fixed = partial_json.rstrip(_TRAILING_JUNK)
    start = fixed.find("{")
    if start == -1:
        return fixed

    stack, in_string, escape_pending, _ = _scan_open_structures(fixed, start)
    return _close(fixed, stack, in_string, escape_pending)


def safe_parse_json(json_str: str | None) -> Any | None:
    """Parse JSON, returning None instead of raising."""
    if not json_str or not json_str.strip():
        return None
    try:
        return json.loads(json_str)
    except (json.JSONDecodeError, RecursionError):
        return None


def parse_streaming_json(partial_json: str | None, array_field: str | None = None) -> dict[str, Any] | None:
    """
    Attempts to parse potentially incomplete JSON during streaming.

    Tries the text as is, then the array-aware repair, then the generic
    closer.

    Returns:
        The first parse that yields an object, or None
    """
    if not partial_json or partial_json.strip() == "":
        return None

    attempts = [partial_json]
    if array_field:
        attempts.append(fix_incomplete_json(partial_json, array_field))
    attempts.append(close_json(partial_json))

    for attempt in attempts:
        parsed = safe_parse_json(attempt)
        if isinstance(parsed, dict):
            return parsed
    return None
