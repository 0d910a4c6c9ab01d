"""
Per-item segmentation of a streaming questions array.

Question text routinely contains braces and escaped quotes, so unlike the
document-level extractor this scan tracks string and escape state.
"""

from __future__ import annotations

import json
import re
from typing import Any

from quaiz_stream.types import Segmentation
from quaiz_stream.utils.json_repair import close_json

QUESTIONS_MARKER = re.compile(r'"questions"\s*:\s*\[')

_QUESTION_TEXT = re.compile(r'"question"\s*:\s*"([^"]*)')

PLACEHOLDER_TEXT = "Generating question..."

REQUIRED_ITEM_FIELDS = ("id", "type", "question")


def extract_partial_text(partial_json: str) -> str:
    """Readable excerpt of the question text from a fragment that will not parse."""
    match = _QUESTION_TEXT.search(partial_json)
    return match.group(1) if match else PLACEHOLDER_TEXT


def _parse_item(item_json: str) -> dict[str, Any] | None:
    try:
        item = json.loads(item_json)
    except (json.JSONDecodeError, RecursionError):
        return None
    if not isinstance(item, dict):
        return None
    if not all(item.get(field) for field in REQUIRED_ITEM_FIELDS):
        return None
    return item


def _parse_partial_item(partial_json: str) -> dict[str, Any]:
    try:
        parsed = json.loads(close_json(partial_json))
    except (json.JSONDecodeError, RecursionError):
        parsed = None
    if isinstance(parsed, dict):
        return parsed
    return {"question": extract_partial_text(partial_json)}


def segment_questions(content: str, marker: re.Pattern[str] = QUESTIONS_MARKER) -> Segmentation:
    """
    Split the questions array into closed items and the item in flight.

    Args:
        content: Accumulated stream text
        marker: Pattern matching the opening of the items array

    Returns:
        Segmentation with the closed items that parse and carry id, type
        and question, plus the trailing unclosed item (repaired, or just a
        text excerpt) if any. Closed items that do not parse are dropped.
    """
    found = marker.search(content)
    if not found:
        return Segmentation()

    items = content[found.end() :]
    complete: list[dict[str, Any]] = []
    depth = 0
    bracket_depth = 0
    in_string = False
    escape_next = False
    item_start = -1

    for i, char in enumerate(items):
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
        elif char == "{":
            if depth == 0:
                item_start = i
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0 and item_start != -1:
                item = _parse_item(items[item_start : i + 1])
                if item is not None:
                    complete.append(item)
                item_start = -1
            elif depth < 0:
                break
        elif char == "[":
            bracket_depth += 1
        elif char == "]":
            if depth == 0 and bracket_depth == 0:
                break
            bracket_depth -= 1

    partial = None
    if depth > 0 and item_start != -1:
        partial = _parse_partial_item(items[item_start:])

    return Segmentation(complete=complete, partial=partial)
