"""
Helpers for building the JSON Schema fragments shapes are validated against.
"""

from __future__ import annotations

from typing import Any


def StringEnum(
    values: list[str],
    *,
    description: str | None = None,
    default: str | None = None,
) -> dict[str, Any]:
    """
    Creates a closed string enum schema.

    Example:
        >>> QuestionTypeSchema = StringEnum(
        ...     ["single-choice", "fill-blank"],
        ...     description="Question variant tag"
        ... )
    """
    schema: dict[str, Any] = {
        "type": "string",
        "enum": values,
    }
    if description:
        schema["description"] = description
    if default:
        schema["default"] = default
    return schema


def ArrayOf(items: dict[str, Any]) -> dict[str, Any]:
    return {"type": "array", "items": items}


def ObjectOf(
    properties: dict[str, dict[str, Any]],
    *,
    required: list[str] | None = None,
) -> dict[str, Any]:
    """Object schema; every property is required unless `required` says otherwise."""
    return {
        "type": "object",
        "properties": properties,
        "required": list(properties) if required is None else required,
    }


def TaggedVariant(tag_field: str, tag: str, then: dict[str, Any]) -> dict[str, Any]:
    """
    Draft 7 `if/then` clause applying `then` only to objects whose
    `tag_field` equals `tag`.
    """
    return {
        "if": {
            "properties": {tag_field: {"const": tag}},
            "required": [tag_field],
        },
        "then": then,
    }


STRING: dict[str, Any] = {"type": "string"}
NUMBER: dict[str, Any] = {"type": "number"}
INTEGER: dict[str, Any] = {"type": "integer"}
IDENTIFIER: dict[str, Any] = {"type": ["string", "integer"]}
