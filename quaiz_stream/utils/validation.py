"""
Schema validation of complete documents.
"""

from __future__ import annotations

import json
import re
from typing import Any

from jsonschema import ValidationError as SchemaError
from jsonschema.exceptions import best_match
from pydantic import ValidationError

from quaiz_stream.shapes import ShapeSpec, get_shape
from quaiz_stream.types import (
    InvalidOutcome,
    ShapeName,
    StreamError,
    ValidationOutcome,
    ValidOutcome,
)
from quaiz_stream.utils.json_extract import extract_json_from_stream

_CODE_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def _malformed(message: str) -> InvalidOutcome:
    return InvalidOutcome(error=StreamError(kind="MalformedJSON", message=message))


def _violation(message: str, field: str | None = None, position: int | None = None) -> InvalidOutcome:
    return InvalidOutcome(
        error=StreamError(kind="SchemaViolation", message=message, field=field, position=position)
    )


def _locate(path: list[Any], array_field: str) -> tuple[str | None, int | None]:
    """Split an error path into (dotted field name, item position)."""
    position = None
    if len(path) >= 2 and path[0] == array_field and isinstance(path[1], int):
        position = path[1]
    names = [str(p) for p in path if not isinstance(p, int)]
    return (".".join(names) or None), position


def _format_schema_error(err: SchemaError, spec: ShapeSpec) -> InvalidOutcome:
    path = list(err.absolute_path)
    if err.validator == "required":
        missing = next((f for f in err.validator_value if f not in err.instance), None)
        if missing is not None:
            path.append(missing)
    field, position = _locate(path, spec.array_field)

    where = ".".join(str(p) for p in err.absolute_path) or "root"
    message = f"{where}: {err.message}"
    if position is not None:
        message = f"{spec.array_field}[{position}] invalid: {message}"
    return _violation(message, field=field, position=position)


def _format_model_error(exc: ValidationError, spec: ShapeSpec) -> InvalidOutcome:
    first = exc.errors()[0]
    field, position = _locate(list(first["loc"]), spec.array_field)
    return _violation(f"{'.'.join(str(p) for p in first['loc']) or 'root'}: {first['msg']}", field, position)


def validate_data(data: Any, shape: ShapeName) -> ValidationOutcome:
    """Validate an already parsed JSON value against a shape."""
    spec = get_shape(shape)
    if not isinstance(data, dict):
        return _violation(f"Expected a JSON object, got {type(data).__name__}")

    err = best_match(spec.validator.iter_errors(data))
    if err is not None:
        return _format_schema_error(err, spec)

    normalized = spec.normalize(data) if spec.normalize else data
    try:
        value = spec.model.model_validate(normalized)
    except ValidationError as exc:
        return _format_model_error(exc, spec)
    return ValidOutcome(value=value)


def validate_document(json_text: str, shape: ShapeName) -> ValidationOutcome:
    """
    Validate a complete JSON document against the requested shape.

    Args:
        json_text: Text expected to hold exactly one JSON object
        shape: "quiz" or "grading" (or any registered shape)

    Returns:
        ValidOutcome with the typed value (quiz questions carry an empty
        user answer), or InvalidOutcome with a MalformedJSON or
        SchemaViolation error. Never raises for bad input.
    """
    try:
        data = json.loads(json_text)
    except (json.JSONDecodeError, RecursionError) as exc:
        return _malformed(f"Invalid JSON: {exc}")
    return validate_data(data, shape)


def validate_question(data: Any) -> ValidationOutcome | None:
    """
    Validate one quiz item on its own.

    Returns None when the item passes; otherwise the InvalidOutcome.
    """
    spec = get_shape("quiz")
    err = best_match(spec.item_validator.iter_errors(data))
    if err is None:
        return None
    return _format_schema_error(err, spec)


def validate_response(response: str, shape: ShapeName) -> ValidationOutcome:
    """
    Validate a full, non-streamed model response.

    The JSON may be wrapped in prose or a markdown code fence; the first
    JSON object found is validated.
    """
    fenced = _CODE_FENCE.search(response)
    text = fenced.group(1) if fenced else response
    result = extract_json_from_stream(text)
    if result.candidate is None:
        return _malformed("No JSON object found in response")
    if not result.complete:
        return _malformed("JSON object in response is incomplete")
    return validate_document(result.candidate, shape)
