"""
Best-effort typed values from unfinished stream text.

Everything here is for progressive display only and never raises; a
failed projection simply means "no value yet".
"""

from __future__ import annotations

from typing import Any, Callable

from pydantic import TypeAdapter, ValidationError

from quaiz_stream.shapes import ShapeSpec, get_shape
from quaiz_stream.types import (
    Document,
    GradingItem,
    GradingResult,
    Question,
    Quiz,
    ShapeName,
    StreamingQuestion,
    now_ms,
)
from quaiz_stream.utils.json_repair import parse_streaming_json
from quaiz_stream.utils.segmenter import QUESTIONS_MARKER, segment_questions
from quaiz_stream.utils.validation import validate_question

_question_adapter: TypeAdapter[Any] = TypeAdapter(Question)

_USER_ANSWER_KEYS = ("userAnswer", "user_answer")


def _strip_user_answer(raw: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in raw.items() if k not in _USER_ANSWER_KEYS}


def to_question(raw: Any) -> Question | None:
    """Typed question for a parsed item, or None if it does not validate."""
    if not isinstance(raw, dict):
        return None
    raw = _strip_user_answer(raw)
    if validate_question(raw) is not None:
        return None
    try:
        return _question_adapter.validate_python(raw)
    except ValidationError:
        return None


def to_streaming_question(raw: dict[str, Any], is_partial: bool) -> StreamingQuestion:
    """
    Wrap a parsed (or half-parsed) item for the per-item sinks.

    Closed items that validate are normalized the same way the final quiz
    is; anything else is passed through as parsed.
    """
    question = None if is_partial else to_question(raw)
    fields = question.model_dump(by_alias=True) if question is not None else _strip_user_answer(raw)
    fields["isPartial"] = is_partial
    try:
        return StreamingQuestion.model_validate(fields)
    except ValidationError:
        text = fields.get("question")
        return StreamingQuestion(question=text if isinstance(text, str) else None, is_partial=is_partial)


def _valid_prefix(items: Any, convert: Callable[[Any], Any | None]) -> list[Any]:
    prefix: list[Any] = []
    if not isinstance(items, list):
        return prefix
    for raw in items:
        value = convert(raw)
        if value is None:
            break
        prefix.append(value)
    return prefix


def _header(text: str) -> dict[str, Any]:
    """Top-level fields written before the items array opened."""
    marker = QUESTIONS_MARKER.search(text)
    head = text[: marker.start()] if marker else text
    return parse_streaming_json(head) or {}


def _project_quiz(data: dict[str, Any] | None, text: str, spec: ShapeSpec, fallback_id: str | None) -> Quiz | None:
    if data is not None:
        header = data
        questions = _valid_prefix(data.get(spec.array_field), to_question)
    else:
        header = _header(text)
        questions = _valid_prefix(segment_questions(text).complete, to_question)

    quiz_id = header.get("id")
    title = header.get("title")
    if not quiz_id and not title and not questions:
        return None

    created_at = header.get("createdAt")
    return Quiz(
        id=str(quiz_id) if quiz_id else fallback_id or f"quiz-{now_ms()}",
        title=title if isinstance(title, str) else "",
        questions=questions,
        created_at=created_at if isinstance(created_at, int) else now_ms(),
    )


def _to_grading_item(raw: Any) -> GradingItem | None:
    spec = get_shape("grading")
    if not isinstance(raw, dict) or not spec.item_validator.is_valid(raw):
        return None
    try:
        return GradingItem.model_validate(raw)
    except ValidationError:
        return None


def _number(value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return 0


def _project_grading(
    data: dict[str, Any] | None, text: str, spec: ShapeSpec, fallback_id: str | None
) -> GradingResult | None:
    if data is None:
        return None
    if not any(key in data for key in spec.required_fields):
        return None

    feedback = data.get("overallFeedback")
    return GradingResult(
        total_score=_number(data.get("totalScore")),
        max_score=_number(data.get("maxScore")),
        results=_valid_prefix(data.get(spec.array_field), _to_grading_item),
        overall_feedback=feedback if isinstance(feedback, str) else "",
    )


def _project_generic(
    data: dict[str, Any] | None, text: str, spec: ShapeSpec, fallback_id: str | None
) -> Document | None:
    if data is None:
        return None
    try:
        return spec.model.model_validate(data)
    except ValidationError:
        return None


_PARTIAL_BUILDERS: dict[str, Callable[..., Document | None]] = {
    "quiz": _project_quiz,
    "grading": _project_grading,
}


def project_partial(text: str | None, shape: ShapeName, fallback_id: str | None = None) -> Document | None:
    """
    Best-effort typed value for a candidate that may still be growing.

    Args:
        text: Raw or already repaired candidate
        shape: Target shape
        fallback_id: Quiz id to use while the model has not written one;
            pass the same value on every call to keep the key stable

    Returns:
        A Quiz or GradingResult with whatever parsed cleanly so far, or
        None. Never raises.
    """
    try:
        if not text:
            return None
        spec = get_shape(shape)
        data = parse_streaming_json(text, spec.array_field)
        builder = _PARTIAL_BUILDERS.get(spec.name, _project_generic)
        return builder(data, text, spec, fallback_id)
    except Exception:
        return None
