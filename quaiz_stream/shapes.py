"""
Registry of target document shapes.

A shape bundles everything shape-specific the pipeline needs: the JSON
Schema the validator checks, the pydantic model built on success, the
array the model streams items into, and the minimum fields an item needs
before it counts as complete.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Callable

from jsonschema import Draft7Validator
from pydantic import BaseModel

from quaiz_stream.exceptions import UnknownShapeError
from quaiz_stream.types import GradingResult, QuestionType, Quiz, ShapeName
from quaiz_stream.utils.schema_helpers import (
    IDENTIFIER,
    INTEGER,
    NUMBER,
    STRING,
    ArrayOf,
    ObjectOf,
    StringEnum,
    TaggedVariant,
)

QUESTION_TYPE_FIELDS: dict[str, dict[str, dict[str, Any]]] = {
    QuestionType.SINGLE_CHOICE.value: {"options": ArrayOf(STRING), "correctAnswer": INTEGER},
    QuestionType.MULTIPLE_CHOICE.value: {"options": ArrayOf(STRING), "correctAnswers": ArrayOf(INTEGER)},
    QuestionType.FILL_BLANK.value: {"correctAnswers": ArrayOf(STRING)},
    QuestionType.SHORT_ANSWER.value: {"referenceAnswer": STRING},
    QuestionType.CODE_OUTPUT.value: {"code": STRING, "correctOutput": STRING},
    QuestionType.CODE_WRITING.value: {"language": STRING, "referenceCode": STRING},
}

QUESTION_SCHEMA: dict[str, Any] = {
    **ObjectOf(
        {
            "id": IDENTIFIER,
            "type": StringEnum(list(QUESTION_TYPE_FIELDS), description="Question variant tag"),
            "question": STRING,
        }
    ),
    "allOf": [
        TaggedVariant("type", tag, ObjectOf(fields)) for tag, fields in QUESTION_TYPE_FIELDS.items()
    ],
}

QUIZ_SCHEMA: dict[str, Any] = ObjectOf(
    {
        "id": IDENTIFIER,
        "title": STRING,
        "questions": ArrayOf(QUESTION_SCHEMA),
        "createdAt": INTEGER,
    },
    required=["id", "title", "questions"],
)

GRADING_ITEM_SCHEMA: dict[str, Any] = ObjectOf(
    {
        "questionId": IDENTIFIER,
        "score": NUMBER,
        "feedback": STRING,
    }
)

GRADING_SCHEMA: dict[str, Any] = ObjectOf(
    {
        "totalScore": NUMBER,
        "maxScore": NUMBER,
        "results": ArrayOf(GRADING_ITEM_SCHEMA),
        "overallFeedback": STRING,
    }
)


def _clear_user_answers(data: dict[str, Any]) -> dict[str, Any]:
    """The model never fills user answers; drop any it invented."""
    normalized = dict(data)
    questions = normalized.get("questions")
    if isinstance(questions, list):
        normalized["questions"] = [
            {k: v for k, v in q.items() if k not in ("userAnswer", "user_answer")}
            if isinstance(q, dict)
            else q
            for q in questions
        ]
    return normalized


@dataclass
class ShapeSpec:
    """Shape-specific tables consulted by the pipeline."""

    name: ShapeName
    schema: dict[str, Any]
    model: type[BaseModel]
    array_field: str
    item_schema: dict[str, Any]
    item_required: tuple[str, ...]
    normalize: Callable[[dict[str, Any]], dict[str, Any]] | None = None
    validator: Draft7Validator = field(init=False, repr=False)
    item_validator: Draft7Validator = field(init=False, repr=False)

    def __post_init__(self) -> None:
        Draft7Validator.check_schema(self.schema)
        self.validator = Draft7Validator(self.schema)
        self.item_validator = Draft7Validator(self.item_schema)

    @property
    def required_fields(self) -> list[str]:
        return list(self.schema.get("required", []))


_shape_registry: dict[str, ShapeSpec] = {}


def register_shape(spec: ShapeSpec) -> None:
    """Register a shape, replacing any shape with the same name."""
    _shape_registry[spec.name] = spec


def get_shape(name: ShapeName) -> ShapeSpec:
    """Get a registered shape by name."""
    spec = _shape_registry.get(name)
    if spec is None:
        raise UnknownShapeError(name)
    return spec


def get_shapes() -> list[ShapeSpec]:
    """Get all registered shapes."""
    return list(_shape_registry.values())


def unregister_shape(name: ShapeName) -> None:
    _shape_registry.pop(name, None)


def get_document_schema(name: ShapeName) -> dict[str, Any]:
    """A copy of the JSON Schema a shape is validated against."""
    return copy.deepcopy(get_shape(name).schema)


def register_builtin_shapes() -> None:
    register_shape(
        ShapeSpec(
            name="quiz",
            schema=QUIZ_SCHEMA,
            model=Quiz,
            array_field="questions",
            item_schema=QUESTION_SCHEMA,
            item_required=("id", "type", "question"),
            normalize=_clear_user_answers,
        )
    )
    register_shape(
        ShapeSpec(
            name="grading",
            schema=GRADING_SCHEMA,
            model=GradingResult,
            array_field="results",
            item_schema=GRADING_ITEM_SCHEMA,
            item_required=("questionId", "score"),
        )
    )


register_builtin_shapes()
