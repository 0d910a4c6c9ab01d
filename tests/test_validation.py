# Test schema validation of complete documents
import json

import pytest
from pydantic import BaseModel

from quaiz_stream.exceptions import UnknownShapeError
from quaiz_stream.shapes import ShapeSpec, get_document_schema, get_shape, get_shapes, register_shape, unregister_shape
from quaiz_stream.types import (
    CodeWritingQuestion,
    FillBlankQuestion,
    GradingResult,
    Quiz,
    SingleChoiceQuestion,
)
from quaiz_stream.utils.schema_helpers import STRING, ObjectOf
from quaiz_stream.utils.validation import validate_data, validate_document, validate_question, validate_response


def make_quiz(**overrides):
    quiz = {
        "id": "q1",
        "title": "Python basics",
        "questions": [
            {
                "id": "1",
                "type": "single-choice",
                "question": "Which keyword defines a function?",
                "options": ["func", "def", "lambda"],
                "correctAnswer": 1,
            },
            {
                "id": "2",
                "type": "fill-blank",
                "question": "A ___ holds key/value pairs.",
                "correctAnswers": ["dict"],
            },
            {
                "id": "3",
                "type": "code-writing",
                "question": "Reverse a list in place.",
                "language": "python",
                "referenceCode": "items.reverse()",
            },
        ],
        "createdAt": 1700000000000,
    }
    quiz.update(overrides)
    return quiz


GRADING = {
    "totalScore": 7.5,
    "maxScore": 10,
    "results": [
        {"questionId": "1", "score": 5, "feedback": "Correct."},
        {"questionId": "2", "score": 2.5, "feedback": "Partially correct."},
    ],
    "overallFeedback": "Good work.",
}


class TestValidateQuiz:
    def test_valid_quiz(self):
        """Test a well-formed quiz becomes a typed Quiz."""
        outcome = validate_document(json.dumps(make_quiz()), "quiz")
        assert outcome.valid is True
        quiz = outcome.value
        assert isinstance(quiz, Quiz)
        assert quiz.id == "q1"
        assert quiz.created_at == 1700000000000
        assert isinstance(quiz.questions[0], SingleChoiceQuestion)
        assert quiz.questions[0].correct_answer == 1
        assert isinstance(quiz.questions[1], FillBlankQuestion)
        assert isinstance(quiz.questions[2], CodeWritingQuestion)
        assert quiz.questions[2].reference_code == "items.reverse()"

    def test_user_answers_are_empty(self):
        """Test user answers are never taken from the model."""
        quiz = make_quiz()
        quiz["questions"][0]["userAnswer"] = 2
        quiz["questions"][1]["userAnswer"] = ["list"]
        outcome = validate_document(json.dumps(quiz), "quiz")
        assert outcome.valid is True
        assert all(q.user_answer is None for q in outcome.value.questions)

    def test_numeric_ids(self):
        """Test integer ids are accepted and kept as strings."""
        quiz = make_quiz(id=7)
        quiz["questions"][0]["id"] = 1
        outcome = validate_document(json.dumps(quiz), "quiz")
        assert outcome.valid is True
        assert outcome.value.id == "7"
        assert outcome.value.questions[0].id == "1"

    def test_created_at_defaults(self):
        """Test a missing timestamp is filled in."""
        quiz = make_quiz()
        del quiz["createdAt"]
        outcome = validate_document(json.dumps(quiz), "quiz")
        assert outcome.valid is True
        assert outcome.value.created_at > 0

    def test_missing_required_field(self):
        """Test a missing top-level field is a schema violation naming it."""
        for field in ("id", "title", "questions"):
            quiz = make_quiz()
            del quiz[field]
            outcome = validate_document(json.dumps(quiz), "quiz")
            assert outcome.valid is False
            assert outcome.error.kind == "SchemaViolation"
            assert outcome.error.field == field
            assert field in outcome.error.message
            assert outcome.error.position is None

    def test_wrong_type(self):
        """Test a wrong-typed field is a schema violation."""
        outcome = validate_document(json.dumps(make_quiz(title=5)), "quiz")
        assert outcome.valid is False
        assert outcome.error.kind == "SchemaViolation"
        assert outcome.error.field == "title"

    def test_unknown_question_type(self):
        """Test an unrecognized tag reports the question's position."""
        quiz = make_quiz()
        quiz["questions"][2]["type"] = "essay"
        outcome = validate_document(json.dumps(quiz), "quiz")
        assert outcome.valid is False
        assert outcome.error.kind == "SchemaViolation"
        assert outcome.error.position == 2
        assert outcome.error.message.startswith("questions[2] invalid")

    def test_missing_variant_field(self):
        """Test a field required by the question's tag is enforced."""
        quiz = make_quiz()
        del quiz["questions"][1]["correctAnswers"]
        outcome = validate_document(json.dumps(quiz), "quiz")
        assert outcome.valid is False
        assert outcome.error.kind == "SchemaViolation"
        assert outcome.error.position == 1
        assert outcome.error.field == "questions.correctAnswers"

    def test_malformed_json(self):
        """Test unparseable text is MalformedJSON."""
        outcome = validate_document('{"id": "q1", "title": ', "quiz")
        assert outcome.valid is False
        assert outcome.error.kind == "MalformedJSON"

    def test_not_an_object(self):
        """Test a JSON array is the wrong shape."""
        outcome = validate_document("[1, 2]", "quiz")
        assert outcome.valid is False
        assert outcome.error.kind == "SchemaViolation"

    def test_validate_question(self):
        """Test validating one item on its own."""
        assert validate_question(make_quiz()["questions"][0]) is None
        failure = validate_question({"id": "1", "type": "short-answer", "question": "Why?"})
        assert failure is not None
        assert failure.error.kind == "SchemaViolation"


class TestValidateGrading:
    def test_valid_grading(self):
        """Test a well-formed grading result."""
        outcome = validate_document(json.dumps(GRADING), "grading")
        assert outcome.valid is True
        assert isinstance(outcome.value, GradingResult)
        assert outcome.value.total_score == 7.5
        assert outcome.value.results[1].question_id == "2"

    def test_round_trip(self):
        """Test the typed value serializes back to the same document."""
        outcome = validate_document(json.dumps(GRADING, indent=2), "grading")
        assert outcome.value.model_dump(by_alias=True) == GRADING

    def test_missing_overall_feedback(self):
        """Test grading required fields are enforced."""
        grading = dict(GRADING)
        del grading["overallFeedback"]
        outcome = validate_document(json.dumps(grading), "grading")
        assert outcome.valid is False
        assert outcome.error.kind == "SchemaViolation"
        assert outcome.error.field == "overallFeedback"

    def test_quiz_is_not_grading(self):
        """Test a document of the other shape is rejected."""
        outcome = validate_document(json.dumps(make_quiz()), "grading")
        assert outcome.valid is False
        assert outcome.error.kind == "SchemaViolation"


class TestValidateResponse:
    def test_code_fence(self):
        """Test JSON wrapped in a markdown fence and prose."""
        response = "Here is the quiz:\n```json\n" + json.dumps(make_quiz()) + "\n```\nEnjoy!"
        outcome = validate_response(response, "quiz")
        assert outcome.valid is True
        assert outcome.value.title == "Python basics"

    def test_prose_only(self):
        """Test a response without JSON."""
        outcome = validate_response("I cannot help with that.", "quiz")
        assert outcome.valid is False
        assert outcome.error.kind == "MalformedJSON"

    def test_truncated(self):
        """Test a response cut off mid-document."""
        outcome = validate_response(json.dumps(GRADING)[:40], "grading")
        assert outcome.valid is False
        assert outcome.error.kind == "MalformedJSON"


class Flashcard(BaseModel):
    front: str
    back: str


class TestShapeRegistry:
    def test_builtin_shapes(self):
        """Test quiz and grading are registered at import."""
        names = {spec.name for spec in get_shapes()}
        assert {"quiz", "grading"} <= names
        assert get_shape("quiz").array_field == "questions"
        assert get_shape("grading").required_fields == ["totalScore", "maxScore", "results", "overallFeedback"]

    def test_unknown_shape(self):
        """Test looking up an unregistered shape raises."""
        with pytest.raises(UnknownShapeError) as exc_info:
            validate_document("{}", "essay")
        assert exc_info.value.error_code == "unknown_shape"

    def test_document_schema_is_a_copy(self):
        """Test callers cannot mutate the registered schema."""
        schema = get_document_schema("quiz")
        schema["required"].append("extra")
        assert "extra" not in get_document_schema("quiz")["required"]

    def test_custom_shape(self):
        """Test registering and validating a custom shape."""
        register_shape(
            ShapeSpec(
                name="flashcard",
                schema=ObjectOf({"front": STRING, "back": STRING}),
                model=Flashcard,
                array_field="cards",
                item_schema={},
                item_required=(),
            )
        )
        try:
            outcome = validate_data({"front": "dict", "back": "mapping type"}, "flashcard")
            assert outcome.valid is True
            assert isinstance(outcome.value, Flashcard)
            assert outcome.value.back == "mapping type"

            missing = validate_data({"front": "dict"}, "flashcard")
            assert missing.valid is False
            assert missing.error.field == "back"
        finally:
            unregister_shape("flashcard")

        with pytest.raises(UnknownShapeError):
            get_shape("flashcard")
