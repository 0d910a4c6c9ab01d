"""
Core types for quaiz-stream.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Annotated, Any, Callable, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ShapeName: TypeAlias = Literal["quiz", "grading"] | str

ErrorKind: TypeAlias = Literal[
    "MalformedJSON",
    "SchemaViolation",
    "UnrecoverableStream",
    "Cancelled",
]


def now_ms() -> int:
    """Current Unix timestamp in milliseconds."""
    return int(time.time() * 1000)


class QuestionType(str, Enum):
    SINGLE_CHOICE = "single-choice"
    MULTIPLE_CHOICE = "multiple-choice"
    FILL_BLANK = "fill-blank"
    SHORT_ANSWER = "short-answer"
    CODE_OUTPUT = "code-output"
    CODE_WRITING = "code-writing"


class _WireModel(BaseModel):
    """Base for documents exchanged with the model in camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )


# Questions
class _QuestionBase(_WireModel):
    id: str
    question: str


class SingleChoiceQuestion(_QuestionBase):
    """Single choice question."""

    type: Literal["single-choice"] = "single-choice"
    options: list[str]
    correct_answer: int
    user_answer: int | None = None


class MultipleChoiceQuestion(_QuestionBase):
    """Multiple choice question."""

    type: Literal["multiple-choice"] = "multiple-choice"
    options: list[str]
    correct_answers: list[int]
    user_answer: list[int] | None = None


class FillBlankQuestion(_QuestionBase):
    """Fill-in-the-blank question; blanks are marked with ___ in the text."""

    type: Literal["fill-blank"] = "fill-blank"
    correct_answers: list[str]
    user_answer: list[str] | None = None


class ShortAnswerQuestion(_QuestionBase):
    """Short answer question."""

    type: Literal["short-answer"] = "short-answer"
    reference_answer: str
    user_answer: str | None = None


class CodeOutputQuestion(_QuestionBase):
    """Read the code, write its output."""

    type: Literal["code-output"] = "code-output"
    code: str
    correct_output: str
    user_answer: str | None = None


class CodeWritingQuestion(_QuestionBase):
    """Write code for the stated task."""

    type: Literal["code-writing"] = "code-writing"
    language: str
    reference_code: str
    user_answer: str | None = None


Question: TypeAlias = Annotated[
    SingleChoiceQuestion
    | MultipleChoiceQuestion
    | FillBlankQuestion
    | ShortAnswerQuestion
    | CodeOutputQuestion
    | CodeWritingQuestion,
    Field(discriminator="type"),
]


# Documents
class Quiz(_WireModel):
    """A generated quiz."""

    id: str
    title: str
    questions: list[Question] = Field(default_factory=list)
    created_at: int = Field(default_factory=now_ms)


class GradingItem(_WireModel):
    """Score and feedback for one question."""

    question_id: str
    score: float
    feedback: str


class GradingResult(_WireModel):
    """A graded quiz."""

    total_score: float
    max_score: float
    results: list[GradingItem] = Field(default_factory=list)
    overall_feedback: str


Document: TypeAlias = Quiz | GradingResult


# Generation requests
class QuestionConfig(_WireModel):
    """How many questions of one type to generate."""

    type: QuestionType
    count: int = Field(ge=0)


class GenerationRequest(_WireModel):
    """What the user asked the model to generate."""

    subject: str
    description: str = ""
    question_configs: list[QuestionConfig] = Field(default_factory=list)

    def total_question_count(self) -> int:
        return sum(config.count for config in self.question_configs)


# Streaming values
class StreamingQuestion(_WireModel):
    """
    A question slot while the quiz is still being written.

    Any field may be missing; `is_partial` stays True until the item's
    closing brace has been seen and the item parsed.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="allow",
    )

    id: str | None = None
    type: str | None = None
    question: str | None = None
    is_partial: bool = True


class Segmentation(BaseModel):
    """Per-item view of a questions array that may still be growing."""

    model_config = ConfigDict(extra="forbid")

    complete: list[dict[str, Any]] = Field(default_factory=list)
    partial: dict[str, Any] | None = None


class ExtractionResult(BaseModel):
    """Result of locating a JSON object in the accumulated text."""

    model_config = ConfigDict(extra="forbid")

    candidate: str | None = None
    complete: bool = False
    start: int = -1


class StreamError(BaseModel):
    """Structured error delivered to the terminal sink."""

    model_config = ConfigDict(extra="forbid")

    kind: ErrorKind
    message: str
    field: str | None = None
    position: int | None = None

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class ValidOutcome(BaseModel):
    """Successful validation."""

    model_config = ConfigDict(extra="forbid")

    valid: Literal[True] = True
    value: Quiz | GradingResult | BaseModel


class InvalidOutcome(BaseModel):
    """Failed validation."""

    model_config = ConfigDict(extra="forbid")

    valid: Literal[False] = False
    error: StreamError


ValidationOutcome: TypeAlias = ValidOutcome | InvalidOutcome


class ProgressEvent(BaseModel):
    """Observational progress snapshot for the caller."""

    model_config = ConfigDict(extra="forbid")

    partial_value: Quiz | GradingResult | BaseModel | None = None
    percent: int


class OrchestratorState(str, Enum):
    RECEIVING = "receiving"
    EXTRACTING = "extracting"
    REPAIRING = "repairing"
    VALIDATING = "validating"
    PROGRESSING = "progressing"
    COMPLETED = "completed"
    FAILED = "failed"


# Configuration
class OrchestratorOptions(BaseModel):
    """Per-stream configuration."""

    model_config = ConfigDict(extra="forbid")

    shape: ShapeName = "quiz"
    expected_count: int | None = None
    """Total questions requested, reported to per-item sinks."""

    request_id: str | None = None
    no_candidate_percent: int = 10
    partial_percent: int = 50
    partial_failed_percent: int = 25
    complete_percent: int = 100
    chunk_log_interval: int = 10
    log_events: bool = True
    rescue_on_finish: bool = True
    """Validate the repaired candidate at end of input before failing."""


# Sinks
ProgressSink: TypeAlias = Callable[[ProgressEvent], None]
ItemSink: TypeAlias = Callable[[StreamingQuestion, int, int | None], None]
ResultSink: TypeAlias = Callable[[Document], None]
ErrorSink: TypeAlias = Callable[[StreamError], None]


# Lifecycle events
class StreamStartEvent(BaseModel):
    """Orchestrator created and waiting for text."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["start"] = "start"
    request_id: str
    shape: ShapeName


class ChunkEvent(BaseModel):
    """One increment appended to the accumulator."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["chunk"] = "chunk"
    request_id: str
    chunk_count: int
    delta: str
    buffer_length: int


class ValidationFailedEvent(BaseModel):
    """A balanced candidate did not validate; the stream keeps going."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["validation_failed"] = "validation_failed"
    request_id: str
    error: StreamError


class ProgressUpdateEvent(BaseModel):
    """Document-level progress."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["progress"] = "progress"
    request_id: str
    progress: ProgressEvent


class ItemCompleteEvent(BaseModel):
    """A question closed and parsed."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["item_complete"] = "item_complete"
    request_id: str
    item: StreamingQuestion
    index: int
    total: int | None = None


class ItemPartialEvent(BaseModel):
    """The question currently being written."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["item_partial"] = "item_partial"
    request_id: str
    item: StreamingQuestion
    index: int
    total: int | None = None


class DoneEvent(BaseModel):
    """Terminal success."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["done"] = "done"
    request_id: str
    value: Quiz | GradingResult | BaseModel
    chunk_count: int
    rescued: bool = False
    """Accepted only after end-of-input repair."""


class ErrorEvent(BaseModel):
    """Terminal failure."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["error"] = "error"
    request_id: str
    error: StreamError
    chunk_count: int
    buffer_length: int


OrchestratorEvent: TypeAlias = (
    StreamStartEvent
    | ChunkEvent
    | ValidationFailedEvent
    | ProgressUpdateEvent
    | ItemCompleteEvent
    | ItemPartialEvent
    | DoneEvent
    | ErrorEvent
)
