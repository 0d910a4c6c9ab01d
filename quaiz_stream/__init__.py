"""
quaiz-stream: incremental JSON extraction and recovery for streamed quiz
and grading output.
"""

from quaiz_stream.types import (
    ChunkEvent,
    CodeOutputQuestion,
    CodeWritingQuestion,
    Document,
    DoneEvent,
    ErrorEvent,
    ErrorKind,
    ExtractionResult,
    FillBlankQuestion,
    GenerationRequest,
    GradingItem,
    GradingResult,
    InvalidOutcome,
    ItemCompleteEvent,
    ItemPartialEvent,
    MultipleChoiceQuestion,
    OrchestratorEvent,
    OrchestratorOptions,
    OrchestratorState,
    ProgressEvent,
    ProgressUpdateEvent,
    Question,
    QuestionConfig,
    QuestionType,
    Quiz,
    Segmentation,
    ShapeName,
    ShortAnswerQuestion,
    SingleChoiceQuestion,
    StreamError,
    StreamingQuestion,
    StreamStartEvent,
    ValidationFailedEvent,
    ValidationOutcome,
    ValidOutcome,
)
from quaiz_stream.exceptions import QuizStreamError, StreamFailedError, UnknownShapeError
from quaiz_stream.event_stream import (
    EventStream,
    GenerationEventStream,
    create_generation_event_stream,
)
from quaiz_stream.shapes import (
    ShapeSpec,
    get_document_schema,
    get_shape,
    get_shapes,
    register_builtin_shapes,
    register_shape,
    unregister_shape,
)
from quaiz_stream.orchestrator import StreamOrchestrator
from quaiz_stream.observers import LoggingObserver, attach_logging
from quaiz_stream.stream import complete, stream, stream_grading, stream_quiz
from quaiz_stream.utils.json_extract import JsonExtractor, extract_json_from_stream
from quaiz_stream.utils.json_repair import close_json, fix_incomplete_json, parse_streaming_json, safe_parse_json
from quaiz_stream.utils.partial import project_partial
from quaiz_stream.utils.segmenter import segment_questions
from quaiz_stream.utils.validation import validate_document, validate_response

__version__ = "0.1.0"

__all__ = [
    # Types
    "ChunkEvent",
    "CodeOutputQuestion",
    "CodeWritingQuestion",
    "Document",
    "DoneEvent",
    "ErrorEvent",
    "ErrorKind",
    "ExtractionResult",
    "FillBlankQuestion",
    "GenerationRequest",
    "GradingItem",
    "GradingResult",
    "InvalidOutcome",
    "ItemCompleteEvent",
    "ItemPartialEvent",
    "MultipleChoiceQuestion",
    "OrchestratorEvent",
    "OrchestratorOptions",
    "OrchestratorState",
    "ProgressEvent",
    "ProgressUpdateEvent",
    "Question",
    "QuestionConfig",
    "QuestionType",
    "Quiz",
    "Segmentation",
    "ShapeName",
    "ShortAnswerQuestion",
    "SingleChoiceQuestion",
    "StreamError",
    "StreamingQuestion",
    "StreamStartEvent",
    "ValidationFailedEvent",
    "ValidationOutcome",
    "ValidOutcome",
    # Exceptions
    "QuizStreamError",
    "StreamFailedError",
    "UnknownShapeError",
    # Event Stream
    "EventStream",
    "GenerationEventStream",
    "create_generation_event_stream",
    # Shape Registry
    "ShapeSpec",
    "get_document_schema",
    "get_shape",
    "get_shapes",
    "register_builtin_shapes",
    "register_shape",
    "unregister_shape",
    # Orchestrator
    "StreamOrchestrator",
    "LoggingObserver",
    "attach_logging",
    # Stream
    "complete",
    "stream",
    "stream_grading",
    "stream_quiz",
    # Utils
    "JsonExtractor",
    "extract_json_from_stream",
    "close_json",
    "fix_incomplete_json",
    "parse_streaming_json",
    "safe_parse_json",
    "project_partial",
    "segment_questions",
    "validate_document",
    "validate_response",
]
