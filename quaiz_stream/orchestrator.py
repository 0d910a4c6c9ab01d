"""
Stream orchestrator: drives extraction, repair, validation and projection
over a live feed of text increments for one generation request.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import AsyncIterable, AsyncIterator, Iterable
from typing import Callable

from quaiz_stream.shapes import get_shape
from quaiz_stream.types import (
    ChunkEvent,
    Document,
    DoneEvent,
    ErrorEvent,
    ErrorKind,
    ErrorSink,
    ItemCompleteEvent,
    ItemPartialEvent,
    ItemSink,
    OrchestratorEvent,
    OrchestratorOptions,
    OrchestratorState,
    ProgressEvent,
    ProgressSink,
    ProgressUpdateEvent,
    Quiz,
    ResultSink,
    ShapeName,
    StreamError,
    StreamStartEvent,
    ValidationFailedEvent,
    ValidationOutcome,
    now_ms,
)
from quaiz_stream.utils.json_extract import JsonExtractor
from quaiz_stream.utils.json_repair import fix_incomplete_json
from quaiz_stream.utils.partial import project_partial, to_streaming_question
from quaiz_stream.utils.segmenter import segment_questions
from quaiz_stream.utils.validation import validate_data, validate_document

TextSource = AsyncIterable[str] | Iterable[str]


async def iter_chunks(source: TextSource) -> AsyncIterator[str]:
    """Adapt a sync or async iterable of text increments to async iteration."""
    if isinstance(source, AsyncIterable):
        async for chunk in source:
            yield chunk
    else:
        for chunk in source:
            yield chunk


class StreamOrchestrator:
    """
    Turns text increments into a validated document for one request.

    Feed increments with `feed()`, signal end of input with `finish()`, or
    let `run()` drain a source. Progress, per-item and terminal callbacks
    are invoked synchronously in increment order; exactly one of
    `on_result` / `on_error` fires.
    """

    def __init__(
        self,
        shape: ShapeName | None = None,
        options: OrchestratorOptions | None = None,
        *,
        on_progress: ProgressSink | None = None,
        on_item_complete: ItemSink | None = None,
        on_item_partial: ItemSink | None = None,
        on_result: ResultSink | None = None,
        on_error: ErrorSink | None = None,
    ) -> None:
        opts = options or OrchestratorOptions()
        if shape is not None:
            opts = opts.model_copy(update={"shape": shape})

        self._options = opts
        self._spec = get_shape(opts.shape)
        self._item_marker = re.compile(rf'"{re.escape(self._spec.array_field)}"\s*:\s*\[')
        self._request_id = opts.request_id or f"{opts.shape}-stream-{now_ms()}"
        self._fallback_id = f"quiz-{now_ms()}"

        self._on_progress = on_progress
        self._on_item_complete = on_item_complete
        self._on_item_partial = on_item_partial
        self._on_result = on_result
        self._on_error = on_error
        self._listeners: list[Callable[[OrchestratorEvent], None]] = []

        self._content = ""
        self._extractor = JsonExtractor()
        self._state = OrchestratorState.RECEIVING
        self._started = False
        self._chunk_count = 0
        self._reported_items = 0
        self._rejected: ValidationOutcome | None = None
        self._value: Document | None = None
        self._error: StreamError | None = None

    @property
    def request_id(self) -> str:
        return self._request_id

    @property
    def shape(self) -> ShapeName:
        return self._spec.name

    @property
    def options(self) -> OrchestratorOptions:
        return self._options

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def content(self) -> str:
        """Everything received so far."""
        return self._content

    @property
    def chunk_count(self) -> int:
        return self._chunk_count

    @property
    def value(self) -> Document | None:
        return self._value

    @property
    def error(self) -> StreamError | None:
        return self._error

    @property
    def is_terminal(self) -> bool:
        return self._state in (OrchestratorState.COMPLETED, OrchestratorState.FAILED)

    def subscribe(self, fn: Callable[[OrchestratorEvent], None]) -> Callable[[], None]:
        """Subscribe to lifecycle events. Returns an unsubscribe function."""
        self._listeners.append(fn)

        def unsubscribe() -> None:
            if fn in self._listeners:
                self._listeners.remove(fn)

        return unsubscribe

    # Input
    def feed(self, chunk: str) -> bool:
        """
        Process one text increment.

        Returns:
            True once the orchestrator is terminal; later increments are
            ignored.
        """
        if self.is_terminal:
            return True
        self._start()
        if not chunk:
            return False

        self._chunk_count += 1
        self._content += chunk
        self._emit(
            ChunkEvent(
                request_id=self._request_id,
                chunk_count=self._chunk_count,
                delta=chunk,
                buffer_length=len(self._content),
            )
        )
        self._process()
        return self.is_terminal

    def finish(self) -> Document | None:
        """
        Signal end of input.

        Makes a last attempt on the accumulated text and settles in
        `completed` or `failed` (UnrecoverableStream).
        """
        if self.is_terminal:
            return self._value
        self._start()

        result = self._extractor.extract(self._content)
        if result.candidate is None:
            self._fail("UnrecoverableStream", f"No JSON object found in model output for {self.shape}")
            return None

        self._state = OrchestratorState.VALIDATING
        outcome = self._rejected if self._rejected is not None else validate_document(result.candidate, self.shape)
        rescued = False
        if not outcome.valid and not result.complete and self._options.rescue_on_finish:
            rescue = self._rescue(result.candidate)
            if rescue is not None and rescue.valid:
                outcome, rescued = rescue, True

        if outcome.valid:
            self._report_items(result.candidate)
            if not self.is_terminal:
                self._complete(outcome.value, rescued=rescued)
            return self._value

        self._fail(
            "UnrecoverableStream",
            f"Could not extract a valid {self.shape} document: {outcome.error.message}",
            field=outcome.error.field,
            position=outcome.error.position,
        )
        return None

    def cancel(self) -> None:
        """Stop processing. Settles in `failed` (Cancelled) unless already complete."""
        if self.is_terminal:
            return
        self._start()
        self._fail("Cancelled", "Stream cancelled before a valid document was produced")

    def fail(self, exc: BaseException) -> None:
        """The text source signalled an error."""
        if self.is_terminal:
            return
        self._start()
        self._fail("UnrecoverableStream", f"Text source failed: {exc}")

    async def run(self, source: TextSource) -> Document | None:
        """
        Drain `source` until a terminal state.

        Task cancellation settles the orchestrator as Cancelled and is then
        re-raised.
        """
        self._start()
        chunks = iter_chunks(source)
        try:
            while not self.is_terminal:
                try:
                    chunk = await anext(chunks)
                except StopAsyncIteration:
                    self.finish()
                    break
                except asyncio.CancelledError:
                    self.cancel()
                    raise
                except Exception as exc:
                    self.fail(exc)
                    break
                self.feed(chunk)
        finally:
            await chunks.aclose()
        return self._value

    # Pipeline
    def _transition(self, state: OrchestratorState) -> None:
        # a sink may have cancelled mid-increment
        if not self.is_terminal:
            self._state = state

    def _process(self) -> None:
        self._transition(OrchestratorState.EXTRACTING)
        result = self._extractor.extract(self._content)

        if result.candidate is None:
            self._transition(OrchestratorState.PROGRESSING)
            self._progress(None, self._options.no_candidate_percent)
            self._transition(OrchestratorState.RECEIVING)
            return

        if result.complete:
            if self._rejected is not None:
                # candidate is frozen and already failed validation
                self._transition(OrchestratorState.RECEIVING)
                return
            self._transition(OrchestratorState.VALIDATING)
            outcome = validate_document(result.candidate, self.shape)
            if outcome.valid:
                self._report_items(result.candidate)
                if not self.is_terminal:
                    self._complete(outcome.value)
                return
            self._rejected = outcome
            self._emit(ValidationFailedEvent(request_id=self._request_id, error=outcome.error))

        self._transition(OrchestratorState.REPAIRING)
        self._report_items(result.candidate)
        if self.is_terminal:
            return
        partial = project_partial(result.candidate, self.shape, fallback_id=self._fallback_id)

        self._transition(OrchestratorState.PROGRESSING)
        if partial is not None:
            self._progress(partial, self._options.partial_percent)
        else:
            self._progress(None, self._options.partial_failed_percent)
        self._transition(OrchestratorState.RECEIVING)

    def _report_items(self, candidate: str) -> None:
        """Fire per-item callbacks for newly closed questions and the one in flight."""
        if self._spec.name != "quiz":
            return

        segmentation = segment_questions(candidate, self._item_marker)
        total = self._options.expected_count

        for index in range(self._reported_items, len(segmentation.complete)):
            if self.is_terminal:
                return
            item = to_streaming_question(segmentation.complete[index], is_partial=False)
            self._reported_items = index + 1
            if self._on_item_complete:
                self._on_item_complete(item, index, total)
            self._emit(ItemCompleteEvent(request_id=self._request_id, item=item, index=index, total=total))

        if segmentation.partial is not None and not self.is_terminal:
            index = len(segmentation.complete)
            item = to_streaming_question(segmentation.partial, is_partial=True)
            if self._on_item_partial:
                self._on_item_partial(item, index, total)
            self._emit(ItemPartialEvent(request_id=self._request_id, item=item, index=index, total=total))

    def _rescue(self, candidate: str) -> ValidationOutcome | None:
        """
        End-of-input recovery: strict validation of the repaired candidate,
        then (quiz only) of the projected quiz with its valid question prefix,
        as long as the model wrote its own id and title.
        """
        self._transition(OrchestratorState.REPAIRING)
        repaired = fix_incomplete_json(candidate, self._spec.array_field)
        if repaired != candidate:
            outcome = validate_document(repaired, self.shape)
            if outcome.valid:
                return outcome

        if self._spec.name != "quiz":
            return None
        partial = project_partial(candidate, self.shape, fallback_id=self._fallback_id)
        if not isinstance(partial, Quiz) or partial.id == self._fallback_id or not partial.title:
            return None
        if not partial.questions:
            return None
        self._transition(OrchestratorState.VALIDATING)
        return validate_data(partial.model_dump(by_alias=True), self.shape)

    # Settling
    def _complete(self, value: Document, rescued: bool = False) -> None:
        self._value = value
        self._state = OrchestratorState.COMPLETED
        self._progress(value, self._options.complete_percent)
        if self._on_result:
            self._on_result(value)
        self._emit(
            DoneEvent(
                request_id=self._request_id,
                value=value,
                chunk_count=self._chunk_count,
                rescued=rescued,
            )
        )

    def _fail(
        self,
        kind: ErrorKind,
        message: str,
        field: str | None = None,
        position: int | None = None,
    ) -> None:
        error = StreamError(kind=kind, message=message, field=field, position=position)
        self._error = error
        self._state = OrchestratorState.FAILED
        if self._on_error:
            self._on_error(error)
        self._emit(
            ErrorEvent(
                request_id=self._request_id,
                error=error,
                chunk_count=self._chunk_count,
                buffer_length=len(self._content),
            )
        )

    # Events
    def _start(self) -> None:
        if self._started:
            return
        self._started = True
        self._emit(StreamStartEvent(request_id=self._request_id, shape=self.shape))

    def _progress(self, value: Document | None, percent: int) -> None:
        progress = ProgressEvent(partial_value=value, percent=percent)
        if self._on_progress:
            self._on_progress(progress)
        self._emit(ProgressUpdateEvent(request_id=self._request_id, progress=progress))

    def _emit(self, event: OrchestratorEvent) -> None:
        for listener in list(self._listeners):
            listener(event)
