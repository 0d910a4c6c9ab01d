"""
Streaming entry points for generation requests.
"""

from __future__ import annotations

import asyncio

from quaiz_stream.event_stream import GenerationEventStream, create_generation_event_stream
from quaiz_stream.exceptions import StreamFailedError
from quaiz_stream.observers import attach_logging
from quaiz_stream.orchestrator import StreamOrchestrator, TextSource
from quaiz_stream.types import (
    Document,
    GenerationRequest,
    OrchestratorOptions,
    ShapeName,
    StreamError,
)


def stream(
    source: TextSource,
    shape: ShapeName,
    options: OrchestratorOptions | None = None,
) -> GenerationEventStream:
    """
    Stream a model's output through a fresh orchestrator.

    Must be called from a running event loop. The returned stream yields
    every lifecycle event and ends on `done` or `error`.
    """
    events = create_generation_event_stream()
    orchestrator = StreamOrchestrator(shape, options)
    orchestrator.subscribe(events.push)
    if orchestrator.options.log_events:
        attach_logging(orchestrator)

    async def _run() -> Document | None:
        try:
            return await orchestrator.run(source)
        except Exception as exc:
            # a sink or listener raised; the orchestrator may not be terminal
            events.fail(exc)
            return None
        finally:
            events.end()

    events.task = asyncio.get_running_loop().create_task(_run())
    return events


async def complete(
    source: TextSource,
    shape: ShapeName,
    options: OrchestratorOptions | None = None,
) -> Document:
    """
    Consume a model's output and return the validated document.

    Raises:
        StreamFailedError: The stream ended without a valid document
    """
    s = stream(source, shape, options)
    try:
        result = await s.result()
    except asyncio.CancelledError:
        if s.task is not None:
            s.task.cancel()
        raise
    if isinstance(result, StreamError):
        raise StreamFailedError(result)
    return result


def stream_quiz(
    source: TextSource,
    request: GenerationRequest | None = None,
    options: OrchestratorOptions | None = None,
) -> GenerationEventStream:
    """Stream a quiz; the request's question count becomes the expected item total."""
    opts = options or OrchestratorOptions()
    if request is not None and opts.expected_count is None:
        opts = opts.model_copy(update={"expected_count": request.total_question_count()})
    return stream(source, "quiz", opts)


def stream_grading(
    source: TextSource,
    options: OrchestratorOptions | None = None,
) -> GenerationEventStream:
    """Stream a grading result."""
    return stream(source, "grading", options)

