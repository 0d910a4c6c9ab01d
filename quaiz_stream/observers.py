"""
Logging for orchestrator lifecycle events.

The pipeline itself does not log; attach a LoggingObserver to get one
line per milestone of a generation request.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from quaiz_stream.types import OrchestratorEvent

if TYPE_CHECKING:
    from quaiz_stream.orchestrator import StreamOrchestrator


class LoggingObserver:
    """Writes orchestrator events to a stdlib logger."""

    def __init__(self, logger: logging.Logger | None = None, chunk_log_interval: int = 10) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._chunk_log_interval = chunk_log_interval

    def __call__(self, event: OrchestratorEvent) -> None:
        log = self._logger
        if event.type == "start":
            log.info(f"Starting {event.shape} stream for {event.request_id}")
        elif event.type == "chunk":
            if self._chunk_log_interval > 0 and event.chunk_count % self._chunk_log_interval == 0:
                log.info(
                    f"Stream {event.request_id}: received {event.chunk_count} chunks, "
                    f"{event.buffer_length} characters buffered"
                )
        elif event.type == "validation_failed":
            log.warning(
                f"Stream {event.request_id}: complete JSON failed validation, "
                f"continuing to receive ({event.error})"
            )
        elif event.type == "item_complete":
            log.debug(f"Stream {event.request_id}: item {event.index} complete")
        elif event.type == "done":
            if event.rescued:
                log.warning(
                    f"Stream {event.request_id}: accepted repaired output after "
                    f"{event.chunk_count} chunks"
                )
            else:
                log.info(f"Stream {event.request_id} completed after {event.chunk_count} chunks")
        elif event.type == "error":
            log.error(
                f"Stream {event.request_id} failed ({event.error.kind}) after "
                f"{event.chunk_count} chunks, {event.buffer_length} characters buffered: "
                f"{event.error.message}"
            )


def attach_logging(
    orchestrator: StreamOrchestrator,
    logger: logging.Logger | None = None,
) -> Callable[[], None]:
    """
    Log an orchestrator's lifecycle events.

    Returns:
        Function that detaches the observer
    """
    observer = LoggingObserver(logger, chunk_log_interval=orchestrator.options.chunk_log_interval)
    return orchestrator.subscribe(observer)
