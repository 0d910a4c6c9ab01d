"""Exceptions raised by the convenience API.

The streaming core reports failures through sinks and `StreamError`
values; these exceptions only surface from `complete()` and from shape
lookups, so callers can branch on `error_code` instead of matching
messages.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from quaiz_stream.types import StreamError


@dataclass
class QuizStreamError(Exception):
    """Base class for quaiz-stream errors."""

    message: str
    error_code: str

    def __str__(self) -> str:
        return f"{self.error_code}: {self.message}"


class UnknownShapeError(QuizStreamError):
    def __init__(self, shape: str) -> None:
        super().__init__(message=f"No shape registered with name: {shape}", error_code="unknown_shape")


class StreamFailedError(QuizStreamError):
    """The stream ended without a valid document."""

    def __init__(self, error: StreamError) -> None:
        super().__init__(message=error.message, error_code=error.kind)
        self.error = error
