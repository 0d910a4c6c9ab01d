"""
Locating JSON objects in streamed model output.

Brace counting here is string-unaware. Braces inside string values are
left to the per-item segmenter, which tracks strings.
"""

from __future__ import annotations

from quaiz_stream.types import ExtractionResult


def extract_json_from_stream(content: str) -> ExtractionResult:
    """
    Find the first JSON object in the accumulated stream text.

    Args:
        content: Everything received so far

    Returns:
        The candidate starting at the first `{` and whether its braces
        balance. When they never return to zero the whole tail is the
        (incomplete) candidate.
    """
    start = content.find("{")
    if start == -1:
        return ExtractionResult(candidate=None, complete=False)

    depth = 0
    for i in range(start, len(content)):
        char = content[i]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return ExtractionResult(candidate=content[start : i + 1], complete=True, start=start)

    return ExtractionResult(candidate=content[start:], complete=False, start=start)


class JsonExtractor:
    """
    Incremental form of `extract_json_from_stream`.

    Keeps the start offset, brace depth and scan position between calls so
    only newly appended text is scanned. Callers must pass a buffer that
    extends the previous one.
    """

    def __init__(self) -> None:
        self._start = -1
        self._depth = 0
        self._scanned = 0
        self._end = -1

    def reset(self) -> None:
        self._start = -1
        self._depth = 0
        self._scanned = 0
        self._end = -1

    def extract(self, content: str) -> ExtractionResult:
        if self._end != -1:
            return ExtractionResult(
                candidate=content[self._start : self._end + 1], complete=True, start=self._start
            )

        if self._start == -1:
            self._start = content.find("{", self._scanned)
            if self._start == -1:
                self._scanned = len(content)
                return ExtractionResult(candidate=None, complete=False)
            self._scanned = self._start

        for i in range(self._scanned, len(content)):
            char = content[i]
            if char == "{":
                self._depth += 1
            elif char == "}":
                self._depth -= 1
                if self._depth == 0:
                    self._end = i
                    self._scanned = i + 1
                    return ExtractionResult(
                        candidate=content[self._start : i + 1], complete=True, start=self._start
                    )
        self._scanned = len(content)

        return ExtractionResult(candidate=content[self._start :], complete=False, start=self._start)
