# Test async event streams and the streaming entry points
import asyncio
import json

import pytest

from quaiz_stream.event_stream import EventStream
from quaiz_stream.exceptions import StreamFailedError
from quaiz_stream.stream import complete, stream, stream_grading, stream_quiz
from quaiz_stream.types import (
    GenerationRequest,
    GradingResult,
    OrchestratorOptions,
    QuestionConfig,
    QuestionType,
    Quiz,
    StreamError,
)

QUIZ = {
    "id": "q1",
    "title": "Loops",
    "questions": [
        {"id": "1", "type": "short-answer", "question": "What does break do?", "referenceAnswer": "Exits the loop"},
        {"id": "2", "type": "code-output", "question": "Output?", "code": "print(len([1, 2]))", "correctOutput": "2"},
        {"id": "3", "type": "fill-blank", "question": "A ___ loop repeats.", "correctAnswers": ["while"]},
    ],
}

GRADING = {
    "totalScore": 2,
    "maxScore": 3,
    "results": [{"questionId": "1", "score": 1, "feedback": "Good."}],
    "overallFeedback": "Keep going.",
}


def chunked(text, size=7):
    return [text[i : i + size] for i in range(0, len(text), size)]


class TestEventStream:
    def test_iteration_and_result(self):
        """Test events are delivered in order and the result resolves."""

        async def main():
            s = EventStream[str, int](
                is_complete=lambda event: event == "end",
                extract_result=lambda event: 42,
            )

            async def produce():
                for event in ("a", "b", "end", "ignored"):
                    await asyncio.sleep(0)
                    s.push(event)

            asyncio.get_running_loop().create_task(produce())
            received = [event async for event in s]
            return received, await s.result()

        received, result = asyncio.run(main())
        assert received == ["a", "b", "end"]
        assert result == 42

    def test_end_wakes_consumer(self):
        """Test ending the stream releases a waiting consumer."""

        async def main():
            s = EventStream[str, int](is_complete=lambda event: False, extract_result=lambda event: 0)

            async def finish():
                await asyncio.sleep(0)
                s.end(7)

            asyncio.get_running_loop().create_task(finish())
            received = [event async for event in s]
            return received, await s.result(), s.done

        assert asyncio.run(main()) == ([], 7, True)

    def test_fail(self):
        """Test a failed stream raises from result()."""

        async def main():
            s = EventStream[str, int](is_complete=lambda event: False, extract_result=lambda event: 0)
            s.fail(RuntimeError("listener broke"))
            await s.result()

        with pytest.raises(RuntimeError, match="listener broke"):
            asyncio.run(main())


class TestStream:
    def test_events(self):
        """Test a quiz stream yields lifecycle events from start to done."""

        async def main():
            s = stream(chunked(json.dumps(QUIZ)), "quiz", OrchestratorOptions(log_events=False))
            events = [event async for event in s]
            return events, await s.result()

        events, result = asyncio.run(main())
        types = [event.type for event in events]
        assert types[0] == "start"
        assert types[-1] == "done"
        assert types.count("item_complete") == 3
        assert isinstance(result, Quiz)
        assert events[-1].value == result

    def test_error_result(self):
        """Test a failed stream resolves to the error."""

        async def main():
            s = stream(["no json here"], "grading")
            return await s.result()

        result = asyncio.run(main())
        assert isinstance(result, StreamError)
        assert result.kind == "UnrecoverableStream"


class TestComplete:
    def test_complete_quiz(self):
        """Test awaiting a validated quiz."""
        quiz = asyncio.run(complete(chunked(json.dumps(QUIZ)), "quiz"))
        assert isinstance(quiz, Quiz)
        assert [q.id for q in quiz.questions] == ["1", "2", "3"]

    def test_complete_raises(self):
        """Test a failed stream raises StreamFailedError."""
        with pytest.raises(StreamFailedError) as exc_info:
            asyncio.run(complete(["not json at all"], "quiz"))
        assert exc_info.value.error_code == "UnrecoverableStream"
        assert exc_info.value.error.kind == "UnrecoverableStream"
        assert str(exc_info.value).startswith("UnrecoverableStream: ")


class TestConvenience:
    def test_stream_quiz_expected_count(self):
        """Test the request's question count is reported to item events."""
        request = GenerationRequest(
            subject="Python",
            question_configs=[
                QuestionConfig(type=QuestionType.SHORT_ANSWER, count=1),
                QuestionConfig(type=QuestionType.CODE_OUTPUT, count=1),
                QuestionConfig(type=QuestionType.FILL_BLANK, count=1),
            ],
        )
        assert request.total_question_count() == 3

        async def main():
            s = stream_quiz(chunked(json.dumps(QUIZ)), request)
            return [event async for event in s if event.type == "item_complete"]

        items = asyncio.run(main())
        assert [event.index for event in items] == [0, 1, 2]
        assert {event.total for event in items} == {3}

    def test_generation_request_aliases(self):
        """Test requests parse from camelCase JSON."""
        request = GenerationRequest.model_validate(
            {"subject": "SQL", "questionConfigs": [{"type": "single-choice", "count": 4}]}
        )
        assert request.total_question_count() == 4
        assert request.question_configs[0].type == QuestionType.SINGLE_CHOICE

    def test_stream_grading(self):
        """Test streaming a grading result."""

        async def main():
            s = stream_grading(chunked(json.dumps(GRADING), 5))
            return await s.result()

        result = asyncio.run(main())
        assert isinstance(result, GradingResult)
        assert result.model_dump(by_alias=True) == GRADING
