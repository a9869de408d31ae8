"""
Unit tests for the pipeline stage span helpers.
"""

from contextlib import contextmanager

import pytest
from opentelemetry.trace import StatusCode

from app.core.telemetry import record_failure, record_stage
from app.services import rag
from app.services.rag import ChatOrchestrator, Stage
from app.services.search import RetrievalResult, RetrievedDocument


class RecordingSpan:
    def __init__(self):
        self.attributes = {}
        self.events = []
        self.exceptions = []
        self.status = None

    def set_attribute(self, key, value):
        self.attributes[key] = value

    def add_event(self, name):
        self.events.append(name)

    def record_exception(self, exc):
        self.exceptions.append(exc)

    def set_status(self, status):
        self.status = status


class RecordingTracer:
    def __init__(self):
        self.spans = []

    @contextmanager
    def start_as_current_span(self, name, **kwargs):
        span = RecordingSpan()
        self.spans.append(span)
        yield span


class StaticRetriever:
    def __init__(self, documents):
        self._documents = documents

    async def retrieve(self, query, top_k):
        return RetrievalResult(documents=self._documents)


class FailingOpenAIService:
    async def embed_text(self, text):
        return [0.1]

    async def chat_completion(self, messages):
        raise KeyError("choices")


def test_record_stage_sets_attribute_and_event():
    span = RecordingSpan()

    result = record_stage(span, Stage.RETRIEVING)

    assert result is Stage.RETRIEVING
    assert span.attributes["rag.stage"] == "retrieving"
    assert span.events == ["stage.retrieving"]


def test_record_failure_marks_span():
    span = RecordingSpan()
    error = ValueError("boom")

    record_failure(span, Stage.COMPLETING, error)

    assert span.attributes["rag.failed_stage"] == "completing"
    assert span.attributes["rag.stage"] == "failed"
    assert span.exceptions == [error]
    assert span.status.status_code == StatusCode.ERROR


@pytest.fixture
def tracer(monkeypatch):
    recording = RecordingTracer()
    monkeypatch.setattr(rag, "get_tracer", lambda: recording)
    return recording


@pytest.mark.asyncio
async def test_short_circuit_stage_path(tracer, make_settings):
    orchestrator = ChatOrchestrator(
        StaticRetriever([]), FailingOpenAIService(), make_settings(language_detection_enabled=False)
    )

    await orchestrator.answer("Question?", [])

    assert tracer.spans[0].events == ["stage.detecting", "stage.retrieving", "stage.short_circuit"]


@pytest.mark.asyncio
async def test_failure_recorded_at_completion_stage(tracer, make_settings):
    docs = [RetrievedDocument(url="https://docs.example/a", content="text")]
    orchestrator = ChatOrchestrator(
        StaticRetriever(docs), FailingOpenAIService(), make_settings(language_detection_enabled=False)
    )

    with pytest.raises(KeyError):
        await orchestrator.answer("Question?", [])

    span = tracer.spans[0]
    assert span.events[-1] == "stage.completing"
    assert span.attributes["rag.failed_stage"] == "completing"
    assert span.status.status_code == StatusCode.ERROR
