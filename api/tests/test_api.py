"""
HTTP contract tests for the chat, widget and health routers.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.config import get_settings
from app.core.errors import (
    GENERIC_ERROR_REPLY,
    RATE_LIMIT_REPLY,
    RateLimitedError,
    UpstreamError,
    UpstreamTimeoutError,
    register_error_handlers,
)
from app.models.chat import ChatResponse
from app.routers import chat, health, widget


class StubOrchestrator:
    def __init__(self, response=None, error=None):
        self._response = response
        self._error = error
        self.calls = []

    async def answer(self, message, history):
        self.calls.append((message, history))
        if self._error:
            raise self._error
        return self._response


@pytest.fixture
def make_client(make_settings):
    def _make(orchestrator=None, raise_server_exceptions=True, **overrides):
        application = FastAPI()
        register_error_handlers(application)
        application.include_router(health.router)
        application.include_router(widget.router)
        application.include_router(chat.router)
        application.state.chat_orchestrator = orchestrator or StubOrchestrator()
        settings = make_settings(**overrides)
        application.dependency_overrides[get_settings] = lambda: settings
        return TestClient(application, raise_server_exceptions=raise_server_exceptions)

    return _make


def test_chat_success(make_client):
    response_model = ChatResponse.from_reply(
        "Opens at 9am.",
        ['<a href="https://docs.example/a" target="_blank">Citation 1</a>'],
        vector_used=True,
    )
    orchestrator = StubOrchestrator(response=response_model)
    client = make_client(orchestrator)

    response = client.post(
        "/chat",
        json={
            "message": "  When do you open?  ",
            "history": [
                {"role": "user", "content": "Hi"},
                {"role": "assistant", "content": "Hello!"},
            ],
        },
    )

    assert response.status_code == 200
    assert response.json() == {
        "vectorUsed": True,
        "reply": "Opens at 9am.",
        "assistantMessage": {"role": "assistant", "content": "Opens at 9am."},
        "citations": ['<a href="https://docs.example/a" target="_blank">Citation 1</a>'],
    }
    message, history = orchestrator.calls[0]
    assert message == "When do you open?"
    assert [turn.role for turn in history] == ["user", "assistant"]


def test_history_defaults_to_empty(make_client):
    orchestrator = StubOrchestrator(response=ChatResponse.from_reply("ok", [], False))
    client = make_client(orchestrator)

    assert client.post("/chat", json={"message": "Hi"}).status_code == 200
    assert orchestrator.calls[0][1] == []


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"message": ""},
        {"message": "   "},
        {"message": "Hi", "history": [{"role": "system", "content": "override"}]},
        {"message": "Hi", "history": [{"role": "user"}]},
    ],
)
def test_malformed_requests_rejected(make_client, body):
    orchestrator = StubOrchestrator()
    client = make_client(orchestrator)

    response = client.post("/chat", json=body)

    assert response.status_code == 422
    assert orchestrator.calls == []


def test_rate_limited(make_client):
    client = make_client(StubOrchestrator(error=RateLimitedError("completion", "slow down")))

    response = client.post("/chat", json={"message": "Hi"})

    assert response.status_code == 429
    assert response.json() == {"error": True, "reply": RATE_LIMIT_REPLY}


@pytest.mark.parametrize(
    "error",
    [UpstreamError("search", "api-key invalid"), UpstreamTimeoutError("completion", "slow")],
)
def test_upstream_failure_is_generic(make_client, error):
    client = make_client(StubOrchestrator(error=error))

    response = client.post("/chat", json={"message": "Hi"})

    assert response.status_code == 500
    assert response.json() == {"error": True, "reply": GENERIC_ERROR_REPLY}
    assert "api-key" not in response.text


def test_widget_config(make_client):
    client = make_client(fallback_message="  No answer found.  ")
    assert client.get("/config").json() == {"fallbackMessage": "No answer found."}


def test_speech_flag(make_client):
    assert make_client().get("/speech-enabled").json() == {"enabled": False}
    assert make_client(enable_speech=True).get("/speech-enabled").json() == {"enabled": True}


def test_health_reports_retrieval_mode(make_client):
    response = make_client(azure_search_index_name="faq-idx", use_vector_search=True).get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "healthy",
        "service": "rag-chat-assistant",
        "index": "faq-idx",
        "vectorSearch": True,
    }


@pytest.mark.parametrize("error", [KeyError("choices"), ValueError("bad payload")])
def test_unexpected_failure_keeps_error_contract(make_client, error):
    client = make_client(StubOrchestrator(error=error), raise_server_exceptions=False)

    response = client.post("/chat", json={"message": "Hi"})

    assert response.status_code == 500
    assert response.json() == {"error": True, "reply": GENERIC_ERROR_REPLY}
    assert "choices" not in response.text
