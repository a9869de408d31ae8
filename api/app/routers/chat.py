"""
Chat router - POST /chat endpoint.

Receives the new user message with the prior conversation, runs the
retrieval pipeline, and returns the reply with citations.
"""

from fastapi import APIRouter, Depends, Request

from app.core.errors import GENERIC_ERROR_REPLY, RATE_LIMIT_REPLY
from app.models.chat import ChatRequest, ChatResponse, ErrorResponse
from app.services.rag import ChatOrchestrator

router = APIRouter(tags=["chat"])


def get_chat_orchestrator(request: Request) -> ChatOrchestrator:
    """
    Dependency injection for the chat orchestrator.
    Initialized once in main.py and stored in app.state.
    """
    return request.app.state.chat_orchestrator


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={
        429: {"model": ErrorResponse, "description": RATE_LIMIT_REPLY},
        500: {"model": ErrorResponse, "description": GENERIC_ERROR_REPLY},
    },
)
async def chat(
    request: ChatRequest,
    orchestrator: ChatOrchestrator = Depends(get_chat_orchestrator),
) -> ChatResponse:
    """
    Ask the assistant a question.

    The endpoint:
    1. Retrieves sources from the search index.
    2. Generates an answer grounded in the budgeted sources.
    3. Returns citations unless the model found no answer.
    """
    return await orchestrator.answer(message=request.message, history=request.history)
