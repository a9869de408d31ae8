"""
Pydantic models for the Chat API request/response contracts.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ConversationTurn(BaseModel):
    """A single message in the conversation history."""

    role: Literal["user", "assistant"] = Field(..., description="Message role: 'user' or 'assistant'")
    content: str = Field(..., description="Message content")


class ChatRequest(BaseModel):
    """Request body for the POST /chat endpoint."""

    message: str = Field(..., description="The new user message")
    history: list[ConversationTurn] = Field(
        default_factory=list,
        description="Prior conversation turns, oldest first, without the new message",
    )

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("message must not be empty")
        return value


class ChatResponse(BaseModel):
    """Response body from the POST /chat endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    vector_used: bool = Field(
        False, alias="vectorUsed", description="Whether the query embedding was used for ranking"
    )
    reply: str = Field(..., description="The assistant reply")
    assistant_message: ConversationTurn = Field(
        ..., alias="assistantMessage", description="The reply as a turn the client can append to history"
    )
    citations: list[str] = Field(
        default_factory=list, description="Numbered HTML anchors to the cited sources"
    )

    @classmethod
    def from_reply(cls, reply: str, citations: list[str], vector_used: bool) -> "ChatResponse":
        return cls(
            vector_used=vector_used,
            reply=reply,
            assistant_message=ConversationTurn(role="assistant", content=reply),
            citations=citations,
        )


class ErrorResponse(BaseModel):
    """Body returned when the pipeline fails."""

    error: bool = True
    reply: str


class WidgetConfig(BaseModel):
    """Read-only settings the chat widget fetches on load."""

    model_config = ConfigDict(populate_by_name=True)

    fallback_message: str = Field("", alias="fallbackMessage")


class SpeechFlag(BaseModel):
    enabled: bool
