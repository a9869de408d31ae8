"""
Chat Orchestrator - Core query pipeline.

Coordinates the full Retrieve → Budget → Generate flow:
1. Detect the language of the user message.
2. Retrieve sources (semantic search, plus vector ranking when enabled).
3. Short-circuit to the fallback message when nothing was found.
4. Cap each source and the joined source block to the token budget.
5. Assemble the system prompt, history window and the new user turn.
6. Call the LLM for generation.
7. Detect "no answer" replies and build citations for the rest.

Upstream errors propagate as app.core.errors types; the HTTP layer maps
them to the error response contract. Nothing is retried here.
"""

import enum
import logging
from typing import Protocol

from app.core.config import Settings
from app.core.telemetry import get_tracer, record_failure, record_stage
from app.models.chat import ChatResponse, ConversationTurn
from app.services.budget import SourceBudgeter
from app.services.citations import build_citations
from app.services.fallback import FallbackStrategy, build_fallback_strategy
from app.services.language import LanguageDetector
from app.services.prompt import PromptAssembler
from app.services.search import RetrievalResult

logger = logging.getLogger(__name__)


class Stage(str, enum.Enum):
    START = "start"
    DETECTING = "detecting"
    RETRIEVING = "retrieving"
    SHORT_CIRCUIT = "short_circuit"
    BUDGETING = "budgeting"
    ASSEMBLING = "assembling"
    COMPLETING = "completing"
    CLASSIFYING = "classifying"
    BUILDING_CITATIONS = "building_citations"
    DONE = "done"
    FAILED = "failed"


class Retriever(Protocol):
    async def retrieve(self, query: str, top_k: int) -> RetrievalResult: ...


class CompletionService(Protocol):
    async def embed_text(self, text: str) -> list[float]: ...

    async def chat_completion(self, messages: list[dict[str, str]]) -> str: ...


class ChatOrchestrator:
    """Runs one chat request through retrieval, prompting and completion."""

    def __init__(
        self,
        retriever: Retriever,
        openai_service: CompletionService,
        settings: Settings,
        language_detector: LanguageDetector | None = None,
        fallback_strategy: FallbackStrategy | None = None,
    ) -> None:
        self._retriever = retriever
        self._openai = openai_service
        self._settings = settings
        self._tracer = get_tracer()

        self.fallback_message = settings.effective_fallback_message
        self.language_detector = language_detector or LanguageDetector()
        self.budgeter = SourceBudgeter(
            max_source_characters=settings.max_source_characters,
            max_input_tokens=settings.max_input_tokens,
        )
        self.assembler = PromptAssembler(
            instructions=settings.azure_openai_instructions,
            max_turns=settings.max_turns,
        )
        self.fallback_strategy = fallback_strategy or build_fallback_strategy(
            settings.fallback_strategy,
            self.fallback_message,
            embedder=openai_service,
            threshold=settings.fallback_similarity_threshold,
        )

    async def answer(self, message: str, history: list[ConversationTurn]) -> ChatResponse:
        """
        Process a user message through the full pipeline.

        Args:
            message: The new user message.
            history: Prior turns, oldest first, not including `message`.

        Returns:
            ChatResponse with the reply and, unless the model declined to
            answer, citations for the retrieved sources.
        """
        with self._tracer.start_as_current_span(
            "rag.answer", record_exception=False, set_status_on_exception=False
        ) as span:
            span.set_attribute("rag.query_length", len(message))
            span.set_attribute("rag.history_length", len(history))
            stage = Stage.START
            try:
                stage = record_stage(span, Stage.DETECTING)
                directive = self._language_directive(message)

                stage = record_stage(span, Stage.RETRIEVING)
                top_k = self._settings.top_k
                retrieval = await self._retriever.retrieve(message, top_k)
                span.set_attribute("rag.retrieval_count", len(retrieval.documents))
                span.set_attribute("rag.vector_used", retrieval.vector_used)

                if not retrieval.documents:
                    stage = record_stage(span, Stage.SHORT_CIRCUIT)
                    logger.warning("No results retrieved; returning fallback message")
                    return ChatResponse.from_reply(self.fallback_message, [], vector_used=False)

                stage = record_stage(span, Stage.BUDGETING)
                prefix = self.assembler.build_prefix(directive)
                sources = self.budgeter.budget(retrieval.documents, len(prefix))
                span.set_attribute("rag.estimated_tokens", sources.estimated_tokens)

                stage = record_stage(span, Stage.ASSEMBLING)
                prompt = self.assembler.assemble(prefix, sources.text, history, message)

                stage = record_stage(span, Stage.COMPLETING)
                reply = await self._openai.chat_completion(prompt.to_messages())

                stage = record_stage(span, Stage.CLASSIFYING)
                is_fallback = await self.fallback_strategy.is_fallback(reply)

                stage = record_stage(span, Stage.BUILDING_CITATIONS)
                if is_fallback:
                    logger.info("No-answer reply detected. Citations suppressed.")
                    citations = []
                else:
                    citations = build_citations(retrieval.documents, top_k)

                record_stage(span, Stage.DONE)
                return ChatResponse.from_reply(reply, citations, vector_used=retrieval.vector_used)
            except Exception as exc:
                record_failure(span, stage, exc)
                raise

    def _language_directive(self, message: str) -> str:
        if not self._settings.language_detection_enabled:
            return ""
        if self.language_detector.instructions_mention_language(self.assembler.instructions):
            return ""
        return self.language_detector.directive(self.language_detector.detect(message))
