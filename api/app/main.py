"""
FastAPI application entrypoint.

Registers routers and error handlers, configures CORS, initializes
telemetry, and creates service instances on startup.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import get_settings
from app.core.errors import register_error_handlers
from app.core.telemetry import setup_telemetry
from app.routers import chat, health, widget
from app.services.openai_client import OpenAIService
from app.services.rag import ChatOrchestrator
from app.services.search import DocumentSearchService, SourceRetriever

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI):
    """
    Application lifespan handler.
    Initializes service clients on startup, closes them on shutdown.
    """
    settings = get_settings()

    # Configure logging
    logging.basicConfig(
        level=settings.effective_log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    # Initialize telemetry
    setup_telemetry(settings.applicationinsights_connection_string)

    # Initialize service clients
    search_service = DocumentSearchService(settings)
    openai_service = OpenAIService(settings)
    retriever = SourceRetriever(search_service, openai_service, settings)
    chat_orchestrator = ChatOrchestrator(retriever, openai_service, settings)

    # Store in app state for dependency injection
    application.state.chat_orchestrator = chat_orchestrator

    logger.info(
        "Chat assistant API started (index=%s, vector search=%s).",
        settings.azure_search_index_name,
        settings.use_vector_search,
    )
    yield
    logger.info("Chat assistant API shutting down.")
    await search_service.close()
    await openai_service.close()


app = FastAPI(
    title="RAG Chat Assistant API",
    description="Retrieval-augmented chat assistant with cited sources.",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Register routers
app.include_router(health.router)
app.include_router(widget.router)
app.include_router(chat.router)
