"""
Azure AI Search client wrapper and source retriever.

Runs semantic search against the index, optionally adding the query
embedding as a vector ranking signal. The retriever degrades to
semantic-only search when the embedding cannot be produced.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Protocol

from azure.core.credentials import AzureKeyCredential
from azure.core.exceptions import AzureError, HttpResponseError
from azure.identity.aio import DefaultAzureCredential
from azure.search.documents.aio import SearchClient
from azure.search.documents.models import QueryType, VectorizedQuery

from app.core.config import Settings
from app.core.errors import RateLimitedError, UpstreamError, UpstreamTimeoutError
from app.core.telemetry import get_tracer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetrievedDocument:
    """A single search result from the index."""

    url: str
    content: str
    score: float = 0.0
    reranker_score: float | None = None


@dataclass(frozen=True)
class RetrievalResult:
    documents: list[RetrievedDocument] = field(default_factory=list)
    vector_used: bool = False


class Embedder(Protocol):
    async def embed_text(self, text: str) -> list[float]: ...


class DocumentSearchService:
    """Wrapper around Azure AI Search for source document retrieval."""

    def __init__(self, settings: Settings, client: SearchClient | None = None) -> None:
        self._settings = settings
        self._tracer = get_tracer()
        if client is None:
            credential = (
                AzureKeyCredential(settings.azure_search_key)
                if settings.azure_search_key
                else DefaultAzureCredential()
            )
            client = SearchClient(
                endpoint=settings.azure_search_endpoint,
                index_name=settings.azure_search_index_name,
                credential=credential,
            )
        self._client = client

    async def close(self) -> None:
        await self._client.close()

    async def search(
        self,
        query_text: str,
        top_k: int,
        query_vector: list[float] | None = None,
    ) -> list[RetrievedDocument]:
        """
        Execute a semantic search, with an extra vector query when given.

        Args:
            query_text: The user's natural language query.
            top_k: Number of results to return.
            query_vector: Optional embedded query vector.

        Returns:
            Up to top_k RetrievedDocument in the service's relevance order.

        Raises:
            RateLimitedError: the search service returned HTTP 429.
            UpstreamError: any other failure, including timeouts.
        """
        settings = self._settings
        with self._tracer.start_as_current_span("search.semantic") as span:
            span.set_attribute("search.top_k", top_k)
            span.set_attribute("search.vector", query_vector is not None)

            kwargs = {
                "search_text": query_text,
                "query_type": QueryType.SEMANTIC,
                "semantic_configuration_name": settings.azure_semantic_configuration,
                "select": [settings.azure_search_url_field, settings.azure_search_content_field],
                "top": top_k,
            }
            if settings.debug_logging:
                logger.debug(
                    "Search payload: %s",
                    json.dumps({**kwargs, "vector": "<<omitted>>" if query_vector else None}, default=str),
                )
            if query_vector is not None:
                kwargs["vector_queries"] = [
                    VectorizedQuery(
                        vector=query_vector,
                        k_nearest_neighbors=top_k,
                        fields=settings.azure_search_vector_field,
                    )
                ]

            try:
                documents = await asyncio.wait_for(
                    self._collect(kwargs, top_k),
                    timeout=settings.upstream_timeout_seconds,
                )
            except asyncio.TimeoutError as exc:
                raise UpstreamTimeoutError(
                    "search", f"no response after {settings.upstream_timeout_seconds}s"
                ) from exc
            except HttpResponseError as exc:
                if exc.status_code == 429:
                    raise RateLimitedError("search", exc.message) from exc
                raise UpstreamError("search", f"HTTP {exc.status_code}: {exc.message}") from exc
            except AzureError as exc:
                raise UpstreamError("search", str(exc)) from exc

            span.set_attribute("search.results_count", len(documents))
            logger.info("Search returned %d results", len(documents))
            return documents

    async def _collect(self, kwargs: dict, top_k: int) -> list[RetrievedDocument]:
        url_field = self._settings.azure_search_url_field
        content_field = self._settings.azure_search_content_field
        results = await self._client.search(**kwargs)

        documents = []
        async for doc in results:
            documents.append(
                RetrievedDocument(
                    url=doc.get(url_field) or "",
                    content=doc.get(content_field) or "",
                    score=doc.get("@search.score", 0.0),
                    reranker_score=doc.get("@search.reranker_score"),
                )
            )
            if len(documents) >= top_k:
                break
        return documents


class SourceRetriever:
    """Fetches candidate sources, adding the query vector when enabled."""

    def __init__(
        self,
        search_service: DocumentSearchService,
        embedder: Embedder,
        settings: Settings,
    ) -> None:
        self._search = search_service
        self._embedder = embedder
        self._settings = settings

    async def retrieve(self, query: str, top_k: int) -> RetrievalResult:
        query_vector = None
        if self._settings.use_vector_search:
            query_vector = await self._try_embed(query)

        documents = await self._search.search(query, top_k, query_vector=query_vector)
        return RetrievalResult(documents=documents[:top_k], vector_used=query_vector is not None)

    async def _try_embed(self, query: str) -> list[float] | None:
        try:
            embedding = await self._embedder.embed_text(query)
        except UpstreamError as exc:
            logger.warning("Vector embedding failed, falling back to semantic only: %s", exc)
            return None

        logger.info("Using vector search; embedding length: %d", len(embedding))
        if self._settings.debug_logging:
            preview = ", ".join(f"{v:.4f}" for v in embedding[:5])
            logger.debug("Vector preview: [%s]...", preview)
        return embedding
