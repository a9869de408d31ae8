"""
Azure OpenAI client wrapper.

Handles query embeddings and chat completions. Every call runs under the
configured timeout and SDK failures are translated into the structured
errors from app.core.errors. Uses an API key when one is configured,
otherwise DefaultAzureCredential (Managed Identity in production,
az login locally).
"""

import asyncio
import logging

import openai
from azure.identity.aio import DefaultAzureCredential, get_bearer_token_provider
from openai import AsyncAzureOpenAI

from app.core.config import Settings
from app.core.errors import RateLimitedError, UpstreamError, UpstreamTimeoutError
from app.core.telemetry import get_tracer

logger = logging.getLogger(__name__)

COGNITIVE_SERVICES_SCOPE = "https://cognitiveservices.azure.com/.default"


def _build_client(settings: Settings) -> AsyncAzureOpenAI:
    if settings.azure_openai_api_key:
        return AsyncAzureOpenAI(
            azure_endpoint=settings.azure_openai_endpoint,
            api_key=settings.azure_openai_api_key,
            api_version=settings.azure_openai_api_version,
        )

    # Entra ID token-based auth when no key is set
    token_provider = get_bearer_token_provider(
        DefaultAzureCredential(),
        COGNITIVE_SERVICES_SCOPE,
    )
    return AsyncAzureOpenAI(
        azure_endpoint=settings.azure_openai_endpoint,
        azure_ad_token_provider=token_provider,
        api_version=settings.azure_openai_api_version,
    )


class OpenAIService:
    """Wrapper around Azure OpenAI for embeddings and chat completions."""

    def __init__(self, settings: Settings, client: AsyncAzureOpenAI | None = None) -> None:
        self._settings = settings
        self._tracer = get_tracer()
        self._client = client or _build_client(settings)

    @property
    def deployment(self) -> str:
        return self._settings.azure_openai_deployment_name

    async def close(self) -> None:
        await self._client.close()

    async def embed_text(self, text: str) -> list[float]:
        """
        Generate an embedding vector for the given text.

        Args:
            text: The text to embed (usually the user query).

        Returns:
            A list of floats representing the embedding vector.

        Raises:
            UpstreamError: the embedding call failed or timed out.
        """
        with self._tracer.start_as_current_span("openai.embed") as span:
            span.set_attribute("openai.model", self._settings.azure_embedding_model)
            response = await self._call(
                "embedding",
                self._client.embeddings.create(
                    input=[text],
                    model=self._settings.azure_embedding_model,
                ),
            )
            try:
                embedding = list(response.data[0].embedding)
            except (IndexError, AttributeError, TypeError) as exc:
                raise UpstreamError("embedding", f"malformed embedding payload: {exc}") from exc
            if not embedding:
                raise UpstreamError("embedding", "empty embedding vector")
            return embedding

    async def chat_completion(self, messages: list[dict[str, str]]) -> str:
        """
        Generate a chat completion.

        Args:
            messages: System prompt followed by the conversation turns.

        Returns:
            The reply text (empty string when the model returns no content).

        Raises:
            RateLimitedError: the deployment is throttling requests.
            UpstreamError: any other failure, including timeouts.
        """
        with self._tracer.start_as_current_span("openai.chat") as span:
            span.set_attribute("openai.model", self.deployment)
            span.set_attribute("openai.temperature", self._settings.openai_temperature)
            span.set_attribute("openai.max_tokens", self._settings.openai_max_tokens)

            response = await self._call(
                "completion",
                self._client.chat.completions.create(
                    model=self.deployment,
                    messages=messages,
                    temperature=self._settings.openai_temperature,
                    max_tokens=self._settings.openai_max_tokens,
                ),
            )

            try:
                answer = response.choices[0].message.content or ""
            except (IndexError, AttributeError, TypeError) as exc:
                raise UpstreamError("completion", f"malformed completion payload: {exc}") from exc
            if response.usage:
                span.set_attribute("openai.prompt_tokens", response.usage.prompt_tokens)
                span.set_attribute("openai.completion_tokens", response.usage.completion_tokens)
                logger.info("Chat completion: %d tokens used", response.usage.total_tokens)
            return answer

    async def _call(self, service: str, awaitable):
        try:
            return await asyncio.wait_for(
                awaitable, timeout=self._settings.upstream_timeout_seconds
            )
        except asyncio.TimeoutError as exc:
            raise UpstreamTimeoutError(
                service, f"no response after {self._settings.upstream_timeout_seconds}s"
            ) from exc
        except openai.RateLimitError as exc:
            raise RateLimitedError(service, str(exc)) from exc
        except openai.APIStatusError as exc:
            if exc.status_code == 429:
                raise RateLimitedError(service, str(exc)) from exc
            raise UpstreamError(service, f"HTTP {exc.status_code}: {exc.message}") from exc
        except openai.APIError as exc:
            raise UpstreamError(service, str(exc)) from exc
