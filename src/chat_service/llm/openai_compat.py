"""OpenAI-compatible completion provider implementation."""

import os
from collections.abc import AsyncIterator

import tiktoken
from openai import APIError, AsyncOpenAI, AuthenticationError, RateLimitError

from chat_service.core.logging import get_logger
from chat_service.domain.exceptions import ProviderError
from chat_service.llm.base import CompletionChunk, CompletionProvider, CompletionRequest

logger = get_logger(__name__)

# Encoding used when tiktoken does not know the model (e.g. Ollama models)
FALLBACK_ENCODING = "cl100k_base"


class OpenAICompatProvider(CompletionProvider):
    """OpenAI API-compatible completion provider.

    Supports OpenAI, Ollama, Groq, and other OpenAI-compatible APIs.

    Example usage:
        # For Ollama
        provider = OpenAICompatProvider(
            base_url="http://localhost:11434/v1",
            model="llama3.2"
        )

        # For OpenAI
        provider = OpenAICompatProvider(
            api_key=os.getenv("OPENAI_API_KEY"),
            model="gpt-4o-mini"
        )
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str = "gpt-4o-mini",
    ) -> None:
        """Initialize OpenAI-compatible provider.

        Args:
            api_key: API key for authentication. Defaults to OPENAI_API_KEY env var.
                     For Ollama, any non-empty string works.
            base_url: Base URL for API. Defaults to OPENAI_BASE_URL env var or OpenAI.
            model: Model name used to pick the token encoding.
        """
        self.model = model
        self._encoding: tiktoken.Encoding | None = None

        resolved_api_key = api_key or os.getenv("OPENAI_API_KEY", "ollama")
        resolved_base_url = base_url or os.getenv("OPENAI_BASE_URL")

        self.client = AsyncOpenAI(
            api_key=resolved_api_key,
            base_url=resolved_base_url,
        )

        logger.info(
            "completion_provider_initialized",
            model=model,
            base_url=resolved_base_url or "default",
        )

    @property
    def encoding(self) -> tiktoken.Encoding:
        """Token encoding for the configured model, loaded on first use."""
        if self._encoding is None:
            try:
                self._encoding = tiktoken.encoding_for_model(self.model)
            except KeyError:
                logger.debug("token_encoding_fallback", model=self.model)
                self._encoding = tiktoken.get_encoding(FALLBACK_ENCODING)
        return self._encoding

    def count_tokens(self, text: str) -> int:
        return len(self.encoding.encode(text))

    async def stream_completion(
        self,
        request: CompletionRequest,
    ) -> AsyncIterator[CompletionChunk]:
        """Stream completion chunks from the API.

        Args:
            request: The completion request.

        Yields:
            CompletionChunk: Non-empty text deltas from the first choice.

        Raises:
            ProviderError: If the API call or the stream fails.
        """
        logger.info(
            "completion_stream_start",
            model=request.model,
            message_count=len(request.messages),
        )

        try:
            stream = await self.client.chat.completions.create(
                model=request.model,
                messages=request.messages,  # type: ignore[arg-type]
                temperature=request.temperature,
                top_p=request.top_p,
                n=request.n,
                stop=request.stop or None,
                max_tokens=request.max_tokens,
                presence_penalty=request.presence_penalty,
                frequency_penalty=request.frequency_penalty,
                stream=request.stream,
            )

            async for chunk in stream:
                # With n > 1 the choices arrive interleaved; keep the first one
                choice = next((c for c in chunk.choices if c.index == 0), None)
                if choice is None:
                    continue
                delta = choice.delta
                if delta.content:
                    yield CompletionChunk(
                        delta=delta.content,
                        role=delta.role or "assistant",
                    )
        except RateLimitError as e:
            logger.warning("completion_rate_limit", model=request.model)
            raise ProviderError(str(e), reason="rate_limit") from e
        except AuthenticationError as e:
            logger.error("completion_auth_error", model=request.model)
            raise ProviderError(str(e), reason="authentication") from e
        except APIError as e:
            logger.error("completion_api_error", model=request.model, error=str(e))
            raise ProviderError(str(e), reason="api") from e
