"""Base classes for the completion provider layer."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field


@dataclass
class CompletionRequest:
    """A streaming chat completion request.

    Attributes:
        model: Provider model name.
        messages: Role/content pairs, oldest first.
        temperature, top_p, n, stop, max_tokens, presence_penalty,
        frequency_penalty: Sampling parameters passed through unchanged.
        stream: Always True for this service.
    """

    model: str
    messages: list[dict[str, str]]
    temperature: float = 1.0
    top_p: float = 1.0
    n: int = 1
    stop: list[str] = field(default_factory=list)
    max_tokens: int | None = None
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0
    stream: bool = True


@dataclass
class CompletionChunk:
    """One incremental fragment of a streamed completion."""

    delta: str
    role: str = "assistant"


class CompletionProvider(ABC):
    """Abstract base class for completion providers.

    Defines the interface for streaming completions and token counting.
    """

    @abstractmethod
    async def stream_completion(
        self,
        request: CompletionRequest,
    ) -> AsyncIterator[CompletionChunk]:
        """Stream completion chunks from the provider.

        The stream ends when the iterator is exhausted.

        Args:
            request: The completion request.

        Yields:
            CompletionChunk: Text deltas in arrival order.

        Raises:
            ProviderError: On transport or API failure.
        """
        pass
        # Make this an async generator
        yield CompletionChunk(delta="")  # pragma: no cover

    @abstractmethod
    def count_tokens(self, text: str) -> int:
        """Return the token cost of a text for the provider's model."""
