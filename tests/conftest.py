"""Shared test doubles and fixtures."""

import asyncio
import copy
from collections.abc import AsyncIterator

import pytest

from chat_service.db.base import ConversationStore
from chat_service.domain.entities import Conversation
from chat_service.domain.exceptions import NotFoundError, ProviderError, StoreError
from chat_service.llm.base import CompletionChunk, CompletionProvider, CompletionRequest
from chat_service.services.chat_completion import (
    ChatCompletionConfigInput,
    ChatCompletionInput,
)


class FakeProvider(CompletionProvider):
    """Provider that streams scripted deltas.

    Token cost is looked up in ``costs`` by exact text, otherwise it is the
    number of whitespace-separated words.
    """

    def __init__(
        self,
        deltas: list[str] | None = None,
        fail_after: int | None = None,
        hang_after: int | None = None,
        costs: dict[str, int] | None = None,
    ) -> None:
        self.deltas = deltas if deltas is not None else ["Hel", "lo"]
        self.fail_after = fail_after
        self.hang_after = hang_after
        self.costs = costs or {}
        self.requests: list[CompletionRequest] = []
        self.closed = False

    def count_tokens(self, text: str) -> int:
        return self.costs.get(text, len(text.split()))

    async def stream_completion(
        self, request: CompletionRequest
    ) -> AsyncIterator[CompletionChunk]:
        self.requests.append(request)
        try:
            for i, delta in enumerate(self.deltas):
                if self.fail_after is not None and i == self.fail_after:
                    raise ProviderError("connection reset")
                if self.hang_after is not None and i == self.hang_after:
                    await asyncio.Event().wait()
                yield CompletionChunk(delta=delta)
        finally:
            self.closed = True


class InMemoryStore(ConversationStore):
    """Store keeping deep copies, so callers never share an instance."""

    def __init__(self) -> None:
        self.conversations: dict[str, Conversation] = {}
        self.create_calls = 0
        self.save_calls = 0
        self.fail_find: bool = False
        self.fail_create: bool = False
        self.fail_save: bool = False

    async def find_by_id(self, conversation_id: str) -> Conversation:
        if self.fail_find:
            raise StoreError("database is locked")
        if conversation_id not in self.conversations:
            raise NotFoundError("conversation not found")
        return copy.deepcopy(self.conversations[conversation_id])

    async def create(self, conversation: Conversation) -> None:
        self.create_calls += 1
        if self.fail_create:
            raise StoreError("disk full")
        self.conversations[conversation.id] = copy.deepcopy(conversation)

    async def save(self, conversation: Conversation) -> None:
        self.save_calls += 1
        if self.fail_save:
            raise StoreError("disk full")
        self.conversations[conversation.id] = copy.deepcopy(conversation)


def make_input(
    user_message: str = "hi there",
    conversation_id: str = "conv-1",
    user_id: str = "user-1",
    **config_overrides,
) -> ChatCompletionInput:
    config = ChatCompletionConfigInput(
        model="gpt-4o-mini",
        model_max_tokens=config_overrides.pop("model_max_tokens", 100),
        temperature=config_overrides.pop("temperature", 0.5),
        stop=config_overrides.pop("stop", ["\n\n"]),
        max_tokens=config_overrides.pop("max_tokens", 64),
        initial_system_message=config_overrides.pop(
            "initial_system_message", "You are helpful"
        ),
        **config_overrides,
    )
    return ChatCompletionInput(
        conversation_id=conversation_id,
        user_id=user_id,
        user_message=user_message,
        config=config,
    )


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def make_provider():
    """Factory for scripted providers."""
    return FakeProvider


@pytest.fixture(name="make_input")
def make_input_fixture():
    """Factory for orchestrator inputs."""
    return make_input
