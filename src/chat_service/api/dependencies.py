"""FastAPI dependencies for the chat API."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException

from chat_service.api.locks import KeyedLock
from chat_service.core.config import Settings, get_settings
from chat_service.core.logging import get_logger
from chat_service.db import ConversationStore, SQLConversationStore
from chat_service.llm import CompletionProvider, OpenAICompatProvider
from chat_service.services.chat_completion import (
    ChatCompletionConfigInput,
    CompletionOrchestrator,
)

logger = get_logger(__name__)

# Shared across requests so executions on the same conversation id serialize
_conversation_locks = KeyedLock()


@lru_cache
def get_completion_provider() -> CompletionProvider:
    """Get or create the process-wide completion provider."""
    settings = get_settings()
    logger.info("initializing_completion_provider", model=settings.model)
    return OpenAICompatProvider(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        model=settings.model,
    )


def get_conversation_store() -> ConversationStore:
    return SQLConversationStore()


def get_conversation_locks() -> KeyedLock:
    return _conversation_locks


def get_orchestrator(
    store: Annotated[ConversationStore, Depends(get_conversation_store)],
    provider: Annotated[CompletionProvider, Depends(get_completion_provider)],
) -> CompletionOrchestrator:
    """Create an orchestrator for one request."""
    return CompletionOrchestrator(store, provider)


def get_default_config(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ChatCompletionConfigInput:
    """Build the generation config applied to every request from settings."""
    return ChatCompletionConfigInput(
        model=settings.model,
        model_max_tokens=settings.model_max_tokens,
        temperature=settings.temperature,
        top_p=settings.top_p,
        n=settings.n,
        stop=list(settings.stop),
        max_tokens=settings.max_tokens,
        presence_penalty=settings.presence_penalty,
        frequency_penalty=settings.frequency_penalty,
        initial_system_message=settings.initial_system_message,
    )


def verify_token(
    settings: Annotated[Settings, Depends(get_settings)],
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Reject requests whose Authorization header does not match the token.

    Raises:
        HTTPException: 401 if a token is configured and does not match.
    """
    if settings.auth_token and authorization != settings.auth_token:
        raise HTTPException(status_code=401, detail="Invalid authorization token")


SettingsDep = Annotated[Settings, Depends(get_settings)]
StoreDep = Annotated[ConversationStore, Depends(get_conversation_store)]
OrchestratorDep = Annotated[CompletionOrchestrator, Depends(get_orchestrator)]
DefaultConfigDep = Annotated[ChatCompletionConfigInput, Depends(get_default_config)]
LocksDep = Annotated[KeyedLock, Depends(get_conversation_locks)]
