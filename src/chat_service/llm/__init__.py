"""Completion provider layer for the chat service."""

from chat_service.llm.base import CompletionChunk, CompletionProvider, CompletionRequest
from chat_service.llm.openai_compat import OpenAICompatProvider

__all__ = [
    "CompletionChunk",
    "CompletionProvider",
    "CompletionRequest",
    "OpenAICompatProvider",
]
