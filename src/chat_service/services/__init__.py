"""Use cases of the chat completion service."""

from chat_service.services.chat_completion import (
    ChatCompletionConfigInput,
    ChatCompletionInput,
    ChatCompletionOutput,
    CompletionOrchestrator,
)
from chat_service.services.output_sink import OutputSink, SinkClosedError

__all__ = [
    "ChatCompletionConfigInput",
    "ChatCompletionInput",
    "ChatCompletionOutput",
    "CompletionOrchestrator",
    "OutputSink",
    "SinkClosedError",
]
