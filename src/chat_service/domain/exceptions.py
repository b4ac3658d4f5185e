"""Error taxonomy for the chat completion service.

Every error raised across module boundaries derives from ChatServiceError,
so transport layers can map error kinds to their own status codes.
"""

from typing import Any


class ChatServiceError(Exception):
    """Base class for service errors.

    Attributes:
        code: Machine-readable error code (e.g. "STORE_ERROR").
        message: Human-readable message.
        operation: The operation that was being attempted, if known.
        extra: Additional context (conversation id, provider name, ...).
    """

    code = "CHAT_SERVICE_ERROR"

    def __init__(self, message: str, *, operation: str | None = None, **extra: Any):
        self.message = message
        self.operation = operation
        self.extra = extra
        super().__init__(message)

    def wrap(self, operation: str) -> "ChatServiceError":
        """Return an error of the same kind with the operation prepended."""
        return type(self)(f"{operation}: {self.message}", operation=operation, **self.extra)


class NotFoundError(ChatServiceError):
    """Store lookup miss."""

    code = "NOT_FOUND"


class ValidationError(ChatServiceError):
    """Construction constraints violated."""

    code = "VALIDATION_ERROR"


class ConversationEndedError(ChatServiceError):
    """A message was appended to an ended conversation."""

    code = "CONVERSATION_ENDED"


class ProviderError(ChatServiceError):
    """Completion provider failed before or during streaming."""

    code = "PROVIDER_ERROR"


class StoreError(ChatServiceError):
    """Conversation store failed to read or write."""

    code = "STORE_ERROR"
