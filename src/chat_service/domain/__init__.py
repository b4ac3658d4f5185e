"""Domain layer: the conversation aggregate and the error taxonomy."""

from chat_service.domain.entities import (
    Conversation,
    ConversationConfig,
    ConversationStatus,
    Message,
    Model,
    Role,
)
from chat_service.domain.exceptions import (
    ChatServiceError,
    ConversationEndedError,
    NotFoundError,
    ProviderError,
    StoreError,
    ValidationError,
)

__all__ = [
    "ChatServiceError",
    "Conversation",
    "ConversationConfig",
    "ConversationEndedError",
    "ConversationStatus",
    "Message",
    "Model",
    "NotFoundError",
    "ProviderError",
    "Role",
    "StoreError",
    "ValidationError",
]
