"""Base class for conversation stores."""

from abc import ABC, abstractmethod

from chat_service.domain.entities import Conversation


class ConversationStore(ABC):
    """Abstract base class for conversation persistence.

    Stores persist a conversation in full: scalar fields, the live window and
    the erased log, each with its order preserved.
    """

    @abstractmethod
    async def find_by_id(self, conversation_id: str) -> Conversation:
        """Load a fully populated conversation.

        Raises:
            NotFoundError: If no conversation has this id.
            StoreError: On any other persistence failure.
        """

    @abstractmethod
    async def create(self, conversation: Conversation) -> None:
        """Insert a new conversation and its messages.

        Raises:
            StoreError: On persistence failure.
        """

    @abstractmethod
    async def save(self, conversation: Conversation) -> None:
        """Overwrite a stored conversation and replace all of its messages.

        Raises:
            StoreError: On persistence failure.
        """
