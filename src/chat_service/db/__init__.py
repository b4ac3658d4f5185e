"""Database module for conversation persistence."""

from chat_service.db.base import ConversationStore
from chat_service.db.models import ConversationRecord, MessageRecord
from chat_service.db.repository import (
    SQLConversationStore,
    get_engine,
    init_db,
)

__all__ = [
    "ConversationRecord",
    "ConversationStore",
    "MessageRecord",
    "SQLConversationStore",
    "get_engine",
    "init_db",
]
