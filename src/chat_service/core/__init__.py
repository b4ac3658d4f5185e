"""Core utilities for the chat completion service"""

from chat_service.core.config import settings
from chat_service.core.logging import configure_logging

__all__ = ["settings", "configure_logging"]
