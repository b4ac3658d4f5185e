"""Configuration management using Pydantic Settings"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CHAT_SERVICE_",
        extra="ignore",
        protected_namespaces=(),
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    auth_token: str | None = None

    # Logging
    log_level: str = "INFO"

    # Persistence
    database_path: Path = Path("data/chat_service.db")

    # Completion provider
    openai_api_key: str | None = None
    openai_base_url: str | None = None

    # Default generation config for new conversations
    model: str = "gpt-4o-mini"
    model_max_tokens: int = 4096
    temperature: float = 0.1
    top_p: float = 1.0
    n: int = 1
    stop: list[str] = []
    max_tokens: int = 300
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0
    initial_system_message: str = "You are a helpful assistant."

    # Streaming
    stream_buffer_size: int = 8
    completion_timeout: float = 120.0

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> LogLevel:
        """Validate log level, fallback to INFO if invalid."""
        upper_v = v.upper()
        if upper_v not in VALID_LOG_LEVELS:
            return "INFO"
        return upper_v  # type: ignore[return-value]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance. Use this for dependency injection."""
    return Settings()


# For backward compatibility and simple imports
settings = get_settings()
