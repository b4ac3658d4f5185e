"""Conversation aggregate and its value types.

- Message: an immutable utterance with a role, text and token cost.
- Model: a completion model's name and context-window ceiling.
- ConversationConfig: generation parameters bound to a conversation.
- Conversation: the live message window under a fixed token budget.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from chat_service.domain.exceptions import ConversationEndedError, ValidationError


def generate_id() -> str:
    """Generate a UUID-based ID for conversations and messages."""
    return str(uuid4())


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    ENDED = "ended"


@dataclass(frozen=True)
class Model:
    """A completion model and its maximum context size in tokens."""

    name: str
    max_tokens: int

    def __post_init__(self) -> None:
        if not self.name:
            raise ValidationError("model name is empty")
        if self.max_tokens <= 0:
            raise ValidationError(
                f"model max tokens must be positive, got {self.max_tokens}"
            )


@dataclass(frozen=True)
class Message:
    """A single utterance in a conversation.

    Attributes:
        id: UUID-based identifier
        role: Who produced the message
        content: Message text
        tokens: Token cost as reported by the provider's counter
        created_at: When the message was created (UTC)
        model: The model the message was produced for, if any
    """

    id: str
    role: Role
    content: str
    tokens: int
    created_at: datetime
    model: Model | None = None

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "role", Role(self.role))
        except ValueError as e:
            raise ValidationError(f"invalid message role: {self.role!r}") from e
        if self.tokens < 0:
            raise ValidationError(f"message tokens must be >= 0, got {self.tokens}")

    @classmethod
    def new(
        cls,
        role: Role | str,
        content: str,
        tokens: int,
        model: Model | None = None,
    ) -> "Message":
        """Create a message with a fresh id and the current time."""
        return cls(
            id=generate_id(),
            role=role,  # type: ignore[arg-type]
            content=content,
            tokens=tokens,
            created_at=utc_now(),
            model=model,
        )


@dataclass(frozen=True)
class ConversationConfig:
    """Generation parameters attached to a conversation at creation."""

    model: Model
    temperature: float = 1.0
    top_p: float = 1.0
    n: int = 1
    stop: tuple[str, ...] = ()
    max_tokens: int = 256
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "stop", tuple(self.stop))

    def validate(self) -> None:
        """Check every sampling parameter against its declared bound.

        Raises:
            ValidationError: If a parameter is out of range.
        """
        if not 0.0 <= self.temperature <= 2.0:
            raise ValidationError(
                f"temperature must be between 0 and 2, got {self.temperature}"
            )
        if not 0.0 <= self.top_p <= 1.0:
            raise ValidationError(f"top_p must be between 0 and 1, got {self.top_p}")
        if self.n < 1:
            raise ValidationError(f"n must be positive, got {self.n}")
        if self.max_tokens < 1:
            raise ValidationError(f"max_tokens must be positive, got {self.max_tokens}")
        if not -2.0 <= self.presence_penalty <= 2.0:
            raise ValidationError(
                f"presence_penalty must be between -2 and 2, got {self.presence_penalty}"
            )
        if not -2.0 <= self.frequency_penalty <= 2.0:
            raise ValidationError(
                f"frequency_penalty must be between -2 and 2, got {self.frequency_penalty}"
            )


@dataclass
class Conversation:
    """A conversation whose live window stays within the model's token budget.

    Messages that no longer fit are evicted oldest-first into
    ``erased_messages``. The only mutations are ``append_message`` and ``end``.

    A single message larger than the whole budget empties the live window and
    is still appended, so the window exceeds the budget in that case only.
    """

    id: str
    user_id: str
    initial_system_message: Message | None
    config: ConversationConfig
    messages: list[Message] = field(default_factory=list)
    erased_messages: list[Message] = field(default_factory=list)
    status: ConversationStatus = ConversationStatus.ACTIVE
    token_usage: int = 0

    def __post_init__(self) -> None:
        try:
            self.status = ConversationStatus(self.status)
        except ValueError as e:
            raise ValidationError(f"invalid conversation status: {self.status!r}") from e

    @classmethod
    def start(
        cls,
        user_id: str,
        initial_system_message: Message,
        config: ConversationConfig,
        conversation_id: str | None = None,
    ) -> "Conversation":
        """Create a new active conversation seeded with its system message.

        Raises:
            ValidationError: If user_id is empty or the config is out of range.
        """
        if not user_id:
            raise ValidationError("user id is empty")
        config.validate()

        conversation = cls(
            id=conversation_id or generate_id(),
            user_id=user_id,
            initial_system_message=initial_system_message,
            config=config,
        )
        conversation.append_message(initial_system_message)
        return conversation

    @property
    def is_ended(self) -> bool:
        return self.status is ConversationStatus.ENDED

    def append_message(self, message: Message) -> None:
        """Append a message, evicting the oldest live messages until it fits.

        Raises:
            ConversationEndedError: If the conversation has ended.
        """
        if self.is_ended:
            raise ConversationEndedError(
                "conversation is ended, no more messages allowed",
                conversation_id=self.id,
            )

        limit = self.config.model.max_tokens
        while self.messages and self.token_usage + message.tokens > limit:
            self.erased_messages.append(self.messages.pop(0))
            self.refresh_token_usage()

        self.messages.append(message)
        self.refresh_token_usage()

    def end(self) -> None:
        self.status = ConversationStatus.ENDED

    def refresh_token_usage(self) -> None:
        self.token_usage = sum(message.tokens for message in self.messages)

    def provider_messages(self) -> list[dict[str, str]]:
        """Project the live window into role/content pairs, in window order."""
        return [
            {"role": message.role.value, "content": message.content}
            for message in self.messages
        ]
