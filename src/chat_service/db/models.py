"""SQLModel models for conversation persistence.

Schema design:
- Table names: snake_case plural (conversations, messages)
- Column names: snake_case
- Foreign keys: {table_singular}_id
- Generation config is flattened onto the conversation row
"""

from datetime import datetime

from sqlalchemy import JSON, Column
from sqlmodel import Field, Relationship, SQLModel

from chat_service.domain.entities import generate_id, utc_now


class ConversationRecord(SQLModel, table=True):
    """Conversation row with its flattened generation config.

    Attributes:
        id: Conversation id
        user_id: Owner of the conversation
        initial_message_id: Id of the initial system message
        status: "active" or "ended"
        token_usage: Token total of the live window
        model, model_max_tokens: Completion model and its context ceiling
        temperature, top_p, n, stop, max_tokens, presence_penalty,
        frequency_penalty: Generation parameters
        created_at: When the conversation was created
        updated_at: When the conversation was last saved
    """

    __tablename__ = "conversations"
    __table_args__ = {"extend_existing": True}

    id: str = Field(default_factory=generate_id, primary_key=True)
    user_id: str = Field(index=True)
    initial_message_id: str | None = None
    status: str = "active"
    token_usage: int = 0
    model: str
    model_max_tokens: int
    temperature: float
    top_p: float
    n: int
    stop: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    max_tokens: int
    presence_penalty: float
    frequency_penalty: float
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    messages: list["MessageRecord"] = Relationship(back_populates="conversation")


class MessageRecord(SQLModel, table=True):
    """Message row, live or erased.

    Attributes:
        id: Message id
        conversation_id: Foreign key to parent conversation
        content: Message text
        role: "system", "user" or "assistant"
        tokens: Token cost
        model: Model name the message was produced for
        created_at: When the message was created
        order: Position within its list (live window or erased log)
        erased: True if the message was evicted from the live window
    """

    __tablename__ = "messages"
    __table_args__ = {"extend_existing": True}

    id: str = Field(default_factory=generate_id, primary_key=True)
    conversation_id: str = Field(foreign_key="conversations.id", index=True)
    content: str
    role: str
    tokens: int
    model: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    order: int = 0
    erased: bool = False

    conversation: ConversationRecord | None = Relationship(back_populates="messages")
