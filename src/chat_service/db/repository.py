"""Repository layer for database operations.

Provides the SQL-backed ConversationStore. Uses SQLite for local persistence
(data/chat_service.db by default).
"""

import asyncio
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine, select

from chat_service.core.config import settings
from chat_service.core.logging import get_logger
from chat_service.db.base import ConversationStore
from chat_service.db.models import ConversationRecord, MessageRecord
from chat_service.domain.entities import (
    Conversation,
    ConversationConfig,
    Message,
    Model,
    utc_now,
)
from chat_service.domain.exceptions import NotFoundError, StoreError, ValidationError

logger = get_logger(__name__)


def _enable_sqlite_fk(dbapi_connection, connection_record):
    """Enable foreign key constraints for SQLite connections."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# Module-level engine (initialized on first use)
_engine = None


def get_engine(db_path: Path | None = None):
    """Get or create the database engine.

    Args:
        db_path: Optional custom database path. Defaults to settings.database_path

    Returns:
        SQLModel engine instance
    """
    global _engine
    if _engine is None:
        path = db_path or settings.database_path
        path.parent.mkdir(parents=True, exist_ok=True)
        database_url = f"sqlite:///{path}"
        _engine = create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False},
        )
        # Enable foreign key constraints for SQLite
        event.listen(_engine, "connect", _enable_sqlite_fk)
    return _engine


def init_db(db_path: Path | None = None) -> None:
    """Initialize the database by creating all tables.

    Args:
        db_path: Optional custom database path
    """
    engine = get_engine(db_path)
    SQLModel.metadata.create_all(engine)


def _as_utc(value: datetime) -> datetime:
    """SQLite drops tzinfo; stored datetimes are always UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SQLConversationStore(ConversationStore):
    """ConversationStore backed by SQLModel.

    Each operation runs in its own session on a worker thread, so the event
    loop is never blocked by database I/O.
    """

    def __init__(self, engine=None):
        """Initialize the store.

        Args:
            engine: SQLAlchemy engine. Defaults to the module-level engine.
        """
        self._engine = engine

    @property
    def engine(self):
        return self._engine if self._engine is not None else get_engine()

    async def find_by_id(self, conversation_id: str) -> Conversation:
        try:
            return await asyncio.to_thread(self._find_by_id, conversation_id)
        except SQLAlchemyError as e:
            logger.error("store_find_error", conversation_id=conversation_id, error=str(e))
            raise StoreError(str(e), conversation_id=conversation_id) from e
        except ValidationError as e:
            # Stored row no longer maps onto the domain model
            logger.error("store_corrupt_row", conversation_id=conversation_id, error=e.message)
            raise StoreError(e.message, conversation_id=conversation_id) from e

    async def create(self, conversation: Conversation) -> None:
        try:
            await asyncio.to_thread(self._create, conversation)
        except SQLAlchemyError as e:
            logger.error("store_create_error", conversation_id=conversation.id, error=str(e))
            raise StoreError(str(e), conversation_id=conversation.id) from e

    async def save(self, conversation: Conversation) -> None:
        try:
            await asyncio.to_thread(self._save, conversation)
        except SQLAlchemyError as e:
            logger.error("store_save_error", conversation_id=conversation.id, error=str(e))
            raise StoreError(str(e), conversation_id=conversation.id) from e

    def _find_by_id(self, conversation_id: str) -> Conversation:
        with Session(self.engine) as session:
            record = session.get(ConversationRecord, conversation_id)
            if record is None:
                raise NotFoundError(
                    "conversation not found", conversation_id=conversation_id
                )

            statement = (
                select(MessageRecord)
                .where(MessageRecord.conversation_id == conversation_id)
                .order_by(MessageRecord.order.asc())
            )
            rows = session.exec(statement).all()

            config = ConversationConfig(
                model=Model(name=record.model, max_tokens=record.model_max_tokens),
                temperature=record.temperature,
                top_p=record.top_p,
                n=record.n,
                stop=tuple(record.stop or ()),
                max_tokens=record.max_tokens,
                presence_penalty=record.presence_penalty,
                frequency_penalty=record.frequency_penalty,
            )
            messages = [self._to_message(row, config) for row in rows if not row.erased]
            erased = [self._to_message(row, config) for row in rows if row.erased]

            initial = next(
                (m for m in erased + messages if m.id == record.initial_message_id),
                None,
            )

            conversation = Conversation(
                id=record.id,
                user_id=record.user_id,
                initial_system_message=initial,
                config=config,
                messages=messages,
                erased_messages=erased,
                status=record.status,  # type: ignore[arg-type]
                token_usage=record.token_usage,
            )
            logger.debug(
                "conversation_loaded",
                conversation_id=conversation_id,
                message_count=len(messages),
                erased_count=len(erased),
            )
            return conversation

    def _create(self, conversation: Conversation) -> None:
        with Session(self.engine) as session:
            record = ConversationRecord(id=conversation.id, created_at=utc_now())
            self._apply_fields(record, conversation)
            session.add(record)
            session.add_all(self._to_records(conversation))
            session.commit()

    def _save(self, conversation: Conversation) -> None:
        with Session(self.engine) as session:
            record = session.get(ConversationRecord, conversation.id)
            if record is None:
                record = ConversationRecord(id=conversation.id, created_at=utc_now())
            self._apply_fields(record, conversation)
            session.add(record)

            # Replace both message lists wholesale
            statement = select(MessageRecord).where(
                MessageRecord.conversation_id == conversation.id
            )
            for row in session.exec(statement).all():
                session.delete(row)
            session.flush()

            session.add_all(self._to_records(conversation))
            session.commit()

    @staticmethod
    def _apply_fields(record: ConversationRecord, conversation: Conversation) -> None:
        config = conversation.config
        initial = conversation.initial_system_message
        record.user_id = conversation.user_id
        record.initial_message_id = initial.id if initial else None
        record.status = conversation.status.value
        record.token_usage = conversation.token_usage
        record.model = config.model.name
        record.model_max_tokens = config.model.max_tokens
        record.temperature = config.temperature
        record.top_p = config.top_p
        record.n = config.n
        record.stop = list(config.stop)
        record.max_tokens = config.max_tokens
        record.presence_penalty = config.presence_penalty
        record.frequency_penalty = config.frequency_penalty
        record.updated_at = utc_now()

    @staticmethod
    def _to_records(conversation: Conversation) -> list[MessageRecord]:
        records = []
        for erased, messages in (
            (False, conversation.messages),
            (True, conversation.erased_messages),
        ):
            for order, message in enumerate(messages):
                records.append(
                    MessageRecord(
                        id=message.id,
                        conversation_id=conversation.id,
                        content=message.content,
                        role=message.role.value,
                        tokens=message.tokens,
                        model=message.model.name if message.model else None,
                        created_at=message.created_at,
                        order=order,
                        erased=erased,
                    )
                )
        return records

    @staticmethod
    def _to_message(row: MessageRecord, config: ConversationConfig) -> Message:
        return Message(
            id=row.id,
            role=row.role,  # type: ignore[arg-type]
            content=row.content,
            tokens=row.tokens,
            created_at=_as_utc(row.created_at),
            model=config.model if row.model == config.model.name else None,
        )
