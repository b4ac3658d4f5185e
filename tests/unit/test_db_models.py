"""Unit tests for database models."""

from chat_service.db.models import ConversationRecord, MessageRecord


class TestConversationRecord:
    """Tests for ConversationRecord model."""

    def test_create_with_defaults(self):
        """Should fill id, status, usage and timestamps."""
        record = ConversationRecord(
            user_id="user-1",
            model="gpt-4o-mini",
            model_max_tokens=4096,
            temperature=0.1,
            top_p=1.0,
            n=1,
            max_tokens=300,
            presence_penalty=0.0,
            frequency_penalty=0.0,
        )
        assert record.id is not None
        assert record.status == "active"
        assert record.token_usage == 0
        assert record.initial_message_id is None
        assert record.created_at is not None
        assert record.updated_at is not None

    def test_has_messages_relationship(self):
        """Should have messages relationship attribute."""
        assert hasattr(ConversationRecord(), "messages")


class TestMessageRecord:
    """Tests for MessageRecord model."""

    def test_create_live_message(self):
        """Should default to a live message at position 0."""
        msg = MessageRecord(
            conversation_id="test-conv-id",
            role="user",
            content="Hello",
            tokens=2,
        )
        assert msg.id is not None
        assert msg.conversation_id == "test-conv-id"
        assert msg.role == "user"
        assert msg.tokens == 2
        assert msg.order == 0
        assert msg.erased is False
        assert msg.model is None

    def test_create_erased_message(self):
        """Should keep order and erased flag."""
        msg = MessageRecord(
            conversation_id="c",
            role="assistant",
            content="old",
            tokens=5,
            order=3,
            erased=True,
            model="gpt-4o-mini",
        )
        assert msg.order == 3
        assert msg.erased is True
        assert msg.model == "gpt-4o-mini"

    def test_message_has_conversation_relationship(self):
        """Should have conversation relationship attribute."""
        msg = MessageRecord(conversation_id="c", role="user", content="t", tokens=1)
        assert hasattr(msg, "conversation")
