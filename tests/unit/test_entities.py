"""Unit tests for the conversation aggregate and its value types."""

from datetime import timezone

import pytest

from chat_service.domain.entities import (
    Conversation,
    ConversationConfig,
    ConversationStatus,
    Message,
    Model,
    Role,
    generate_id,
    utc_now,
)
from chat_service.domain.exceptions import ConversationEndedError, ValidationError


def make_config(max_tokens: int = 50, **overrides) -> ConversationConfig:
    return ConversationConfig(model=Model("gpt-4o-mini", max_tokens), **overrides)


def msg(role: str, tokens: int, content: str | None = None) -> Message:
    return Message.new(role, content or f"{role}-{tokens}", tokens)


def start(max_tokens: int = 50, system_tokens: int = 10) -> Conversation:
    return Conversation.start("user-1", msg("system", system_tokens), make_config(max_tokens))


class TestIdsAndTime:
    def test_generate_id_is_unique_uuid(self):
        ids = [generate_id() for _ in range(100)]
        assert len(set(ids)) == 100
        assert len(ids[0].split("-")) == 5

    def test_utc_now_is_utc(self):
        assert utc_now().tzinfo == timezone.utc


class TestMessage:
    """Tests for Message."""

    def test_new_assigns_id_and_time(self):
        message = Message.new("user", "Hello", 3)
        assert message.id
        assert message.role is Role.USER
        assert message.created_at.tzinfo == timezone.utc
        assert message.model is None

    def test_is_immutable(self):
        message = Message.new(Role.USER, "Hello", 3)
        with pytest.raises(AttributeError):
            message.content = "changed"  # type: ignore[misc]

    def test_rejects_unknown_role(self):
        with pytest.raises(ValidationError):
            Message.new("tool", "x", 1)

    def test_rejects_negative_tokens(self):
        with pytest.raises(ValidationError):
            Message.new("user", "x", -1)

    def test_zero_tokens_allowed(self):
        assert Message.new("user", "", 0).tokens == 0


class TestModelAndConfig:
    def test_model_requires_positive_max_tokens(self):
        with pytest.raises(ValidationError):
            Model("gpt-4o-mini", 0)

    def test_stop_is_normalized_to_tuple(self):
        config = ConversationConfig(model=Model("m", 10), stop=["a", "b"])  # type: ignore[arg-type]
        assert config.stop == ("a", "b")

    @pytest.mark.parametrize(
        "overrides",
        [
            {"temperature": -0.1},
            {"temperature": 2.1},
            {"top_p": 1.5},
            {"n": 0},
            {"max_tokens": 0},
            {"presence_penalty": 2.5},
            {"frequency_penalty": -3.0},
        ],
    )
    def test_validate_rejects_out_of_range(self, overrides):
        with pytest.raises(ValidationError):
            make_config(**overrides).validate()

    def test_validate_accepts_bounds(self):
        make_config(temperature=2.0, top_p=0.0, presence_penalty=-2.0).validate()


class TestConversationStart:
    """Tests for Conversation.start."""

    def test_starts_active_with_system_message(self):
        conversation = start()
        assert conversation.status is ConversationStatus.ACTIVE
        assert conversation.messages == [conversation.initial_system_message]
        assert conversation.messages[0].role is Role.SYSTEM
        assert conversation.token_usage == 10
        assert conversation.erased_messages == []

    def test_uses_given_id(self):
        conversation = Conversation.start(
            "user-1", msg("system", 1), make_config(), conversation_id="conv-42"
        )
        assert conversation.id == "conv-42"

    def test_generates_id_when_missing(self):
        assert start().id

    def test_empty_user_id_rejected(self):
        with pytest.raises(ValidationError):
            Conversation.start("", msg("system", 1), make_config())

    def test_temperature_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            Conversation.start("user-1", msg("system", 1), make_config(temperature=3.0))

    def test_invalid_status_rejected(self):
        with pytest.raises(ValidationError):
            Conversation(
                id="c",
                user_id="u",
                initial_system_message=None,
                config=make_config(),
                status="paused",  # type: ignore[arg-type]
            )

    def test_status_string_coerced(self):
        conversation = Conversation(
            id="c",
            user_id="u",
            initial_system_message=None,
            config=make_config(),
            status="ended",  # type: ignore[arg-type]
        )
        assert conversation.status is ConversationStatus.ENDED

    def test_oversized_system_message_still_appended(self):
        conversation = start(max_tokens=5, system_tokens=8)
        assert len(conversation.messages) == 1
        assert conversation.token_usage == 8
        assert conversation.erased_messages == []


class TestAppendMessage:
    """Tests for token budget enforcement."""

    def test_budget_invariant_holds_after_every_append(self):
        conversation = start(max_tokens=50)
        for tokens in [7, 13, 20, 1, 30, 5, 0, 12, 25, 9]:
            conversation.append_message(msg("user", tokens))
            assert conversation.token_usage == sum(m.tokens for m in conversation.messages)
            assert conversation.token_usage <= 50

    def test_exact_fit_does_not_evict(self):
        conversation = start(max_tokens=50)
        conversation.append_message(msg("user", 40))
        assert conversation.token_usage == 50
        assert conversation.erased_messages == []

    def test_fifo_eviction_scenario(self):
        """System costs 10, each exchange costs 20, budget is 50."""
        conversation = start(max_tokens=50)
        system = conversation.messages[0]

        exchanges = []
        for i in range(4):
            user = msg("user", 10, f"question {i}")
            assistant = msg("assistant", 10, f"answer {i}")
            conversation.append_message(user)
            conversation.append_message(assistant)
            exchanges.append((user, assistant))

        (u0, a0), (u1, a1), (u2, a2), (u3, a3) = exchanges
        assert conversation.erased_messages == [system, u0, a0, u1]
        assert conversation.messages == [a1, u2, a2, u3, a3]
        assert conversation.token_usage == 50

    def test_window_is_contiguous_suffix_plus_new_message(self):
        conversation = start(max_tokens=30)
        for tokens in [5, 5, 5]:
            conversation.append_message(msg("user", tokens))
        before = list(conversation.messages)

        new = msg("assistant", 15)
        conversation.append_message(new)

        evicted = len(before) - (len(conversation.messages) - 1)
        assert conversation.messages == before[evicted:] + [new]
        assert conversation.erased_messages == before[:evicted]

    def test_oversized_message_empties_window_and_is_appended(self):
        conversation = start(max_tokens=50)
        conversation.append_message(msg("user", 20))
        previous = list(conversation.messages)

        big = msg("user", 80)
        conversation.append_message(big)

        assert conversation.messages == [big]
        assert conversation.erased_messages == previous
        assert conversation.token_usage == 80

    def test_provider_messages_projection(self):
        conversation = Conversation.start(
            "user-1", Message.new("system", "Be brief", 2), make_config()
        )
        conversation.append_message(Message.new("user", "Hello", 1))
        assert conversation.provider_messages() == [
            {"role": "system", "content": "Be brief"},
            {"role": "user", "content": "Hello"},
        ]


class TestEnd:
    """Tests for the ended lifecycle state."""

    def test_end_is_idempotent(self):
        conversation = start()
        conversation.end()
        conversation.end()
        assert conversation.is_ended

    def test_append_after_end_fails_and_leaves_state_unchanged(self):
        conversation = start()
        conversation.append_message(msg("user", 10))
        conversation.end()
        messages = list(conversation.messages)
        usage = conversation.token_usage

        with pytest.raises(ConversationEndedError):
            conversation.append_message(msg("user", 45))

        assert conversation.messages == messages
        assert conversation.erased_messages == []
        assert conversation.token_usage == usage


def test_refresh_token_usage_recomputes_from_window():
    conversation = start()
    conversation.token_usage = 999
    conversation.refresh_token_usage()
    assert conversation.token_usage == 10
