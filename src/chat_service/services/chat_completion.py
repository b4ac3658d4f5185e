"""Chat completion use case.

Loads or creates a conversation, appends the user turn, streams the
provider's response to an output sink and persists the final state.
"""

from contextlib import aclosing
from dataclasses import dataclass, field

from chat_service.core.logging import get_logger
from chat_service.db.base import ConversationStore
from chat_service.domain.entities import (
    Conversation,
    ConversationConfig,
    Message,
    Model,
    Role,
)
from chat_service.domain.exceptions import ChatServiceError, NotFoundError
from chat_service.llm.base import CompletionProvider, CompletionRequest
from chat_service.services.output_sink import OutputSink

logger = get_logger(__name__)


@dataclass
class ChatCompletionConfigInput:
    """Generation config supplied by the transport layer.

    ``initial_system_message`` is only used when the conversation is created.
    """

    model: str
    model_max_tokens: int
    temperature: float = 1.0
    top_p: float = 1.0
    n: int = 1
    stop: list[str] = field(default_factory=list)
    max_tokens: int = 256
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0
    initial_system_message: str = ""


@dataclass
class ChatCompletionInput:
    conversation_id: str
    user_id: str
    user_message: str
    config: ChatCompletionConfigInput


@dataclass
class ChatCompletionOutput:
    """A published record; ``content`` is the full text generated so far."""

    conversation_id: str
    user_id: str
    content: str


class CompletionOrchestrator:
    """Runs one streamed completion turn against a conversation.

    A conversation must not be executed by two calls at once; callers
    serialize executions per conversation id.
    """

    def __init__(self, store: ConversationStore, provider: CompletionProvider) -> None:
        self.store = store
        self.provider = provider

    async def execute(
        self,
        user_input: ChatCompletionInput,
        sink: OutputSink[ChatCompletionOutput] | None = None,
    ) -> ChatCompletionOutput:
        """Execute one completion turn.

        Args:
            user_input: Conversation id, user id, message text and config.
            sink: Receives one cumulative output record per provider delta.
                Closed when this call returns or raises.

        Returns:
            The final output record.

        Raises:
            ValidationError: If a new conversation cannot be built.
            ConversationEndedError: If the conversation has ended.
            ProviderError: If the provider fails; nothing is persisted.
            StoreError: If loading, creating or saving fails.
        """
        log = logger.bind(conversation_id=user_input.conversation_id)
        try:
            conversation = await self._resolve_conversation(user_input)
            log = logger.bind(conversation_id=conversation.id)

            user_message = self._new_message(conversation, Role.USER, user_input.user_message)
            conversation.append_message(user_message)

            content = await self._stream(conversation, user_input, sink)

            assistant_message = self._new_message(conversation, Role.ASSISTANT, content)
            conversation.append_message(assistant_message)

            try:
                await self.store.save(conversation)
            except ChatServiceError as e:
                raise e.wrap("error saving conversation") from e
        except ChatServiceError as e:
            log.warning("completion_failed", code=e.code, error=e.message)
            raise
        finally:
            if sink is not None:
                sink.close()

        log.info(
            "completion_completed",
            response_length=len(content),
            token_usage=conversation.token_usage,
            erased_count=len(conversation.erased_messages),
        )
        return ChatCompletionOutput(
            conversation_id=conversation.id,
            user_id=user_input.user_id,
            content=content,
        )

    async def _resolve_conversation(self, user_input: ChatCompletionInput) -> Conversation:
        try:
            return await self.store.find_by_id(user_input.conversation_id)
        except NotFoundError:
            pass
        except ChatServiceError as e:
            raise e.wrap("error fetching existing conversation") from e

        conversation = self._create_conversation(user_input)
        try:
            await self.store.create(conversation)
        except ChatServiceError as e:
            raise e.wrap("error creating conversation") from e

        logger.info(
            "conversation_created",
            conversation_id=conversation.id,
            user_id=conversation.user_id,
            model=conversation.config.model.name,
        )
        return conversation

    def _create_conversation(self, user_input: ChatCompletionInput) -> Conversation:
        config_input = user_input.config
        try:
            model = Model(name=config_input.model, max_tokens=config_input.model_max_tokens)
            config = ConversationConfig(
                model=model,
                temperature=config_input.temperature,
                top_p=config_input.top_p,
                n=config_input.n,
                stop=tuple(config_input.stop),
                max_tokens=config_input.max_tokens,
                presence_penalty=config_input.presence_penalty,
                frequency_penalty=config_input.frequency_penalty,
            )
            system_message = Message.new(
                Role.SYSTEM,
                config_input.initial_system_message,
                self.provider.count_tokens(config_input.initial_system_message),
                model=model,
            )
            return Conversation.start(
                user_input.user_id,
                system_message,
                config,
                conversation_id=user_input.conversation_id or None,
            )
        except ChatServiceError as e:
            raise e.wrap("error creating conversation") from e

    def _new_message(self, conversation: Conversation, role: Role, content: str) -> Message:
        return Message.new(
            role,
            content,
            self.provider.count_tokens(content),
            model=conversation.config.model,
        )

    async def _stream(
        self,
        conversation: Conversation,
        user_input: ChatCompletionInput,
        sink: OutputSink[ChatCompletionOutput] | None,
    ) -> str:
        config = conversation.config
        request = CompletionRequest(
            model=config.model.name,
            messages=conversation.provider_messages(),
            temperature=config.temperature,
            top_p=config.top_p,
            n=config.n,
            stop=list(config.stop),
            max_tokens=config.max_tokens,
            presence_penalty=config.presence_penalty,
            frequency_penalty=config.frequency_penalty,
            stream=True,
        )

        content = ""
        try:
            async with aclosing(self.provider.stream_completion(request)) as chunks:
                async for chunk in chunks:
                    content += chunk.delta
                    if sink is not None:
                        await sink.publish(
                            ChatCompletionOutput(
                                conversation_id=conversation.id,
                                user_id=user_input.user_id,
                                content=content,
                            )
                        )
        except ChatServiceError as e:
            raise e.wrap("error streaming response") from e

        return content
