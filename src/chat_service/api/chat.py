"""HTTP endpoints for chat completions and conversations."""

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import suppress
from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict

from chat_service.api.dependencies import (
    DefaultConfigDep,
    LocksDep,
    OrchestratorDep,
    SettingsDep,
    StoreDep,
    verify_token,
)
from chat_service.core.logging import get_logger
from chat_service.domain.entities import Conversation, Message, generate_id
from chat_service.domain.exceptions import ChatServiceError
from chat_service.services.chat_completion import (
    ChatCompletionConfigInput,
    ChatCompletionInput,
    ChatCompletionOutput,
)
from chat_service.services.output_sink import OutputSink

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_token)])
logger = get_logger(__name__)


class ChatRequest(BaseModel):
    """Request body for a completion turn."""

    conversation_id: str = ""
    user_id: str
    user_message: str


class ChatResponse(BaseModel):
    """Final output of a completion turn."""

    conversation_id: str
    user_id: str
    content: str


class MessageResponse(BaseModel):
    """Response model for a message."""

    id: str
    role: str
    content: str
    tokens: int
    created_at: datetime


class ConversationResponse(BaseModel):
    """Response model for a conversation."""

    model_config = ConfigDict(protected_namespaces=())

    id: str
    user_id: str
    status: str
    token_usage: int
    model: str
    model_max_tokens: int
    messages: list[MessageResponse]
    erased_messages: list[MessageResponse]


def _message_response(message: Message) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        role=message.role.value,
        content=message.content,
        tokens=message.tokens,
        created_at=message.created_at,
    )


def _conversation_response(conversation: Conversation) -> ConversationResponse:
    return ConversationResponse(
        id=conversation.id,
        user_id=conversation.user_id,
        status=conversation.status.value,
        token_usage=conversation.token_usage,
        model=conversation.config.model.name,
        model_max_tokens=conversation.config.model.max_tokens,
        messages=[_message_response(m) for m in conversation.messages],
        erased_messages=[_message_response(m) for m in conversation.erased_messages],
    )


def _sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


def _completion_input(
    request: ChatRequest, config: ChatCompletionConfigInput
) -> ChatCompletionInput:
    # New conversations get their id here so each one locks on its own key
    return ChatCompletionInput(
        conversation_id=request.conversation_id or generate_id(),
        user_id=request.user_id,
        user_message=request.user_message,
        config=config,
    )


@router.post("/chat")
async def chat(
    request: ChatRequest,
    orchestrator: OrchestratorDep,
    config: DefaultConfigDep,
    locks: LocksDep,
    settings: SettingsDep,
) -> ChatResponse:
    """Run one completion turn and return the full response.

    Raises:
        HTTPException: 504 if the completion exceeds the configured timeout.
    """
    user_input = _completion_input(request, config)
    async with locks.acquire(user_input.conversation_id):
        try:
            result = await asyncio.wait_for(
                orchestrator.execute(user_input),
                timeout=settings.completion_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("completion_timeout", conversation_id=user_input.conversation_id)
            raise HTTPException(status_code=504, detail="Completion timed out")

    return ChatResponse(**asdict(result))


@router.post("/chat/stream")
async def chat_stream(
    request: ChatRequest,
    orchestrator: OrchestratorDep,
    config: DefaultConfigDep,
    locks: LocksDep,
    settings: SettingsDep,
) -> StreamingResponse:
    """Run one completion turn, streaming cumulative output as SSE.

    Events:
    - delta: {conversation_id, user_id, content} with the text so far
    - done: the final output
    - error: {code, message}
    """
    user_input = _completion_input(request, config)

    async def event_stream() -> AsyncIterator[str]:
        sink: OutputSink[ChatCompletionOutput] = OutputSink(
            maxsize=settings.stream_buffer_size
        )
        async with locks.acquire(user_input.conversation_id):
            task = asyncio.create_task(
                asyncio.wait_for(
                    orchestrator.execute(user_input, sink),
                    timeout=settings.completion_timeout,
                )
            )
            try:
                async for record in sink:
                    yield _sse("delta", asdict(record))
                result = await task
                yield _sse("done", asdict(result))
            except ChatServiceError as e:
                yield _sse("error", {"code": e.code, "message": e.message})
            except asyncio.TimeoutError:
                logger.warning(
                    "completion_timeout", conversation_id=user_input.conversation_id
                )
                yield _sse("error", {"code": "TIMEOUT", "message": "Completion timed out"})
            finally:
                # Client went away mid-stream: abort the provider call
                if not task.done():
                    task.cancel()
                    with suppress(asyncio.CancelledError):
                        await task

    return StreamingResponse(event_stream(), media_type="text/event-stream")


@router.get("/conversations/{conversation_id}")
async def get_conversation(conversation_id: str, store: StoreDep) -> ConversationResponse:
    """Get a conversation with its live window and erased log.

    Raises:
        NotFoundError: If the conversation does not exist (404).
    """
    conversation = await store.find_by_id(conversation_id)
    return _conversation_response(conversation)


@router.post("/conversations/{conversation_id}/end")
async def end_conversation(
    conversation_id: str, store: StoreDep, locks: LocksDep
) -> ConversationResponse:
    """End a conversation. Ending twice is allowed."""
    async with locks.acquire(conversation_id):
        conversation = await store.find_by_id(conversation_id)
        conversation.end()
        await store.save(conversation)

    logger.info("conversation_ended", conversation_id=conversation_id)
    return _conversation_response(conversation)
