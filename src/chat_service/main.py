"""FastAPI application entry point for the chat completion service"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from chat_service.api.chat import router as chat_router
from chat_service.core.config import settings
from chat_service.core.logging import configure_logging, get_logger
from chat_service.db import init_db
from chat_service.domain.exceptions import (
    ChatServiceError,
    ConversationEndedError,
    NotFoundError,
    ProviderError,
    ValidationError,
)

logger = get_logger(__name__)

# HTTP status per error kind; anything else is a 500
ERROR_STATUS_CODES: dict[type[ChatServiceError], int] = {
    ValidationError: 400,
    NotFoundError: 404,
    ConversationEndedError: 409,
    ProviderError: 502,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan context manager for startup/shutdown."""
    # Startup
    configure_logging()
    init_db()
    logger.info("database_initialized", path=str(settings.database_path))
    yield
    # Shutdown (nothing to clean up for now)


app = FastAPI(
    title="Chat Completion Service",
    description="Token-budgeted conversations with streamed LLM completions",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(chat_router)


@app.exception_handler(ChatServiceError)
async def chat_service_error_handler(request: Request, exc: ChatServiceError) -> JSONResponse:
    """Map service error kinds to HTTP status codes."""
    status_code = next(
        (code for kind, code in ERROR_STATUS_CODES.items() if isinstance(exc, kind)),
        500,
    )
    logger.warning(
        "request_failed",
        path=request.url.path,
        code=exc.code,
        status_code=status_code,
        error=exc.message,
    )
    return JSONResponse(
        status_code=status_code,
        content={"code": exc.code, "detail": exc.message},
    )


@app.get("/api/v1/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns:
        dict with status "ok" if the service is healthy.
    """
    return {"status": "ok"}


def run() -> None:
    """Run the service with uvicorn."""
    import uvicorn

    uvicorn.run(
        "chat_service.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
