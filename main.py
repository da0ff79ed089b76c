"""
FastAPI reply service

Exposes the answer-generation pipeline to platform workers (web widget,
Telegram, Discord, WhatsApp) over HTTP: complete and streamed replies, cache
invalidation for the settings store, and a health check.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from chatcore.api.handlers.health import check_health
from chatcore.api.handlers.reply import (
    invalidate_cache,
    process_reply,
    process_reply_stream,
    to_generation_request,
)
from chatcore.api.middleware.request_logger import RequestLoggerMiddleware
from chatcore.api.models.chat import CacheInvalidationRequest, ReplyRequest
from chatcore.api.models.errors import (
    create_error_response,
    invalid_request_error,
    reply_error_response,
    server_error,
)
from chatcore.core.answer_generator import AnswerGenerator
from chatcore.lib.config import ConfigLoader
from chatcore.lib.errors import ReplyError
from chatcore.lib.logger import setup_logging

logger = logging.getLogger(__name__)


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the answer generator on startup unless one was injected."""
    logger.info("Starting reply API server")

    owned = app.state.generator is None
    if owned:
        try:
            app.state.generator = AnswerGenerator.from_config(app.state.config)
            logger.info(f"Answer generator ready (model {app.state.config.generation.model})")
        except ValueError as e:
            logger.error(f"Answer generator not initialized: {e}")

    yield

    logger.info("Shutting down reply API server")
    if owned and app.state.generator is not None:
        await app.state.generator.close()


def _generator(app: FastAPI) -> AnswerGenerator:
    generator = app.state.generator
    if generator is None:
        raise HTTPException(
            status_code=503,
            detail=server_error("Answer generator not initialized").model_dump(),
        )
    return generator


def create_app(
    generator: AnswerGenerator | None = None,
    config: ConfigLoader | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        generator: Preconfigured generator (tests); built from config on startup otherwise
        config: Loaded configuration (default: ./config and ./.env)

    Returns:
        FastAPI app
    """
    config = config or ConfigLoader()

    setup_logging(
        log_level=config.server.log_level,
        log_file=config.server.log_file,
        structured=config.server.structured_logs,
    )

    app = FastAPI(
        title="chatcore reply API",
        description="Answer generation for multi-platform chatbots",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.generator = generator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )
    app.add_middleware(RequestLoggerMiddleware)

    @app.exception_handler(ReplyError)
    async def reply_error_handler(request: Request, exc: ReplyError):
        """Classified pipeline failures."""
        status_code, body = reply_error_response(exc)
        logger.warning(f"{request.url.path} failed ({exc.category}): {exc.message}")
        return JSONResponse(status_code=status_code, content=body.model_dump())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Malformed request bodies."""
        first = exc.errors()[0] if exc.errors() else {}
        param = ".".join(str(part) for part in first.get("loc", ()) if part != "body") or None
        body = invalid_request_error(first.get("msg", "Invalid request"), param=param)
        return JSONResponse(status_code=400, content=body.model_dump())

    # HTTPException handler - unwrap ErrorResponse from detail
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        if isinstance(exc.detail, dict) and "error" in exc.detail:
            return JSONResponse(status_code=exc.status_code, content=exc.detail)
        body = create_error_response(str(exc.detail))
        return JSONResponse(status_code=exc.status_code, content=body.model_dump())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content=server_error().model_dump())

    @app.get("/")
    async def root():
        """API root endpoint."""
        return {
            "message": "chatcore reply API",
            "version": "0.1.0",
            "docs": "/docs",
            "endpoints": {
                "reply": "/v1/reply",
                "reply_stream": "/v1/reply/stream",
                "cache_invalidate": "/v1/cache/invalidate",
                "health": "/health",
            },
        }

    @app.post("/v1/reply")
    async def reply(request: ReplyRequest):
        """Generate a complete reply for one message."""
        response = await process_reply(request, _generator(app))
        return JSONResponse(
            content=response.model_dump(mode="json"),
            headers={"X-Reply-Attempt": response.attempt.value},
        )

    @app.post("/v1/reply/stream")
    async def reply_stream(request: ReplyRequest):
        """Stream a reply as Server-Sent Events (web widget)."""
        generator = _generator(app)
        # Validation errors must surface as HTTP 400 before the stream starts
        generator.validate(to_generation_request(request))
        return EventSourceResponse(process_reply_stream(request, generator))

    @app.post("/v1/cache/invalidate")
    async def cache_invalidate(request: CacheInvalidationRequest):
        """Drop a bot's cached knowledge after a settings write."""
        return invalidate_cache(request, _generator(app))

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return await check_health(app.state.generator)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    server = app.state.config.server
    uvicorn.run(
        "main:app",
        host=server.host,
        port=server.port,
        log_level=server.log_level.lower(),
    )
