"""Reply and cache invalidation handlers."""

import logging
from collections.abc import AsyncIterator

from chatcore.core.answer_generator import AnswerGenerator
from chatcore.core.formatters import format_telegram_message
from chatcore.lib.errors import ReplyError
from chatcore.models.generation import GenerationRequest

from ..models.chat import (
    CacheInvalidationRequest,
    CacheInvalidationResponse,
    ReplyChunk,
    ReplyRequest,
    ReplyResponse,
)
from ..models.errors import reply_error_response

logger = logging.getLogger(__name__)

DONE_MARKER = "[DONE]"


def to_generation_request(request: ReplyRequest) -> GenerationRequest:
    return GenerationRequest(
        profile=request.profile, message=request.message, platform=request.platform
    )


async def process_reply(request: ReplyRequest, generator: AnswerGenerator) -> ReplyResponse:
    """Generate a complete reply.

    Args:
        request: Validated reply request
        generator: Answer generator

    Returns:
        ReplyResponse

    Raises:
        ReplyError: Classified generation failure
    """
    result = await generator.generate(to_generation_request(request))

    reply = result.reply_text
    if request.output_format == "telegram_html":
        reply = format_telegram_message(reply)

    return ReplyResponse(
        reply=reply,
        platform=request.platform,
        attempt=result.attempt,
        language=result.language,
        market_data_used=result.market_data_used,
        elapsed_ms=result.elapsed_ms,
    )


async def process_reply_stream(
    request: ReplyRequest, generator: AnswerGenerator
) -> AsyncIterator[dict]:
    """Stream a reply as Server-Sent Events.

    Chunks are sent as ``{"content": ...}`` data events and the stream ends
    with ``[DONE]``. A failure after the stream started is sent as an
    ``error`` event carrying the usual error body.
    """
    try:
        async for chunk in generator.stream_reply(
            request.profile, request.message, request.platform
        ):
            yield {"data": ReplyChunk(content=chunk).model_dump_json()}
    except ReplyError as e:
        logger.error(f"Streaming reply failed ({e.category}): {e.message}")
        _, body = reply_error_response(e)
        yield {"event": "error", "data": body.model_dump_json()}

    yield {"data": DONE_MARKER}


def invalidate_cache(
    request: CacheInvalidationRequest, generator: AnswerGenerator
) -> CacheInvalidationResponse:
    """Evict one bot's cached knowledge and prompts."""
    evicted = generator.invalidate_knowledge_cache(request.bot_id)
    return CacheInvalidationResponse(bot_id=request.bot_id, evicted=evicted)
