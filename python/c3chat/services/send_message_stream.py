"""Streaming send message service - async generator implementation.

Runs the same phases as send_message but writes `data: {json}` records as
the reply grows:

- metadata: {chatId} once, first, as soon as the chat is known
- content: {fullContent} after every provider delta (cumulative text)
- done: {fullContent, searchResults} after the reply is persisted
- error: {error} terminal, short and safe to show to users

Disconnect handling: when the client goes away the ASGI server stops
iterating and GeneratorExit/CancelledError lands at the current yield. The
provider stream is closed through aclosing and nothing further is persisted:
the user message stays, no assistant message is written and the usage
counter is untouched.
"""

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import aclosing
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from c3chat.errors import ApiError
from c3chat.logging import get_logger, set_chat_id
from c3chat.schemas.chat import (
    ChatRequest,
    StreamContent,
    StreamDone,
    StreamError,
    StreamMetadata,
    encode_record,
)
from c3chat.services.llm import ChatCallable, ProviderInvocationError
from c3chat.services.search import WebSearchClient
from c3chat.services.send_message import (
    build_prompt,
    phase1_prepare,
    phase3_finalize,
    run_with_session,
)

logger = get_logger(__name__)

GENERIC_STREAM_ERROR = "An unexpected error occurred. Please try again."

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def stream_send_message(
    session_factory: sessionmaker[Session],
    search_client: WebSearchClient,
    user_id: UUID,
    request: ChatRequest,
    chat: ChatCallable,
) -> AsyncIterator[str]:
    """Async generator of framed stream records.

    `chat` comes from prevalidate_send; phase 0 has already passed, so every
    failure from here on is reported in-band as an error record.
    """
    start_time = time.monotonic()
    chat_id: UUID | None = None
    full_content = ""
    outcome = "error"

    try:
        # --- Phase 1: Prepare ---
        chat_id = await run_in_threadpool(
            run_with_session,
            session_factory,
            phase1_prepare,
            user_id,
            request.chat_id,
            request.title,
            request.latest_user_message.content,
            chat.provider,
        )
        set_chat_id(str(chat_id))
        yield encode_record(StreamMetadata(chat_id=chat_id))

        # --- Phase 2: Enrich + stream from provider ---
        turns, bundle = await build_prompt(search_client, request)

        async with aclosing(chat.stream(turns)) as deltas:
            async for delta in deltas:
                full_content += delta
                yield encode_record(StreamContent(full_content=full_content))

        # --- Phase 3: Finalize, then announce completion ---
        await run_in_threadpool(
            run_with_session,
            session_factory,
            phase3_finalize,
            user_id,
            chat_id,
            full_content,
            chat.provider,
            chat.key_source,
        )
        outcome = "complete"
        yield encode_record(StreamDone(full_content=full_content, search_results=bundle))

    except ProviderInvocationError as e:
        outcome = e.error_class.value
        yield encode_record(StreamError(error=e.message))
    except ApiError as e:
        outcome = e.code.value
        yield encode_record(StreamError(error=e.message))
    except (asyncio.CancelledError, GeneratorExit):
        outcome = "client_disconnect"
        logger.info("stream_client_disconnect", user_id=str(user_id), chat_id=str(chat_id))
        raise
    except Exception:
        logger.exception("stream_unexpected_error", user_id=str(user_id), chat_id=str(chat_id))
        yield encode_record(StreamError(error=GENERIC_STREAM_ERROR))
    finally:
        logger.info(
            "stream_end",
            user_id=str(user_id),
            chat_id=str(chat_id) if chat_id else None,
            provider=chat.provider,
            key_source=chat.key_source,
            outcome=outcome,
            chars_generated=len(full_content),
            total_ms=int((time.monotonic() - start_time) * 1000),
        )
