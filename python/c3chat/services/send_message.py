"""Send message service - the chat request pipeline.

Phase 0 - Pre-validation (no DB writes):
- Provider normalization (E_UNSUPPORTED_PROVIDER)
- User row lookup (E_USER_NOT_FOUND)
- Usage gate (E_QUOTA_EXCEEDED)
- Credential resolution, own key before server key (E_NO_CREDENTIAL)
- Chat ownership when a chat id is given (E_CHAT_NOT_FOUND)

Phase 1 - Prepare (single DB transaction):
- Create the chat if needed
- Insert the latest user message, committed before the provider is called

Phase 2 - Execute (no DB transaction held):
- Optional web search; its system turn goes first
- Provider call

Phase 3 - Finalize (single DB transaction):
- Insert the assistant message
- Increment the free-usage counter when the server key was used

Invariants:
- Nothing is written when phase 0 fails
- No assistant message and no counter change unless generation succeeded
- No DB transaction held during the provider call or the search

Sync DB work runs through run_in_threadpool with short-lived sessions from
the session factory, never a request-scoped session, so the same phases
serve both the buffered and the streaming variant.
"""

from collections.abc import Callable
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from c3chat.db.session import transaction
from c3chat.errors import PersistenceError
from c3chat.logging import get_logger, set_chat_id
from c3chat.schemas.chat import ChatReply, ChatRequest
from c3chat.schemas.search import SearchBundle
from c3chat.services.chats import append_message, create_chat, get_chat_for_owner_or_404
from c3chat.services.llm import ChatCallable, NoCredentialError, ProviderGateway, Turn
from c3chat.services.llm.prompt import render_search_system_prompt, with_search_context
from c3chat.services.search import MAX_RESULTS, WebSearchClient
from c3chat.services.usage import record_free_usage, require_admission
from c3chat.services.user_keys import get_user_key_plaintext

logger = get_logger(__name__)

T = TypeVar("T")


def run_with_session(
    session_factory: sessionmaker[Session], fn: Callable[..., T], *args: Any
) -> T:
    """Call fn(db, *args) with a fresh session that is closed afterwards."""
    with session_factory() as db:
        return fn(db, *args)


# =============================================================================
# Phase 0 - Pre-validation
# =============================================================================


def resolve_chat_callable(
    db: Session,
    gateway: ProviderGateway,
    user_id: UUID,
    provider_name: str,
    model_id: str | None,
) -> ChatCallable:
    """Normalize the provider, apply the usage gate and bind a credential.

    Raises:
        UnsupportedProviderError: Unknown or disabled provider.
        NotFoundError: E_USER_NOT_FOUND.
        QuotaExceededError: Free quota exhausted and no own key.
        NoCredentialError: No usable key at all.
    """
    provider = gateway.normalize_provider(provider_name)
    admission = require_admission(db, user_id, provider)

    credential = None
    if admission.uses_own_credential:
        credential = get_user_key_plaintext(db, user_id, provider)
        if credential is None:
            # Stored key exists but cannot be decrypted
            raise NoCredentialError(provider)

    return gateway.resolve(provider, model_id, credential)


def validate_pre_phase(
    db: Session,
    gateway: ProviderGateway,
    user_id: UUID,
    request: ChatRequest,
) -> ChatCallable:
    """Phase 0: every check that can reject the request, with no writes."""
    chat = resolve_chat_callable(db, gateway, user_id, request.provider, request.model_id)
    if request.chat_id is not None:
        get_chat_for_owner_or_404(db, user_id, request.chat_id)
    return chat


async def prevalidate_send(
    session_factory: sessionmaker[Session],
    gateway: ProviderGateway,
    user_id: UUID,
    request: ChatRequest,
) -> ChatCallable:
    return await run_in_threadpool(
        run_with_session, session_factory, validate_pre_phase, gateway, user_id, request
    )


# =============================================================================
# Phase 1 - Prepare
# =============================================================================


def phase1_prepare(
    db: Session,
    user_id: UUID,
    chat_id: UUID | None,
    title: str | None,
    user_text: str,
    provider: str,
) -> UUID:
    """Phase 1: create the chat if needed and commit the user message.

    Returns:
        The chat id the exchange is persisted under.
    """
    with transaction(db):
        if chat_id is None:
            chat = create_chat(db, user_id, title)
        else:
            chat = get_chat_for_owner_or_404(db, user_id, chat_id)
        append_message(db, chat.id, "user", user_text, provider)

    logger.info("user_message_persisted", user_id=str(user_id), chat_id=str(chat.id))
    return chat.id


# =============================================================================
# Phase 2 - Execute helpers
# =============================================================================


def request_turns(request: ChatRequest) -> list[Turn]:
    return [Turn(role=m.role, content=m.content) for m in request.messages]


async def build_prompt(
    search_client: WebSearchClient,
    request: ChatRequest,
) -> tuple[list[Turn], SearchBundle | None]:
    """Conversation turns, with the search system turn first when enabled.

    Returns:
        (turns, bundle); bundle is None when search was not requested.
    """
    turns = request_turns(request)
    if not request.search:
        return turns, None

    question = request.latest_user_message.content
    bundle = await search_client.search(question, MAX_RESULTS)
    system_prompt = render_search_system_prompt(question, bundle.results)
    return with_search_context(turns, system_prompt), bundle


# =============================================================================
# Phase 3 - Finalize
# =============================================================================


def phase3_finalize(
    db: Session,
    user_id: UUID,
    chat_id: UUID,
    reply: str,
    provider: str,
    key_source: str,
) -> None:
    """Phase 3: assistant message and usage increment in one transaction.

    Raises:
        PersistenceError: The transaction failed; nothing was written.
    """
    try:
        with transaction(db):
            append_message(db, chat_id, "assistant", reply, provider)
            if key_source == "server":
                record_free_usage(db, user_id)
    except SQLAlchemyError as e:
        logger.error(
            "assistant_message_persist_failed",
            user_id=str(user_id),
            chat_id=str(chat_id),
            error_type=type(e).__name__,
        )
        raise PersistenceError() from e

    logger.info(
        "assistant_message_persisted",
        user_id=str(user_id),
        chat_id=str(chat_id),
        key_source=key_source,
        reply_chars=len(reply),
    )


def record_usage_only(db: Session, user_id: UUID) -> None:
    """Usage increment for calls that persist no message (explain)."""
    try:
        with transaction(db):
            record_free_usage(db, user_id)
    except SQLAlchemyError as e:
        logger.error("usage_persist_failed", user_id=str(user_id), error_type=type(e).__name__)
        raise PersistenceError("Failed to record usage. Please try again.") from e


# =============================================================================
# Buffered entry point
# =============================================================================


async def send_message(
    session_factory: sessionmaker[Session],
    search_client: WebSearchClient,
    user_id: UUID,
    request: ChatRequest,
    chat: ChatCallable,
) -> ChatReply:
    """Buffered mode: run phases 1-3 and return the full reply.

    `chat` comes from prevalidate_send; phase 0 has already passed.

    Raises:
        NotFoundError: The chat disappeared between phase 0 and phase 1.
        ProviderInvocationError: The provider call failed (user message kept).
        PersistenceError: The reply could not be saved.
    """
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

    turns, bundle = await build_prompt(search_client, request)
    reply = await chat.invoke(turns)

    await run_in_threadpool(
        run_with_session,
        session_factory,
        phase3_finalize,
        user_id,
        chat_id,
        reply,
        chat.provider,
        chat.key_source,
    )
    return ChatReply(reply=reply, chat_id=chat_id, search_results=bundle)
