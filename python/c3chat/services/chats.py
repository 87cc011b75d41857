"""Chat session service layer.

Owner-scoped CRUD for chat sessions and their messages:
- Sessions are soft-deleted (is_deleted) and never physically erased here
- Soft-deleted sessions are invisible to every read path
- Messages are append-only; seq comes from the session's next_seq counter
- Message order is created_at ascending, ties broken by seq

Functions that only stage writes (create_chat, append_message) flush but do
not commit; the caller owns the transaction.
"""

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from c3chat.db.models import ChatSession, Message
from c3chat.errors import ApiErrorCode, NotFoundError
from c3chat.logging import get_logger
from c3chat.schemas.chat import DEFAULT_CHAT_TITLE, ChatOut, MessageOut
from c3chat.services.seq import assign_next_message_seq

logger = get_logger(__name__)


# =============================================================================
# Helper Functions
# =============================================================================


def get_chat_for_owner_or_404(db: Session, user_id: UUID, chat_id: UUID) -> ChatSession:
    """Load an owned, non-deleted chat.

    Returns 404 (not 403) for chats owned by someone else so existence is
    not revealed.
    """
    chat = db.scalars(
        select(ChatSession).where(
            ChatSession.id == chat_id,
            ChatSession.user_id == user_id,
            ChatSession.is_deleted.is_(False),
        )
    ).first()
    if chat is None:
        raise NotFoundError(ApiErrorCode.E_CHAT_NOT_FOUND, "Chat not found")
    return chat


def chat_to_out(chat: ChatSession) -> ChatOut:
    return ChatOut(
        id=chat.id,
        title=chat.title,
        is_shared=chat.share_token is not None,
        created_at=chat.created_at,
        updated_at=chat.updated_at,
    )


def message_to_out(message: Message) -> MessageOut:
    return MessageOut(
        id=message.id,
        seq=message.seq,
        role=message.role,
        content=message.content,
        provider=message.provider,
        created_at=message.created_at,
    )


def load_messages(db: Session, chat_id: UUID) -> list[Message]:
    stmt = (
        select(Message)
        .where(Message.chat_id == chat_id)
        .order_by(Message.created_at.asc(), Message.seq.asc())
    )
    return list(db.scalars(stmt).all())


# =============================================================================
# Write Paths
# =============================================================================


def create_chat(db: Session, user_id: UUID, title: str | None = None) -> ChatSession:
    """Stage a new chat session. Flushes, does not commit."""
    chat = ChatSession(user_id=user_id, title=title or DEFAULT_CHAT_TITLE)
    db.add(chat)
    db.flush()
    logger.info("chat_created", user_id=str(user_id), chat_id=str(chat.id))
    return chat


def append_message(
    db: Session,
    chat_id: UUID,
    role: str,
    content: str,
    provider: str | None = None,
) -> Message:
    """Stage one message at the end of a chat. Flushes, does not commit.

    Bumping next_seq also refreshes the session's updated_at.
    """
    seq = assign_next_message_seq(db, chat_id)
    message = Message(chat_id=chat_id, seq=seq, role=role, content=content, provider=provider)
    db.add(message)
    db.flush()
    return message


def delete_chat(db: Session, user_id: UUID, chat_id: UUID) -> None:
    """Soft-delete one owned chat.

    Raises:
        NotFoundError: E_CHAT_NOT_FOUND if missing, not owned, or already deleted.
    """
    get_chat_for_owner_or_404(db, user_id, chat_id)
    db.execute(
        update(ChatSession)
        .where(ChatSession.id == chat_id)
        .values(is_deleted=True)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    logger.info("chat_deleted", user_id=str(user_id), chat_id=str(chat_id))


def delete_all_chats(db: Session, user_id: UUID) -> int:
    """Soft-delete every chat the user owns. Returns the number affected."""
    result = db.execute(
        update(ChatSession)
        .where(ChatSession.user_id == user_id, ChatSession.is_deleted.is_(False))
        .values(is_deleted=True)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    logger.info("chats_deleted_all", user_id=str(user_id), count=result.rowcount)
    return result.rowcount


# =============================================================================
# Read Paths
# =============================================================================


def list_chats(db: Session, user_id: UUID) -> list[ChatOut]:
    """Non-deleted chats of the user, most recently updated first."""
    stmt = (
        select(ChatSession)
        .where(ChatSession.user_id == user_id, ChatSession.is_deleted.is_(False))
        .order_by(ChatSession.updated_at.desc(), ChatSession.id.desc())
    )
    return [chat_to_out(chat) for chat in db.scalars(stmt).all()]


def list_messages(db: Session, user_id: UUID, chat_id: UUID) -> list[MessageOut]:
    """Messages of an owned chat in conversation order."""
    get_chat_for_owner_or_404(db, user_id, chat_id)
    return [message_to_out(m) for m in load_messages(db, chat_id)]
