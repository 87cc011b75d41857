"""Chat share service layer.

Sharing rules:
- A share token is an opaque 32-hex-char random string, unique per chat
- Sharing is idempotent: an already-shared chat keeps its token
- Anyone holding the token can read the chat and its messages
- A share link outlives a soft delete: the token keeps reading the chat
"""

import secrets
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from c3chat.db.models import ChatSession
from c3chat.errors import ApiErrorCode, NotFoundError
from c3chat.logging import get_logger
from c3chat.schemas.chat import SharedChatOut, SharedChatSummary
from c3chat.services.chats import get_chat_for_owner_or_404, load_messages, message_to_out

logger = get_logger(__name__)

SHARE_TOKEN_BYTES = 16


def generate_share_token() -> str:
    return secrets.token_hex(SHARE_TOKEN_BYTES)


def share_chat(db: Session, user_id: UUID, chat_id: UUID) -> str:
    """Return the chat's share token, creating one if needed.

    Raises:
        NotFoundError: E_CHAT_NOT_FOUND if the chat is not an owned, live chat.
    """
    chat = get_chat_for_owner_or_404(db, user_id, chat_id)
    if chat.share_token:
        return chat.share_token

    chat.share_token = generate_share_token()
    db.commit()
    logger.info("chat_shared", user_id=str(user_id), chat_id=str(chat_id))
    return chat.share_token


def get_shared_chat(db: Session, share_token: str) -> SharedChatOut:
    """Public read of a shared chat.

    Raises:
        NotFoundError: E_NOT_FOUND for unknown tokens.
    """
    chat = db.scalars(select(ChatSession).where(ChatSession.share_token == share_token)).first()
    if chat is None:
        raise NotFoundError(ApiErrorCode.E_NOT_FOUND, "Shared chat not found")

    return SharedChatOut(
        chat=SharedChatSummary(id=chat.id, title=chat.title, created_at=chat.created_at),
        messages=[message_to_out(m) for m in load_messages(db, chat.id)],
    )
