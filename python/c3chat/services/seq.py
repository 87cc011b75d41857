"""Sequence assignment helper for message ordering.

Each chat session carries a `next_seq` counter (starts at 1). Messages take
the counter's current value and bump it in the same statement, so two
concurrent appends to one session can never receive the same seq.
"""

from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from c3chat.db.models import ChatSession
from c3chat.logging import get_logger

logger = get_logger(__name__)


def assign_next_message_seq(db: Session, chat_id: UUID) -> int:
    """Atomically assign the next message sequence number for a chat session.

    Must be called inside the caller's transaction; does not commit.

    Raises:
        ValueError: If the chat session does not exist.
    """
    result = db.execute(
        update(ChatSession)
        .where(ChatSession.id == chat_id)
        .values(next_seq=ChatSession.next_seq + 1)
        .returning(ChatSession.next_seq)
    )
    row = result.fetchone()

    if row is None:
        raise ValueError(f"Chat session {chat_id} not found")

    seq = row[0] - 1
    logger.debug("assigned_message_seq", chat_id=str(chat_id), seq=seq)
    return seq
