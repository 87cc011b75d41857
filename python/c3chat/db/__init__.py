"""Database module for c3chat.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from c3chat.db.engine import create_db_engine, get_engine
from c3chat.db.models import Base, ChatSession, Message, MessageRole, User, UserApiKey
from c3chat.db.session import create_session_factory, get_db, get_session_factory, transaction

__all__ = [
    "Base",
    "ChatSession",
    "Message",
    "MessageRole",
    "User",
    "UserApiKey",
    "create_db_engine",
    "create_session_factory",
    "get_db",
    "get_engine",
    "get_session_factory",
    "transaction",
]
