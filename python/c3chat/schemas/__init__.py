"""Pydantic schemas for request/response models.

All schemas are re-exported here for convenient imports.
"""

from c3chat.schemas.chat import (
    ChatListOut,
    ChatMessageIn,
    ChatOut,
    ChatReply,
    ChatRequest,
    ExplainOut,
    ExplainRequest,
    MessageListOut,
    MessageOut,
    ShareOut,
    SharedChatOut,
    SharedChatSummary,
    StreamContent,
    StreamDone,
    StreamError,
    StreamMetadata,
    SuccessOut,
    decode_record,
    encode_record,
)
from c3chat.schemas.common import CamelModel
from c3chat.schemas.keys import (
    MeOut,
    ModelListOut,
    ModelOut,
    UserApiKeyListOut,
    UserApiKeyOut,
    UserApiKeyUpsert,
)
from c3chat.schemas.search import SearchBundle, SearchResult

__all__ = [
    "CamelModel",
    "ChatListOut",
    "ChatMessageIn",
    "ChatOut",
    "ChatReply",
    "ChatRequest",
    "ExplainOut",
    "ExplainRequest",
    "MeOut",
    "MessageListOut",
    "MessageOut",
    "ModelListOut",
    "ModelOut",
    "SearchBundle",
    "SearchResult",
    "ShareOut",
    "SharedChatOut",
    "SharedChatSummary",
    "StreamContent",
    "StreamDone",
    "StreamError",
    "StreamMetadata",
    "SuccessOut",
    "UserApiKeyListOut",
    "UserApiKeyOut",
    "UserApiKeyUpsert",
    "decode_record",
    "encode_record",
]
