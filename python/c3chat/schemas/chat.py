"""Chat, message and share Pydantic schemas.

Request bodies for POST /chat and POST /explain, response shapes for chat
listing/sharing, and the tagged stream records written by streaming mode.
"""

from datetime import datetime
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import Field, TypeAdapter, field_validator, model_validator

from c3chat.schemas.common import CamelModel
from c3chat.schemas.search import SearchBundle

# Valid message roles - must match DB constraint
MESSAGE_ROLES = Literal["user", "assistant", "system"]

MAX_MESSAGE_CONTENT_LENGTH = 50_000
MAX_HISTORY_MESSAGES = 200
MAX_TITLE_LENGTH = 200
MAX_SELECTED_TEXT_LENGTH = 10_000

DEFAULT_CHAT_TITLE = "New Chat"


# =============================================================================
# Request Schemas
# =============================================================================


class ChatMessageIn(CamelModel):
    """One turn of conversation history as sent by the client."""

    role: MESSAGE_ROLES
    content: str = Field(..., max_length=MAX_MESSAGE_CONTENT_LENGTH)


class ChatRequest(CamelModel):
    """Request schema for POST /chat.

    - messages: full history, newest last; must contain a non-empty user turn
    - chat_id: absent means "start a new chat"
    - search: enrich the prompt with web results for the latest user turn
    - stream: streaming (default) vs buffered response
    """

    messages: list[ChatMessageIn] = Field(..., min_length=1, max_length=MAX_HISTORY_MESSAGES)
    provider: str
    model_id: str | None = None
    chat_id: UUID | None = None
    title: str | None = Field(None, max_length=MAX_TITLE_LENGTH)
    search: bool = False
    stream: bool = True

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("provider is required")
        return v

    @field_validator("model_id", "title")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    @model_validator(mode="after")
    def require_user_message(self) -> "ChatRequest":
        if self.latest_user_message is None:
            raise ValueError("messages must include a non-empty user message")
        return self

    @property
    def latest_user_message(self) -> ChatMessageIn | None:
        for message in reversed(self.messages):
            if message.role == "user":
                return message if message.content.strip() else None
        return None


class ExplainRequest(CamelModel):
    """Request schema for POST /explain."""

    selected_text: str = Field(..., min_length=1, max_length=MAX_SELECTED_TEXT_LENGTH)
    chat_context: list[ChatMessageIn] = Field(default_factory=list, max_length=MAX_HISTORY_MESSAGES)
    provider: str
    model_id: str | None = None

    @field_validator("selected_text")
    @classmethod
    def validate_selected_text(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("selectedText must not be blank")
        return v


# =============================================================================
# Response Schemas
# =============================================================================


class MessageOut(CamelModel):
    """A persisted message. Immutable once written."""

    id: UUID
    seq: int
    role: str
    content: str
    provider: str | None = None
    created_at: datetime


class ChatOut(CamelModel):
    id: UUID
    title: str
    is_shared: bool = False
    created_at: datetime
    updated_at: datetime


class ChatListOut(CamelModel):
    chats: list[ChatOut]


class MessageListOut(CamelModel):
    messages: list[MessageOut]


class ChatReply(CamelModel):
    """Buffered-mode result of POST /chat."""

    reply: str
    chat_id: UUID
    search_results: SearchBundle | None = None


class ExplainOut(CamelModel):
    explanation: str


class ShareOut(CamelModel):
    share_token: str


class SharedChatSummary(CamelModel):
    id: UUID
    title: str
    created_at: datetime


class SharedChatOut(CamelModel):
    chat: SharedChatSummary
    messages: list[MessageOut]


class SuccessOut(CamelModel):
    success: bool = True


# =============================================================================
# Stream Records
# =============================================================================


class StreamMetadata(CamelModel):
    """First record: the chat the exchange is persisted under."""

    type: Literal["metadata"] = "metadata"
    chat_id: UUID


class StreamContent(CamelModel):
    """Cumulative reply text so far (not a delta)."""

    type: Literal["content"] = "content"
    full_content: str


class StreamDone(CamelModel):
    type: Literal["done"] = "done"
    full_content: str
    search_results: SearchBundle | None = None


class StreamError(CamelModel):
    type: Literal["error"] = "error"
    error: str


StreamRecord = Annotated[
    Union[StreamMetadata, StreamContent, StreamDone, StreamError],
    Field(discriminator="type"),
]

stream_record_adapter = TypeAdapter(StreamRecord)


def encode_record(record: StreamMetadata | StreamContent | StreamDone | StreamError) -> str:
    """Frame one record for the wire: `data: {json}` plus a blank line."""
    return f"data: {record.model_dump_json(by_alias=True)}\n\n"


def decode_record(payload: str) -> StreamMetadata | StreamContent | StreamDone | StreamError:
    """Parse the JSON after a `data: ` prefix back into a typed record."""
    return stream_record_adapter.validate_json(payload)
