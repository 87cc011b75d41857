"""Client-side chat view state and its pure reducer.

Lifecycle of one send:

    Idle --SendStarted--> Sending (optimistic user message + streaming placeholder)
         --MetadataReceived/ContentReceived--> Receiving
         --Settled--> Idle (placeholder becomes the final assistant message)
         --Failed--> Idle with error (placeholder removed, user message kept)

`reduce` never mutates its input and returns the same object when an action
does not apply, so callers can detect rejected actions with `is`.
"""

from dataclasses import dataclass, replace
from uuid import uuid4


@dataclass(frozen=True)
class ClientMessage:
    id: str
    role: str
    content: str
    is_streaming: bool = False


@dataclass(frozen=True)
class ChatViewState:
    chat_id: str | None = None
    messages: tuple[ClientMessage, ...] = ()
    is_loading: bool = False
    error: str | None = None

    @property
    def placeholder(self) -> ClientMessage | None:
        for message in reversed(self.messages):
            if message.is_streaming:
                return message
        return None


# =============================================================================
# Actions
# =============================================================================


@dataclass(frozen=True)
class SendStarted:
    user_message_id: str
    placeholder_id: str
    content: str

    @classmethod
    def new(cls, content: str) -> "SendStarted":
        return cls(user_message_id=str(uuid4()), placeholder_id=str(uuid4()), content=content)


@dataclass(frozen=True)
class MetadataReceived:
    chat_id: str


@dataclass(frozen=True)
class ContentReceived:
    """Cumulative reply text; replaying the same record is a no-op."""

    full_content: str


@dataclass(frozen=True)
class Settled:
    full_content: str
    chat_id: str | None = None


@dataclass(frozen=True)
class Failed:
    error: str


@dataclass(frozen=True)
class Reset:
    """Replace the view with server-confirmed (or cached) messages."""

    chat_id: str | None = None
    messages: tuple[ClientMessage, ...] = ()


Action = SendStarted | MetadataReceived | ContentReceived | Settled | Failed | Reset


def _with_placeholder(state: ChatViewState, **changes) -> tuple[ClientMessage, ...]:
    return tuple(replace(m, **changes) if m.is_streaming else m for m in state.messages)


def reduce(state: ChatViewState, action: Action) -> ChatViewState:
    if isinstance(action, Reset):
        return ChatViewState(chat_id=action.chat_id, messages=tuple(action.messages))

    if isinstance(action, SendStarted):
        if state.is_loading:
            return state
        return replace(
            state,
            messages=(
                *state.messages,
                ClientMessage(id=action.user_message_id, role="user", content=action.content),
                ClientMessage(
                    id=action.placeholder_id, role="assistant", content="", is_streaming=True
                ),
            ),
            is_loading=True,
            error=None,
        )

    if not state.is_loading:
        return state

    if isinstance(action, MetadataReceived):
        if state.chat_id == action.chat_id:
            return state
        return replace(state, chat_id=action.chat_id)

    if isinstance(action, ContentReceived):
        placeholder = state.placeholder
        if placeholder is None or placeholder.content == action.full_content:
            return state
        return replace(state, messages=_with_placeholder(state, content=action.full_content))

    if isinstance(action, Settled):
        return replace(
            state,
            chat_id=action.chat_id or state.chat_id,
            messages=_with_placeholder(state, content=action.full_content, is_streaming=False),
            is_loading=False,
            error=None,
        )

    if isinstance(action, Failed):
        return replace(
            state,
            messages=tuple(m for m in state.messages if not m.is_streaming),
            is_loading=False,
            error=action.error,
        )

    return state
